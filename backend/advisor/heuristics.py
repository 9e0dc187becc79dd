"""Deterministic fallback answers built from keyword search over uploaded files.

Used whenever no model provider is configured or every provider failed, so
it must always return a non-empty answer. Matching is case-insensitive
substring search; excerpts keep the original casing of the matched line and
lines over the length bound are skipped rather than cut.
"""
from typing import List, Optional, Sequence

# Uploaded reports can be in English or Russian.
PROFIT_WORDS = ("profit", "net profit", "прибыль")
REVENUE_WORDS = ("revenue", "total revenue", "выручка")
INCOME_WORDS = ("income", "доход")
EXPENSE_WORDS = ("expense", "cost", "расход", "затрат")
SALES_WORDS = ("sales", "продаж")
GROWTH_WORDS = ("grow", "grew", "increase", "рост", "вырос", "увеличил")
COMPARISON_WORDS = ("compar", "сравнени")
STAFF_WORDS = ("employee", "staff", "worker", "personnel", "сотрудник", "работник", "персонал")
NOVEMBER_WORDS = ("november", "ноябр")
DECEMBER_WORDS = ("december", "декабр")

NO_FILES_NOTICE = "📂 No files uploaded yet."

FINANCIAL_HEADER = "📊 **Financial analysis:**\n\n"
STAFF_HEADER = "👥 **Staff information:**\n\n"
GROWTH_HEADER = "📈 **Growth analysis:**\n\n"
PERIODS_HEADER = "📊 **Period comparison:**\n\n"

SPECIAL_CATEGORIES = ("financial", "hr", "legal")

EMPLOYEE_WINDOW = 5
MAX_EMPLOYEE_BLOCKS = 3
SHOWN_EMPLOYEE_BLOCKS = 2
MAX_EMPLOYEE_BLOCK_CHARS = 300
PERIOD_LOOKAHEAD = 3


def contains_any(text_lower: str, words: Sequence[str]) -> bool:
    return any(w in text_lower for w in words)


def lines_containing(text: str, keywords: Sequence[str]) -> List[str]:
    """Return original-case lines whose lowercased form contains any keyword."""
    lines = text.split("\n")
    lowered = text.lower().split("\n")
    return [lines[i] for i, low in enumerate(lowered) if contains_any(low, keywords)]


def _bullets(lines: Sequence[str], limit: int, max_len: int) -> List[str]:
    return [f"- {line.strip()}\n" for line in lines[:limit] if 0 < len(line) < max_len]


def _subsection(title: str, text: str, keywords: Sequence[str], limit: int, max_len: int) -> str:
    bullets = _bullets(lines_containing(text, keywords), limit, max_len)
    if not bullets:
        return ""
    return f"**{title}:**\n" + "".join(bullets) + "\n"


def employee_blocks(text: str) -> List[str]:
    """Blocks made of a staff-keyword line and the non-blank lines right after it."""
    lines = text.split("\n")
    blocks: List[str] = []
    for i, line in enumerate(lines):
        if not contains_any(line.lower(), STAFF_WORDS):
            continue
        block = "".join(
            lines[j] + "\n" for j in range(i, min(len(lines), i + EMPLOYEE_WINDOW)) if lines[j].strip()
        )
        if len(block) < MAX_EMPLOYEE_BLOCK_CHARS:
            blocks.append(block)
        if len(blocks) >= MAX_EMPLOYEE_BLOCKS:
            break
    return blocks


def extract_employee_info(text: str) -> str:
    mentions = sum(1 for line in text.lower().split("\n") if contains_any(line, STAFF_WORDS))
    if not mentions:
        return ""

    out = ["**Staff information found:**\n", f"- Staff mentions found: {mentions}\n"]
    for i, block in enumerate(employee_blocks(text)[:SHOWN_EMPLOYEE_BLOCKS], start=1):
        out.append(f"\n**Employee {i}:**\n{block}")
    out.append("\n")
    return "".join(out)


def extract_financial_info(text: str, question_lower: str) -> str:
    """Targeted excerpts for whichever money topics the question asks about."""
    sections = []
    if contains_any(question_lower, PROFIT_WORDS):
        sections.append(_subsection("Profit", text, PROFIT_WORDS, 5, 200))
    if contains_any(question_lower, REVENUE_WORDS + INCOME_WORDS):
        sections.append(_subsection("Revenue", text, REVENUE_WORDS + INCOME_WORDS, 5, 200))
    if contains_any(question_lower, EXPENSE_WORDS):
        sections.append(_subsection("Expenses", text, EXPENSE_WORDS, 5, 200))
    if contains_any(question_lower, SALES_WORDS):
        sections.append(_subsection("Sales", text, SALES_WORDS, 5, 200))

    body = "".join(sections)
    if not body:
        return ""
    return FINANCIAL_HEADER + body


def _profit_and_revenue(text: str) -> str:
    body = _subsection("Profit", text, PROFIT_WORDS, 5, 200) + _subsection(
        "Revenue", text, REVENUE_WORDS + INCOME_WORDS, 5, 200
    )
    return FINANCIAL_HEADER + body if body else ""


def _line_near(lines: List[str], lowered: List[str], start: int, keywords: Sequence[str]) -> Optional[str]:
    for j in range(start, min(len(lines), start + PERIOD_LOOKAHEAD)):
        if contains_any(lowered[j], keywords):
            return lines[j].strip()
    return None


def compare_periods(text: str) -> str:
    """Pair the profit and revenue lines found next to each period mention."""
    lines = text.split("\n")
    lowered = text.lower().split("\n")
    found = {}
    for i, low in enumerate(lowered):
        for period, words in (("November", NOVEMBER_WORDS), ("December", DECEMBER_WORDS)):
            if not contains_any(low, words):
                continue
            for metric, keywords in (("Profit", PROFIT_WORDS), ("Revenue", REVENUE_WORDS)):
                key = (metric, period)
                if key not in found:
                    line = _line_near(lines, lowered, i, keywords)
                    if line:
                        found[key] = line

    out = []
    for metric in ("Profit", "Revenue"):
        pair = [(p, found[(metric, p)]) for p in ("November", "December") if (metric, p) in found]
        if pair:
            out.append(f"**{metric}:**\n")
            out.extend(f"{period}: {line}\n" for period, line in pair)
            out.append("\n")

    dynamics = _bullets(lines_containing(text, GROWTH_WORDS + ("+",)), 3, 150)
    if dynamics:
        out.append("**Dynamics:**\n")
        out.extend(dynamics)
        out.append("\n")
    if not out:
        return ""
    return PERIODS_HEADER + "".join(out)


def extract_growth_info(text: str) -> str:
    text_lower = text.lower()
    out = []
    if contains_any(text_lower, GROWTH_WORDS):
        bullets = _bullets(lines_containing(text, GROWTH_WORDS + COMPARISON_WORDS), 5, 200)
        if bullets:
            out.append(GROWTH_HEADER)
            out.extend(bullets)
            out.append("\n")
    if contains_any(text_lower, NOVEMBER_WORDS) and contains_any(text_lower, DECEMBER_WORDS):
        out.append(compare_periods(text))
    return "".join(out)


def _financial_section(text: str, has_files: bool) -> str:
    out = [FINANCIAL_HEADER]
    if not has_files:
        out.append(f"{NO_FILES_NOTICE} Upload sales reports to analyse your financial data.\n\n")
        return "".join(out)

    text_lower = text.lower()
    if contains_any(text_lower, PROFIT_WORDS):
        out.append(_subsection("Profit analysis", text, PROFIT_WORDS, 3, 200))
    if contains_any(text_lower, REVENUE_WORDS):
        out.append(_subsection("Revenue analysis", text, REVENUE_WORDS, 3, 200))
    if contains_any(text_lower, GROWTH_WORDS):
        out.append(_subsection("Growth dynamics", text, GROWTH_WORDS, 3, 200))
    if not contains_any(text_lower, PROFIT_WORDS + REVENUE_WORDS):
        out.append(
            "I analysed your files but did not find detailed financial information.\n"
            "Please upload sales reports for a more accurate analysis.\n\n"
        )
    return "".join(out)


def _staff_section(text: str, has_files: bool) -> str:
    out = [STAFF_HEADER]
    if not has_files:
        out.append(f"{NO_FILES_NOTICE} Upload a file with staff information to work with personnel data.\n\n")
    elif contains_any(text.lower(), STAFF_WORDS):
        info = extract_employee_info(text)
        out.append(
            info
            or "Staff information was found in your files, but a more detailed analysis is needed. "
            "Please ask a more specific question.\n\n"
        )
    else:
        out.append(
            "No staff information was found in the uploaded files.\n"
            "Upload a file with staff data to get detailed information.\n\n"
        )
    return "".join(out)


def _legal_section(has_files: bool) -> str:
    out = [
        "⚖️ **Legal question:**\n\n"
        "For precise answers to legal questions I recommend consulting a lawyer.\n"
        "I can help with general questions, but I cannot give legal advice.\n\n"
    ]
    if not has_files:
        out.append(f"{NO_FILES_NOTICE} Upload contracts or other documents if you want me to refer to them.\n\n")
    return "".join(out)


def _general_section(text: str, question_lower: str, file_count: int) -> str:
    if not file_count:
        return (
            f"{NO_FILES_NOTICE} Upload files with data about your business for more accurate answers.\n\n"
            "**Recommended files:**\n"
            "- Sales reports\n"
            "- Staff information\n"
            "- Financial statements\n\n"
        )

    text_lower = text.lower()
    wants_growth = contains_any(question_lower, GROWTH_WORDS) or (
        contains_any(question_lower, NOVEMBER_WORDS) and contains_any(question_lower, DECEMBER_WORDS)
    )
    wants_financial = contains_any(
        question_lower, PROFIT_WORDS + REVENUE_WORDS + INCOME_WORDS + EXPENSE_WORDS + SALES_WORDS
    )
    wants_staff = contains_any(question_lower, STAFF_WORDS)

    if wants_growth:
        info = (
            extract_growth_info(text)
            or extract_financial_info(text, question_lower)
            or _profit_and_revenue(text)
        )
        if info:
            return info
        return (
            "I analysed your files. To answer questions about growth accurately, "
            "upload reports for different periods.\n\n"
        )

    if wants_financial:
        info = extract_financial_info(text, question_lower)
        if info:
            return info
        return (
            FINANCIAL_HEADER
            + "I analysed your files but did not find precise information for your question.\n"
            "Try asking more specifically, for example:\n"
            "- What was the profit in November?\n"
            "- How much revenue was there in December?\n\n"
        )

    if wants_staff:
        info = extract_employee_info(text)
        if info:
            return info
        return (
            STAFF_HEADER
            + "Ask a specific question about your staff, for example:\n"
            "- How many employees do I have?\n"
            "- What is the barista's salary?\n\n"
        )

    out = [
        f"I analysed your files ({file_count} files). I can help you analyse your business data.\n\n"
    ]
    if contains_any(text_lower, PROFIT_WORDS + REVENUE_WORDS):
        out.append("✅ Financial data found\n")
    if contains_any(text_lower, STAFF_WORDS):
        out.append("✅ Staff information found\n")
    if contains_any(text_lower, NOVEMBER_WORDS + DECEMBER_WORDS):
        out.append("✅ Reports for specific periods found\n")
    out.append(
        "\n**Ask a specific question, for example:**\n"
        "- How did the profit grow?\n"
        "- How many employees do I have?\n"
        "- What was the revenue in December?\n\n"
    )
    return "".join(out)


def generate_heuristic_response(
    question: str,
    category: Optional[str],
    username: Optional[str],
    business_name: Optional[str],
    specialization: Optional[str],
    file_texts: Optional[Sequence[str]],
) -> str:
    """Build a templated answer from the question, category and file texts.

    Several sections can apply to one question (e.g. a `financial` category
    question about staff gets both the financial and the staff section).
    """
    question_lower = (question or "").lower()
    category = (category or "").strip().lower()
    file_texts = [t for t in (file_texts or []) if t]
    text = "\n\n".join(file_texts)
    has_files = bool(file_texts)

    parts = []
    if category == "financial" or contains_any(
        question_lower, PROFIT_WORDS + REVENUE_WORDS + INCOME_WORDS + EXPENSE_WORDS
    ):
        parts.append(_financial_section(text, has_files))

    if category == "hr" or contains_any(question_lower, STAFF_WORDS):
        parts.append(_staff_section(text, has_files))

    if category == "legal":
        parts.append(_legal_section(has_files))

    if category not in SPECIAL_CATEGORIES:
        parts.append(_general_section(text, question_lower, len(file_texts)))

    if business_name or specialization:
        parts.append("**About your business:**\n")
        if business_name:
            parts.append(f"- Name: {business_name}\n")
        if specialization:
            parts.append(f"- Specialization: {specialization}\n")

    return "".join(parts).strip()
