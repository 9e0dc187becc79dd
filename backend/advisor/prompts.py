from typing import List, Optional, Sequence

SECTION_RULE = "═" * 55
FILE_SEPARATOR = "-" * 55

DATA_MARKER = "AVAILABLE BUSINESS DATA:"
QUESTION_MARKER = "BUSINESS OWNER QUESTION:"
REQUIREMENTS_MARKER = "RESPONSE REQUIREMENTS:"
ANSWER_MARKER = "START YOUR ANSWER:"

CATEGORY_LABELS = {
    "financial": "💰 Financial analysis",
    "legal": "⚖️ Legal questions",
    "hr": "👥 Human resources",
    "marketing": "📢 Marketing and promotion",
    "growth": "📈 Business growth and development",
    "reports": "📊 Reports and data analysis",
}

PREAMBLE = (
    "You are a professional business consultant with experience in small business. "
    "Your task is to give specific, practical and useful advice based on real data.\n\n"
)


def category_label(category: Optional[str]) -> Optional[str]:
    return CATEGORY_LABELS.get((category or "").strip().lower())


def _business_focus(username: str, business_name: str, specialization: str) -> str:
    """Phrase used by the practicality requirement, e.g. `business of Ann ("Bakery") in catering`."""
    if not (username or business_name or specialization):
        return "small business"

    focus = ""
    if username:
        focus = f"the business of owner {username}"
    if business_name:
        focus += f' ("{business_name}")' if username else f'the business "{business_name}"'
    if specialization:
        focus += f" in {specialization}" if (username or business_name) else f"a business in {specialization}"
    return focus


def build_prompt(
    question: str,
    category: Optional[str],
    username: Optional[str],
    business_name: Optional[str],
    specialization: Optional[str],
    file_texts: Optional[Sequence[str]],
) -> str:
    """Assemble the full advisor prompt for one chat turn.

    Every argument except the question is optional; missing profile fields and
    an unknown category just leave their section out.
    """
    username = (username or "").strip()
    business_name = (business_name or "").strip()
    specialization = (specialization or "").strip()
    file_texts = [t for t in (file_texts or []) if t]

    parts: List[str] = [PREAMBLE]

    if username:
        parts.append(f"BUSINESS OWNER: {username}\n")
    if business_name:
        parts.append(f"BUSINESS NAME: {business_name}\n")
    if specialization:
        parts.append(f"BUSINESS SPECIALIZATION: {specialization}\n")
    if username or business_name or specialization:
        parts.append("\n")

    if file_texts:
        parts.append(f"{SECTION_RULE}\n{DATA_MARKER}\n{SECTION_RULE}\n")
        for i, content in enumerate(file_texts, start=1):
            parts.append(f"\n[File {i}]\n{content}\n{FILE_SEPARATOR}\n")
        parts.append(
            "\n⚠️ CRITICAL: Study ALL of the data from the files above carefully "
            "before writing your answer!\n\n"
        )
    else:
        parts.append("⚠️ NOTE: No business data files have been uploaded.\n")
        parts.append(
            "If the question requires data from files, politely ask the user to upload them.\n\n"
        )

    label = category_label(category)
    if label:
        parts.append(f"QUESTION CATEGORY: {label}\n\n")

    parts.append(f"{QUESTION_MARKER}\n{question or ''}\n\n")

    parts.append(f"{SECTION_RULE}\n{REQUIREMENTS_MARKER}\n{SECTION_RULE}\n\n")
    parts.append(
        "1. SPECIFICITY:\n"
        "   - Use EXACT figures, names and dates from the files\n"
        "   - Give examples from the uploaded data\n"
        "   - Avoid generic phrases that are not tied to the data\n\n"
    )
    parts.append(
        "2. STRUCTURE:\n"
        "   - Start with a short conclusion or summary\n"
        "   - Use lists and bullet points for readability\n"
        "   - Highlight the key points\n\n"
    )
    parts.append(
        "3. PRACTICALITY:\n"
        "   - Give concrete recommendations that can be applied\n"
        "   - Suggest steps to solve the problem\n"
        f"   - Take into account the specifics of {_business_focus(username, business_name, specialization)}\n\n"
    )
    parts.append(
        "4. ANALYSIS:\n"
        "   - Compare data between periods and categories\n"
        "   - Identify trends and patterns\n"
        "   - Point out problems and opportunities\n\n"
    )
    parts.append(
        "5. PROFESSIONALISM:\n"
        "   - Write in a businesslike but clear language\n"
        "   - Avoid boilerplate phrases\n"
        "   - Be honest: if the data is insufficient, say so\n\n"
    )
    parts.append(
        "6. FORMAT:\n"
        "   - Answer ONLY in the language the question was asked in\n"
        "   - Use paragraphs for structure\n"
        "   - Do NOT repeat the question at the beginning of the answer\n"
        "   - Get straight to the point\n\n"
    )

    parts.append(f"{SECTION_RULE}\n{ANSWER_MARKER}\n{SECTION_RULE}\n")
    return "".join(parts)
