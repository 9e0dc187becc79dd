import pytest

from backend.advisor.heuristics import (
    NO_FILES_NOTICE,
    compare_periods,
    employee_blocks,
    generate_heuristic_response,
    lines_containing,
)


def answer(question, category="", files=(), business_name="", specialization=""):
    return generate_heuristic_response(question, category, "anna", business_name, specialization, list(files))


def test_revenue_question_quotes_the_revenue_line():
    text = answer("What is my revenue?", files=["File: sales.txt\nRevenue: 5000\nRent: 700"])

    section = text.split("**Revenue analysis:**\n", 1)[1]
    assert section.startswith("- Revenue: 5000\n")
    assert "📊 **Financial analysis:**" in text


def test_period_comparison_lists_november_before_december():
    files = ["File: nov.txt\nProfit November: 1000", "File: dec.txt\nProfit December: 1200"]

    text = answer("How did we do in November compared with December?", files=files)

    comparison = text.split("📊 **Period comparison:**", 1)[1]
    nov = comparison.index("Profit November: 1000")
    dec = comparison.index("Profit December: 1200")
    assert nov < dec
    assert "November: Profit November: 1000" in comparison
    assert "December: Profit December: 1200" in comparison


def test_period_comparison_finds_figures_on_following_lines():
    files = ["November report\nRevenue: 9000\nProfit: 1000\n\nDecember report\nRevenue: 9900\nProfit: 1300"]

    text = answer("How did the business grow?", files=files)

    assert "**Profit:**\nNovember: Profit: 1000\nDecember: Profit: 1300\n" in text
    assert "**Revenue:**\nNovember: Revenue: 9000\nDecember: Revenue: 9900" in text


def test_growth_question_without_period_data_quotes_profit_and_revenue():
    text = answer("How can I grow?", files=["Profit: 100\nRevenue: 200"])

    assert "**Profit:**\n- Profit: 100\n" in text
    assert "**Revenue:**\n- Revenue: 200" in text
    assert "upload reports for different periods" not in text


def test_growth_question_without_any_figures_asks_for_period_reports():
    text = answer("How can I grow?", files=["Opening hours: 8-20"])

    assert "upload reports for different periods" in text


def test_period_comparison_without_figures_has_no_empty_header():
    assert compare_periods("November\nDecember") == ""

    text = answer("November or December, which was better?", files=["Notes for November\nNotes for December"])

    assert "Period comparison" not in text


@pytest.mark.parametrize("category", ["", "financial", "hr", "legal", "marketing", "growth", "reports", "other"])
def test_every_category_without_files_asks_for_uploads(category):
    text = answer("Tell me something", category=category)

    assert text
    assert NO_FILES_NOTICE in text


def test_financial_category_without_financial_data():
    text = answer("Summary please", category="financial", files=["Opening hours: 8-20"])

    assert "did not find detailed financial information" in text


def test_financial_excerpts_are_limited_to_three_lines():
    files = ["\n".join(f"Profit week {i}: {i * 100}" for i in range(1, 6))]

    text = answer("Show profit", category="financial", files=files)

    section = text.split("**Profit analysis:**\n", 1)[1].split("\n\n", 1)[0]
    assert section.splitlines() == ["- Profit week 1: 100", "- Profit week 2: 200", "- Profit week 3: 300"]


def test_overlong_lines_are_dropped_not_cut():
    long_line = "Revenue " + "9" * 300
    text = answer("revenue?", category="financial", files=[f"{long_line}\nRevenue: 10"])

    assert "9" * 300 not in text
    assert "- Revenue: 10" in text


def test_matching_is_case_insensitive_but_keeps_original_case():
    assert lines_containing("TOTAL REVENUE: 10\nrent: 5", ["revenue"]) == ["TOTAL REVENUE: 10"]


def test_russian_reports_are_recognised():
    text = answer("Какая выручка?", files=["Выручка за ноябрь: 5000"])

    assert "- Выручка за ноябрь: 5000" in text


def test_hr_blocks_render_first_two_employees():
    staff = "\n".join(
        [
            "Employee: Maria",
            "Position: barista",
            "Salary: 900",
            "",
            "Employee: Ivan",
            "Position: baker",
            "",
            "Employee: Olga",
            "Position: cashier",
        ]
    )

    text = answer("Who works here?", category="hr", files=[staff])

    assert "**Employee 1:**\nEmployee: Maria\nPosition: barista\nSalary: 900\n" in text
    assert "**Employee 2:**\nEmployee: Ivan\nPosition: baker\n" in text
    assert "Employee 3" not in text
    assert "- Staff mentions found: 3" in text


def test_employee_blocks_skip_long_blocks_and_stop_at_three():
    lines = ["Employee A: " + "x" * 400, "Employee B", "Employee C", "Employee D", "Employee E"]

    blocks = employee_blocks("\n".join(lines))

    assert len(blocks) == 3
    assert all(len(b) < 300 for b in blocks)
    assert blocks[0].startswith("Employee B")


def test_hr_without_staff_data_asks_for_staff_file():
    text = answer("Tell me about staff", category="hr", files=["Revenue: 5"])

    assert "No staff information was found" in text


def test_legal_category_gives_disclaimer():
    text = answer("Can I fire someone?", category="legal", files=["Revenue: 5"])

    assert "consulting a lawyer" in text
    assert "cannot give legal advice" in text
    assert NO_FILES_NOTICE not in text


def test_general_question_summarises_detected_data():
    files = ["Revenue November: 100\nEmployee: Maria"]

    text = answer("Hello there", files=files)

    assert "I analysed your files (1 files)" in text
    assert "✅ Financial data found" in text
    assert "✅ Staff information found" in text
    assert "✅ Reports for specific periods found" in text


def test_general_expense_question_extracts_expenses():
    text = answer("What are my expenses?", category="marketing", files=["Expenses: 300\nRevenue: 1000"])

    assert "**Expenses:**\n- Expenses: 300" in text


def test_business_footer():
    text = answer("Hi", business_name="Sunrise Bakery", specialization="catering")

    assert text.endswith("**About your business:**\n- Name: Sunrise Bakery\n- Specialization: catering")


def test_response_is_deterministic():
    files = ["Profit: 10\nEmployee: Maria"]
    assert answer("profit and staff", files=files) == answer("profit and staff", files=files)
