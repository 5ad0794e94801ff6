"""Unit tests for section resolution."""

import pytest

from xero_agent.models.failures import SectionNotFound
from xero_agent.services.report_tree import build_report
from xero_agent.services.section_resolver import normalize_title, resolve_sections


@pytest.fixture
def report(report_payload):
    return build_report(report_payload(
        "Profit and Loss",
        ["Jan"],
        {
            "Income": [["10"]],
            "Other Income": [["1"]],
            "Less Cost of Sales": [["4"]],
            "Operating Expenses": [["3"]],
            "": [["0"]],
        },
    ))


class TestNormalizeTitle:
    """Tests for title normalization."""

    def test_strips_and_lowercases(self):
        assert normalize_title("  Operating Expenses ") == "operating expenses"


class TestResolveSections:
    """Tests for resolve_sections."""

    def test_exact_match_wins(self, report):
        """Test an exact title beats substring matches."""
        result = resolve_sections(report, "income")

        assert [s.title for s in result] == ["Income"]

    def test_case_insensitive(self, report):
        result = resolve_sections(report, "OPERATING EXPENSES")

        assert [s.title for s in result] == ["Operating Expenses"]

    def test_title_contains_query(self, report):
        """Test a partial query matches every section containing it."""
        result = resolve_sections(report, "cost")

        assert [s.title for s in result] == ["Less Cost of Sales"]

    def test_query_contains_title(self, report):
        """Test a longer query matches the section whose title it contains."""
        result = resolve_sections(report, "Total Operating Expenses")

        assert [s.title for s in result] == ["Operating Expenses"]

    def test_multiple_candidates_in_report_order(self, report):
        """Test several containment matches are all returned."""
        result = resolve_sections(report, "Income ")

        # Exact match after normalization
        assert [s.title for s in result] == ["Income"]

        result = resolve_sections(report, "come")
        assert [s.title for s in result] == ["Income", "Other Income"]

    @pytest.mark.parametrize("query", ["ALL", "all", "*"])
    def test_all_selects_every_section(self, report, query):
        result = resolve_sections(report, query)

        assert len(result) == 5

    def test_not_found_lists_available_titles(self, report):
        """Test SectionNotFound carries the non-empty titles."""
        result = resolve_sections(report, "Payroll")

        assert isinstance(result, SectionNotFound)
        assert result.query == "Payroll"
        assert result.available_sections == (
            "Income", "Other Income", "Less Cost of Sales", "Operating Expenses",
        )
        assert "Income" in result.message

    def test_empty_query_not_found(self, report):
        """Test an empty query never matches."""
        result = resolve_sections(report, "")

        assert isinstance(result, SectionNotFound)

    def test_empty_report(self):
        result = resolve_sections(build_report({}), "Income")

        assert isinstance(result, SectionNotFound)
        assert result.available_sections == ()

    def test_nested_sections_ignored(self):
        """Test only top-level sections are searched."""
        report = build_report({"Rows": [
            {"RowType": "Section", "Title": "Outer", "Rows": [
                {"RowType": "Section", "Title": "Payroll", "Rows": []},
            ]},
        ]})

        assert isinstance(resolve_sections(report, "Payroll"), SectionNotFound)
