"""
Report Content Tests

The emptiness predicate that gates snapshots and the field restriction
applied to stored report documents.
"""
import pytest

from app.schemas.report_schemas import (
    REPORT_FIELDS,
    ReportContentSchema,
    dump_report_content,
    extract_report_fields,
    has_report_content,
)


@pytest.mark.unit
class TestHasReportContent:
    """Which report documents count as empty."""

    def test_none_and_empty_dict_are_empty(self):
        assert has_report_content(None) is False
        assert has_report_content({}) is False

    def test_blank_values_are_empty(self):
        data = {
            "chief_complaint": "",
            "past_history": "   ",
            "treatment_plan": [],
            "rom": {},
            "advice": None,
        }
        assert has_report_content(data) is False

    def test_zero_is_meaningful(self):
        assert has_report_content({"vas_scale": 0}) is True

    def test_false_is_meaningful(self):
        assert has_report_content({"med_xray": False}) is True

    def test_filled_string_counts(self):
        assert has_report_content({"chief_complaint": "Neck pain"}) is True

    def test_undeclared_fields_are_ignored(self):
        data = {"remaining_sessions": 4, "status": "ongoing", "name": "Asha"}
        assert has_report_content(data) is False


@pytest.mark.unit
class TestReportFields:
    def test_extract_drops_undeclared_and_unset_fields(self):
        data = {
            "chief_complaint": "Neck pain",
            "advice": None,
            "total_sessions_required": 5,
        }
        assert extract_report_fields(data) == {"chief_complaint": "Neck pain"}

    def test_extract_of_nothing(self):
        assert extract_report_fields(None) == {}

    def test_dump_is_json_safe_and_skips_unset(self, sample_report):
        content = ReportContentSchema(**sample_report)

        dumped = dump_report_content(content)

        assert dumped["date_of_consultation"] == "2026-03-02"
        assert dumped["vas_scale"] == 6
        assert "advice" not in dumped
        assert set(dumped) <= set(REPORT_FIELDS)

    def test_pain_scale_bounds(self):
        with pytest.raises(ValueError):
            ReportContentSchema(vas_scale=11)
