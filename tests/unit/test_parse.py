from __future__ import annotations

import pytest

from eplan_extractor.common.errors import (
    InvalidReferenceIdError,
    MalformedRecordError,
    UnsupportedSchemaError,
)
from eplan_extractor.pipeline.parse import LAYOUTS, parse_lines, parse_record
from tests.fakes import row

SCENARIO = "123 Main St12345|42|Pending||x|y|SYS-1|z|2024-01-01|UnitA"


def test_parse_record_scenario():
    record = parse_record(SCENARIO, "Active")

    assert record.address == "123 Main St"
    assert record.reference_id == 42
    assert record.status == "Pending"
    assert record.application_number is None
    assert record.sys_ref == "SYS-1"
    assert record.status_date == "2024-01-01"
    assert record.unit == "UnitA"
    assert record.archived == "Active"


def test_parse_record_leaves_unmapped_fields_empty():
    record = parse_record(SCENARIO, "Active")
    assert record.status_more_info is None
    assert record.application_type is None
    assert record.assigned_staff is None


def test_parse_record_is_deterministic():
    assert parse_record(SCENARIO, "Archived") == parse_record(SCENARIO, "Archived")


def test_parse_record_trims_segments():
    raw = "  9 Elm Ave   90012| 7 |  Approved | B24-001 |a|b|  SYS-9 |c| 03/04/2024 | Unit 2 "
    record = parse_record(raw, "Active")

    assert record.address == "  9 Elm Ave"
    assert record.reference_id == 7
    assert record.status == "Approved"
    assert record.application_number == "B24-001"
    assert record.sys_ref == "SYS-9"
    assert record.status_date == "03/04/2024"
    assert record.unit == "Unit 2"


def test_blank_application_number_is_none_not_empty():
    record = parse_record(row(application_number="  "), "Active")
    assert record.application_number is None


def test_archived_tag_is_attached_verbatim():
    assert parse_record(SCENARIO, "Archived").archived == "Archived"
    assert parse_record(SCENARIO, "custom tag").archived == "custom tag"


def test_extra_segments_are_ignored():
    record = parse_record(SCENARIO + "|extra|more", "Active")
    assert record.unit == "UnitA"


@pytest.mark.parametrize("raw", ["", "only one", "a|1|b|c|d|e|f|g|h"])
def test_short_input_is_malformed(raw):
    with pytest.raises(MalformedRecordError) as exc_info:
        parse_record(raw, "Active")
    assert exc_info.value.raw_text == raw
    assert exc_info.value.error_code == "MALFORMED_RECORD"


@pytest.mark.parametrize("reference_id", ["abc", "", "4.2", "1_000", "42x", "\uff14\uff12", "\u0664\u0662"])
def test_non_numeric_reference_id(reference_id):
    with pytest.raises(InvalidReferenceIdError) as exc_info:
        parse_record(row(reference_id), "Active")
    assert exc_info.value.error_code == "INVALID_REFERENCE_ID"


def test_address_shorter_than_code_is_malformed():
    with pytest.raises(MalformedRecordError):
        parse_record(row(address="123"), "Active")


def test_unknown_schema_version_is_rejected():
    with pytest.raises(UnsupportedSchemaError):
        parse_record(SCENARIO, "Active", schema_version=99)


def test_current_layout_requires_ten_segments():
    assert LAYOUTS[1].min_segments == 10


def test_parse_lines_skips_bad_rows_and_keeps_order():
    lines = [row(1), "broken", row(3), row("x"), row(5)]
    records, skipped = parse_lines(lines, "Active")

    assert [r.reference_id for r in records] == [1, 3, 5]
    assert [s.error_code for s in skipped] == ["MALFORMED_RECORD", "INVALID_REFERENCE_ID"]
    assert skipped[0].raw_text == "broken"


def test_signed_ascii_reference_id_is_accepted():
    assert parse_record(row("+7"), "Active").reference_id == 7


def test_parse_lines_reports_each_skip_to_callback():
    seen = []
    _, skipped = parse_lines([row(1), "broken", row("x")], "Active", on_skip=seen.append)
    assert seen == skipped
