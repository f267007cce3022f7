"""Positional parser for dashboard listing rows.

Each listing row renders as one ``|``-delimited string. The segment-index to
field mapping is kept in a single ``RecordLayout`` per dashboard format
version so a format change is one edit to ``LAYOUTS``.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Iterable

from eplan_extractor.common.errors import (
    InvalidReferenceIdError,
    MalformedRecordError,
    ParseError,
    UnsupportedSchemaError,
)
from eplan_extractor.common.models import ProjectRecord, SkippedRow

SEGMENT_DELIMITER = "|"
CURRENT_SCHEMA_VERSION = 1
REFERENCE_ID_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class RecordLayout:
    version: int
    min_segments: int
    address: int
    address_suffix_len: int
    reference_id: int
    status: int
    application_number: int
    sys_ref: int
    status_date: int
    unit: int


# Segments 4, 5 and 7 carry nothing the record keeps.
LAYOUTS = {
    1: RecordLayout(
        version=1,
        min_segments=10,
        address=0,
        address_suffix_len=5,
        reference_id=1,
        status=2,
        application_number=3,
        sys_ref=6,
        status_date=8,
        unit=9,
    ),
}


def get_layout(schema_version: int) -> RecordLayout:
    layout = LAYOUTS.get(schema_version)
    if layout is None:
        known = ", ".join(str(v) for v in sorted(LAYOUTS))
        raise UnsupportedSchemaError(f"Unsupported record schema version {schema_version} (known: {known})")
    return layout


def _address(segment: str, suffix_len: int, raw_text: str) -> str:
    if len(segment) < suffix_len:
        raise MalformedRecordError(f"Address segment shorter than its {suffix_len}-char code: {raw_text!r}", raw_text)
    return segment[: len(segment) - suffix_len].rstrip()


def _reference_id(segment: str, raw_text: str) -> int:
    value = segment.strip()
    # ASCII digits only; int() would also take "_" separators and other scripts' digits.
    if not REFERENCE_ID_PATTERN.fullmatch(value):
        raise InvalidReferenceIdError(f"Reference id {value!r} is not an integer: {raw_text!r}", raw_text)
    return int(value)


def _optional(segment: str) -> str | None:
    value = segment.strip()
    return value or None


def parse_record(raw_text: str, archived_tag: str, *, schema_version: int = CURRENT_SCHEMA_VERSION) -> ProjectRecord:
    layout = get_layout(schema_version)
    parts = raw_text.split(SEGMENT_DELIMITER)
    if len(parts) < layout.min_segments:
        raise MalformedRecordError(
            f"Expected at least {layout.min_segments} segments, got {len(parts)}: {raw_text!r}",
            raw_text,
        )

    return ProjectRecord(
        address=_address(parts[layout.address], layout.address_suffix_len, raw_text),
        reference_id=_reference_id(parts[layout.reference_id], raw_text),
        status=parts[layout.status].strip(),
        application_number=_optional(parts[layout.application_number]),
        sys_ref=parts[layout.sys_ref].strip(),
        status_date=parts[layout.status_date].strip(),
        unit=parts[layout.unit].strip(),
        archived=archived_tag,
    )


def parse_lines(
    lines: Iterable[str],
    archived_tag: str,
    *,
    schema_version: int = CURRENT_SCHEMA_VERSION,
    on_skip: Callable[[SkippedRow], None] | None = None,
) -> tuple[list[ProjectRecord], list[SkippedRow]]:
    """Parse rows in order; unparseable rows are collected (and reported to ``on_skip``), never raised."""
    get_layout(schema_version)
    records: list[ProjectRecord] = []
    skipped: list[SkippedRow] = []
    for line in lines:
        try:
            records.append(parse_record(line, archived_tag, schema_version=schema_version))
        except ParseError as exc:
            row = SkippedRow(raw_text=line, error_code=exc.error_code, message=str(exc))
            skipped.append(row)
            if on_skip is not None:
                on_skip(row)
    return records, skipped
