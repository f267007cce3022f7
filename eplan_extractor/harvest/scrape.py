"""Listing-row scrape with per-row fail-soft semantics."""

from __future__ import annotations

import logging

from eplan_extractor.browser.session import WebSession
from eplan_extractor.common.constants import ARCHIVED_TAG_ACTIVE, RECORD_ROW_SELECTOR
from eplan_extractor.common.errors import ScrapeError, SessionError, UnsupportedSchemaError
from eplan_extractor.common.logging import get_logger, log_event
from eplan_extractor.common.models import ScrapeResult, SkippedRow
from eplan_extractor.pipeline.parse import CURRENT_SCHEMA_VERSION, parse_lines


def _read_rows(session: WebSession, selector: str) -> list[str]:
    return [element.text_content() for element in session.query_selector_all(selector)]


def scrape_records(
    session: WebSession,
    selector: str = RECORD_ROW_SELECTOR,
    archived_tag: str = ARCHIVED_TAG_ACTIVE,
    *,
    schema_version: int = CURRENT_SCHEMA_VERSION,
    logger: logging.Logger | None = None,
) -> ScrapeResult:
    logger = logger or get_logger("harvest.scrape")

    try:
        raw_rows = _read_rows(session, selector)
    except SessionError as exc:
        error = ScrapeError(f"Reading {selector} rows failed: {exc}")
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="scrape",
            source=archived_tag,
            event="SCRAPE_FAIL",
            status="error",
            error_code=error.error_code,
        )
        return ScrapeResult(error=error)

    def log_skip(row: SkippedRow) -> None:
        log_event(
            logger,
            f"skipping row: {row.message}",
            level=logging.WARNING,
            stage="scrape",
            source=archived_tag,
            event="RECORD_SKIPPED",
            status="warning",
            error_code=row.error_code,
        )

    try:
        records, skipped = parse_lines(raw_rows, archived_tag, schema_version=schema_version, on_skip=log_skip)
    except UnsupportedSchemaError as exc:
        error = ScrapeError(str(exc))
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="scrape",
            source=archived_tag,
            event="SCRAPE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return ScrapeResult(error=error)

    result = ScrapeResult(records=records, skipped=skipped)

    log_event(
        logger,
        f"scraped {len(result.records)} {archived_tag} records ({len(result.skipped)} skipped)",
        stage="scrape",
        source=archived_tag,
        event="SCRAPE_END",
        status="ok",
        rows_in=len(raw_rows),
        rows_out=len(result.records),
    )
    return result
