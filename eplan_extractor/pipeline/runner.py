"""Run orchestration: navigate, authenticate, scrape, deliver, report."""

from __future__ import annotations

import logging
from pathlib import Path

from eplan_extractor.browser.manager import BrowserManager
from eplan_extractor.common.config_loader import RunConfig, require_credentials
from eplan_extractor.common.constants import (
    ARCHIVED_TAG_ACTIVE,
    ARCHIVED_TAG_ARCHIVED,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
)
from eplan_extractor.common.errors import AuthError, ConfigError, ScrapeError, SessionError
from eplan_extractor.common.http import ClientConfig, HttpClient
from eplan_extractor.common.logging import log_event
from eplan_extractor.common.models import RunOutcome, ScrapeResult
from eplan_extractor.common.time_utils import utc_today_iso
from eplan_extractor.harvest.auth import login
from eplan_extractor.harvest.scrape import scrape_records
from eplan_extractor.pipeline.delivery import (
    DeliveryMetadata,
    DeliveryOptions,
    deliver,
    send_cookies,
    upload_screenshot,
)
from eplan_extractor.pipeline.reports import write_batch, write_run_summary

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_SESSION_FAILED = "session_failed"
STATUS_LOGIN_FAILED = "login_failed"
STATUS_SCRAPE_FAILED = "scrape_failed"
STATUS_DELIVERY_FAILED = "delivery_failed"

EXIT_CODE_BY_STATUS = {
    STATUS_SUCCESS: EXIT_SUCCESS,
    STATUS_PARTIAL: EXIT_PARTIAL,
    STATUS_SESSION_FAILED: EXIT_HARD_FAIL,
    STATUS_LOGIN_FAILED: EXIT_HARD_FAIL,
    STATUS_SCRAPE_FAILED: EXIT_HARD_FAIL,
    STATUS_DELIVERY_FAILED: EXIT_HARD_FAIL,
}


def delivery_options(config: RunConfig) -> DeliveryOptions:
    settings = config.delivery
    return DeliveryOptions(
        include_metadata=settings.include_metadata,
        headers=settings.headers,
        auth=settings.auth,
        timeout=settings.timeout,
    )


def _stage(logger: logging.Logger, stage: str, event: str, message: str, status: str = "ok", **fields) -> None:
    log_event(logger, message, stage=stage, event=event, status=status, **fields)


def _scrape_archived(browser: BrowserManager, config: RunConfig, logger: logging.Logger) -> ScrapeResult:
    try:
        session = browser.new_session()
        session.navigate(config.archived_url, config.timeout_ms)
    except SessionError as exc:
        error = ScrapeError(f"Opening archived view failed: {exc}")
        _stage(
            logger,
            "scrape",
            "SCRAPE_FAIL",
            str(error),
            status="error",
            source=ARCHIVED_TAG_ARCHIVED,
            error_code=error.error_code,
        )
        return ScrapeResult(error=error)
    return scrape_records(
        session,
        config.selectors.record_row,
        ARCHIVED_TAG_ARCHIVED,
        schema_version=config.schema_version,
        logger=logger,
    )


def _execute(
    browser: BrowserManager,
    client: HttpClient,
    config: RunConfig,
    credentials: tuple[str, str],
    outcome: RunOutcome,
    data_dir: Path,
    logger: logging.Logger,
) -> RunOutcome:
    username, password = credentials
    session = browser.new_session()

    _stage(logger, "auth", "STAGE_START", f"opening {config.dashboard_url}")
    try:
        session.navigate(config.dashboard_url, config.timeout_ms)
    except SessionError as exc:
        _stage(
            logger,
            "auth",
            "STAGE_FAIL",
            f"dashboard navigation failed: {exc}",
            status="error",
            error_code=exc.error_code,
        )
        outcome.status = STATUS_LOGIN_FAILED
        outcome.error_code = exc.error_code
        return outcome

    if not login(
        session,
        username,
        password,
        config.timeout_ms,
        selectors=config.selectors,
        screenshot_dir=config.screenshot_dir,
        logger=logger,
    ):
        outcome.status = STATUS_LOGIN_FAILED
        outcome.error_code = AuthError.error_code
        return outcome

    results = [
        scrape_records(
            session,
            config.selectors.record_row,
            ARCHIVED_TAG_ACTIVE,
            schema_version=config.schema_version,
            logger=logger,
        )
    ]
    if config.harvest_archived:
        results.append(_scrape_archived(browser, config, logger))

    batch = [record for result in results for record in result.records]
    scrape_errors = [result.error for result in results if result.error is not None]
    outcome.records_scraped = len(batch)
    outcome.records_skipped = sum(len(result.skipped) for result in results)
    outcome.notes.extend(str(error) for error in scrape_errors)

    if scrape_errors and config.abort_on_scrape_error:
        outcome.status = STATUS_SCRAPE_FAILED
        outcome.error_code = ScrapeError.error_code
        return outcome

    write_batch(data_dir, outcome.run_id, batch)
    options = delivery_options(config)
    metadata = DeliveryMetadata(user_email=config.delivery.user_email, source_url=session.url)
    result = deliver(client, config.delivery.endpoint, batch, metadata, options=options, logger=logger)
    outcome.delivered = result.success
    outcome.response_body = result.response_body

    if not result.success:
        outcome.status = STATUS_DELIVERY_FAILED
        outcome.error_code = result.error.error_code if result.error else None
        return outcome
    if scrape_errors:
        outcome.status = STATUS_PARTIAL
        outcome.error_code = ScrapeError.error_code

    if config.delivery.cookies_endpoint:
        extra = send_cookies(client, config.delivery.cookies_endpoint, session, options=options, logger=logger)
        if not extra.success:
            outcome.notes.append(f"cookie upload failed: {extra.response_body}")
    if config.delivery.screenshot_endpoint:
        extra = upload_screenshot(client, config.delivery.screenshot_endpoint, session, options=options, logger=logger)
        if not extra.success:
            outcome.notes.append(f"screenshot upload failed: {extra.response_body}")

    return outcome


def run_pipeline(
    config: RunConfig,
    *,
    run_id: str,
    data_dir: Path,
    logger: logging.Logger,
    run_date: str | None = None,
) -> RunOutcome:
    """One dashboard, one session, one batch. Browser and HTTP client are closed on every path."""
    if not config.delivery.endpoint:
        raise ConfigError("delivery.endpoint is required for a run")
    credentials = require_credentials(config)
    outcome = RunOutcome(run_id=run_id, status=STATUS_SUCCESS)

    try:
        with BrowserManager(
            headless=config.headless,
            user_agent=config.user_agent,
            default_timeout_ms=config.timeout_ms,
        ) as browser, HttpClient(config=ClientConfig(timeout=config.delivery.timeout)) as client:
            _execute(browser, client, config, credentials, outcome, data_dir, logger)
    except SessionError as exc:
        # Only browser launch / page creation reach here; later session errors are handled per stage.
        _stage(
            logger,
            "run",
            "STAGE_FAIL",
            f"browser session failed: {exc}",
            status="error",
            error_code=exc.error_code,
        )
        outcome.status = STATUS_SESSION_FAILED
        outcome.error_code = exc.error_code

    write_run_summary(data_dir, outcome, run_date or utc_today_iso())
    _stage(
        logger,
        "run",
        "RUN_END",
        f"run finished: {outcome.status} ({outcome.records_scraped} records, delivered={outcome.delivered})",
        status="ok" if outcome.status == STATUS_SUCCESS else "error",
        rows_out=outcome.records_scraped,
        error_code=outcome.error_code,
    )
    return outcome


def run(config: RunConfig, *, run_id: str, data_dir: Path, logger: logging.Logger) -> int:
    outcome = run_pipeline(config, run_id=run_id, data_dir=data_dir, logger=logger)
    return EXIT_CODE_BY_STATUS[outcome.status]
