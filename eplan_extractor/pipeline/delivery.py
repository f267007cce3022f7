"""Delivery of scraped batches (and optional diagnostics) to remote endpoints.

Every function here returns a ``DeliveryResult`` and never raises: one
attempt, one outcome. Request settings travel in an immutable
``DeliveryOptions`` per call instead of being set on the shared client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from eplan_extractor.browser.session import WebSession
from eplan_extractor.common.errors import DeliveryError, SessionError
from eplan_extractor.common.http import (
    AuthConfig,
    HttpClient,
    HttpRequestError,
    HttpResponse,
    RetryConfig,
    TimeoutConfig,
)
from eplan_extractor.common.logging import get_logger, log_event
from eplan_extractor.common.models import DeliveryPayload, DeliveryResult, ProjectRecord
from eplan_extractor.common.time_utils import compact_local_stamp, utc_timestamp_iso

SINGLE_ATTEMPT = RetryConfig(max_attempts=1)


@dataclass(frozen=True)
class DeliveryMetadata:
    user_email: str | None = None
    source_url: str | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class DeliveryOptions:
    include_metadata: bool = True
    headers: tuple[tuple[str, str], ...] = ()
    auth: AuthConfig | None = None
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    def request_kwargs(self) -> dict[str, Any]:
        return {
            "headers": dict(self.headers),
            "auth": self.auth,
            "timeout": self.timeout,
            "retry_config": SINGLE_ATTEMPT,
        }


def build_payload(batch: Iterable[ProjectRecord], metadata: DeliveryMetadata | None = None) -> DeliveryPayload:
    metadata = metadata or DeliveryMetadata()
    return DeliveryPayload(
        timestamp=metadata.timestamp or utc_timestamp_iso(),
        user_email=metadata.user_email,
        source_url=metadata.source_url,
        projects=tuple(batch),
    )


def serialize_batch(
    batch: Iterable[ProjectRecord],
    metadata: DeliveryMetadata | None = None,
    *,
    include_metadata: bool = True,
) -> Any:
    if include_metadata:
        return build_payload(batch, metadata).to_wire()
    return [record.to_wire() for record in batch]


def _post(
    endpoint: str,
    what: str,
    send: Callable[[], HttpResponse],
    logger: logging.Logger,
) -> DeliveryResult:
    try:
        response = send()
    except HttpRequestError as exc:
        error = DeliveryError(f"Sending {what} to {endpoint} failed: {exc}")
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="deliver",
            source=what,
            event="DELIVERY_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return DeliveryResult(success=False, response_body=str(exc), error=error)
    except Exception as exc:
        error = DeliveryError(f"Sending {what} to {endpoint} failed unexpectedly: {exc}")
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="deliver",
            source=what,
            event="DELIVERY_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return DeliveryResult(success=False, response_body=str(exc), error=error)

    if not response.ok:
        error = DeliveryError(f"Sending {what} to {endpoint} returned HTTP {response.status_code}")
        log_event(
            logger,
            f"{error}: {response.body}",
            level=logging.ERROR,
            stage="deliver",
            source=what,
            event="DELIVERY_FAIL",
            status="error",
            error_code=error.error_code,
        )
        return DeliveryResult(
            success=False,
            response_body=response.body,
            status_code=response.status_code,
            error=error,
        )

    log_event(
        logger,
        f"{what} sent, HTTP {response.status_code}",
        stage="deliver",
        source=what,
        event="DELIVERY_OK",
        status="ok",
    )
    return DeliveryResult(success=True, response_body=response.body, status_code=response.status_code)


def deliver(
    client: HttpClient,
    endpoint: str,
    batch: list[ProjectRecord],
    metadata: DeliveryMetadata | None = None,
    *,
    options: DeliveryOptions | None = None,
    logger: logging.Logger | None = None,
) -> DeliveryResult:
    options = options or DeliveryOptions()
    logger = logger or get_logger("pipeline.delivery")
    payload = serialize_batch(batch, metadata, include_metadata=options.include_metadata)
    log_event(
        logger,
        f"sending {len(batch)} projects to {endpoint}",
        stage="deliver",
        source="projects",
        event="DELIVERY_START",
        status="ok",
        rows_in=len(batch),
    )
    return _post(
        endpoint,
        "projects",
        lambda: client.post_json(endpoint, payload, **options.request_kwargs()),
        logger,
    )


def _cookie_wire(cookie: dict[str, Any]) -> dict[str, Any]:
    return {
        "Name": cookie.get("name"),
        "Value": cookie.get("value"),
        "Domain": cookie.get("domain"),
        "Path": cookie.get("path"),
        "Expires": cookie.get("expires"),
        "HttpOnly": cookie.get("httpOnly"),
        "Secure": cookie.get("secure"),
        "SameSite": cookie.get("sameSite"),
    }


def send_cookies(
    client: HttpClient,
    endpoint: str,
    session: WebSession,
    *,
    options: DeliveryOptions | None = None,
    logger: logging.Logger | None = None,
) -> DeliveryResult:
    options = options or DeliveryOptions()
    logger = logger or get_logger("pipeline.delivery")
    try:
        cookies = session.get_cookies()
        url = session.url
    except SessionError as exc:
        error = DeliveryError(f"Reading cookies failed: {exc}")
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="deliver",
            source="cookies",
            event="DELIVERY_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return DeliveryResult(success=False, response_body=str(exc), error=error)

    payload = {
        "Url": url,
        "Timestamp": utc_timestamp_iso(),
        "Cookies": [_cookie_wire(cookie) for cookie in cookies],
    }
    return _post(
        endpoint,
        "cookies",
        lambda: client.post_json(endpoint, payload, **options.request_kwargs()),
        logger,
    )


def upload_screenshot(
    client: HttpClient,
    endpoint: str,
    session: WebSession,
    *,
    name: str = "screenshot",
    options: DeliveryOptions | None = None,
    logger: logging.Logger | None = None,
) -> DeliveryResult:
    options = options or DeliveryOptions()
    logger = logger or get_logger("pipeline.delivery")
    try:
        image = session.screenshot(full_page=True)
        url = session.url
    except SessionError as exc:
        error = DeliveryError(f"Screenshot failed: {exc}")
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="deliver",
            source="screenshot",
            event="DELIVERY_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return DeliveryResult(success=False, response_body=str(exc), error=error)

    files = {"screenshot": (f"{name}_{compact_local_stamp()}.png", image, "image/png")}
    form = {"source_url": url, "timestamp": utc_timestamp_iso()}
    return _post(
        endpoint,
        "screenshot",
        lambda: client.post_multipart(endpoint, files, form, **options.request_kwargs()),
        logger,
    )
