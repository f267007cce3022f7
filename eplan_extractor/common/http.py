"""HTTP client with immutable per-call configuration and optional retries."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Mapping

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from eplan_extractor.common.constants import USER_AGENT
from eplan_extractor.common.errors import StageError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 60.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 30.0


@dataclass(frozen=True)
class AuthConfig:
    """Authorization header material: ``bearer``, ``basic`` or ``api_key``."""

    scheme: str
    token: str | None = None
    username: str | None = None
    password: str | None = None
    header_name: str = "X-API-Key"

    def headers(self) -> dict[str, str]:
        if self.scheme == "bearer":
            return {"Authorization": f"Bearer {self.token}"}
        if self.scheme == "basic":
            raw = f"{self.username}:{self.password}".encode("utf-8")
            return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
        if self.scheme == "api_key":
            return {self.header_name: str(self.token)}
        raise ValueError(f"Unknown auth scheme: {self.scheme}")


@dataclass(frozen=True)
class ClientConfig:
    headers: tuple[tuple[str, str], ...] = ()
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    auth: AuthConfig | None = None
    user_agent: str = USER_AGENT


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    headers: dict[str, str]
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.body)


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    def __init__(self, message: str, response: HttpResponse | None = None) -> None:
        super().__init__(message)
        self.response = response


class HttpClient:
    def __init__(self, *, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(
        self,
        headers: Mapping[str, str] | None,
        auth: AuthConfig | None,
        content_type: str | None,
    ) -> dict[str, str]:
        out = {"User-Agent": self.config.user_agent}
        out.update(dict(self.config.headers))
        effective_auth = auth or self.config.auth
        if effective_auth is not None:
            out.update(effective_auth.headers())
        if content_type:
            out["Content-Type"] = content_type
        if headers:
            out.update(headers)
        return out

    def _send_once(
        self,
        method: str,
        url: str,
        *,
        data: Any,
        files: Any,
        headers: dict[str, str],
        timeout: TimeoutConfig,
    ) -> HttpResponse:
        try:
            raw = self.session.request(
                method=method,
                url=url,
                data=data,
                files=files,
                headers=headers,
                timeout=(timeout.connect, timeout.read),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableHttpError(str(exc)) from exc
        except requests.RequestException as exc:
            raise HttpRequestError(str(exc)) from exc
        except (UnicodeError, ValueError) as exc:
            # http.client refuses header values outside latin-1.
            raise HttpRequestError(f"Request could not be encoded: {exc}") from exc

        response = HttpResponse(
            status_code=raw.status_code,
            headers=dict(raw.headers),
            body=raw.text,
        )
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {response.status_code}", response=response)
        return response

    def send(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        files: Any = None,
        content_type: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        auth: AuthConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> HttpResponse:
        """Send one request; non-2xx statuses are returned, transport failures raise."""
        req_timeout = timeout or self.config.timeout
        req_retry = retry_config or self.config.retry
        try:
            merged_headers = self._headers(headers, auth, content_type)
        except (UnicodeError, ValueError) as exc:
            raise HttpRequestError(f"Invalid request headers: {exc}") from exc

        @retry(
            stop=stop_after_attempt(req_retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=req_retry.multiplier,
                max=req_retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> HttpResponse:
            return self._send_once(
                method,
                url,
                data=data,
                files=files,
                headers=merged_headers,
                timeout=req_timeout,
            )

        try:
            return _wrapped()
        except RetryableHttpError as exc:
            if exc.response is None:
                raise
            return exc.response

    def post_json(self, url: str, payload: Any, **kwargs: Any) -> HttpResponse:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return self.send("POST", url, data=body, content_type="application/json", **kwargs)

    def post_form(self, url: str, form: Mapping[str, str], **kwargs: Any) -> HttpResponse:
        return self.send(
            "POST",
            url,
            data=dict(form),
            content_type="application/x-www-form-urlencoded",
            **kwargs,
        )

    def post_multipart(
        self,
        url: str,
        files: Mapping[str, tuple[str, bytes, str]],
        form: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> HttpResponse:
        # requests builds the multipart boundary header itself.
        return self.send("POST", url, data=dict(form or {}), files=dict(files), **kwargs)