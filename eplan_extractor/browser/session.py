"""Web session capability over a Playwright page.

Everything above this module talks to ``WebSession`` / ``WebElement`` and only
ever sees ``SessionError`` / ``SessionTimeoutError``; Playwright exceptions do
not leak past here.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from playwright.sync_api import ElementHandle, Page
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from eplan_extractor.common.constants import DEFAULT_TIMEOUT_MS
from eplan_extractor.common.errors import SessionError, SessionTimeoutError


@contextmanager
def _translated(action: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightTimeoutError as exc:
        raise SessionTimeoutError(f"{action} timed out: {exc.message}") from exc
    except PlaywrightError as exc:
        raise SessionError(f"{action} failed: {exc.message}") from exc


class WebElement:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    def text_content(self) -> str:
        """Rendered text (``innerText``), the same string a user would copy."""
        with _translated("read element text"):
            return self._handle.inner_text()

    def click(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        with _translated("click element"):
            self._handle.click(timeout=timeout_ms)

    def screenshot(self) -> bytes:
        with _translated("element screenshot"):
            return self._handle.screenshot()


class WebSession:
    def __init__(self, page: Page, *, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.page = page
        self.default_timeout_ms = default_timeout_ms

    @property
    def url(self) -> str:
        return self.page.url

    def navigate(self, url: str, timeout_ms: int | None = None) -> None:
        with _translated(f"navigate to {url}"):
            self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms or self.default_timeout_ms)

    def query_selector_all(self, selector: str) -> list[WebElement]:
        with _translated(f"query {selector}"):
            return [WebElement(handle) for handle in self.page.query_selector_all(selector)]

    def wait_for_selector(self, selector: str, timeout_ms: int | None = None) -> None:
        with _translated(f"wait for {selector}"):
            self.page.wait_for_selector(selector, state="attached", timeout=timeout_ms or self.default_timeout_ms)

    @contextmanager
    def expect_navigation(self, timeout_ms: int | None = None) -> Iterator[None]:
        """Run the body (usually a click) and wait for the navigation it starts."""
        with _translated("wait for navigation"):
            with self.page.expect_navigation(wait_until="load", timeout=timeout_ms or self.default_timeout_ms):
                yield

    def type(self, selector: str, text: str, timeout_ms: int | None = None) -> None:
        with _translated(f"type into {selector}"):
            self.page.fill(selector, text, timeout=timeout_ms or self.default_timeout_ms)

    def screenshot(self, path: Path | None = None, *, full_page: bool = True) -> bytes:
        with _translated("page screenshot"):
            return self.page.screenshot(path=path, full_page=full_page, type="png")

    def get_cookies(self) -> list[dict[str, Any]]:
        with _translated("read cookies"):
            return list(self.page.context.cookies())

    def evaluate(self, expression: str) -> Any:
        with _translated("evaluate script"):
            return self.page.evaluate(expression)

    def close(self) -> None:
        with _translated("close page"):
            self.page.close()
