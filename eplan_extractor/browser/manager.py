"""Browser lifecycle: one Playwright Chromium, one context, many pages."""

from __future__ import annotations

from types import TracebackType
from typing import Sequence

from playwright.sync_api import Browser, BrowserContext, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from eplan_extractor.browser.session import WebSession
from eplan_extractor.common.constants import BROWSER_LAUNCH_ARGS, DEFAULT_TIMEOUT_MS, USER_AGENT
from eplan_extractor.common.errors import SessionError


class BrowserManager:
    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str = USER_AGENT,
        launch_args: Sequence[str] = BROWSER_LAUNCH_ARGS,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.headless = headless
        self.user_agent = user_agent
        self.launch_args = list(launch_args)
        self.default_timeout_ms = default_timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @property
    def is_started(self) -> bool:
        return self._context is not None

    def start(self) -> "BrowserManager":
        if self.is_started:
            return self
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=self.launch_args)
            self._context = self._browser.new_context(user_agent=self.user_agent)
        except PlaywrightError as exc:
            self.close()
            raise SessionError(f"browser launch failed: {exc.message}") from exc
        return self

    def new_session(self) -> WebSession:
        if self._context is None:
            raise SessionError("Browser not started. Call start() first.")
        try:
            page = self._context.new_page()
        except PlaywrightError as exc:
            raise SessionError(f"new page failed: {exc.message}") from exc
        page.set_default_timeout(self.default_timeout_ms)
        return WebSession(page, default_timeout_ms=self.default_timeout_ms)

    def close(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        try:
            if context is not None:
                context.close()
            if browser is not None:
                browser.close()
        finally:
            if playwright is not None:
                playwright.stop()

    def __enter__(self) -> "BrowserManager":
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
