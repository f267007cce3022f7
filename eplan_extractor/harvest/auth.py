"""Two-step dashboard login (username page, then password page)."""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from eplan_extractor.browser.inspect import inspect_page
from eplan_extractor.browser.session import WebSession
from eplan_extractor.common.constants import DEFAULT_TIMEOUT_MS, SUBMIT_BUTTON_TEXTS
from eplan_extractor.common.errors import SessionError
from eplan_extractor.common.fs import ensure_dir
from eplan_extractor.common.logging import get_logger, log_event
from eplan_extractor.common.models import Selectors


class LoginState(enum.Enum):
    AWAITING_USERNAME = "awaiting-username"
    AWAITING_BUTTON_CLICK_1 = "awaiting-button-click-1"
    AWAITING_NAVIGATION_1 = "awaiting-navigation-1"
    AWAITING_PASSWORD = "awaiting-password"
    AWAITING_BUTTON_CLICK_2 = "awaiting-button-click-2"
    AWAITING_NAVIGATION_2 = "awaiting-navigation-2"
    AWAITING_MARKER = "awaiting-marker"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def click_submit_buttons(session: WebSession, button_selector: str, timeout_ms: int) -> int:
    """Click every button whose label is a known submit word; returns the click count.

    Page variants label the submit button differently, so all matches are
    clicked rather than the first one.
    """
    clicked = 0
    for button in session.query_selector_all(button_selector):
        label = button.text_content().strip().lower()
        if label in SUBMIT_BUTTON_TEXTS:
            button.click(timeout_ms)
            clicked += 1
    return clicked


def _checkpoint(session: WebSession, screenshot_dir: Path | None, name: str) -> None:
    if screenshot_dir is None:
        return
    ensure_dir(screenshot_dir)
    session.screenshot(screenshot_dir / f"{name}.png")


def login(
    session: WebSession,
    username: str,
    password: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    *,
    selectors: Selectors | None = None,
    screenshot_dir: Path | None = None,
    logger: logging.Logger | None = None,
) -> bool:
    """Walk the login flow once. True only if every step finished in time."""
    selectors = selectors or Selectors()
    logger = logger or get_logger("harvest.auth")
    state = LoginState.AWAITING_USERNAME

    try:
        session.wait_for_selector(selectors.username_input, timeout_ms)
        _checkpoint(session, screenshot_dir, "2_after_wait_username")
        session.wait_for_selector(selectors.button, timeout_ms)
        session.type(selectors.username_input, username, timeout_ms)

        state = LoginState.AWAITING_BUTTON_CLICK_1
        with session.expect_navigation(timeout_ms):
            clicks = click_submit_buttons(session, selectors.button, timeout_ms)
            state = LoginState.AWAITING_NAVIGATION_1
        log_event(logger, f"username submitted ({clicks} button clicks)", stage="auth", event="LOGIN_STEP", status="ok")
        inspect_page(session, logger)

        state = LoginState.AWAITING_PASSWORD
        session.wait_for_selector(selectors.password_input, timeout_ms)
        session.type(selectors.password_input, password, timeout_ms)
        _checkpoint(session, screenshot_dir, "4_after_type_password")

        state = LoginState.AWAITING_BUTTON_CLICK_2
        with session.expect_navigation(timeout_ms):
            clicks = click_submit_buttons(session, selectors.button, timeout_ms)
            state = LoginState.AWAITING_NAVIGATION_2
        log_event(logger, f"password submitted ({clicks} button clicks)", stage="auth", event="LOGIN_STEP", status="ok")

        state = LoginState.AWAITING_MARKER
        session.wait_for_selector(selectors.logged_in_marker, timeout_ms)
        _checkpoint(session, screenshot_dir, "5_after_login")
    except SessionError as exc:
        log_event(
            logger,
            f"login failed in state {state.value}: {exc}",
            level=logging.ERROR,
            stage="auth",
            event="AUTH_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return False
    except Exception as exc:
        log_event(
            logger,
            f"login failed unexpectedly in state {state.value}: {exc}",
            level=logging.ERROR,
            stage="auth",
            event="AUTH_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return False

    log_event(logger, "login succeeded", stage="auth", event="AUTH_OK", status="ok")
    return True
