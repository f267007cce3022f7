"""Page inspection snapshot for debugging login page variants."""

from __future__ import annotations

import json
import logging

from eplan_extractor.browser.session import WebSession
from eplan_extractor.common.errors import SessionError
from eplan_extractor.common.logging import get_logger, log_event

INSPECT_SCRIPT = """
() => ({
  title: document.title,
  url: window.location.href,
  inputs: Array.from(document.querySelectorAll('input')).map(inp => ({
    type: inp.type,
    name: inp.name,
    id: inp.id,
    placeholder: inp.placeholder,
    className: inp.className
  })),
  buttons: Array.from(document.querySelectorAll('button')).map(btn => ({
    type: btn.type,
    name: btn.name,
    id: btn.id,
    text: btn.textContent ? btn.textContent.trim() : null,
    className: btn.className
  })),
  checkboxes: Array.from(document.querySelectorAll('input[type="checkbox"]')).map(cb => ({
    name: cb.name,
    id: cb.id,
    checked: cb.checked,
    className: cb.className,
    parentText: cb.parentElement && cb.parentElement.textContent ? cb.parentElement.textContent.trim() : null
  })),
  mentionsHuman: document.body ? document.body.textContent.includes('human') : false
})
"""


def inspect_page(session: WebSession, logger: logging.Logger | None = None) -> dict:
    logger = logger or get_logger("browser.inspect")
    try:
        info = session.evaluate(INSPECT_SCRIPT)
    except SessionError as exc:
        log_event(
            logger,
            f"page inspection failed: {exc}",
            level=logging.WARNING,
            stage="auth",
            event="PAGE_INSPECT",
            status="error",
            error_code=exc.error_code,
        )
        return {}

    log_event(
        logger,
        "page inspection\n" + json.dumps(info, indent=2, ensure_ascii=False),
        level=logging.DEBUG,
        stage="auth",
        event="PAGE_INSPECT",
        status="ok",
    )
    return info
