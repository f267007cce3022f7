"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from eplan_extractor.common.errors import ConfigError

SECTION_KEYS = {
    "dashboard": ({"url"}, {"url", "archived_url", "harvest_archived"}),
    "credentials": ({"username"}, {"username", "password_env"}),
    "selectors": (
        set(),
        {"username_input", "password_input", "button", "logged_in_marker", "record_row"},
    ),
    "browser": (set(), {"headless", "timeout_ms", "user_agent", "screenshot_dir"}),
    "parser": (set(), {"schema_version"}),
    "scrape": (set(), {"abort_on_error"}),
    "delivery": (
        {"endpoint"},
        {
            "endpoint",
            "include_metadata",
            "user_email",
            "timeout_seconds",
            "headers",
            "auth",
            "cookies_endpoint",
            "screenshot_endpoint",
        },
    ),
}
AUTH_SCHEMES = {"bearer", "basic", "api_key"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def validate_auth_config(auth: dict) -> dict:
    _assert_mapping(auth, "delivery.auth")
    _assert_required_keys(auth, {"scheme"}, "delivery.auth")
    _assert_no_unknown_keys(
        auth,
        {"scheme", "token_env", "username", "password_env", "header_name"},
        "delivery.auth",
        allow_unknown=False,
    )
    if auth["scheme"] not in AUTH_SCHEMES:
        raise ConfigError(f"delivery.auth.scheme must be one of {', '.join(sorted(AUTH_SCHEMES))}")
    if auth["scheme"] in {"bearer", "api_key"} and not auth.get("token_env"):
        raise ConfigError(f"delivery.auth.token_env is required for scheme {auth['scheme']}")
    if auth["scheme"] == "basic":
        _assert_required_keys(auth, {"username", "password_env"}, "delivery.auth")
    return auth


def validate_run_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "run config")
    _assert_required_keys(cfg, {"dashboard", "credentials", "delivery"}, "run config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "run config", allow_unknown)

    for section, (required, known) in SECTION_KEYS.items():
        if section not in cfg:
            continue
        body = _assert_mapping(cfg[section], section)
        _assert_required_keys(body, required, section)
        _assert_no_unknown_keys(body, known, section, allow_unknown)

    browser = cfg.get("browser", {})
    if "timeout_ms" in browser and (not isinstance(browser["timeout_ms"], int) or browser["timeout_ms"] <= 0):
        raise ConfigError("browser.timeout_ms must be a positive integer")

    headers = cfg["delivery"].get("headers") or {}
    _assert_mapping(headers, "delivery.headers")

    auth = cfg["delivery"].get("auth")
    if auth is not None:
        validate_auth_config(auth)

    return cfg
