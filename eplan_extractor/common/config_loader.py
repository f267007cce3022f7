"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from eplan_extractor.common.constants import (
    DEFAULT_ARCHIVED_URL,
    DEFAULT_TIMEOUT_MS,
    USER_AGENT,
)
from eplan_extractor.common.errors import ConfigError
from eplan_extractor.common.fs import read_yaml
from eplan_extractor.common.http import AuthConfig, TimeoutConfig
from eplan_extractor.common.models import Selectors
from eplan_extractor.common.schema import validate_run_config


@dataclass(frozen=True)
class DeliverySettings:
    endpoint: str | None
    include_metadata: bool = True
    user_email: str | None = None
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    headers: tuple[tuple[str, str], ...] = ()
    auth: AuthConfig | None = None
    cookies_endpoint: str | None = None
    screenshot_endpoint: str | None = None


@dataclass(frozen=True)
class RunConfig:
    dashboard_url: str
    username: str | None
    password: str | None
    delivery: DeliverySettings
    archived_url: str = DEFAULT_ARCHIVED_URL
    harvest_archived: bool = False
    selectors: Selectors = field(default_factory=Selectors)
    headless: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: str = USER_AGENT
    screenshot_dir: Path | None = None
    schema_version: int = 1
    abort_on_scrape_error: bool = False


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _expand_dotted(overrides: Mapping[str, Any]) -> dict:
    """``{"delivery.endpoint": x}`` -> ``{"delivery": {"endpoint": x}}``; None values are dropped."""
    nested: dict = {}
    for dotted, value in overrides.items():
        if value is None:
            continue
        node = nested
        *parents, leaf = dotted.split(".")
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
    return nested


def _env_secret(environ: Mapping[str, str], name: str | None, ctx: str) -> str | None:
    if not name:
        return None
    value = environ.get(name)
    if value is None:
        raise ConfigError(f"Environment variable {name} for {ctx} is not set")
    return value


def _build_auth(auth: dict | None, environ: Mapping[str, str]) -> AuthConfig | None:
    if not auth:
        return None
    scheme = auth["scheme"]
    if scheme == "basic":
        return AuthConfig(
            scheme=scheme,
            username=auth["username"],
            password=_env_secret(environ, auth["password_env"], "delivery.auth"),
        )
    return AuthConfig(
        scheme=scheme,
        token=_env_secret(environ, auth["token_env"], "delivery.auth"),
        header_name=auth.get("header_name", "X-API-Key"),
    )


def build_run_config(cfg: dict, environ: Mapping[str, str] | None = None) -> RunConfig:
    environ = os.environ if environ is None else environ
    dashboard = cfg["dashboard"]
    credentials = cfg["credentials"]
    browser = cfg.get("browser") or {}
    delivery = cfg["delivery"]
    selectors = Selectors(**(cfg.get("selectors") or {}))

    timeout_seconds = float(delivery.get("timeout_seconds", TimeoutConfig().read))
    delivery_settings = DeliverySettings(
        endpoint=delivery.get("endpoint"),
        include_metadata=bool(delivery.get("include_metadata", True)),
        user_email=delivery.get("user_email"),
        timeout=TimeoutConfig(connect=min(TimeoutConfig().connect, timeout_seconds), read=timeout_seconds),
        headers=tuple((str(k), str(v)) for k, v in (delivery.get("headers") or {}).items()),
        auth=_build_auth(delivery.get("auth"), environ),
        cookies_endpoint=delivery.get("cookies_endpoint"),
        screenshot_endpoint=delivery.get("screenshot_endpoint"),
    )

    password_env = credentials.get("password_env")
    password = environ.get(password_env) if password_env else None
    screenshot_dir = browser.get("screenshot_dir")

    return RunConfig(
        dashboard_url=dashboard["url"],
        archived_url=dashboard.get("archived_url") or DEFAULT_ARCHIVED_URL,
        harvest_archived=bool(dashboard.get("harvest_archived", False)),
        username=credentials.get("username"),
        password=password,
        selectors=selectors,
        headless=bool(browser.get("headless", True)),
        timeout_ms=int(browser.get("timeout_ms", DEFAULT_TIMEOUT_MS)),
        user_agent=browser.get("user_agent") or USER_AGENT,
        screenshot_dir=Path(screenshot_dir) if screenshot_dir else None,
        schema_version=int((cfg.get("parser") or {}).get("schema_version", 1)),
        abort_on_scrape_error=bool((cfg.get("scrape") or {}).get("abort_on_error", False)),
        delivery=delivery_settings,
    )


def load_run_config(
    config_path: Path,
    *,
    overlay_config_dir: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    allow_unknown: bool = False,
) -> RunConfig:
    overlay_path = overlay_config_dir / config_path.name if overlay_config_dir is not None else None
    raw = _load_yaml_with_overlay(config_path, overlay_path)
    if overrides:
        raw = _deep_merge(raw, _expand_dotted(overrides))
    cfg = validate_run_config(raw, allow_unknown=allow_unknown)
    return build_run_config(cfg, environ=environ)


def require_credentials(config: RunConfig) -> tuple[str, str]:
    if not config.username:
        raise ConfigError("credentials.username is required for a run")
    if config.password is None:
        raise ConfigError("Password is not set; export the variable named by credentials.password_env")
    return config.username, config.password
