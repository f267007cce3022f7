from __future__ import annotations

from pathlib import Path

import pytest

from eplan_extractor.common.config_loader import load_run_config, require_credentials
from eplan_extractor.common.errors import ConfigError

MINIMAL = """dashboard:
  url: "https://eplan.test/dashboard"
credentials:
  username: ops@example.test
  password_env: TEST_EPLAN_PASSWORD
delivery:
  endpoint: "https://collector.example.test/exec"
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_load_repo_config():
    cfg = load_run_config(Path("config/eplan.yml"), environ={})
    assert cfg.dashboard_url == "https://eplanla.lacity.org/dashboard/dashboard"
    assert cfg.selectors.record_row == ".searchField"
    assert cfg.selectors.logged_in_marker == ".ArchLabel"
    assert cfg.harvest_archived is False
    assert cfg.timeout_ms == 30000
    assert cfg.delivery.endpoint is None


def test_minimal_config_uses_defaults(tmp_path: Path):
    cfg = load_run_config(_write(tmp_path / "eplan.yml", MINIMAL), environ={"TEST_EPLAN_PASSWORD": "pw"})

    assert cfg.username == "ops@example.test"
    assert cfg.password == "pw"
    assert cfg.headless is True
    assert cfg.schema_version == 1
    assert cfg.delivery.include_metadata is True
    assert cfg.delivery.headers == ()
    assert require_credentials(cfg) == ("ops@example.test", "pw")


def test_missing_password_env_fails_credentials_check(tmp_path: Path):
    cfg = load_run_config(_write(tmp_path / "eplan.yml", MINIMAL), environ={})
    with pytest.raises(ConfigError):
        require_credentials(cfg)


def test_overlay_and_overrides_merge(tmp_path: Path):
    base = _write(tmp_path / "base" / "eplan.yml", MINIMAL)
    _write(
        tmp_path / "overlay" / "eplan.yml",
        """delivery:
  headers:
    X-Source: overlay
browser:
  headless: false
""",
    )

    cfg = load_run_config(
        base,
        overlay_config_dir=tmp_path / "overlay",
        overrides={
            "delivery.endpoint": "https://override.test/hook",
            "delivery.headers": {"X-Run": "cli"},
            "delivery.user_email": None,
        },
        environ={},
    )

    assert cfg.headless is False
    assert cfg.delivery.endpoint == "https://override.test/hook"
    assert dict(cfg.delivery.headers) == {"X-Source": "overlay", "X-Run": "cli"}


def test_empty_overlay_file_is_ignored(tmp_path: Path):
    base = _write(tmp_path / "base" / "eplan.yml", MINIMAL)
    _write(tmp_path / "overlay" / "eplan.yml", "")
    cfg = load_run_config(base, overlay_config_dir=tmp_path / "overlay", environ={})
    assert cfg.headless is True


def test_non_mapping_overlay_is_rejected(tmp_path: Path):
    base = _write(tmp_path / "base" / "eplan.yml", MINIMAL)
    _write(tmp_path / "overlay" / "eplan.yml", "- not\n- a\n- mapping\n")
    with pytest.raises(ConfigError):
        load_run_config(base, overlay_config_dir=tmp_path / "overlay", environ={})


def test_unknown_keys_are_rejected(tmp_path: Path):
    path = _write(tmp_path / "eplan.yml", MINIMAL + "scrape:\n  retries: 3\n")
    with pytest.raises(ConfigError, match="Unknown keys in scrape"):
        load_run_config(path, environ={})


def test_missing_section_is_rejected(tmp_path: Path):
    path = _write(tmp_path / "eplan.yml", 'dashboard:\n  url: "https://x.test"\n')
    with pytest.raises(ConfigError, match="Missing keys"):
        load_run_config(path, environ={})


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_run_config(tmp_path / "absent.yml", environ={})


def test_bearer_auth_reads_token_from_env(tmp_path: Path):
    path = _write(
        tmp_path / "eplan.yml",
        MINIMAL + "  auth:\n    scheme: bearer\n    token_env: TEST_TOKEN\n",
    )
    cfg = load_run_config(path, environ={"TEST_TOKEN": "abc"})
    assert cfg.delivery.auth.headers() == {"Authorization": "Bearer abc"}


def test_auth_env_missing_is_config_error(tmp_path: Path):
    path = _write(
        tmp_path / "eplan.yml",
        MINIMAL + "  auth:\n    scheme: api_key\n    token_env: TEST_TOKEN\n",
    )
    with pytest.raises(ConfigError):
        load_run_config(path, environ={})


def test_unknown_auth_scheme(tmp_path: Path):
    path = _write(tmp_path / "eplan.yml", MINIMAL + "  auth:\n    scheme: digest\n")
    with pytest.raises(ConfigError):
        load_run_config(path, environ={})


def test_invalid_timeout(tmp_path: Path):
    path = _write(tmp_path / "eplan.yml", MINIMAL + "browser:\n  timeout_ms: 0\n")
    with pytest.raises(ConfigError):
        load_run_config(path, environ={})
