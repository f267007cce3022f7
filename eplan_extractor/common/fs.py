"""Filesystem helpers for config, raw rows and run artifacts."""

from __future__ import annotations

import json
import os
from pathlib import Path

from eplan_extractor.common.errors import ConfigError


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc


def write_json(path: Path, payload) -> None:
    """Write sorted, indented JSON; readers never see a half-written file."""
    ensure_dir(path.parent)
    tmp_path = path.with_name(path.name + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")
    os.replace(tmp_path, path)


def read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc


def read_lines(path: Path) -> list[str]:
    """Raw dashboard rows, one per line; blank lines are not rows."""
    with path.open("r", encoding="utf-8") as f:
        return [line.rstrip("\r\n") for line in f if line.strip()]
