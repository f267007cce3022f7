"""Run artifacts: the scraped batch and a run summary."""

from __future__ import annotations

from pathlib import Path

from eplan_extractor.common.fs import read_json, write_json
from eplan_extractor.common.models import ProjectRecord, RunOutcome


def batch_path(data_dir: Path, run_id: str) -> Path:
    return data_dir / "out" / run_id / "batch.json"


def write_batch(data_dir: Path, run_id: str, batch: list[ProjectRecord]) -> Path:
    path = batch_path(data_dir, run_id)
    write_json(path, [record.to_wire() for record in batch])
    return path


def read_batch(path: Path) -> list[ProjectRecord]:
    payload = read_json(path)
    # Accept either a bare array or a full delivery payload.
    if isinstance(payload, dict):
        payload = payload.get("Projects", [])
    return [ProjectRecord.from_wire(item) for item in payload]


def write_run_summary(data_dir: Path, outcome: RunOutcome, run_date: str) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    payload = {
        "run_id": outcome.run_id,
        "run_date": run_date,
        "status": outcome.status,
        "totals": {
            "records_scraped": outcome.records_scraped,
            "records_skipped": outcome.records_skipped,
        },
        "delivered": outcome.delivered,
        "error_code": outcome.error_code,
        "response_body": outcome.response_body,
        "notes": outcome.notes,
    }
    write_json(summary_path, payload)
    return summary_path
