"""UTC-focused helpers for run metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso(moment: datetime | None = None) -> str:
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def compact_local_stamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now()
    return moment.strftime("%Y%m%d_%H%M%S")


def utc_today_iso() -> str:
    return utc_now().date().isoformat()


def generate_run_id(moment: datetime | None = None) -> str:
    # Lexically sortable by start time.
    return (moment or utc_now()).strftime("run-%Y%m%dT%H%M%S%fZ")
