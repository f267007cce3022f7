"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from eplan_extractor.common.constants import (
    BUTTON_SELECTOR,
    LOGGED_IN_SELECTOR,
    PASSWORD_SELECTOR,
    RECORD_ROW_SELECTOR,
    USERNAME_SELECTOR,
)
from eplan_extractor.common.errors import DeliveryError, ScrapeError

WIRE_FIELD_NAMES = {
    "reference_id": "ReferenceId",
    "application_number": "ApplicationNumber",
    "unit": "Unit",
    "status_more_info": "StatusMoreInfo",
    "status": "Status",
    "status_date": "StatusDate",
    "address": "Address",
    "application_type": "ApplicationType",
    "assigned_staff": "AssignedStaff",
    "sys_ref": "SysRef",
    "archived": "Archived",
}


@dataclass(frozen=True)
class ProjectRecord:
    reference_id: int
    unit: str
    status: str
    status_date: str
    address: str
    sys_ref: str
    archived: str
    application_number: str | None = None
    status_more_info: str | None = None
    application_type: str | None = None
    assigned_staff: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_wire(self) -> dict[str, Any]:
        values = self.to_dict()
        return {wire: values[name] for name, wire in WIRE_FIELD_NAMES.items()}

    @classmethod
    def from_wire(cls, payload: dict[str, Any]) -> "ProjectRecord":
        kwargs = {name: payload.get(wire) for name, wire in WIRE_FIELD_NAMES.items()}
        kwargs["reference_id"] = int(kwargs["reference_id"])
        return cls(**kwargs)


RunBatch = list[ProjectRecord]


@dataclass(frozen=True)
class SkippedRow:
    raw_text: str
    error_code: str
    message: str


@dataclass
class ScrapeResult:
    records: RunBatch = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)
    error: ScrapeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DeliveryPayload:
    timestamp: str
    user_email: str | None
    source_url: str | None
    projects: tuple[ProjectRecord, ...]

    @property
    def total_projects(self) -> int:
        return len(self.projects)

    def to_wire(self) -> dict[str, Any]:
        return {
            "Timestamp": self.timestamp,
            "UserEmail": self.user_email,
            "SourceUrl": self.source_url,
            "TotalProjects": self.total_projects,
            "Projects": [project.to_wire() for project in self.projects],
        }


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    response_body: str | None = None
    status_code: int | None = None
    error: DeliveryError | None = None


@dataclass
class RunOutcome:
    run_id: str
    status: str
    records_scraped: int = 0
    records_skipped: int = 0
    delivered: bool = False
    response_body: str | None = None
    error_code: str | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Selectors:
    username_input: str = USERNAME_SELECTOR
    password_input: str = PASSWORD_SELECTOR
    button: str = BUTTON_SELECTOR
    logged_in_marker: str = LOGGED_IN_SELECTOR
    record_row: str = RECORD_ROW_SELECTOR
