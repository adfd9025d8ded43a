"""Domain entities for Autopilot device naming.

These are pure domain objects with no infrastructure dependencies.
They represent the core business concepts of the naming workflow.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional


def normalize_serial(serial: Optional[str]) -> str:
    """Join key form of a serial number: trimmed and upper-cased."""
    return (serial or "").strip().upper()


def normalize_name_key(name: Optional[str]) -> str:
    """Comparison key for duplicate detection: trimmed and case-folded."""
    return (name or "").strip().casefold()


class DecisionStatus(str, Enum):
    """Outcome of reconciling one directive."""

    DUPLICATE_NAME = "DuplicateName"
    NO_DEVICE_FOUND = "NoDeviceFound"
    ALREADY_NAMED = "AlreadyNamed"
    NO_CHANGE = "NoChange"
    UPDATED = "Updated"
    SIMULATED = "Simulated"
    FAILED = "Failed"


class ApplyStatus(str, Enum):
    """Result of asking the directory to apply a name."""

    APPLIED = "applied"
    NOT_APPLIED = "not_applied"  # Simulate-only, or confirmation declined
    ERROR = "error"


@dataclass(frozen=True)
class RemoteDevice:
    """A device identity as recorded in the Autopilot directory.

    Only id, serial_number and current_name take part in reconciliation;
    the remaining fields are carried for the export.
    """

    id: str
    serial_number: str
    current_name: str = ""
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    group_tag: Optional[str] = None
    enrollment_state: Optional[str] = None
    last_contacted: Optional[str] = None

    @property
    def normalized_serial(self) -> str:
        return normalize_serial(self.serial_number)

    @property
    def trimmed_name(self) -> str:
        return (self.current_name or "").strip()


@dataclass(frozen=True)
class Directive:
    """One desired (serial, name) pairing from the input file."""

    serial_number: str
    desired_name: str

    def __post_init__(self):
        object.__setattr__(self, "serial_number", normalize_serial(self.serial_number))
        object.__setattr__(self, "desired_name", (self.desired_name or "").strip())

    @property
    def name_key(self) -> str:
        return normalize_name_key(self.desired_name)


@dataclass(frozen=True)
class ApplyOutcome:
    """Typed result returned from the update boundary."""

    status: ApplyStatus
    error: Optional[str] = None

    @classmethod
    def applied(cls) -> "ApplyOutcome":
        return cls(ApplyStatus.APPLIED)

    @classmethod
    def not_applied(cls) -> "ApplyOutcome":
        return cls(ApplyStatus.NOT_APPLIED)

    @classmethod
    def failed(cls, message: str) -> "ApplyOutcome":
        return cls(ApplyStatus.ERROR, error=message)


@dataclass(frozen=True)
class Decision:
    """The classification of one directive.

    error is only set when status is FAILED. device_id and current_name
    describe the matched device and stay empty when nothing matched.
    """

    serial_number: str
    desired_name: str
    status: DecisionStatus
    reason: str
    error: Optional[str] = None
    device_id: str = ""
    current_name: str = ""

    def to_dict(self) -> dict:
        """Convert to a flat dictionary for report rows."""
        return {
            "SerialNumber": self.serial_number,
            "DesiredName": self.desired_name,
            "CurrentName": self.current_name,
            "DeviceId": self.device_id,
            "Status": self.status.value,
            "Reason": self.reason,
            "Error": self.error or "",
        }


@dataclass
class ValidationError:
    """A validation problem found while reading the directive file."""

    row_number: int
    field: str
    message: str


@dataclass
class RunSummary:
    """Counts per decision status for one run."""

    counts: dict[DecisionStatus, int] = field(
        default_factory=lambda: {status: 0 for status in DecisionStatus}
    )
    report_path: Optional[Path] = None

    @classmethod
    def from_decisions(
        cls,
        decisions: Iterable[Decision],
        report_path: Optional[Path] = None,
    ) -> "RunSummary":
        tally = Counter(d.status for d in decisions)
        counts = {status: tally.get(status, 0) for status in DecisionStatus}
        return cls(counts=counts, report_path=report_path)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def failed(self) -> int:
        return self.counts[DecisionStatus.FAILED]
