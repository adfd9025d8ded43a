"""Domain layer for Autopilot device naming.

Contains:
- Entities: Core business objects
- Reconciliation: The pure decision rules
- Ports: Interface definitions for infrastructure adapters
"""

from .entities import (
    ApplyOutcome,
    ApplyStatus,
    Decision,
    DecisionStatus,
    Directive,
    RemoteDevice,
    RunSummary,
    normalize_name_key,
    normalize_serial,
)
from .entities import (
    ValidationError as DomainValidationError,
)
from .ports import (
    IDeviceDirectory,
    IDirectiveLoader,
    INameUpdater,
    IReportWriter,
)
from .reconciliation import (
    NameReconciler,
    PlannedAction,
    duplicate_name_examples,
    find_duplicate_names,
)

__all__ = [
    # Entities
    "RemoteDevice",
    "Directive",
    "Decision",
    "DecisionStatus",
    "ApplyOutcome",
    "ApplyStatus",
    "RunSummary",
    "DomainValidationError",
    "normalize_serial",
    "normalize_name_key",
    # Reconciliation
    "NameReconciler",
    "PlannedAction",
    "find_duplicate_names",
    "duplicate_name_examples",
    # Ports
    "IDeviceDirectory",
    "IDirectiveLoader",
    "INameUpdater",
    "IReportWriter",
]
