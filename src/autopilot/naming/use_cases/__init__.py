"""Use cases for Autopilot device naming.

Each use case represents a single user action and orchestrates
domain logic without knowing about infrastructure details.
"""

from .apply_names import ApplyNamesResult, ApplyNamesUseCase
from .export_devices import ExportDevicesUseCase, ExportResult

__all__ = [
    "ApplyNamesUseCase",
    "ApplyNamesResult",
    "ExportDevicesUseCase",
    "ExportResult",
]
