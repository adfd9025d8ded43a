"""Port interfaces for Autopilot device naming.

These are abstract interfaces (ports) that define how the domain
interacts with external systems. Concrete implementations (adapters)
are provided in the adapters module.

This follows the Hexagonal Architecture pattern.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from .entities import ApplyOutcome, Decision, RemoteDevice


class IDeviceDirectory(ABC):
    """Port for reading the device directory."""

    @abstractmethod
    async def fetch_all_devices(self) -> list[RemoteDevice]:
        """Fetch the complete device snapshot.

        Implementations must follow pagination to the end and return
        either every device or nothing.

        Raises:
            FetchError: If the snapshot could not be retrieved completely
        """
        ...


class IDirectiveLoader(ABC):
    """Port for turning a tabular file into directives."""

    @abstractmethod
    def load(self, file_content: bytes) -> dict[str, str]:
        """Parse the file into normalized serial -> desired name.

        Rows with a blank serial or blank name are dropped. When a
        serial repeats, the last row wins.

        Raises:
            InputValidationError: If the file is empty, unreadable or
                lacks the serial / desired name columns
        """
        ...


class INameUpdater(ABC):
    """Port for applying a display name to one device."""

    @abstractmethod
    async def apply_name(
        self,
        device_id: str,
        desired_name: str,
        serial_number: str = "",
    ) -> ApplyOutcome:
        """Apply desired_name to the device.

        Returns:
            ApplyOutcome.applied() when the directory accepted the update,
            ApplyOutcome.not_applied() when running simulate-only or the
            operator declined, ApplyOutcome.failed(message) on error.
        """
        ...


class IReportWriter(ABC):
    """Port for writing run output."""

    @abstractmethod
    def write_report(self, decisions: Sequence[Decision]) -> Path:
        """Write one row per decision.

        Returns:
            Location of the written report

        Raises:
            WriteError: If the destination cannot be created or written
        """
        ...

    @abstractmethod
    def write_snapshot(self, devices: Sequence[RemoteDevice]) -> Path:
        """Write the directory snapshot (export mode).

        Raises:
            WriteError: If the destination cannot be created or written
        """
        ...
