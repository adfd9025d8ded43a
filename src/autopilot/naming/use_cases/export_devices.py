"""Export Devices use case.

Writes the current Autopilot directory as a tabular file that can be
filled in with desired names and fed back to the apply workflow.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import aiofiles

from ...api.exceptions import WriteError
from ..domain.ports import IDeviceDirectory, IReportWriter

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Result of one export run."""

    device_count: int
    snapshot_path: Path
    json_path: Optional[Path] = None


class ExportDevicesUseCase:
    """Fetch the directory snapshot and write it out."""

    def __init__(self, directory: IDeviceDirectory, report_writer: IReportWriter):
        self.directory = directory
        self.report_writer = report_writer

    async def execute(self, json_path: Optional[str] = None) -> ExportResult:
        """Run the export.

        Args:
            json_path: Also dump the device records to this JSON file

        Raises:
            FetchError: If the directory snapshot could not be retrieved
            WriteError: If an output file could not be written
        """
        devices = await self.directory.fetch_all_devices()
        snapshot_path = self.report_writer.write_snapshot(devices)

        result = ExportResult(device_count=len(devices), snapshot_path=snapshot_path)

        if json_path:
            path = Path(json_path)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps([asdict(d) for d in devices], indent=2))
            except OSError as e:
                raise WriteError(f"Failed to write {path}: {e}", path=str(path), cause=e) from e
            logger.info(f"Saved {len(devices):,} devices to {path}")
            result.json_path = path

        return result
