"""Report writer adapter.

This adapter implements IReportWriter to write the per-directive decision
report and the directory snapshot as CSV or Excel files.
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side

from ...api.exceptions import ConfigurationError, WriteError
from ..domain.entities import Decision, DecisionStatus, RemoteDevice, RunSummary
from ..domain.ports import IReportWriter

logger = logging.getLogger(__name__)

DEFAULT_REPORT_DIR = "reports"
SUPPORTED_SUFFIXES = (".csv", ".xlsx")

REPORT_COLUMNS = [
    "SerialNumber",
    "DesiredName",
    "CurrentName",
    "DeviceId",
    "Status",
    "Reason",
    "Error",
]

SNAPSHOT_COLUMNS = [
    "SerialNumber",
    "CurrentName",
    "DesiredName",
    "DeviceId",
    "Model",
    "Manufacturer",
    "GroupTag",
    "EnrollmentState",
    "LastContacted",
]

STATUS_FILLS = {
    DecisionStatus.UPDATED: "C6EFCE",
    DecisionStatus.NO_CHANGE: "C6EFCE",
    DecisionStatus.SIMULATED: "FFEB9C",
    DecisionStatus.ALREADY_NAMED: "FFEB9C",
    DecisionStatus.DUPLICATE_NAME: "FFEB9C",
    DecisionStatus.NO_DEVICE_FOUND: "FFEB9C",
    DecisionStatus.FAILED: "FFC7CE",
}


def snapshot_row(device: RemoteDevice) -> dict:
    return {
        "SerialNumber": device.serial_number,
        "CurrentName": device.current_name,
        "DesiredName": "",
        "DeviceId": device.id,
        "Model": device.model or "",
        "Manufacturer": device.manufacturer or "",
        "GroupTag": device.group_tag or "",
        "EnrollmentState": device.enrollment_state or "",
        "LastContacted": device.last_contacted or "",
    }


class FileReportWriter(IReportWriter):
    """Writes reports to a file or into a directory.

    The output location is either a file path ending in .csv or .xlsx,
    or a directory, in which case a timestamped CSV name is generated.
    Without a location, AUTOPILOT_REPORT_DIR (default "reports") is used.

    The location is validated on construction so a bad path stops the run
    before anything is sent to the directory.
    """

    REPORT_PREFIX = "autopilot-naming-report"
    SNAPSHOT_PREFIX = "autopilot-devices"

    def __init__(self, output: Optional[Union[str, Path]] = None):
        if output is None or str(output).strip() == "":
            output = os.getenv("AUTOPILOT_REPORT_DIR") or DEFAULT_REPORT_DIR
        self.output = Path(output).expanduser()

        if self._is_file_target(self.output):
            if self.output.suffix.lower() not in SUPPORTED_SUFFIXES:
                raise ConfigurationError(
                    f"Unsupported report format '{self.output.suffix}'. "
                    f"Use one of: {', '.join(SUPPORTED_SUFFIXES)} or a directory",
                    details={"output": str(self.output)},
                )
            if self.output.parent.exists() and not self.output.parent.is_dir():
                raise ConfigurationError(
                    f"Report location parent is not a directory: {self.output.parent}",
                    details={"output": str(self.output)},
                )
        elif self.output.exists() and not self.output.is_dir():
            raise ConfigurationError(
                f"Report location is not a directory: {self.output}",
                details={"output": str(self.output)},
            )

    @staticmethod
    def _is_file_target(path: Path) -> bool:
        if path.exists():
            return not path.is_dir()
        return path.suffix != ""

    def resolve_path(self, prefix: str) -> Path:
        """Final file path for a report with the given prefix."""
        if self._is_file_target(self.output):
            return self.output
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        return self.output / f"{prefix}-{stamp}.csv"

    # ----------------------------------------
    # IReportWriter
    # ----------------------------------------

    def write_report(self, decisions: Sequence[Decision]) -> Path:
        path = self.resolve_path(self.REPORT_PREFIX)
        rows = [d.to_dict() for d in decisions]

        if path.suffix.lower() == ".xlsx":
            summary = RunSummary.from_decisions(decisions)
            self._write(path, lambda: self._save_report_workbook(path, rows, summary))
        else:
            self._write(path, lambda: self._save_csv(path, REPORT_COLUMNS, rows))

        logger.info(f"Wrote report with {len(rows)} decision(s) to {path}")
        return path

    def write_snapshot(self, devices: Sequence[RemoteDevice]) -> Path:
        path = self.resolve_path(self.SNAPSHOT_PREFIX)
        rows = [snapshot_row(d) for d in devices]

        if path.suffix.lower() == ".xlsx":
            self._write(path, lambda: self._save_workbook(path, "Devices", SNAPSHOT_COLUMNS, rows))
        else:
            self._write(path, lambda: self._save_csv(path, SNAPSHOT_COLUMNS, rows))

        logger.info(f"Wrote snapshot of {len(rows)} device(s) to {path}")
        return path

    # ----------------------------------------
    # Writers
    # ----------------------------------------

    @staticmethod
    def _write(path: Path, save) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            save()
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise WriteError(f"Failed to write {path}: {e}", path=str(path), cause=e) from e

    @staticmethod
    def _save_csv(path: Path, columns: list[str], rows: list[dict]) -> None:
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            writer.writerows(rows)

    def _save_workbook(self, path: Path, title: str, columns: list[str], rows: list[dict]) -> None:
        wb = Workbook()
        ws = wb.active
        ws.title = title
        self._fill_sheet(ws, columns, rows)
        wb.save(path)

    def _save_report_workbook(self, path: Path, rows: list[dict], summary: RunSummary) -> None:
        wb = Workbook()

        ws_summary = wb.active
        ws_summary.title = "Summary"
        ws_summary["A1"] = "Autopilot Naming Report"
        ws_summary["A1"].font = Font(bold=True, size=16)
        ws_summary["A3"] = "Generated At:"
        ws_summary["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        ws_summary["A5"] = "Total Directives:"
        ws_summary["B5"] = summary.total
        for offset, (status, count) in enumerate(summary.counts.items(), start=6):
            ws_summary[f"A{offset}"] = f"{status.value}:"
            ws_summary[f"B{offset}"] = count
        ws_summary.column_dimensions["A"].width = 20

        ws = wb.create_sheet("Decisions")
        self._fill_sheet(ws, REPORT_COLUMNS, rows)

        status_col = REPORT_COLUMNS.index("Status") + 1
        for row_idx, row in enumerate(rows, start=2):
            color = STATUS_FILLS.get(DecisionStatus(row["Status"]))
            if color:
                ws.cell(row=row_idx, column=status_col).fill = PatternFill(
                    start_color=color, end_color=color, fill_type="solid"
                )

        wb.save(path)

    @staticmethod
    def _fill_sheet(ws, columns: list[str], rows: list[dict]) -> None:
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        header_font = Font(bold=True, color="FFFFFF")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

        for col, header in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = header_fill
            cell.font = header_font
            cell.border = thin_border

        for row_idx, row in enumerate(rows, start=2):
            for col, header in enumerate(columns, 1):
                ws.cell(row=row_idx, column=col, value=row.get(header, "")).border = thin_border

        for col, header in enumerate(columns, 1):
            width = max([len(header)] + [len(str(r.get(header, ""))) for r in rows])
            ws.column_dimensions[ws.cell(row=1, column=col).column_letter].width = min(width + 2, 60)
