"""Directive file parser adapter.

This adapter implements IDirectiveLoader to read CSV or Excel files that
pair device serial numbers with the display name each device should get.
"""

import csv
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from openpyxl import load_workbook

from ...api.exceptions import InputValidationError
from ..domain.entities import ValidationError, normalize_serial
from ..domain.ports import IDirectiveLoader

logger = logging.getLogger(__name__)


class NameColumn(str, Enum):
    """The two accepted spellings of the desired name column."""

    DESIRED_NAME = "desiredname"
    DEVICE_NAME = "devicename"


@dataclass(frozen=True)
class HeaderLayout:
    """Validated column positions of a directive file."""

    serial_col: int
    name_col: int
    name_column: NameColumn


def _header_key(value) -> str:
    """Collapse 'Serial Number', 'serial_number' and 'SerialNumber' to one key."""
    if value is None:
        return ""
    return "".join(ch for ch in str(value).strip().lower() if ch not in " _-")


class OpenpyxlDirectiveParser(IDirectiveLoader):
    """Directive parser for CSV and Excel files.

    Expected format:
    | Serial Number | DesiredName |
    |---------------|-------------|
    | 5CG1234ABC    | LAPTOP-01   |
    | 5CG5678DEF    | LAPTOP-02   |

    - First row is treated as header
    - A serial column is required
    - Exactly one name column is required: DesiredName or DeviceName
      (spaces, underscores and case are ignored); DesiredName wins if
      both are present
    """

    SERIAL_COLUMNS = ["serialnumber", "serial", "sn"]

    def load(self, file_content: bytes) -> dict[str, str]:
        """Parse the file into normalized serial -> desired name.

        Raises:
            InputValidationError: If the file is unusable or holds no
                directive rows
        """
        directives: dict[str, str] = {}
        first_row: dict[str, int] = {}

        for row_number, serial, name in self.parse(file_content):
            key = normalize_serial(serial)
            if key in directives:
                logger.warning(
                    f"Serial {key} repeated on row {row_number} "
                    f"(first on row {first_row[key]}); using the later name '{name}'"
                )
            else:
                first_row[key] = row_number
            directives[key] = name

        if not directives:
            raise InputValidationError("No directive rows found in file")

        logger.info(f"Loaded {len(directives)} directive(s)")
        return directives

    def parse(self, file_content: bytes) -> list[tuple[int, str, str]]:
        """Parse a CSV or Excel file into (row_number, serial, name) rows.

        Rows with a blank serial or blank name are skipped.

        Raises:
            InputValidationError: If the file is empty, unreadable or has
                no usable header
        """
        if not file_content:
            raise InputValidationError("Directive file is empty")

        if self._is_csv(file_content):
            rows = self._read_csv(file_content)
            source = "CSV"
        else:
            rows = self._read_excel(file_content)
            source = "Excel"

        try:
            header = next(rows)
        except StopIteration:
            raise InputValidationError(f"{source} file is empty", source=source)

        layout = self.find_columns(header)

        parsed = []
        skipped = 0
        for row_number, row in enumerate(rows, start=2):
            serial = self._cell(row, layout.serial_col)
            name = self._cell(row, layout.name_col)
            if not serial or not name:
                if serial or name:
                    skipped += 1
                continue
            parsed.append((row_number, serial, name))

        if skipped:
            logger.info(f"Skipped {skipped} row(s) with a blank serial or name")
        logger.info(f"Parsed {len(parsed)} rows from {source} file ({layout.name_column.value} column)")
        return parsed

    def find_columns(self, header_row: Iterable) -> HeaderLayout:
        """Locate the serial and desired-name columns in the header row.

        Raises:
            InputValidationError: If a required column is missing
        """
        serial_col: Optional[int] = None
        name_cols: dict[NameColumn, int] = {}

        for idx, cell in enumerate(header_row):
            key = _header_key(cell)
            if not key:
                continue
            if key in self.SERIAL_COLUMNS and serial_col is None:
                serial_col = idx
            elif key in (NameColumn.DESIRED_NAME.value, NameColumn.DEVICE_NAME.value):
                name_cols.setdefault(NameColumn(key), idx)

        errors = []
        if serial_col is None:
            errors.append(
                ValidationError(
                    row_number=1,
                    field="serial",
                    message=(
                        "Could not find Serial Number column. "
                        "Expected one of: Serial Number, Serial, SerialNumber, SN"
                    ),
                )
            )
        if not name_cols:
            errors.append(
                ValidationError(
                    row_number=1,
                    field="desired_name",
                    message=(
                        "Could not find desired name column. "
                        "Expected DesiredName or DeviceName"
                    ),
                )
            )
        if errors:
            raise InputValidationError(
                "; ".join(e.message for e in errors),
                errors=errors,
            )

        name_column = (
            NameColumn.DESIRED_NAME if NameColumn.DESIRED_NAME in name_cols else NameColumn.DEVICE_NAME
        )
        return HeaderLayout(
            serial_col=serial_col,
            name_col=name_cols[name_column],
            name_column=name_column,
        )

    # ----------------------------------------
    # Format Readers
    # ----------------------------------------

    def _is_csv(self, file_content: bytes) -> bool:
        """Anything that is not a zip archive and decodes as text is CSV."""
        if file_content[:2] == b"PK":
            # xlsx files are zip archives
            return False
        try:
            file_content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return False
        return True

    def _read_csv(self, file_content: bytes) -> Iterator[list]:
        try:
            text = file_content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InputValidationError(f"CSV file is not valid UTF-8: {e}", source="CSV", cause=e)

        try:
            dialect = csv.Sniffer().sniff(text[:1024], delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel

        return iter(list(csv.reader(io.StringIO(text), dialect)))

    def _read_excel(self, file_content: bytes) -> Iterator[list]:
        try:
            wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
        except Exception as e:
            logger.error(f"Failed to open Excel file: {e}")
            raise InputValidationError(f"Failed to parse Excel file: {e}", source="Excel", cause=e)

        try:
            ws = wb.active
            if ws is None:
                raise InputValidationError("Excel file has no active worksheet", source="Excel")
            rows = [list(row) for row in ws.iter_rows(values_only=True)]
        finally:
            wb.close()

        return iter(rows)

    @staticmethod
    def _cell(row: list, idx: int) -> str:
        if idx >= len(row) or row[idx] is None:
            return ""
        return str(row[idx]).strip()
