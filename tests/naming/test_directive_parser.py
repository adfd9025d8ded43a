"""Tests for the directive file parser adapter."""

import io

import pytest
from openpyxl import Workbook

from src.autopilot.api.exceptions import InputValidationError
from src.autopilot.naming.adapters.directive_parser import NameColumn, OpenpyxlDirectiveParser


@pytest.fixture
def parser():
    return OpenpyxlDirectiveParser()


def excel_bytes(rows):
    wb = Workbook()
    ws = wb.active
    ws.title = "Names"
    for row in rows:
        ws.append(row)
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


class TestCsvInput:
    def test_desired_name_header(self, parser):
        content = b"SerialNumber,DesiredName\n5cg001 ,LAPTOP-01\n5CG002, LAPTOP-02 \n"

        assert parser.load(content) == {"5CG001": "LAPTOP-01", "5CG002": "LAPTOP-02"}

    def test_device_name_header_with_spaces(self, parser):
        content = b"Serial Number,Device Name\nSN1,PC-1\n"

        assert parser.load(content) == {"SN1": "PC-1"}

    def test_desired_name_preferred_over_device_name(self, parser):
        content = b"Serial,DeviceName,Desired_Name\nSN1,OLD,NEW\n"

        rows = parser.parse(content)
        assert rows == [(2, "SN1", "NEW")]

    def test_semicolon_delimiter_and_bom(self, parser):
        content = b"\xef\xbb\xbfSerialNumber;DesiredName\nSN1;PC-1\nSN2;PC-2\n"

        assert parser.load(content) == {"SN1": "PC-1", "SN2": "PC-2"}

    def test_blank_rows_dropped(self, parser):
        content = b"SerialNumber,DesiredName\nSN1,\n,PC-2\n,\nSN3,PC-3\n"

        assert parser.load(content) == {"SN3": "PC-3"}

    def test_repeated_serial_last_row_wins(self, parser):
        content = b"SerialNumber,DesiredName\nSN1,FIRST\nsn1,SECOND\n"

        assert parser.load(content) == {"SN1": "SECOND"}

    def test_extra_columns_ignored(self, parser):
        content = b"Model,SN,Notes,DesiredName\nSurface,SN1,x,PC-1\n"

        assert parser.load(content) == {"SN1": "PC-1"}


class TestExcelInput:
    def test_reads_active_sheet(self, parser):
        content = excel_bytes([
            ["Serial Number", "DesiredName"],
            ["5CG001", "LAPTOP-01"],
            [None, None],
            ["5CG002", "LAPTOP-02"],
        ])

        assert parser.load(content) == {"5CG001": "LAPTOP-01", "5CG002": "LAPTOP-02"}

    def test_numeric_serial_becomes_text(self, parser):
        content = excel_bytes([["SN", "DeviceName"], [123456, "PC-1"]])

        assert parser.load(content) == {"123456": "PC-1"}

    def test_corrupt_workbook(self, parser):
        with pytest.raises(InputValidationError):
            parser.load(b"PK\x03\x04 definitely not a workbook")


class TestHeaderValidation:
    def test_find_columns(self, parser):
        layout = parser.find_columns(["Notes", "serial_number", "device_name"])

        assert layout.serial_col == 1
        assert layout.name_col == 2
        assert layout.name_column == NameColumn.DEVICE_NAME

    def test_missing_serial_column(self, parser):
        with pytest.raises(InputValidationError) as exc:
            parser.load(b"Asset,DesiredName\nA1,PC-1\n")

        assert [e.field for e in exc.value.errors] == ["serial"]

    def test_missing_name_column(self, parser):
        with pytest.raises(InputValidationError) as exc:
            parser.load(b"SerialNumber,Name\nSN1,PC-1\n")

        assert [e.field for e in exc.value.errors] == ["desired_name"]

    def test_both_columns_missing(self, parser):
        with pytest.raises(InputValidationError) as exc:
            parser.find_columns(["a", "b"])

        assert len(exc.value.errors) == 2


class TestEmptyInput:
    def test_empty_bytes(self, parser):
        with pytest.raises(InputValidationError):
            parser.load(b"")

    def test_header_only(self, parser):
        with pytest.raises(InputValidationError, match="No directive rows"):
            parser.load(b"SerialNumber,DesiredName\n")
