"""Device list parser adapter.

This adapter implements IDeviceListParser to read the desired device list
from CSV or Excel files.

Expected format (first row is the header):
| SerialNumber | Name     | EnableDeviceBeeping | EngineRpmBeepValue | ... |
|--------------|----------|---------------------|--------------------|-----|
| G9AB-0001    | Truck 12 | true                | 4000               |     |
| G9AB-0002    |          |                     |                    |     |

- SerialNumber column is required, every other column is optional
- Header names are matched case-insensitively, ignoring spaces,
  underscores and hyphens ("Serial Number", "serial_number", "SerialNumber")
- Blank cells fall back to the DeviceSettings defaults
- Booleans accept true/false, yes/no, y/n, 1/0
"""

import csv
import io
import logging
from dataclasses import fields
from typing import Any, Optional

from openpyxl import load_workbook

from ..domain.entities import DesiredDevice, DeviceSettings
from ..domain.ports import IDeviceListParser
from ..domain.validation import ValidationResult, validate_desired_devices

logger = logging.getLogger(__name__)

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}

SERIAL_COLUMNS = ["serialnumber", "serial", "sn"]
NAME_COLUMNS = ["name", "devicename"]

# Normalized header -> DeviceSettings field
SETTING_COLUMNS: dict[str, str] = {
    name.replace("_", ""): name for name in (f.name for f in fields(DeviceSettings))
}
# Column name used by existing device list templates
SETTING_COLUMNS["enablebeepbrieflywhenapprocahingwarningspeed"] = (
    "enable_beep_briefly_when_approaching_warning_speed"
)

_SETTING_TYPES = {f.name: f.type for f in fields(DeviceSettings)}


def normalize_header(header: Any) -> str:
    if header is None:
        return ""
    return "".join(ch for ch in str(header).strip().lower() if ch not in " _-")


def parse_bool_cell(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"'{value}' is not a boolean")


def parse_int_cell(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{value}' is not an integer")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        number = float(str(value).strip())
    if not number.is_integer():
        raise ValueError(f"'{value}' is not an integer")
    return int(number)


class DeviceListParser(IDeviceListParser):
    """CSV and Excel device list parser (csv module and openpyxl)."""

    def parse(self, content: bytes, filename: Optional[str] = None) -> list[DesiredDevice]:
        """Parse a device list file.

        Args:
            content: Raw bytes of the file
            filename: Used to pick the format; sniffed from content if absent

        Returns:
            DesiredDevice per non-empty row, in file order

        Raises:
            ValueError: If the file is unreadable, lacks a serial number
                column, or holds cells that cannot be converted
        """
        if self._is_csv(content, filename):
            header, rows = self._read_csv(content)
        else:
            header, rows = self._read_excel(content)
        return self._build_devices(header, rows)

    def validate(self, devices: list[DesiredDevice]) -> ValidationResult:
        return validate_desired_devices(devices)

    # ----------------------------------------
    # Format detection and reading
    # ----------------------------------------

    @staticmethod
    def _is_csv(content: bytes, filename: Optional[str]) -> bool:
        if filename:
            lowered = filename.lower()
            if lowered.endswith((".csv", ".txt")):
                return True
            if lowered.endswith((".xlsx", ".xlsm")):
                return False
        # xlsx files are zip archives
        if content[:2] == b"PK":
            return False
        try:
            content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return False
        return True

    @staticmethod
    def _read_csv(content: bytes) -> tuple[list[Any], list[tuple[int, list[Any]]]]:
        try:
            text = content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError as e:
            raise ValueError(f"Failed to parse CSV file: {e}")

        sniffer = csv.Sniffer()
        try:
            dialect = sniffer.sniff(text[:1024], delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel

        reader = csv.reader(io.StringIO(text), dialect)
        try:
            header = next(reader)
        except StopIteration:
            raise ValueError("CSV file is empty")

        rows = [(row_num, row) for row_num, row in enumerate(reader, start=2)]
        return header, rows

    @staticmethod
    def _read_excel(content: bytes) -> tuple[list[Any], list[tuple[int, list[Any]]]]:
        try:
            wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            logger.error(f"Failed to parse Excel file: {e}")
            raise ValueError(f"Failed to parse Excel file: {e}")

        try:
            ws = wb.active
            if ws is None:
                raise ValueError("Excel file has no active worksheet")

            row_iter = ws.iter_rows(values_only=True)
            header = next(row_iter, None)
            if header is None:
                raise ValueError("Excel file is empty")

            rows = [(row_num, list(row)) for row_num, row in enumerate(row_iter, start=2)]
            return list(header), rows
        finally:
            wb.close()

    # ----------------------------------------
    # Row mapping
    # ----------------------------------------

    def _build_devices(
        self,
        header: list[Any],
        rows: list[tuple[int, list[Any]]],
    ) -> list[DesiredDevice]:
        columns = [normalize_header(h) for h in header]

        serial_col = next((i for i, c in enumerate(columns) if c in SERIAL_COLUMNS), None)
        if serial_col is None:
            raise ValueError(
                "Could not find Serial Number column. "
                f"Expected one of: {', '.join(SERIAL_COLUMNS)}"
            )
        name_col = next((i for i, c in enumerate(columns) if c in NAME_COLUMNS), None)
        setting_cols = {
            i: SETTING_COLUMNS[c] for i, c in enumerate(columns) if c in SETTING_COLUMNS
        }

        unknown = [
            str(h) for i, h in enumerate(header)
            if columns[i] and i != serial_col and i != name_col and i not in setting_cols
        ]
        if unknown:
            logger.warning(f"Ignoring unknown columns: {', '.join(unknown)}")

        devices: list[DesiredDevice] = []
        problems: list[str] = []

        for row_num, row in rows:
            cells = [self._cell(row, i) for i in range(len(columns))]
            if all(c == "" for c in cells):
                continue

            overrides: dict[str, Any] = {}
            for col, setting in setting_cols.items():
                raw = cells[col]
                if raw == "":
                    continue
                try:
                    if _SETTING_TYPES[setting] in (bool, "bool"):
                        overrides[setting] = parse_bool_cell(raw)
                    else:
                        overrides[setting] = parse_int_cell(raw)
                except ValueError as e:
                    problems.append(f"Row {row_num}, column '{header[col]}': {e}")

            devices.append(
                DesiredDevice(
                    serial_number=str(cells[serial_col]),
                    name=str(cells[name_col]) if name_col is not None else "",
                    settings=DeviceSettings(**overrides),
                    row_number=row_num,
                )
            )

        if problems:
            raise ValueError("Invalid cell values:\n" + "\n".join(problems))

        logger.info(f"Parsed {len(devices)} rows from device list")
        return devices

    @staticmethod
    def _cell(row: list[Any], index: int) -> Any:
        """Cell value, with blanks and missing trailing cells as ''."""
        if index >= len(row) or row[index] is None:
            return ""
        value = row[index]
        if isinstance(value, str):
            return value.strip()
        return value
