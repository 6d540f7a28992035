"""Service for exporting meter readings to Excel workbooks."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from io import BytesIO
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from fleetmeter.core.calculations import METERS
from fleetmeter.core.models import Machine, Reading

HEADERS = ("Code", "Mono", "Colour", "Scan")
COLUMN_WIDTHS = {"A": 22, "B": 15, "C": 15, "D": 15}
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")

# Excel rejects worksheet titles longer than this.
MAX_SHEET_TITLE = 31


@dataclass(frozen=True)
class ReadingsSheet:
    """One worksheet: the machines to list and their readings by machine id."""

    title: str
    machines: Sequence[Machine]
    readings: Mapping[UUID, Reading]


def sheet_row(machine: Machine, reading: Reading | None) -> list[object]:
    """
    Builds the Code/Mono/Colour/Scan cells for one machine.

    Disabled meters and meters without a captured value are left blank.
    """
    row: list[object] = [machine.serial_number or ""]
    for meter in METERS:
        value = getattr(reading, f"{meter}_reading") if reading else None
        enabled = machine.meter_enabled(meter)
        row.append(value if enabled and value is not None else None)
    return row


class ExportService:
    """Renders reading sheets into an .xlsx workbook."""

    def __init__(self, creator: str = "FleetMeter"):
        self._creator = creator

    def readings_workbook(self, sheets: Sequence[ReadingsSheet]) -> bytes:
        """
        Generates a workbook with one worksheet per sheet definition.

        Args:
            sheets: Worksheets in the order they should appear.

        Returns:
            The .xlsx file content.
        """
        workbook = Workbook()
        placeholder = workbook.active
        workbook.properties.creator = self._creator

        for sheet in sheets:
            worksheet = workbook.create_sheet(title=sheet.title[:MAX_SHEET_TITLE])
            worksheet.append(HEADERS)
            for cell in worksheet[1]:
                cell.font = Font(bold=True)
                cell.fill = HEADER_FILL
            for column, width in COLUMN_WIDTHS.items():
                worksheet.column_dimensions[column].width = width

            for machine in sheet.machines:
                worksheet.append(sheet_row(machine, sheet.readings.get(machine.id)))

        if sheets:
            workbook.remove(placeholder)

        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()
