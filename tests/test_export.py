"""Tests for the Excel export."""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from fleetmeter.core.models import Machine, Reading
from fleetmeter.services.export import ExportService, ReadingsSheet, sheet_row


def _machine(serial="KM-1", **flags) -> Machine:
    return Machine(
        serial_number=serial,
        mono_enabled=flags.get("mono", True),
        colour_enabled=flags.get("colour", False),
        scan_enabled=flags.get("scan", False),
    )


def test_sheet_row_blanks_disabled_and_missing_meters():
    machine = _machine(scan=True)
    reading = Reading(mono_reading=120, colour_reading=7, scan_reading=None)

    assert sheet_row(machine, reading) == ["KM-1", 120, None, None]
    assert sheet_row(machine, None) == ["KM-1", None, None, None]


def test_readings_workbook_layout():
    machine = _machine(colour=True)
    sheets = [
        ReadingsSheet(
            title="Johannesburg branch - September 2024",
            machines=[machine],
            readings={machine.id: Reading(mono_reading=10, colour_reading=3)},
        )
    ]

    content = ExportService().readings_workbook(sheets)

    workbook = load_workbook(BytesIO(content))
    assert workbook.sheetnames == ["Johannesburg branch - September"]
    sheet = workbook.active
    assert [c.value for c in sheet[1]] == ["Code", "Mono", "Colour", "Scan"]
    assert all(c.font.bold for c in sheet[1])
    assert [c.value for c in sheet[2]] == ["KM-1", 10, 3, None]
    assert workbook.properties.creator == "FleetMeter"


def test_empty_workbook_is_still_valid():
    content = ExportService().readings_workbook([])
    assert len(load_workbook(BytesIO(content)).sheetnames) == 1


@pytest.mark.parametrize("count", [1, 3])
def test_one_worksheet_per_sheet(count):
    sheets = [
        ReadingsSheet(title=f"Sheet {i}", machines=[], readings={}) for i in range(count)
    ]
    workbook = load_workbook(BytesIO(ExportService().readings_workbook(sheets)))
    assert workbook.sheetnames == [f"Sheet {i}" for i in range(count)]
