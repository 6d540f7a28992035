"""Tests for reading validation."""

import uuid
from types import SimpleNamespace

import pytest
from pydantic import ValidationError as PydanticValidationError

from fleetmeter.core.models import Machine
from fleetmeter.core.schemas import ReadingInput
from fleetmeter.core.validation import (
    ReadingErrorCode,
    validate_reading,
    validate_readings,
)


def _machine(**flags) -> Machine:
    return Machine(
        id=uuid.uuid4(),
        serial_number="KM-1001",
        mono_enabled=flags.get("mono", True),
        colour_enabled=flags.get("colour", False),
        scan_enabled=flags.get("scan", False),
    )


def _previous(mono=None, colour=None, scan=None):
    return SimpleNamespace(mono_reading=mono, colour_reading=colour, scan_reading=scan)


@pytest.mark.parametrize(
    "current, code",
    [
        (1000, ReadingErrorCode.READING_UNCHANGED),
        (999, ReadingErrorCode.READING_DECREASED),
        (0, ReadingErrorCode.READING_DECREASED),
    ],
)
def test_reading_must_increase(current, code):
    machine = _machine()
    reading = ReadingInput(machine_id=machine.id, mono_reading=current)

    errors = validate_reading(reading, machine, _previous(mono=1000))

    assert [e.code for e in errors] == [code]
    assert errors[0].field == "mono_reading"
    assert errors[0].previous_value == 1000
    assert errors[0].serial_number == "KM-1001"


def test_increasing_reading_passes():
    machine = _machine()
    reading = ReadingInput(machine_id=machine.id, mono_reading=1050)
    assert validate_reading(reading, machine, _previous(mono=1000)) == []


def test_first_reading_has_nothing_to_compare():
    machine = _machine()
    reading = ReadingInput(machine_id=machine.id, mono_reading=5)
    assert validate_reading(reading, machine, None) == []


def test_disabled_meter_is_rejected():
    machine = _machine(colour=False)
    reading = ReadingInput(machine_id=machine.id, mono_reading=10, colour_reading=3)

    errors = validate_reading(reading, machine, None)

    assert [e.code for e in errors] == [ReadingErrorCode.METER_NOT_APPLICABLE]
    assert errors[0].field == "colour_reading"


def test_note_only_row_is_valid():
    machine = _machine()
    reading = ReadingInput(machine_id=machine.id, note="  Machine switched off  ")
    assert validate_reading(reading, machine, _previous(mono=1000)) == []


@pytest.mark.parametrize("note", [None, "", "   "])
def test_empty_row_requires_note_or_reading(note):
    machine = _machine()
    reading = ReadingInput(machine_id=machine.id, note=note)

    errors = validate_reading(reading, machine, None)

    assert [e.code for e in errors] == [ReadingErrorCode.NOTE_OR_READING_REQUIRED]


def test_unknown_machine():
    reading = ReadingInput(machine_id=uuid.uuid4(), mono_reading=1)
    errors = validate_reading(reading, None, None)
    assert [e.code for e in errors] == [ReadingErrorCode.MACHINE_NOT_FOUND]


def test_validate_readings_collects_every_error():
    colour = _machine(colour=True)
    mono = _machine()
    readings = [
        ReadingInput(machine_id=colour.id, mono_reading=100, colour_reading=50),
        ReadingInput(machine_id=mono.id, mono_reading=300),
        ReadingInput(machine_id=uuid.uuid4(), mono_reading=1),
    ]
    previous = {
        colour.id: _previous(mono=100, colour=60),
        mono.id: _previous(mono=200),
    }

    result = validate_readings(readings, {colour.id: colour, mono.id: mono}, previous)

    assert not result.valid
    assert [e.code for e in result.errors] == [
        ReadingErrorCode.READING_UNCHANGED,
        ReadingErrorCode.READING_DECREASED,
        ReadingErrorCode.MACHINE_NOT_FOUND,
    ]


def test_validate_readings_valid_batch():
    machine = _machine()
    result = validate_readings(
        [ReadingInput(machine_id=machine.id, mono_reading=2)],
        {machine.id: machine},
        {},
    )
    assert result.valid


def test_validate_readings_flags_repeated_machine():
    machine = _machine()
    result = validate_readings(
        [
            ReadingInput(machine_id=machine.id, mono_reading=2),
            ReadingInput(machine_id=machine.id, mono_reading=3),
        ],
        {machine.id: machine},
        {},
    )
    assert [e.code for e in result.errors] == [ReadingErrorCode.DUPLICATE_MACHINE]


def test_reading_input_rejects_negative_values():
    with pytest.raises(PydanticValidationError):
        ReadingInput(machine_id=uuid.uuid4(), mono_reading=-1)


def test_reading_input_note_length():
    with pytest.raises(PydanticValidationError):
        ReadingInput(machine_id=uuid.uuid4(), note="x" * 501)
