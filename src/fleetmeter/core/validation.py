"""Validation of submitted meter readings against machine configuration."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from fleetmeter.core.calculations import METERS
from fleetmeter.core.models import Machine, Reading
from fleetmeter.core.schemas import ReadingInput


class ReadingErrorCode(str, enum.Enum):
    MACHINE_NOT_FOUND = "MachineNotFound"
    NOTE_OR_READING_REQUIRED = "NoteOrReadingRequired"
    READING_UNCHANGED = "ReadingUnchanged"
    READING_DECREASED = "ReadingDecreased"
    METER_NOT_APPLICABLE = "MeterNotApplicable"
    DUPLICATE_MACHINE = "DuplicateMachine"


@dataclass(frozen=True)
class ReadingError:
    """A single rule violation for one submitted row."""

    code: ReadingErrorCode
    machine_id: UUID
    field: str
    message: str
    serial_number: str | None = None
    current_value: int | None = None
    previous_value: int | None = None


@dataclass
class ValidationResult:
    errors: list[ReadingError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _check_increase(
    reading: ReadingInput, machine: Machine, meter: str, previous: int | None
) -> ReadingError | None:
    current = getattr(reading, f"{meter}_reading")
    if current is None or previous is None:
        return None

    field_name = f"{meter}_reading"
    if current < previous:
        code = ReadingErrorCode.READING_DECREASED
        message = (
            f"{meter} reading ({current}) cannot be less than "
            f"previous month ({previous})"
        )
    elif current == previous:
        code = ReadingErrorCode.READING_UNCHANGED
        message = (
            f"{meter} reading ({current}) cannot be the same as previous "
            f"month ({previous}). Reading must increase."
        )
    else:
        return None

    return ReadingError(
        code=code,
        machine_id=reading.machine_id,
        field=field_name,
        message=message,
        serial_number=machine.serial_number,
        current_value=current,
        previous_value=previous,
    )


def validate_reading(
    reading: ReadingInput, machine: Machine | None, previous: Reading | None
) -> list[ReadingError]:
    """Validates one submitted row; returns all of its errors."""
    if machine is None:
        return [
            ReadingError(
                code=ReadingErrorCode.MACHINE_NOT_FOUND,
                machine_id=reading.machine_id,
                field="machine_id",
                message="Machine not found",
            )
        ]

    if not reading.has_meter_values:
        if reading.clean_note is None:
            return [
                ReadingError(
                    code=ReadingErrorCode.NOTE_OR_READING_REQUIRED,
                    machine_id=reading.machine_id,
                    field="note",
                    message="Either reading values or a note must be provided",
                    serial_number=machine.serial_number,
                )
            ]
        return []

    errors: list[ReadingError] = []
    for meter in METERS:
        value = getattr(reading, f"{meter}_reading")
        if value is None:
            continue
        if not machine.meter_enabled(meter):
            errors.append(
                ReadingError(
                    code=ReadingErrorCode.METER_NOT_APPLICABLE,
                    machine_id=reading.machine_id,
                    field=f"{meter}_reading",
                    message=f"{meter} reading not applicable for this machine",
                    serial_number=machine.serial_number,
                    current_value=value,
                )
            )
            continue
        prev_value = getattr(previous, f"{meter}_reading") if previous else None
        error = _check_increase(reading, machine, meter, prev_value)
        if error:
            errors.append(error)
    return errors


def validate_readings(
    readings: Iterable[ReadingInput],
    machines: Mapping[UUID, Machine],
    previous_readings: Mapping[UUID, Reading],
) -> ValidationResult:
    """
    Validates a batch of submitted readings in memory.

    Args:
        readings: The submitted rows.
        machines: Machines keyed by id.
        previous_readings: Prior-month readings keyed by machine id.

    Returns:
        A result holding every violation across the batch; it is valid
        only when no row has an error. A machine may appear once per batch.
    """
    result = ValidationResult()
    seen: set[UUID] = set()
    for reading in readings:
        if reading.machine_id in seen:
            machine = machines.get(reading.machine_id)
            result.errors.append(
                ReadingError(
                    code=ReadingErrorCode.DUPLICATE_MACHINE,
                    machine_id=reading.machine_id,
                    field="machine_id",
                    message="Machine appears more than once in the submission",
                    serial_number=machine.serial_number if machine else None,
                )
            )
            continue
        seen.add(reading.machine_id)
        result.errors.extend(
            validate_reading(
                reading,
                machines.get(reading.machine_id),
                previous_readings.get(reading.machine_id),
            )
        )
    return result
