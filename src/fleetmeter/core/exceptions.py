"""Domain exceptions raised by the FleetMeter services."""

from __future__ import annotations

from typing import Any


class FleetMeterError(Exception):
    """Base class for all domain errors."""


class NotFoundError(FleetMeterError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, identifier: Any = None):
        self.entity = entity
        self.identifier = identifier
        detail = f" ({identifier})" if identifier is not None else ""
        super().__init__(f"{entity} not found{detail}")


class ValidationError(FleetMeterError):
    """Malformed or inconsistent input, with a list of field-level errors."""

    def __init__(self, message: str, errors: list[Any] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ConflictError(FleetMeterError):
    """A uniqueness rule would be violated."""


class ForbiddenError(FleetMeterError):
    """The operation is not allowed in the current state or scope."""


class SubmissionLockedError(ForbiddenError):
    """Readings for a locked (year, month, branch) cannot be changed."""

    def __init__(self, year: int, month: int, branch: str):
        self.year = year
        self.month = month
        self.branch = branch
        super().__init__(
            f"Readings for {branch} {year}-{month:02d} have been submitted "
            "and are locked for editing"
        )


class ModelMismatchError(FleetMeterError):
    """A part is not defined for the machine's model."""
