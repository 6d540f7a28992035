"""Service for monthly meter reading capture, export and locking."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fleetmeter.core.branches import (
    AllBranches,
    BranchFilter,
    SpecificBranch,
)
from fleetmeter.core.calculations import MeterUsage, calculate_reading_usage
from fleetmeter.core.dates import format_period_for_display, previous_month
from fleetmeter.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    SubmissionLockedError,
    ValidationError,
)
from fleetmeter.core.models import Branch, Machine, Reading
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.submission import SubmissionRepository
from fleetmeter.core.repositories.user import UserRepository
from fleetmeter.core.schemas import ReadingInput
from fleetmeter.core.validation import validate_readings
from fleetmeter.services.events import DomainEvent, EventDispatcher
from fleetmeter.services.export import ExportService, ReadingsSheet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MachineReadings:
    """A machine with its readings for the requested and the previous month."""

    machine: Machine
    current_reading: Reading | None
    previous_reading: Reading | None


@dataclass(frozen=True)
class SubmissionInfo:
    submitted_at: datetime
    submitted_by_id: UUID | None


@dataclass(frozen=True)
class ReadingsSummary:
    total_machines: int
    captured_count: int
    pending_count: int


@dataclass(frozen=True)
class ReadingsView:
    year: int
    month: int
    branch: BranchFilter
    rows: list[MachineReadings]
    is_locked: bool
    submission: SubmissionInfo | None
    summary: ReadingsSummary


@dataclass(frozen=True)
class SplitReadingsView:
    year: int
    month: int
    branches: dict[Branch, ReadingsView]


@dataclass(frozen=True)
class SubmitResult:
    saved_count: int
    message: str = "Readings saved successfully"


@dataclass(frozen=True)
class ReadingsExport:
    """
    The exported workbook plus the outcome of the lock writes.

    The export is valid even when some branches failed to lock.
    """

    filename: str
    content: bytes
    locked_branches: tuple[Branch, ...] = ()
    lock_failures: tuple[Branch, ...] = ()


@dataclass(frozen=True)
class UnlockResult:
    message: str
    year: int
    month: int
    branch: Branch


class ReadingService:
    """Orchestrates the monthly read, submit, export and unlock flows."""

    def __init__(
        self,
        reading_repo: ReadingRepository,
        machine_repo: MachineRepository,
        submission_repo: SubmissionRepository,
        export_service: ExportService,
        events: EventDispatcher | None = None,
        user_repo: UserRepository | None = None,
    ):
        self._reading_repo = reading_repo
        self._machine_repo = machine_repo
        self._submission_repo = submission_repo
        self._export_service = export_service
        self._events = events or EventDispatcher()
        self._user_repo = user_repo or UserRepository()

    async def is_locked(self, year: int, month: int, branch: Branch) -> bool:
        submission = await self._submission_repo.find_by_year_month_branch(
            year, month, branch
        )
        return submission is not None

    async def get_readings(
        self,
        year: int,
        month: int,
        branch_filter: BranchFilter,
        include_decommissioned: bool = False,
    ) -> ReadingsView:
        """
        Assembles the capture screen for a month.

        Every eligible machine is paired with its reading for the month and
        the month before. A machine counts as captured only when its reading
        has at least one meter value; a note on its own leaves it pending.
        Lock status is only known for a specific branch.
        """
        prev_year, prev_month = previous_month(year, month)

        machines = await self._machine_repo.find_active_by_branch(
            branch_filter, include_decommissioned
        )
        current = await self._reading_repo.find_by_year_month_branch(
            year, month, branch_filter
        )
        previous = await self._reading_repo.find_by_year_month_branch(
            prev_year, prev_month, branch_filter
        )
        submission = None
        if isinstance(branch_filter, SpecificBranch):
            submission = await self._submission_repo.find_by_year_month_branch(
                year, month, branch_filter.branch
            )

        current_map = {r.machine_id: r for r in current}
        previous_map = {r.machine_id: r for r in previous}
        rows = [
            MachineReadings(
                machine=machine,
                current_reading=current_map.get(machine.id),
                previous_reading=previous_map.get(machine.id),
            )
            for machine in machines
        ]

        captured = sum(
            1
            for row in rows
            if row.current_reading is not None and row.current_reading.has_meter_values
        )
        logger.debug(
            f"Readings {year}-{month:02d} {branch_filter}: "
            f"{len(rows)} machines, {captured} captured"
        )

        return ReadingsView(
            year=year,
            month=month,
            branch=branch_filter,
            rows=rows,
            is_locked=submission is not None,
            submission=(
                SubmissionInfo(submission.submitted_at, submission.submitted_by_id)
                if submission
                else None
            ),
            summary=ReadingsSummary(
                total_machines=len(rows),
                captured_count=captured,
                pending_count=len(rows) - captured,
            ),
        )

    async def get_readings_split_by_branch(
        self, year: int, month: int, include_decommissioned: bool = False
    ) -> SplitReadingsView:
        """Runs ``get_readings`` for each branch and combines the views."""
        branches = {}
        for branch in Branch:
            branches[branch] = await self.get_readings(
                year, month, SpecificBranch(branch), include_decommissioned
            )
        return SplitReadingsView(year=year, month=month, branches=branches)

    async def submit_readings(
        self,
        year: int,
        month: int,
        branch: Branch,
        readings: Sequence[ReadingInput],
        user_id: UUID | None,
    ) -> SubmitResult:
        """
        Validates and saves a batch of readings for one branch and month.

        Nothing is written unless every row passes validation. Meter values
        that were not captured are stored as null, never as 0.

        Raises:
            SubmissionLockedError: The month is locked for the branch.
            ForbiddenError: A machine belongs to another branch.
            ValidationError: One or more rows break a reading rule; the
                error lists all of them.
        """
        if await self.is_locked(year, month, branch):
            raise SubmissionLockedError(year, month, branch.value)

        machine_ids = list(dict.fromkeys(r.machine_id for r in readings))
        machines = {m.id: m for m in await self._machine_repo.find_by_ids(machine_ids)}

        foreign = [m for m in machines.values() if m.branch != branch]
        if foreign:
            serials = ", ".join(m.serial_number for m in foreign)
            raise ForbiddenError(
                f"Machines do not belong to branch {branch.value}: {serials}"
            )

        prev_year, prev_month = previous_month(year, month)
        previous = {
            r.machine_id: r
            for r in await self._reading_repo.find_by_machine_ids_and_year_month(
                machine_ids, prev_year, prev_month
            )
        }

        validation = validate_readings(readings, machines, previous)
        if not validation.valid:
            raise ValidationError("Validation failed", validation.errors)

        saved = await asyncio.gather(
            *(
                self._save_reading(
                    year, month, branch, reading, previous.get(reading.machine_id), user_id
                )
                for reading in readings
            )
        )

        await self._publish_submission(year, month, branch, readings, machines, user_id)
        return SubmitResult(saved_count=len(saved))

    async def _save_reading(
        self,
        year: int,
        month: int,
        branch: Branch,
        reading: ReadingInput,
        previous: Reading | None,
        user_id: UUID | None,
    ) -> Reading:
        usage = (
            calculate_reading_usage(reading, previous)
            if reading.has_meter_values
            else MeterUsage()
        )
        return await self._reading_repo.upsert_by_machine_year_month(
            reading.machine_id,
            year,
            month,
            mono_reading=reading.mono_reading,
            colour_reading=reading.colour_reading,
            scan_reading=reading.scan_reading,
            note=reading.clean_note,
            mono_usage=usage.mono_usage,
            colour_usage=usage.colour_usage,
            scan_usage=usage.scan_usage,
            captured_by_id=user_id,
            branch=branch,
        )

    async def _publish_submission(
        self,
        year: int,
        month: int,
        branch: Branch,
        readings: Sequence[ReadingInput],
        machines: dict[UUID, Machine],
        user_id: UUID | None,
    ) -> None:
        scope = f"{branch.value}-{year}-{month:02d}"
        await self._events.publish(
            DomainEvent(
                action="readings_submitted",
                entity_type="reading",
                entity_id=scope,
                user_id=user_id,
                details={"count": len(readings), "branch": branch.value},
            )
        )
        noted = [r for r in readings if r.clean_note is not None]
        if not noted:
            return
        captured_by = await self._user_repo.get_name(user_id)
        for reading in noted:
            await self._events.publish(
                DomainEvent(
                    action="reading_note_added",
                    entity_type="reading",
                    entity_id=f"{reading.machine_id}-{year}-{month}",
                    user_id=user_id,
                    details={
                        "machine_id": str(reading.machine_id),
                        "serial_number": machines[reading.machine_id].serial_number,
                        "period": format_period_for_display(year, month),
                        "branch": branch.value,
                        "note": reading.clean_note,
                        "captured_by": captured_by,
                    },
                )
            )

    async def export_readings(
        self,
        year: int,
        month: int,
        branch_filter: BranchFilter,
        user_id: UUID | None,
    ) -> ReadingsExport:
        """
        Exports the month's readings and locks the month for the branch.

        Only active, non-decommissioned machines are listed, matching the
        capture screen. No lock is written when exporting all branches.
        """
        sheet = await self._readings_sheet(
            year, month, branch_filter, format_period_for_display(year, month)
        )
        content = self._export_service.readings_workbook([sheet])

        locked: tuple[Branch, ...] = ()
        failed: tuple[Branch, ...] = ()
        if isinstance(branch_filter, SpecificBranch):
            locked, failed = await self._lock_branches(
                year, month, [branch_filter.branch], user_id
            )
            label = branch_filter.branch.value
        else:
            label = "all"

        return ReadingsExport(
            filename=f"meter-readings-{label}-{year}-{month:02d}.xlsx",
            content=content,
            locked_branches=locked,
            lock_failures=failed,
        )

    async def export_readings_split_by_branch(
        self, year: int, month: int, user_id: UUID | None
    ) -> ReadingsExport:
        """Exports one worksheet per branch and locks every branch."""
        period = format_period_for_display(year, month)
        sheets = [
            await self._readings_sheet(
                year, month, SpecificBranch(branch), f"{branch.value} - {period}"
            )
            for branch in Branch
        ]
        content = self._export_service.readings_workbook(sheets)
        locked, failed = await self._lock_branches(year, month, list(Branch), user_id)
        return ReadingsExport(
            filename=f"meter-readings-by-branch-{year}-{month:02d}.xlsx",
            content=content,
            locked_branches=locked,
            lock_failures=failed,
        )

    async def _readings_sheet(
        self, year: int, month: int, branch_filter: BranchFilter, title: str
    ) -> ReadingsSheet:
        machines = await self._machine_repo.find_active_by_branch(branch_filter)
        readings = await self._reading_repo.find_by_year_month_branch(
            year, month, branch_filter
        )
        return ReadingsSheet(
            title=title,
            machines=machines,
            readings={r.machine_id: r for r in readings},
        )

    async def _lock_branches(
        self,
        year: int,
        month: int,
        branches: Iterable[Branch],
        user_id: UUID | None,
    ) -> tuple[tuple[Branch, ...], tuple[Branch, ...]]:
        """Writes the submission locks; a failed write is logged, not raised."""
        locked, failed = [], []
        for branch in branches:
            try:
                await self._submission_repo.upsert_by_year_month_branch(
                    year, month, branch, user_id
                )
            except Exception as e:
                logger.error(
                    f"Failed to lock {branch.value} {year}-{month:02d} "
                    f"after export: {e}",
                    exc_info=True,
                )
                failed.append(branch)
            else:
                locked.append(branch)

        for branch in locked:
            await self._events.publish(
                DomainEvent(
                    action="month_locked",
                    entity_type="submission",
                    entity_id=f"{branch.value}-{year}-{month:02d}",
                    user_id=user_id,
                )
            )
        return tuple(locked), tuple(failed)

    async def unlock_month(self, year: int, month: int, branch: Branch) -> UnlockResult:
        """Removes the submission lock so readings can be edited again."""
        count = await self._submission_repo.delete_by_year_month_branch(
            year, month, branch
        )
        if count:
            await self._events.publish(
                DomainEvent(
                    action="month_unlocked",
                    entity_type="submission",
                    entity_id=f"{branch.value}-{year}-{month:02d}",
                )
            )
        return UnlockResult(
            message="Month unlocked successfully" if count else "Month was not locked",
            year=year,
            month=month,
            branch=branch,
        )

    async def delete_reading(self, machine_id: UUID, year: int, month: int) -> None:
        """
        Deletes one machine's reading for a month.

        Raises:
            NotFoundError: There is no such reading.
            SubmissionLockedError: The reading's month is locked.
        """
        reading = await self._reading_repo.find_by_machine_and_year_month(
            machine_id, year, month
        )
        if reading is None:
            raise NotFoundError("Reading", f"{machine_id} {year}-{month:02d}")
        if await self.is_locked(year, month, reading.branch):
            raise SubmissionLockedError(year, month, reading.branch.value)
        await self._reading_repo.delete_by_machine_year_month(machine_id, year, month)

    async def get_reading_history(
        self,
        machine_id: UUID,
        limit: int = 12,
        branch_filter: BranchFilter | None = None,
    ) -> list[Reading]:
        """The most recent readings of a machine, newest first."""
        return await self._reading_repo.find_by_machine_id(
            machine_id, branch_filter or AllBranches(), limit=limit
        )
