"""Bulk imports of machines, the part catalogue, part orders and readings."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, TypeVar
from uuid import UUID

from dateutil import parser as date_parser
from openpyxl import load_workbook

from fleetmeter.core.calculations import METERS, calculate_reading_usage
from fleetmeter.core.dates import previous_month
from fleetmeter.core.exceptions import SubmissionLockedError, ValidationError
from fleetmeter.core.models import (
    Branch,
    Machine,
    MachineModel,
    MeterType,
    ModelPart,
    ModelType,
    PaperSize,
    PartType,
    TonerColor,
)
from fleetmeter.core.repositories.customer import CustomerRepository
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.make import MachineModelRepository, MakeRepository
from fleetmeter.core.repositories.model_part import ModelPartRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.submission import SubmissionRepository
from fleetmeter.services.consumables import ConsumableService

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
E = TypeVar("E", bound=Enum)

# Column aliases; the readings import also accepts the export's own layout.
SERIAL_COLUMNS = ("machine_serial_number", "serial_number", "code")
METER_COLUMNS = {meter: (f"{meter}_reading", meter) for meter in METERS}


class RowError(ValueError):
    """A row that cannot be imported; the message is reported back as-is."""


@dataclass(frozen=True)
class RowFailure:
    row: int
    error: str
    serial_number: str | None = None


@dataclass(frozen=True)
class _Values:
    mono_reading: int | None
    colour_reading: int | None
    scan_reading: int | None


@dataclass
class ImportResult:
    succeeded: int = 0
    failed: list[RowFailure] = field(default_factory=list)


@dataclass
class ReadingsImportResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RowFailure] = field(default_factory=list)


@dataclass
class MachinesImportResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RowFailure] = field(default_factory=list)


@dataclass
class CatalogImportResult:
    makes_created: int = 0
    models_created: int = 0
    parts_created: int = 0
    parts_updated: int = 0
    skipped: int = 0
    errors: list[RowFailure] = field(default_factory=list)


def _snake_case(header: Any) -> str:
    text = re.sub(r"[^0-9a-zA-Z]+", "_", str(header or "").strip())
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text)
    return text.strip("_").lower()


def read_sheet_rows(source: str | Path | bytes | BinaryIO) -> list[dict[str, Any]]:
    """
    Reads the first worksheet of an .xlsx file into dictionaries.

    The header row becomes snake_case keys ("Serial Number" and
    "serialNumber" both become ``serial_number``). Blank rows are skipped.
    """
    if isinstance(source, bytes):
        source = BytesIO(source)
    workbook = load_workbook(source, read_only=True, data_only=True)
    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [_snake_case(cell) for cell in header]
        records = []
        for values in rows:
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            records.append(
                {key: value for key, value in zip(keys, values) if key}
            )
        return records
    finally:
        workbook.close()


def _first(row: Row, keys: Sequence[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _parse_count(value: Any, name: str) -> int | None:
    """Parses a meter value: a non-negative whole number, or ``None`` if blank."""
    if value is None or _text(value) == "":
        return None
    try:
        number = Decimal(_text(value))
    except InvalidOperation:
        raise RowError(f"Invalid {name}") from None
    if number < 0 or number != number.to_integral_value():
        raise RowError(f"Invalid {name}")
    return int(number)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(_text(value)).date()
    except (ValueError, OverflowError):
        raise RowError(f"Invalid order_date: {value!r}") from None


def _parse_percent(value: Any) -> Decimal | None:
    if value is None or _text(value) == "":
        return None
    try:
        percent = Decimal(_text(value).rstrip("%"))
    except InvalidOperation:
        raise RowError("Invalid toner_percent") from None
    if not Decimal(0) <= percent <= Decimal(100):
        raise RowError("toner_percent must be between 0 and 100")
    return percent


def _parse_money(value: Any, message: str) -> Decimal:
    try:
        amount = Decimal(_text(value).replace(",", "").lstrip("R").strip())
    except InvalidOperation:
        raise RowError(message) from None
    if amount < 0:
        raise RowError(message)
    return amount


def _parse_flag(value: Any, default: bool) -> bool:
    text = _text(value).lower()
    if not text:
        return default
    return text in {"yes", "y", "true", "1"}


def _parse_branch(value: Any, default: Branch) -> Branch:
    text = _text(value).upper()
    if not text:
        return default
    try:
        return Branch(text)
    except ValueError:
        raise RowError(f"Invalid branch: {value}") from None


def _choice(value: Any, enum_cls: type[E], default: E) -> E:
    """The enum member named by ``value``; unknown or blank values give ``default``."""
    text = _text(value)
    for candidate in (text, text.lower(), text.upper()):
        try:
            return enum_cls(candidate)
        except ValueError:
            continue
    return default


class ImportService:
    """Imports tabular data row by row; a bad row never stops the batch."""

    def __init__(
        self,
        machine_repo: MachineRepository,
        model_part_repo: ModelPartRepository,
        reading_repo: ReadingRepository,
        submission_repo: SubmissionRepository,
        consumable_service: ConsumableService,
        customer_repo: CustomerRepository,
        make_repo: MakeRepository,
        machine_model_repo: MachineModelRepository,
    ):
        self._machine_repo = machine_repo
        self._model_part_repo = model_part_repo
        self._reading_repo = reading_repo
        self._submission_repo = submission_repo
        self._consumable_service = consumable_service
        self._customer_repo = customer_repo
        self._make_repo = make_repo
        self._machine_model_repo = machine_model_repo

    async def import_part_orders(
        self, rows: Sequence[Row], user_id: UUID | None
    ) -> ImportResult:
        """
        Imports past part orders.

        Each row names the machine by ``machine_serial_number`` and the part by
        ``item_code`` or, failing that, ``part_name``. ``prior_reading`` is
        optional; without it the last recorded replacement is the baseline.
        Rows are numbered from 1 in the failure report.
        """
        result = ImportResult()
        for number, row in enumerate(rows, start=1):
            try:
                await self._import_part_order(row, user_id)
            except Exception as e:
                if not isinstance(e, RowError):
                    logger.error(f"Part order row {number} failed: {e}", exc_info=True)
                result.failed.append(
                    RowFailure(
                        row=number,
                        error=str(e),
                        serial_number=_text(row.get("machine_serial_number")) or None,
                    )
                )
            else:
                result.succeeded += 1

        logger.info(
            f"Part order import: {result.succeeded} imported, "
            f"{len(result.failed)} failed"
        )
        return result

    async def _import_part_order(self, row: Row, user_id: UUID | None) -> None:
        serial = _text(row.get("machine_serial_number"))
        machine = await self._machine_repo.find_by_serial_number(serial)
        if machine is None:
            raise RowError(f"Machine not found: {serial}")
        if machine.model_id is None:
            raise RowError(f"Machine {serial} has no model")

        part = await self._find_part(machine, row)
        current_reading = _parse_count(row.get("current_reading"), "current_reading")
        if current_reading is None:
            raise RowError("Invalid current_reading")
        prior_reading = _parse_count(row.get("prior_reading"), "prior_reading")
        if prior_reading is None:
            prior_reading = await self._consumable_service.get_prior_reading(
                machine.id, part.id
            )

        await self._consumable_service.capture_replacement(
            machine,
            part,
            order_date=_parse_date(row.get("order_date")),
            prior_reading=prior_reading,
            current_reading=current_reading,
            remaining_toner_percent=_parse_percent(row.get("toner_percent")),
            captured_by=user_id,
        )

    async def _find_part(self, machine: Machine, row: Row) -> ModelPart:
        item_code = _text(row.get("item_code"))
        part_name = _text(row.get("part_name"))
        part = None
        if item_code:
            part = await self._model_part_repo.find_by_model_and_item_code(
                machine.model_id, item_code, machine.branch
            )
        if part is None and part_name:
            part = await self._model_part_repo.find_by_model_and_part_name(
                machine.model_id, part_name, machine.branch
            )
        if part is None:
            raise RowError(f"Part not found for model: {item_code or part_name or '?'}")
        return part

    async def import_readings(
        self,
        rows: Sequence[Row],
        year: int,
        month: int,
        branch: Branch,
        user_id: UUID | None,
    ) -> ReadingsImportResult:
        """
        Imports one month of readings for existing machines.

        Readings are not required to increase; a negative usage is stored and
        logged. Rows are numbered as spreadsheet lines, the header being line 1.

        Raises:
            ValidationError: The batch is empty or the period is invalid.
            SubmissionLockedError: The month is locked for the branch.
        """
        if not rows:
            raise ValidationError("Import data must be a non-empty list")
        if not 2000 <= year <= 2100:
            raise ValidationError("Valid year is required")
        if not 1 <= month <= 12:
            raise ValidationError("Valid month (1-12) is required")
        if await self._submission_repo.find_by_year_month_branch(year, month, branch):
            raise SubmissionLockedError(year, month, branch.value)

        prev_year, prev_month = previous_month(year, month)
        result = ReadingsImportResult()
        for number, row in enumerate(rows, start=2):
            serial = _text(_first(row, SERIAL_COLUMNS)) or None
            try:
                created = await self._import_reading(
                    row, serial, year, month, prev_year, prev_month, branch, user_id
                )
            except Exception as e:
                if not isinstance(e, RowError):
                    logger.error(f"Reading row {number} failed: {e}", exc_info=True)
                result.errors.append(
                    RowFailure(row=number, error=str(e), serial_number=serial)
                )
                result.skipped += 1
            else:
                if created:
                    result.created += 1
                else:
                    result.updated += 1

        logger.info(
            f"Reading import {branch.value} {year}-{month:02d}: "
            f"{result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped"
        )
        return result

    async def _import_reading(
        self,
        row: Row,
        serial: str | None,
        year: int,
        month: int,
        prev_year: int,
        prev_month: int,
        branch: Branch,
        user_id: UUID | None,
    ) -> bool:
        if not serial:
            raise RowError("Machine serial number is required")
        machine = await self._machine_repo.find_by_serial_number(serial)
        if machine is None:
            raise RowError(f'Machine with serial number "{serial}" not found')
        if machine.branch != branch:
            raise RowError(
                f"Machine belongs to branch {machine.branch.value}, not {branch.value}"
            )

        values = {
            f"{meter}_reading": _parse_count(
                _first(row, METER_COLUMNS[meter]), f"{meter} reading"
            )
            for meter in METERS
        }
        if all(v is None for v in values.values()):
            raise RowError("At least one reading (mono, colour, or scan) is required")
        for meter in METERS:
            if values[f"{meter}_reading"] is not None and not machine.meter_enabled(meter):
                raise RowError(
                    f"{meter.capitalize()} reading provided but machine does not "
                    f"have {meter} enabled"
                )

        previous = await self._reading_repo.find_by_machine_and_year_month(
            machine.id, prev_year, prev_month
        )
        usage = calculate_reading_usage(_Values(**values), previous)
        for meter in METERS:
            value = getattr(usage, f"{meter}_usage")
            if value is not None and value < 0:
                logger.warning(
                    f"Imported {meter} reading for {serial} {year}-{month:02d} "
                    f"is below the previous month (usage {value})"
                )

        existing = await self._reading_repo.find_by_machine_and_year_month(
            machine.id, year, month
        )
        await self._reading_repo.upsert_by_machine_year_month(
            machine.id,
            year,
            month,
            **values,
            mono_usage=usage.mono_usage,
            colour_usage=usage.colour_usage,
            scan_usage=usage.scan_usage,
            captured_by_id=user_id,
            branch=branch,
        )
        return existing is None


    async def import_machines(
        self, rows: Sequence[Row], branch: Branch
    ) -> MachinesImportResult:
        """
        Registers machines or updates them by serial number.

        ``model`` holds "<Make> <Model>" (the make is the first word) and must
        name a known model. A ``customer`` is matched by name within the
        branch and created when missing. ``branch`` on a row overrides the
        batch branch. Rows are numbered as spreadsheet lines.

        Raises:
            ValidationError: The batch is empty.
        """
        if not rows:
            raise ValidationError("Import data must be a non-empty list")

        result = MachinesImportResult()
        for number, row in enumerate(rows, start=2):
            serial = _text(_first(row, SERIAL_COLUMNS)) or None
            try:
                created = await self._import_machine(row, serial, branch)
            except Exception as e:
                if not isinstance(e, RowError):
                    logger.error(f"Machine row {number} failed: {e}", exc_info=True)
                result.errors.append(
                    RowFailure(row=number, error=str(e), serial_number=serial)
                )
                result.skipped += 1
            else:
                if created:
                    result.created += 1
                else:
                    result.updated += 1

        logger.info(
            f"Machine import {branch.value}: {result.created} created, "
            f"{result.updated} updated, {result.skipped} skipped"
        )
        return result

    async def _import_machine(self, row: Row, serial: str | None, branch: Branch) -> bool:
        if not serial:
            raise RowError("Serial number is required")
        machine_branch = _parse_branch(row.get("branch"), branch)

        data: dict[str, Any] = {
            "contract_reference": _text(row.get("contract_reference")) or None,
            "mono_enabled": _parse_flag(row.get("mono_enabled"), True),
            "colour_enabled": _parse_flag(row.get("colour_enabled"), False),
            "scan_enabled": _parse_flag(row.get("scan_enabled"), False),
            "branch": machine_branch,
            "is_active": True,
        }

        model_text = _text(row.get("model"))
        if model_text:
            data["model_id"] = (await self._resolve_model(model_text)).id

        customer_name = _text(row.get("customer"))
        if customer_name:
            customer = await self._customer_repo.find_by_name_for_branch(
                customer_name, machine_branch
            )
            if customer is None:
                customer = await self._customer_repo.create(
                    name=customer_name, branch=machine_branch
                )
            data["customer_id"] = customer.id

        existing = await self._machine_repo.find_by_serial_number(serial)
        if existing is None:
            await self._machine_repo.create(serial_number=serial, **data)
            return True
        await self._machine_repo.update(existing.id, **data)
        return False

    async def _resolve_model(self, text: str) -> MachineModel:
        make_name, _, model_name = text.partition(" ")
        model = await self._machine_model_repo.find_by_make_name_and_name(
            make_name, model_name.strip() or make_name
        )
        if model is None:
            raise RowError(f"Model not found: {text}")
        return model

    async def import_make_model_parts(
        self, rows: Sequence[Row], branch: Branch = Branch.JHB
    ) -> CatalogImportResult:
        """
        Loads the part catalogue: makes, their models and each model's parts.

        ``make`` and ``model`` are required; both are created when missing.
        A row without ``part_name`` only registers the make and model. Parts
        are matched by model, name and branch and updated in place, which
        also reactivates a retired part. Unknown part type, toner colour or
        meter type values fall back to the defaults.

        Raises:
            ValidationError: The batch is empty.
        """
        if not rows:
            raise ValidationError("Import data must be a non-empty list")

        result = CatalogImportResult()
        models: dict[tuple[str, str], MachineModel] = {}
        for number, row in enumerate(rows, start=2):
            try:
                await self._import_catalog_row(row, branch, models, result)
            except Exception as e:
                if not isinstance(e, RowError):
                    logger.error(f"Catalogue row {number} failed: {e}", exc_info=True)
                result.errors.append(RowFailure(row=number, error=str(e)))
                result.skipped += 1

        logger.info(
            f"Catalogue import: {result.makes_created} makes, "
            f"{result.models_created} models, {result.parts_created} parts created, "
            f"{result.parts_updated} parts updated, {result.skipped} skipped"
        )
        return result

    async def _import_catalog_row(
        self,
        row: Row,
        branch: Branch,
        models: dict[tuple[str, str], MachineModel],
        result: CatalogImportResult,
    ) -> None:
        make_name = _text(row.get("make"))
        model_name = _text(row.get("model"))
        if not make_name or not model_name:
            raise RowError("Make and model are required")

        model = models.get((make_name, model_name))
        if model is None:
            make, created = await self._make_repo.get_or_create(name=make_name)
            if created:
                result.makes_created += 1
            model, created = await self._machine_model_repo.get_or_create(
                defaults={
                    "paper_size": _choice(row.get("paper_size"), PaperSize, PaperSize.A4),
                    "model_type": _choice(row.get("model_type"), ModelType, ModelType.MONO),
                },
                make_id=make.id,
                name=model_name,
            )
            if created:
                result.models_created += 1
            models[(make_name, model_name)] = model

        part_name = _text(row.get("part_name"))
        if not part_name:
            return

        expected_yield = _parse_count(row.get("expected_yield"), "expected_yield")
        if not expected_yield:
            raise RowError("Expected yield must be a positive whole number")
        cost_rand = _parse_money(
            row.get("cost_rand"), "Cost (R) must be a valid non-negative number"
        )
        part_branch = _choice(row.get("branch"), Branch, branch)
        data = {
            "item_code": _text(row.get("item_code")) or None,
            "part_type": _choice(row.get("part_type"), PartType, PartType.GENERAL),
            "toner_color": _choice(row.get("toner_color"), TonerColor, None),
            "expected_yield": expected_yield,
            "cost_rand": cost_rand,
            "meter_type": _choice(row.get("meter_type"), MeterType, MeterType.MONO),
            "is_active": True,
        }

        existing = await self._model_part_repo.find_any_by_name(
            model.id, part_name, part_branch
        )
        if existing is None:
            await self._model_part_repo.create(
                model_id=model.id, part_name=part_name, branch=part_branch, **data
            )
            result.parts_created += 1
        else:
            await self._model_part_repo.update(existing.id, **data)
            result.parts_updated += 1
