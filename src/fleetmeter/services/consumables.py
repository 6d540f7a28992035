"""Service for part orders, yield compliance and toner alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from fleetmeter.core.branches import AllBranches, BranchFilter
from fleetmeter.core.calculations import (
    YieldCalculation,
    calculate_part_charge,
    calculate_part_usage,
    meter_value_for,
    percent_used,
)
from fleetmeter.core.exceptions import ForbiddenError, ModelMismatchError, NotFoundError
from fleetmeter.core.models import (
    Branch,
    Machine,
    MeterType,
    ModelPart,
    PartReplacement,
    PartType,
    TonerColor,
)
from fleetmeter.core.repositories.machine import MachineRepository
from fleetmeter.core.repositories.model_part import ModelPartRepository
from fleetmeter.core.repositories.part_replacement import PartReplacementRepository
from fleetmeter.core.repositories.reading import ReadingRepository
from fleetmeter.core.repositories.user import UserRepository
from fleetmeter.core.schemas import (
    ComplianceStatus,
    ConsumableSummaryFilters,
    ModelPartCreate,
    ModelPartUpdate,
    PartOrderInput,
)
from fleetmeter.services.events import DomainEvent, EventDispatcher

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
CLICK_PRICE_PLACES = Decimal("0.000001")


@dataclass(frozen=True)
class PartOrderResult:
    replacement: PartReplacement
    calculation: YieldCalculation


@dataclass(frozen=True)
class ConsumableSummaryRow:
    """The latest replacement of one part on one machine."""

    machine_id: UUID
    serial_number: str
    make: str | None
    model: str | None
    customer: str | None
    part_name: str
    part_type: PartType
    last_order_date: date
    prior_reading: int
    current_reading: int
    usage: int
    remaining_toner_percent: Decimal | None
    yield_met: bool
    shortfall_clicks: int
    adjusted_shortfall_clicks: int
    display_charge_rand: Decimal


@dataclass(frozen=True)
class ConsumableSummary:
    machines: list[Machine]
    rows: list[ConsumableSummaryRow]


@dataclass(frozen=True)
class PartDue:
    machine_id: UUID
    serial_number: str
    part_name: str
    part_type: PartType
    toner_color: TonerColor | None
    usage: int
    expected_yield: int
    percent_used: int


@dataclass
class CustomerAlert:
    customer_id: UUID
    customer_name: str
    parts_due: list[PartDue] = field(default_factory=list)

    @property
    def alert_count(self) -> int:
        return len(self.parts_due)


@dataclass(frozen=True)
class TonerAlerts:
    customer_alerts: list[CustomerAlert]


@dataclass(frozen=True)
class MachineConsumableHistory:
    machine: Machine
    replacements: list[PartReplacement]


def _model_display(machine: Machine) -> tuple[str | None, str | None]:
    """Make name and "make model" label of a machine with its model loaded."""
    if machine.model_id is None:
        return None, None
    return machine.model.make.name, machine.model.display_name


class ConsumableService:
    """Records part orders and derives compliance views over them."""

    def __init__(
        self,
        machine_repo: MachineRepository,
        model_part_repo: ModelPartRepository,
        part_replacement_repo: PartReplacementRepository,
        reading_repo: ReadingRepository,
        events: EventDispatcher | None = None,
        summary_limit: int = 500,
        user_repo: UserRepository | None = None,
    ):
        self._machine_repo = machine_repo
        self._model_part_repo = model_part_repo
        self._part_replacement_repo = part_replacement_repo
        self._reading_repo = reading_repo
        self._events = events or EventDispatcher()
        self._summary_limit = summary_limit
        self._user_repo = user_repo or UserRepository()

    async def get_prior_reading(self, machine_id: UUID, model_part_id: UUID) -> int:
        """The meter value at the last replacement of the part, 0 if never replaced."""
        last = await self._part_replacement_repo.find_latest_by_machine_and_part(
            machine_id, model_part_id
        )
        return last.current_reading if last else 0

    async def get_current_meter_reading(
        self, machine_id: UUID, meter_type: MeterType
    ) -> int | None:
        """The relevant meter of the machine's latest monthly reading."""
        latest = await self._reading_repo.find_latest_for_machine(machine_id)
        if latest is None:
            return None
        return meter_value_for(latest, meter_type)

    async def record_part_order(self, order: PartOrderInput) -> PartOrderResult:
        """
        Records a part replacement and calculates its yield charge.

        The prior reading is the current reading of the last replacement of
        the same part on the machine, or 0 for the first one.

        Raises:
            NotFoundError: The machine or part does not exist.
            ModelMismatchError: The part is defined for another model.
        """
        machine = await self._machine_repo.get(order.machine_id)
        if machine is None:
            raise NotFoundError("Machine", order.machine_id)

        part = await self._model_part_repo.get(order.model_part_id)
        if part is None:
            raise NotFoundError("Model part", order.model_part_id)

        if machine.model_id is None or machine.model_id != part.model_id:
            label = machine.model.display_name if machine.model_id else "unknown"
            raise ModelMismatchError(
                f'Part "{part.part_name}" is not defined for this '
                f"machine's model ({label})"
            )

        prior_reading = await self.get_prior_reading(machine.id, part.id)
        result = await self.capture_replacement(
            machine,
            part,
            order_date=order.order_date,
            prior_reading=prior_reading,
            current_reading=order.current_reading,
            remaining_toner_percent=order.remaining_toner_percent,
            captured_by=order.captured_by,
        )

        captured_by = await self._user_repo.get_name(order.captured_by)
        await self._events.publish(
            DomainEvent(
                action="part_order_captured",
                entity_type="part_replacement",
                entity_id=str(result.replacement.id),
                user_id=order.captured_by,
                details={
                    "machine_id": str(machine.id),
                    "serial_number": machine.serial_number,
                    "customer": machine.customer.name if machine.customer_id else None,
                    "part_name": part.part_name,
                    "usage": result.replacement.usage,
                    "expected_yield": part.expected_yield,
                    "yield_met": result.calculation.yield_met,
                    "display_charge_rand": str(result.replacement.display_charge_rand),
                    "captured_by": captured_by,
                },
            )
        )
        return result

    async def capture_replacement(
        self,
        machine: Machine,
        part: ModelPart,
        order_date: date,
        prior_reading: int,
        current_reading: int,
        remaining_toner_percent: Decimal | None = None,
        captured_by: UUID | None = None,
    ) -> PartOrderResult:
        """
        Calculates and stores one replacement with the part's current yield
        and price copied onto it.

        The remaining toner percent only applies to toner parts and is
        dropped for general parts.
        """
        usage = calculate_part_usage(current_reading, prior_reading)
        if part.part_type != PartType.TONER:
            remaining_toner_percent = None
        calculation = calculate_part_charge(
            part.part_type,
            usage,
            part.expected_yield,
            part.cost_rand,
            remaining_toner_percent,
        )

        replacement = await self._part_replacement_repo.create(
            machine_id=machine.id,
            model_part_id=part.id,
            order_date=order_date,
            prior_reading=prior_reading,
            current_reading=current_reading,
            usage=usage,
            remaining_toner_percent=remaining_toner_percent,
            yield_met=calculation.yield_met,
            shortfall_clicks=calculation.shortfall_clicks,
            adjusted_shortfall_clicks=calculation.adjusted_shortfall_clicks,
            cost_per_click=calculation.cost_per_click.quantize(
                CLICK_PRICE_PLACES, rounding=ROUND_HALF_UP
            ),
            display_charge_rand=calculation.display_charge_rand.quantize(
                CENTS, rounding=ROUND_HALF_UP
            ),
            expected_yield_snapshot=part.expected_yield,
            cost_rand_snapshot=part.cost_rand,
            branch=machine.branch,
            captured_by_id=captured_by,
        )
        logger.info(
            f"Recorded {part.part_name} for {machine.serial_number}: "
            f"usage {usage}/{part.expected_yield}, "
            f"charge R{replacement.display_charge_rand}"
        )
        return PartOrderResult(replacement=replacement, calculation=calculation)

    async def get_consumable_summary(
        self, filters: ConsumableSummaryFilters | None = None
    ) -> ConsumableSummary:
        """
        Fleet-wide view of the latest replacement per machine and part.

        Only active, non-decommissioned machines are considered. The part type
        and compliance filters apply to the latest replacement only, so an
        older non-compliant order never shows up once it has been superseded.
        """
        filters = filters or ConsumableSummaryFilters()
        machines = await self._machine_repo.find_for_consumable_summary(
            filters.branch, filters.model, self._summary_limit
        )
        if not machines:
            return ConsumableSummary(machines=[], rows=[])

        # Newest first, so the first seen per (machine, part) is the latest.
        latest: dict[tuple[UUID, UUID], PartReplacement] = {}
        for replacement in await self._part_replacement_repo.find_by_machine_ids(
            m.id for m in machines
        ):
            latest.setdefault((replacement.machine_id, replacement.model_part_id), replacement)

        by_machine: dict[UUID, list[PartReplacement]] = {}
        for (machine_id, _), replacement in latest.items():
            by_machine.setdefault(machine_id, []).append(replacement)

        rows = []
        for machine in machines:
            make, model = _model_display(machine)
            for replacement in by_machine.get(machine.id, []):
                part = replacement.model_part
                if filters.part_type and part.part_type != filters.part_type:
                    continue
                if not _matches_compliance(replacement, filters.compliance_status):
                    continue
                rows.append(
                    ConsumableSummaryRow(
                        machine_id=machine.id,
                        serial_number=machine.serial_number,
                        make=make,
                        model=model,
                        customer=machine.customer.name if machine.customer_id else None,
                        part_name=part.part_name,
                        part_type=part.part_type,
                        last_order_date=replacement.order_date,
                        prior_reading=replacement.prior_reading,
                        current_reading=replacement.current_reading,
                        usage=replacement.usage,
                        remaining_toner_percent=replacement.remaining_toner_percent,
                        yield_met=replacement.yield_met,
                        shortfall_clicks=replacement.shortfall_clicks,
                        adjusted_shortfall_clicks=replacement.adjusted_shortfall_clicks,
                        display_charge_rand=replacement.display_charge_rand,
                    )
                )
        return ConsumableSummary(machines=machines, rows=rows)

    async def get_toner_alerts_by_customer(
        self, branch_filter: BranchFilter | None = None
    ) -> TonerAlerts:
        """
        Finds parts that have reached their expected yield since their last
        replacement, grouped by customer.

        Usage is the relevant meter of the machine's latest monthly reading
        minus the reading at the last replacement. Parts never replaced have
        no baseline and are skipped.
        """
        branch_filter = branch_filter or AllBranches()
        machines = await self._machine_repo.find_with_customer_and_model(branch_filter)

        alerts: dict[UUID, CustomerAlert] = {}
        for machine in machines:
            parts = await self._model_part_repo.find_by_model_id(machine.model_id)
            if isinstance(branch_filter, AllBranches):
                relevant = parts
            else:
                relevant = [p for p in parts if p.branch == machine.branch]
            if not relevant:
                continue

            latest_reading = await self._reading_repo.find_latest_for_machine(machine.id)
            if latest_reading is None:
                continue

            for part in relevant:
                due = await self._part_due(machine, part, latest_reading)
                if due is None:
                    continue
                alert = alerts.setdefault(
                    machine.customer_id,
                    CustomerAlert(
                        customer_id=machine.customer_id,
                        customer_name=machine.customer.name,
                    ),
                )
                alert.parts_due.append(due)

        return TonerAlerts(customer_alerts=list(alerts.values()))

    async def _part_due(self, machine: Machine, part: ModelPart, reading) -> PartDue | None:
        if part.expected_yield <= 0:
            return None
        last = await self._part_replacement_repo.find_latest_by_machine_and_part(
            machine.id, part.id
        )
        if last is None:
            return None

        usage = calculate_part_usage(
            meter_value_for(reading, part.meter_type), last.current_reading
        )
        if usage < part.expected_yield:
            return None
        return PartDue(
            machine_id=machine.id,
            serial_number=machine.serial_number,
            part_name=part.part_name,
            part_type=part.part_type,
            toner_color=part.toner_color,
            usage=usage,
            expected_yield=part.expected_yield,
            percent_used=percent_used(usage, part.expected_yield),
        )

    async def get_machine_consumable_history(
        self, machine_id: UUID, branch: Branch | None = None
    ) -> MachineConsumableHistory:
        """
        Raises:
            NotFoundError: The machine does not exist.
            ForbiddenError: The machine belongs to another branch.
        """
        machine = await self._machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError("Machine", machine_id)
        if branch is not None and machine.branch != branch:
            raise ForbiddenError("Machine belongs to different branch")
        replacements = await self._part_replacement_repo.find_by_machine_id(machine_id)
        return MachineConsumableHistory(machine=machine, replacements=replacements)

    async def delete_part_order(self, replacement_id: UUID) -> None:
        deleted = await self._part_replacement_repo.delete(replacement_id)
        if not deleted:
            raise NotFoundError("Part order", replacement_id)
        logger.info(f"Deleted part order {replacement_id}")

    async def get_model_parts(
        self, model_id: UUID | None, branch: Branch | None = None
    ) -> list[ModelPart]:
        if model_id is None:
            return []
        return await self._model_part_repo.find_by_model_id(model_id, branch)

    async def create_model_part(self, data: ModelPartCreate) -> ModelPart:
        return await self._model_part_repo.create(**data.model_dump())

    async def update_model_part(self, part_id: UUID, data: ModelPartUpdate) -> ModelPart:
        part = await self._model_part_repo.update(
            part_id, **data.model_dump(exclude_unset=True)
        )
        if part is None:
            raise NotFoundError("Model part", part_id)
        return part

    async def delete_model_part(self, part_id: UUID) -> None:
        """
        Retires a part so it can no longer be ordered.

        The row is kept because past replacements reference it.
        """
        part = await self._model_part_repo.update(part_id, is_active=False)
        if part is None:
            raise NotFoundError("Model part", part_id)


def _matches_compliance(
    replacement: PartReplacement, status: ComplianceStatus | None
) -> bool:
    if status == ComplianceStatus.MET:
        return replacement.yield_met
    if status == ComplianceStatus.NOT_MET:
        return not replacement.yield_met
    return True
