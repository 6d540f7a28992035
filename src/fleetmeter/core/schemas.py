"""Typed inputs handed to the services by the transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from fleetmeter.core.branches import AllBranches, BranchFilter
from fleetmeter.core.models import Branch, MeterType, PartType, TonerColor


class ReadingInput(BaseModel):
    """One machine's meter values (or a note) for a monthly submission."""

    machine_id: UUID
    mono_reading: int | None = Field(default=None, ge=0)
    colour_reading: int | None = Field(default=None, ge=0)
    scan_reading: int | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=500)

    @property
    def has_meter_values(self) -> bool:
        return (
            self.mono_reading is not None
            or self.colour_reading is not None
            or self.scan_reading is not None
        )

    @property
    def clean_note(self) -> str | None:
        """The trimmed note, or ``None`` when blank."""
        if self.note and self.note.strip():
            return self.note.strip()
        return None


class PartOrderInput(BaseModel):
    machine_id: UUID
    model_part_id: UUID
    order_date: date
    current_reading: int = Field(ge=0)
    remaining_toner_percent: Decimal | None = Field(default=None, ge=0, le=100)
    captured_by: UUID | None = None


class ComplianceStatus(str, Enum):
    MET = "met"
    NOT_MET = "not_met"


@dataclass(frozen=True)
class ConsumableSummaryFilters:
    branch: BranchFilter = field(default_factory=AllBranches)
    model: str | None = None
    part_type: PartType | None = None
    compliance_status: ComplianceStatus | None = None


class ModelPartCreate(BaseModel):
    model_id: UUID
    part_name: str = Field(min_length=1)
    item_code: str | None = None
    part_type: PartType = PartType.GENERAL
    toner_color: TonerColor | None = None
    expected_yield: int = Field(ge=1)
    cost_rand: Decimal = Field(ge=0)
    meter_type: MeterType = MeterType.MONO
    branch: Branch = Branch.JHB


class ModelPartUpdate(BaseModel):
    part_name: str | None = Field(default=None, min_length=1)
    item_code: str | None = None
    part_type: PartType | None = None
    toner_color: TonerColor | None = None
    expected_yield: int | None = Field(default=None, ge=1)
    cost_rand: Decimal | None = Field(default=None, ge=0)
    meter_type: MeterType | None = None
    branch: Branch | None = None
    is_active: bool | None = None


class MachineCreate(BaseModel):
    serial_number: str = Field(min_length=1, max_length=100)
    contract_reference: str | None = Field(default=None, max_length=100)
    customer_id: UUID | None = None
    model_id: UUID | None = None
    mono_enabled: bool = True
    colour_enabled: bool = False
    scan_enabled: bool = False
    branch: Branch = Branch.JHB


class MachineUpdate(BaseModel):
    serial_number: str | None = Field(default=None, min_length=1, max_length=100)
    contract_reference: str | None = Field(default=None, max_length=100)
    customer_id: UUID | None = None
    model_id: UUID | None = None
    mono_enabled: bool | None = None
    colour_enabled: bool | None = None
    scan_enabled: bool | None = None
    is_active: bool | None = None
    branch: Branch | None = None
