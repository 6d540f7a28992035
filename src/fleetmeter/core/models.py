"""Domain models for the FleetMeter application."""

from __future__ import annotations

import enum
import uuid

from tortoise import fields, models


class Branch(str, enum.Enum):
    """Organisational partition that scopes machines, readings and locks."""

    JHB = "JHB"
    CT = "CT"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    CAPTURER = "capturer"


class PaperSize(str, enum.Enum):
    A3 = "A3"
    A4 = "A4"


class ModelType(str, enum.Enum):
    MONO = "mono"
    COLOUR = "colour"


class PartType(str, enum.Enum):
    """General parts (drums, fusers) or toner cartridges."""

    GENERAL = "general"
    TONER = "toner"


class TonerColor(str, enum.Enum):
    BLACK = "black"
    CYAN = "cyan"
    MAGENTA = "magenta"
    YELLOW = "yellow"


class MeterType(str, enum.Enum):
    """The meter a part's life is measured against."""

    MONO = "mono"
    COLOUR = "colour"
    TOTAL = "total"


class BaseModel(models.Model):
    """Abstract base model with common fields."""

    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True


class User(BaseModel):
    """A back-office user who captures readings and part orders."""

    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, unique=True)
    role = fields.CharEnumField(UserRole, default=UserRole.CAPTURER)
    branch = fields.CharEnumField(Branch, null=True)

    def __str__(self) -> str:
        return self.name


class Customer(BaseModel):
    """A customer that leases machines."""

    name = fields.CharField(max_length=255)
    branch = fields.CharEnumField(Branch, null=True)

    machines: fields.ReverseRelation[Machine]

    def __str__(self) -> str:
        return self.name


class Make(BaseModel):
    """A machine manufacturer, e.g. "Konica"."""

    name = fields.CharField(max_length=100, unique=True)

    machine_models: fields.ReverseRelation[MachineModel]

    def __str__(self) -> str:
        return self.name


class MachineModel(BaseModel):
    """A concrete model of a make, e.g. "bizhub C300i"."""

    name = fields.CharField(max_length=100)
    paper_size = fields.CharEnumField(PaperSize, default=PaperSize.A4)
    model_type = fields.CharEnumField(ModelType, default=ModelType.MONO)
    make: fields.ForeignKeyRelation[Make] = fields.ForeignKeyField(
        "models.Make", related_name="machine_models"
    )

    machines: fields.ReverseRelation[Machine]
    parts: fields.ReverseRelation[ModelPart]

    class Meta:
        unique_together = ("make", "name")

    @property
    def display_name(self) -> str:
        """Make and model name, e.g. "Konica bizhub C300i"."""
        make = self.make if isinstance(self.make, Make) else None
        return f"{make.name if make else ''} {self.name}".strip()

    def __str__(self) -> str:
        return self.name


class Machine(BaseModel):
    """A copier or printer placed at a customer."""

    serial_number = fields.CharField(max_length=100, unique=True)
    contract_reference = fields.CharField(max_length=100, null=True)
    mono_enabled = fields.BooleanField(default=True)
    colour_enabled = fields.BooleanField(default=False)
    scan_enabled = fields.BooleanField(default=False)
    is_active = fields.BooleanField(default=True)
    is_decommissioned = fields.BooleanField(default=False)
    branch = fields.CharEnumField(Branch, default=Branch.JHB)

    customer_id: uuid.UUID | None
    model_id: uuid.UUID | None

    customer: fields.ForeignKeyNullableRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="machines", null=True
    )
    model: fields.ForeignKeyNullableRelation[MachineModel] = fields.ForeignKeyField(
        "models.MachineModel", related_name="machines", null=True
    )

    readings: fields.ReverseRelation[Reading]
    part_replacements: fields.ReverseRelation[PartReplacement]

    def meter_enabled(self, meter: str) -> bool:
        """Whether the ``mono``/``colour``/``scan`` meter is captured."""
        return bool(getattr(self, f"{meter}_enabled"))

    def __str__(self) -> str:
        return self.serial_number


class Reading(BaseModel):
    """Meter values of a machine for one calendar month."""

    year = fields.IntField()
    month = fields.IntField()
    mono_reading = fields.BigIntField(null=True)
    colour_reading = fields.BigIntField(null=True)
    scan_reading = fields.BigIntField(null=True)
    mono_usage = fields.BigIntField(null=True)
    colour_usage = fields.BigIntField(null=True)
    scan_usage = fields.BigIntField(null=True)
    note = fields.CharField(max_length=500, null=True)
    branch = fields.CharEnumField(
        Branch, description="Machine branch at capture time"
    )

    machine_id: uuid.UUID
    captured_by_id: uuid.UUID | None

    machine: fields.ForeignKeyRelation[Machine] = fields.ForeignKeyField(
        "models.Machine", related_name="readings"
    )
    captured_by: fields.ForeignKeyNullableRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="readings", null=True
    )

    class Meta:
        unique_together = ("machine", "year", "month")

    @property
    def has_meter_values(self) -> bool:
        return (
            self.mono_reading is not None
            or self.colour_reading is not None
            or self.scan_reading is not None
        )

    def __str__(self) -> str:
        return f"Reading for {self.machine_id} {self.year}-{self.month:02d}"


class Submission(BaseModel):
    """Lock marker: readings for (year, month, branch) were exported."""

    year = fields.IntField()
    month = fields.IntField()
    branch = fields.CharEnumField(Branch)
    submitted_at = fields.DatetimeField()

    submitted_by_id: uuid.UUID | None

    submitted_by: fields.ForeignKeyNullableRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="submissions", null=True
    )

    class Meta:
        unique_together = ("year", "month", "branch")

    def __str__(self) -> str:
        return f"Submission {self.branch.value} {self.year}-{self.month:02d}"


class ModelPart(BaseModel):
    """A consumable part defined for a machine model."""

    part_name = fields.CharField(max_length=255)
    item_code = fields.CharField(max_length=100, null=True)
    part_type = fields.CharEnumField(PartType, default=PartType.GENERAL)
    toner_color = fields.CharEnumField(TonerColor, null=True)
    expected_yield = fields.IntField(description="Expected life in clicks")
    cost_rand = fields.DecimalField(max_digits=12, decimal_places=2)
    meter_type = fields.CharEnumField(MeterType, default=MeterType.MONO)
    branch = fields.CharEnumField(Branch, default=Branch.JHB)
    is_active = fields.BooleanField(default=True)

    model_id: uuid.UUID

    model: fields.ForeignKeyRelation[MachineModel] = fields.ForeignKeyField(
        "models.MachineModel", related_name="parts"
    )

    replacements: fields.ReverseRelation[PartReplacement]

    def __str__(self) -> str:
        return self.part_name


class PartReplacement(BaseModel):
    """
    A part order/replacement event with its yield and charge calculation.

    ``expected_yield_snapshot`` and ``cost_rand_snapshot`` copy the part
    definition at capture time so later edits to the part leave historical
    charges untouched.
    """

    order_date = fields.DateField()
    prior_reading = fields.BigIntField()
    current_reading = fields.BigIntField()
    usage = fields.BigIntField()
    remaining_toner_percent = fields.DecimalField(
        max_digits=5, decimal_places=2, null=True
    )
    yield_met = fields.BooleanField()
    shortfall_clicks = fields.BigIntField()
    adjusted_shortfall_clicks = fields.BigIntField()
    cost_per_click = fields.DecimalField(max_digits=14, decimal_places=6)
    display_charge_rand = fields.DecimalField(max_digits=12, decimal_places=2)
    expected_yield_snapshot = fields.IntField()
    cost_rand_snapshot = fields.DecimalField(max_digits=12, decimal_places=2)
    branch = fields.CharEnumField(Branch)

    machine_id: uuid.UUID
    model_part_id: uuid.UUID
    captured_by_id: uuid.UUID | None

    machine: fields.ForeignKeyRelation[Machine] = fields.ForeignKeyField(
        "models.Machine", related_name="part_replacements"
    )
    model_part: fields.ForeignKeyRelation[ModelPart] = fields.ForeignKeyField(
        "models.ModelPart", related_name="replacements"
    )
    captured_by: fields.ForeignKeyNullableRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="part_replacements", null=True
    )

    def __str__(self) -> str:
        return f"Part order {self.model_part_id} on {self.machine_id} ({self.order_date})"


class AuditLog(BaseModel):
    """A record of a user action, written as a best-effort side effect."""

    action = fields.CharField(max_length=100)
    entity_type = fields.CharField(max_length=50)
    entity_id = fields.CharField(max_length=255, null=True)
    details = fields.JSONField(null=True)

    user_id: uuid.UUID | None

    user: fields.ForeignKeyNullableRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="audit_logs", null=True
    )

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type} {self.entity_id or ''}".strip()
