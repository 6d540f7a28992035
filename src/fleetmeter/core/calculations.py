"""Core business logic for usage and consumable yield calculations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from fleetmeter.core.models import MeterType, PartType

METERS = ("mono", "colour", "scan")


class MeterValues(Protocol):
    mono_reading: int | None
    colour_reading: int | None
    scan_reading: int | None


@dataclass(frozen=True)
class MeterUsage:
    """Usage per meter for one monthly reading."""

    mono_usage: int | None = None
    colour_usage: int | None = None
    scan_usage: int | None = None


@dataclass(frozen=True)
class YieldCalculation:
    """Yield compliance and charge for one part replacement."""

    yield_met: bool
    shortfall_clicks: int
    adjusted_shortfall_clicks: int
    cost_per_click: Decimal
    display_charge_rand: Decimal


def calculate_usage(current: int | None, previous: int | None) -> int | None:
    """
    Calculates the usage between two readings of the same meter.

    Args:
        current: This month's meter value, ``None`` if not captured.
        previous: Last month's meter value, ``None`` if there is none.

    Returns:
        ``None`` when there is no current value, ``0`` for a first reading
        (it only establishes the baseline), otherwise ``current - previous``.
        The result may be negative; rejecting that is the validator's job.
    """
    if current is None:
        return None
    if previous is None:
        return 0
    return current - previous


def calculate_reading_usage(
    reading: MeterValues, previous: MeterValues | None
) -> MeterUsage:
    """Applies ``calculate_usage`` to the mono, colour and scan meters."""
    usage = {}
    for meter in METERS:
        prev_value = getattr(previous, f"{meter}_reading") if previous else None
        usage[f"{meter}_usage"] = calculate_usage(
            getattr(reading, f"{meter}_reading"), prev_value
        )
    return MeterUsage(**usage)


def calculate_part_usage(current_reading: int, prior_reading: int) -> int:
    """Clicks consumed by a part since its previous replacement, never negative."""
    return max(0, current_reading - prior_reading)


def meter_value_for(reading: MeterValues, meter_type: MeterType) -> int:
    """
    Picks the meter a part is measured against from a monthly reading.

    Colour parts fall back to the mono meter when the colour meter shows
    nothing; ``total`` adds mono and colour.
    """
    mono = reading.mono_reading or 0
    colour = reading.colour_reading or 0
    if meter_type == MeterType.COLOUR:
        return colour if colour > 0 else mono
    if meter_type == MeterType.TOTAL:
        return mono + colour
    return mono


def _cost_per_click(expected_yield: int, cost_rand: Decimal) -> Decimal:
    if expected_yield > 0:
        return Decimal(str(cost_rand)) / Decimal(expected_yield)
    return Decimal("0")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _shortfall(usage: int, expected_yield: int) -> tuple[bool, int]:
    yield_met = usage >= expected_yield
    return yield_met, 0 if yield_met else expected_yield - usage


def calc_general_part(
    usage: int, expected_yield: int, cost_rand: Decimal
) -> YieldCalculation:
    """
    Yield compliance and charge for a general (non-toner) part.

    The customer is charged for the clicks the part fell short of its
    expected yield, at the part's cost per click.

    Args:
        usage: Clicks since the previous replacement.
        expected_yield: Clicks the part should last.
        cost_rand: Price of the part in Rand.

    Returns:
        The calculation; the adjusted shortfall equals the raw shortfall.
    """
    yield_met, shortfall = _shortfall(usage, expected_yield)
    cost_per_click = _cost_per_click(expected_yield, cost_rand)
    return YieldCalculation(
        yield_met=yield_met,
        shortfall_clicks=shortfall,
        adjusted_shortfall_clicks=shortfall,
        cost_per_click=cost_per_click,
        display_charge_rand=shortfall * cost_per_click,
    )


def calc_toner_part(
    usage: int,
    expected_yield: int,
    cost_rand: Decimal,
    remaining_toner_percent: Decimal | float | int | None = 0,
) -> YieldCalculation:
    """
    Yield compliance and charge for a toner cartridge.

    The shortfall is reduced by the share of toner still left in the
    cartridge, so the customer is not charged for toner they did not use.

    Args:
        usage: Clicks since the previous replacement.
        expected_yield: Clicks the cartridge should last.
        cost_rand: Price of the cartridge in Rand.
        remaining_toner_percent: Toner left at replacement time, clamped
            to 0-100.

    Returns:
        The calculation with a prorated, non-negative adjusted shortfall.
    """
    yield_met, shortfall = _shortfall(usage, expected_yield)
    percent = Decimal(str(remaining_toner_percent or 0))
    percent = min(Decimal(100), max(Decimal(0), percent))
    deduction = shortfall * percent / Decimal(100)
    adjusted = max(0, _round_half_up(shortfall - deduction))
    cost_per_click = _cost_per_click(expected_yield, cost_rand)
    return YieldCalculation(
        yield_met=yield_met,
        shortfall_clicks=shortfall,
        adjusted_shortfall_clicks=adjusted,
        cost_per_click=cost_per_click,
        display_charge_rand=adjusted * cost_per_click,
    )


def calculate_part_charge(
    part_type: PartType,
    usage: int,
    expected_yield: int,
    cost_rand: Decimal,
    remaining_toner_percent: Decimal | float | int | None = None,
) -> YieldCalculation:
    """Dispatches to the toner or general calculation by part type."""
    if part_type == PartType.TONER:
        return calc_toner_part(
            usage, expected_yield, cost_rand, remaining_toner_percent
        )
    return calc_general_part(usage, expected_yield, cost_rand)


def percent_used(usage: int, expected_yield: int) -> int:
    """Share of the expected yield consumed, as a whole percentage."""
    return _round_half_up(Decimal(usage) * 100 / Decimal(expected_yield))
