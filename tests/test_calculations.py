"""Tests for core calculation functions."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from fleetmeter.core.calculations import (
    calc_general_part,
    calc_toner_part,
    calculate_part_charge,
    calculate_part_usage,
    calculate_reading_usage,
    calculate_usage,
    meter_value_for,
    percent_used,
)
from fleetmeter.core.models import MeterType, PartType


def _reading(mono=None, colour=None, scan=None):
    return SimpleNamespace(mono_reading=mono, colour_reading=colour, scan_reading=scan)


@pytest.mark.parametrize(
    "current, previous, expected",
    [
        (1050, 1000, 50),
        (1000, None, 0),
        (None, 1000, None),
        (None, None, None),
        (900, 1000, -100),
    ],
)
def test_calculate_usage(current, previous, expected):
    """Tests the calculate_usage function with various scenarios."""
    assert calculate_usage(current, previous) == expected


def test_calculate_reading_usage_per_meter():
    usage = calculate_reading_usage(
        _reading(mono=1200, colour=300), _reading(mono=1000, colour=250, scan=40)
    )
    assert usage.mono_usage == 200
    assert usage.colour_usage == 50
    assert usage.scan_usage is None


def test_calculate_reading_usage_first_reading():
    usage = calculate_reading_usage(_reading(mono=500), None)
    assert usage.mono_usage == 0
    assert usage.colour_usage is None


@pytest.mark.parametrize(
    "current, prior, expected",
    [(35000, 20000, 15000), (20000, 20000, 0), (10000, 20000, 0)],
)
def test_calculate_part_usage_never_negative(current, prior, expected):
    assert calculate_part_usage(current, prior) == expected


@pytest.mark.parametrize(
    "meter_type, reading, expected",
    [
        (MeterType.MONO, _reading(mono=100, colour=40), 100),
        (MeterType.COLOUR, _reading(mono=100, colour=40), 40),
        (MeterType.COLOUR, _reading(mono=100, colour=0), 100),
        (MeterType.COLOUR, _reading(mono=100), 100),
        (MeterType.TOTAL, _reading(mono=100, colour=40), 140),
        (MeterType.MONO, _reading(), 0),
    ],
)
def test_meter_value_for(meter_type, reading, expected):
    assert meter_value_for(reading, meter_type) == expected


def test_calc_general_part_shortfall():
    """A drum that lasted 15000 of 20000 clicks is charged for 5000 clicks."""
    result = calc_general_part(15000, 20000, Decimal("500"))

    assert result.yield_met is False
    assert result.shortfall_clicks == 5000
    assert result.adjusted_shortfall_clicks == 5000
    assert result.cost_per_click == Decimal("0.025")
    assert result.display_charge_rand == Decimal("125")


def test_calc_general_part_yield_met():
    result = calc_general_part(21000, 20000, Decimal("500"))

    assert result.yield_met is True
    assert result.shortfall_clicks == 0
    assert result.display_charge_rand == Decimal("0")


def test_calc_general_part_zero_yield_has_no_click_price():
    result = calc_general_part(0, 0, Decimal("500"))
    assert result.yield_met is True
    assert result.cost_per_click == Decimal("0")


def test_calc_toner_part_prorates_remaining_toner():
    """Half a cartridge returned halves the billable shortfall."""
    result = calc_toner_part(6000, 10000, Decimal("800"), Decimal("50"))

    assert result.yield_met is False
    assert result.shortfall_clicks == 4000
    assert result.adjusted_shortfall_clicks == 2000
    assert result.cost_per_click == Decimal("0.08")
    assert result.display_charge_rand == Decimal("160")


@pytest.mark.parametrize(
    "percent, expected_adjusted",
    [(None, 4000), (0, 4000), (100, 0), (150, 0), (-20, 4000), (Decimal("33.3"), 2668)],
)
def test_calc_toner_part_clamps_and_rounds(percent, expected_adjusted):
    result = calc_toner_part(6000, 10000, Decimal("800"), percent)
    assert result.adjusted_shortfall_clicks == expected_adjusted
    assert result.adjusted_shortfall_clicks >= 0


def test_calc_toner_part_rounds_half_up():
    # 3 clicks short with 50% left leaves 1.5 clicks, billed as 2.
    result = calc_toner_part(7, 10, Decimal("10"), 50)
    assert result.adjusted_shortfall_clicks == 2


def test_toner_charge_never_increases_with_remaining_percent():
    charges = [
        calc_toner_part(3000, 10000, Decimal("950"), percent).display_charge_rand
        for percent in range(0, 101, 5)
    ]
    assert all(later <= earlier for earlier, later in zip(charges, charges[1:]))


def test_yield_calculations_are_deterministic():
    first = calc_toner_part(6000, 10000, Decimal("800"), 25)
    second = calc_toner_part(6000, 10000, Decimal("800"), 25)
    assert first == second
    assert calc_general_part(1, 2, Decimal("3")) == calc_general_part(1, 2, Decimal("3"))


def test_calculate_part_charge_dispatches_by_part_type():
    toner = calculate_part_charge(PartType.TONER, 6000, 10000, Decimal("800"), 50)
    general = calculate_part_charge(PartType.GENERAL, 6000, 10000, Decimal("800"), 50)

    assert toner.adjusted_shortfall_clicks == 2000
    assert general.adjusted_shortfall_clicks == 4000


@pytest.mark.parametrize(
    "usage, expected_yield, expected",
    [(10000, 10000, 100), (12345, 10000, 123), (1005, 2000, 50), (0, 500, 0)],
)
def test_percent_used(usage, expected_yield, expected):
    assert percent_used(usage, expected_yield) == expected
