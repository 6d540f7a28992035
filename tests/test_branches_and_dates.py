"""Tests for branch filters and period helpers."""

from datetime import date

import pytest

from fleetmeter.core.branches import (
    AllBranches,
    SpecificBranch,
    branch_kwargs,
    parse_branch_filter,
)
from fleetmeter.core.dates import (
    current_period,
    format_period_for_display,
    previous_month,
)
from fleetmeter.core.models import Branch


@pytest.mark.parametrize("raw", [None, "", "null", "NULL", "none", "all", " All "])
def test_parse_branch_filter_all(raw):
    assert parse_branch_filter(raw) == AllBranches()


@pytest.mark.parametrize("raw", ["JHB", "jhb", " ct ", Branch.CT])
def test_parse_branch_filter_specific(raw):
    parsed = parse_branch_filter(raw)
    assert isinstance(parsed, SpecificBranch)
    assert parsed.branch.value == str(getattr(raw, "value", raw)).strip().upper()


def test_parse_branch_filter_unknown():
    with pytest.raises(ValueError, match="Unknown branch"):
        parse_branch_filter("DBN")


def test_branch_kwargs():
    assert branch_kwargs(AllBranches()) == {}
    assert branch_kwargs(SpecificBranch(Branch.JHB)) == {"branch": Branch.JHB}


def test_branch_filter_matches():
    assert AllBranches().matches(Branch.CT)
    assert SpecificBranch(Branch.CT).matches(Branch.CT)
    assert not SpecificBranch(Branch.CT).matches(Branch.JHB)


@pytest.mark.parametrize(
    "year, month, expected",
    [(2024, 3, (2024, 2)), (2024, 1, (2023, 12)), (2024, 12, (2024, 11))],
)
def test_previous_month(year, month, expected):
    assert previous_month(year, month) == expected


def test_current_period():
    assert current_period(date(2024, 7, 15)) == (2024, 7)


def test_format_period_for_display():
    assert format_period_for_display(2024, 3) == "March 2024"
