"""Branch scoping for queries that may cover one branch or all of them."""

from __future__ import annotations

from dataclasses import dataclass

from fleetmeter.core.models import Branch

# Raw values that callers use to mean "no branch filter".
_ALL_SENTINELS = {"", "null", "none", "all"}


@dataclass(frozen=True)
class AllBranches:
    """No branch restriction."""

    def matches(self, branch: Branch) -> bool:
        return True


@dataclass(frozen=True)
class SpecificBranch:
    """Restrict to a single branch."""

    branch: Branch

    def matches(self, branch: Branch) -> bool:
        return self.branch == branch


BranchFilter = AllBranches | SpecificBranch


def parse_branch_filter(raw: str | Branch | None) -> BranchFilter:
    """
    Collapses the ways callers spell "any branch" into ``AllBranches``.

    ``None``, ``""``, ``"null"`` and ``"all"`` mean all branches; anything else
    must name a branch (case-insensitive).

    Raises:
        ValueError: If ``raw`` names an unknown branch.
    """
    if isinstance(raw, Branch):
        return SpecificBranch(raw)
    if raw is None or raw.strip().lower() in _ALL_SENTINELS:
        return AllBranches()
    try:
        return SpecificBranch(Branch(raw.strip().upper()))
    except ValueError:
        raise ValueError(f"Unknown branch: {raw!r}") from None


def branch_kwargs(branch_filter: BranchFilter) -> dict[str, Branch]:
    """Query keyword arguments for a branch filter."""
    if isinstance(branch_filter, SpecificBranch):
        return {"branch": branch_filter.branch}
    return {}
