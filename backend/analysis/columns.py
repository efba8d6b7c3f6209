"""
Column Resolver

Maps semantic roles (revenue, customer, product, quantity, date) to the
dataset columns that most likely hold them, by case-insensitive
substring match against a priority list per role.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from config import Settings, get_settings
from core.dataset import Dataset
from core.errors import MalformedInputError
from core.logging_config import analysis_logger as logger


REVENUE = "revenue"
CUSTOMER = "customer"
PRODUCT = "product"
QUANTITY = "quantity"
DATE = "date"

ROLES = (REVENUE, CUSTOMER, PRODUCT, QUANTITY, DATE)


@dataclass(frozen=True)
class ResolvedColumn:
    """The column chosen for a role and whether it was a real match."""

    role: str
    column: str
    matched: bool
    candidate: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "matched": self.matched,
            "candidate": self.candidate,
        }


class RoleMap(Mapping):
    """Read-only role -> ResolvedColumn map for one analysis call."""

    def __init__(self, resolved: Iterable[tuple[str, ResolvedColumn]] = ()):
        self._resolved = dict(resolved)

    def __getitem__(self, role: str) -> ResolvedColumn:
        return self._resolved[role]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolved)

    def __len__(self) -> int:
        return len(self._resolved)

    def __repr__(self) -> str:
        return f"RoleMap({self._resolved!r})"

    def column(self, role: str) -> str:
        return self[role].column

    @property
    def fallback_roles(self) -> list[str]:
        return [role for role, resolved in self.items() if not resolved.matched]

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {role: resolved.to_dict() for role, resolved in self.items()}


def find_column(column_names: Sequence[str], priorities: Iterable[str]) -> tuple[Optional[str], Optional[str]]:
    """
    First column matching the highest-priority candidate with any match.

    Priority order wins over column order. Returns (column, candidate),
    or (None, None) when nothing matches.
    """
    lowered = [(name, name.lower()) for name in column_names]
    for candidate in priorities:
        needle = candidate.lower()
        for name, lower_name in lowered:
            if needle in lower_name:
                return name, candidate
    return None, None


class ColumnResolver:
    """
    Resolves role columns for a dataset.

    When no candidate matches, the dataset's first column is returned
    with ``matched=False`` and a warning is logged. Aggregations over
    such a column see mostly unparsable values and exclude them.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def role_priorities(self) -> dict[str, list[str]]:
        return self.settings.analysis.role_priorities

    def resolve(self, dataset: Dataset, role: str) -> ResolvedColumn:
        """Resolve a single role against the dataset's columns."""
        if role not in self.role_priorities:
            raise KeyError(f"Unknown column role: {role}")

        names = dataset.column_names
        if not names:
            raise MalformedInputError(f"Dataset {dataset.id} has no columns")

        column, candidate = find_column(names, self.role_priorities[role])
        if column is not None:
            return ResolvedColumn(role=role, column=column, matched=True, candidate=candidate)

        logger.warning(
            f"No column matches role '{role}' in dataset {dataset.id}; "
            f"falling back to first column '{names[0]}'"
        )
        return ResolvedColumn(role=role, column=names[0], matched=False)

    def resolve_all(self, dataset: Dataset, roles: Iterable[str] = ROLES) -> RoleMap:
        """Resolve every role."""
        return RoleMap((role, self.resolve(dataset, role)) for role in roles)
