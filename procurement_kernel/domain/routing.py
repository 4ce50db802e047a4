"""
Routing domain types -- route steps, resolved chains and the static table.

Responsibility:
    Value objects describing which roles must sign off a request, in what
    order.  A chain comes either from the dynamic routes table (rows with
    amount bands) or from the static table shipped with the configuration,
    keyed by ``"{type}-{Capitalize(domain)}-{low}-{high}"``.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from procurement_kernel.domain.roles import Role

# Upper bound used when a route row leaves max_amount empty.
AMOUNT_CEILING = 999_999_999


class RouteSource(str, Enum):
    DYNAMIC = "dynamic"
    STATIC = "static"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RouteRow:
    """Snapshot of one row of the dynamic routes table."""

    route_id: int
    request_type: str
    department_type: str
    level: int
    role: str
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None


@dataclass(frozen=True)
class RouteStep:
    """One required sign-off: a role at a level."""

    level: int
    role: Role


@dataclass(frozen=True)
class RouteChain:
    """Ordered steps for one request, plus where they came from."""

    steps: tuple[RouteStep, ...]
    source: RouteSource
    key: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def roles(self) -> tuple[Role, ...]:
        return tuple(step.role for step in self.steps)

    def levels(self) -> tuple[int, ...]:
        return tuple(step.level for step in self.steps)

    def role_at(self, level: int) -> Role | None:
        for step in self.steps:
            if step.level == level:
                return step.role
        return None

    @classmethod
    def skipped(cls) -> RouteChain:
        return cls(steps=(), source=RouteSource.SKIPPED)


def static_chain_key(request_type: str, domain: str, low: int, high: int) -> str:
    """``"Non-Stock-Operational-10001-999999999"``"""
    return f"{request_type}-{domain.capitalize()}-{low}-{high}"


@dataclass(frozen=True)
class StaticChainEntry:
    """One cost band of the static table for a (type, domain) pair."""

    request_type: str
    domain: str
    low: int
    high: int
    roles: tuple[Role, ...]

    @property
    def key(self) -> str:
        return static_chain_key(self.request_type, self.domain, self.low, self.high)

    def contains(self, amount: int) -> bool:
        return self.low <= amount <= self.high


@dataclass(frozen=True)
class StaticRouteTable:
    """The static fallback table, indexed by chain key."""

    entries: tuple[StaticChainEntry, ...] = ()

    def bands_for(self, request_type: str, domain: str) -> tuple[StaticChainEntry, ...]:
        matches = [
            e for e in self.entries
            if e.request_type == request_type and e.domain == domain
        ]
        return tuple(sorted(matches, key=lambda e: e.low))

    def chain_for(self, key: str) -> tuple[Role, ...] | None:
        for entry in self.entries:
            if entry.key == key:
                return entry.roles
        return None

    def keys(self) -> tuple[str, ...]:
        return tuple(e.key for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)
