"""
Route selection engine -- pure functions, no I/O.

Responsibility
--------------
Turn routing reference data (dynamic route rows or the static table) plus a
request's type, domain and amount into an ordered chain of sign-offs.

Architecture position
---------------------
**Engines layer** -- pure calculation, zero I/O.  Imports only
``procurement_kernel.domain`` types.  The ``RouteResolver`` service feeds
rows in and turns an unresolvable chain into a configuration error.

Invariants
----------
* Amounts are normalised once: non-numeric, non-finite or negative values
  become 0; everything else is truncated toward zero.
* Missing band bounds mean 0 (min) and ``AMOUNT_CEILING`` (max).
* Steps are ordered by (level, route insertion order); the first step at a
  level wins and a role already required at a lower level is not required
  again, so levels may be non-contiguous.

Failure modes
-------------
* ``select_static_chain`` returns None when the table has no band or no
  entry for the combination.  Raising is the caller's decision.
* ``UnknownRoleError`` propagates when a route row names an unknown role.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from procurement_kernel.domain.money import to_decimal
from procurement_kernel.domain.roles import parse_role
from procurement_kernel.domain.routing import (
    AMOUNT_CEILING,
    RouteChain,
    RouteRow,
    RouteSource,
    RouteStep,
    StaticRouteTable,
)
from procurement_kernel.domain.workflow import Domain, RequestType


def normalize_amount(value: object) -> int:
    """Whole, non-negative amount used for band matching."""
    amount = to_decimal(value)
    if amount is None or not amount.is_finite() or amount < 0:
        return 0
    return int(amount)


def normalize_department_type(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


_KNOWN_DOMAINS = {d.value: d for d in Domain}


def resolve_route_domain(
    request_type: RequestType,
    department_type: str | None,
    explicit_domain: str | None = None,
) -> Domain:
    """
    Pick the domain whose chain variant applies.

    Warehouse Supply requests name the domain they supply, so an explicit
    domain wins there; every other type follows the submitting
    department's type and only falls back to the explicit value.
    """
    department = normalize_department_type(department_type)
    explicit = normalize_department_type(explicit_domain)
    if request_type is RequestType.WAREHOUSE_SUPPLY:
        candidates = (explicit, department)
    else:
        candidates = (department, explicit)
    for candidate in candidates:
        if candidate in _KNOWN_DOMAINS:
            return _KNOWN_DOMAINS[candidate]
    return Domain.OPERATIONAL


def band_contains(row: RouteRow, amount: int) -> bool:
    low = row.min_amount if row.min_amount is not None else 0
    high = row.max_amount if row.max_amount is not None else AMOUNT_CEILING
    return low <= amount <= high


def dedupe_chain(steps: Iterable[RouteStep]) -> tuple[RouteStep, ...]:
    seen_levels: set[int] = set()
    seen_roles = set()
    chain: list[RouteStep] = []
    for step in steps:
        if step.level in seen_levels or step.role in seen_roles:
            continue
        seen_levels.add(step.level)
        seen_roles.add(step.role)
        chain.append(step)
    return tuple(chain)


def select_route_steps(rows: Sequence[RouteRow], amount: int) -> tuple[RouteStep, ...]:
    """Steps from dynamic rows whose band contains ``amount``."""
    matching = sorted(
        (row for row in rows if band_contains(row, amount)),
        key=lambda row: (row.level, row.route_id),
    )
    return dedupe_chain(
        RouteStep(level=row.level, role=parse_role(row.role)) for row in matching
    )


def select_static_chain(
    table: StaticRouteTable,
    request_type: RequestType,
    domain: Domain,
    amount: int,
) -> RouteChain | None:
    """Chain from the static table, levels numbered from 1 in listed order."""
    for entry in table.bands_for(request_type.value, domain.value):
        if not entry.contains(amount):
            continue
        roles = table.chain_for(entry.key)
        if not roles:
            return None
        steps = tuple(
            RouteStep(level=position, role=role)
            for position, role in enumerate(roles, start=1)
        )
        return RouteChain(steps=dedupe_chain(steps), source=RouteSource.STATIC, key=entry.key)
    return None


def missing_steps(
    chain: RouteChain,
    existing_levels: Iterable[int],
    above_level: int = 0,
) -> tuple[RouteStep, ...]:
    """Steps of ``chain`` not yet materialised, strictly above ``above_level``."""
    existing = set(existing_levels)
    return tuple(
        step for step in chain.steps
        if step.level not in existing and step.level > above_level
    )
