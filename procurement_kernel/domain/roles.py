"""
Roles -- closed role set with a capability map.

Responsibility:
    Defines every role the workflow knows about and what each role may do.
    ``parse_role`` is the single place where free-form role strings coming
    from the user directory or the routing table are normalised; nothing
    else in the codebase compares role names as strings.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Global roles (SCM, COO, CMO, CFO, CEO) are resolved without regard
      to department; every other role is department-scoped.
    - Role comparison is enum identity, never string comparison.
"""

from dataclasses import dataclass
from enum import Enum

from procurement_kernel.exceptions import UnknownRoleError


class Role(str, Enum):
    """Every role a user or a route step can carry."""

    REQUESTER = "Requester"
    HOD = "HOD"
    CMO = "CMO"
    COO = "COO"
    CFO = "CFO"
    CEO = "CEO"
    SCM = "SCM"
    WAREHOUSE_MANAGER = "WarehouseManager"
    WAREHOUSE_KEEPER = "WarehouseKeeper"
    PROCUREMENT_SUPERVISOR = "ProcurementSupervisor"
    PROCUREMENT_SPECIALIST = "ProcurementSpecialist"
    TECHNICIAN = "Technician"
    ADMIN = "Admin"


@dataclass(frozen=True)
class RoleCapabilities:
    """What a role may do inside the workflow."""

    is_global: bool = False
    can_update_cost: bool = False
    can_create_stock: bool = False
    can_create_maintenance: bool = False
    receives_procurement_alerts: bool = False


ROLE_CAPABILITIES: dict[Role, RoleCapabilities] = {
    Role.REQUESTER: RoleCapabilities(),
    Role.HOD: RoleCapabilities(),
    Role.CMO: RoleCapabilities(is_global=True),
    Role.COO: RoleCapabilities(is_global=True),
    Role.CFO: RoleCapabilities(is_global=True),
    Role.CEO: RoleCapabilities(is_global=True),
    Role.SCM: RoleCapabilities(
        is_global=True,
        can_update_cost=True,
        receives_procurement_alerts=True,
    ),
    Role.WAREHOUSE_MANAGER: RoleCapabilities(can_create_stock=True),
    Role.WAREHOUSE_KEEPER: RoleCapabilities(can_create_stock=True),
    Role.PROCUREMENT_SUPERVISOR: RoleCapabilities(
        can_update_cost=True,
        receives_procurement_alerts=True,
    ),
    Role.PROCUREMENT_SPECIALIST: RoleCapabilities(
        can_update_cost=True,
        receives_procurement_alerts=True,
    ),
    Role.TECHNICIAN: RoleCapabilities(can_create_maintenance=True),
    Role.ADMIN: RoleCapabilities(),
}


def canonical_role_name(value: str) -> str:
    """Lower-cased role name without spaces, hyphens or underscores."""
    return "".join(ch for ch in value.strip().casefold() if ch not in " _-")


_ROLE_LOOKUP: dict[str, Role] = {canonical_role_name(role.value): role for role in Role}


def parse_role(value: "str | Role") -> Role:
    """
    Normalise a role name to a ``Role``.

    Matching is case-insensitive and ignores spaces, hyphens and
    underscores, so ``"warehouse_manager"`` and ``"WarehouseManager"``
    are the same role.

    Raises:
        UnknownRoleError: If the value does not name a known role.
    """
    if isinstance(value, Role):
        return value
    role = _ROLE_LOOKUP.get(canonical_role_name(value)) if isinstance(value, str) else None
    if role is None:
        raise UnknownRoleError(value)
    return role


def capabilities(role: Role) -> RoleCapabilities:
    return ROLE_CAPABILITIES[role]


def is_global_role(role: Role) -> bool:
    """True if approvers for ``role`` are found without a department filter."""
    return ROLE_CAPABILITIES[role].is_global


GLOBAL_ROLES: frozenset[Role] = frozenset(
    role for role, caps in ROLE_CAPABILITIES.items() if caps.is_global
)

PROCUREMENT_ALERT_ROLES: frozenset[Role] = frozenset(
    role for role, caps in ROLE_CAPABILITIES.items() if caps.receives_procurement_alerts
)
