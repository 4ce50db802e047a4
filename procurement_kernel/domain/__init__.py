"""
Pure domain layer.

Value objects, enums and the injectable clock.  Nothing in this package
performs I/O or imports SQLAlchemy.
"""

from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.events import (
    ApprovalLogIntent,
    DispatchReport,
    NotificationIntent,
    RequestLogIntent,
)
from procurement_kernel.domain.items import (
    ItemDecision,
    ItemOverlayResult,
    ItemOverlaySummary,
    ItemSnapshot,
)
from procurement_kernel.domain.roles import (
    GLOBAL_ROLES,
    ROLE_CAPABILITIES,
    Role,
    RoleCapabilities,
    is_global_role,
    parse_role,
)
from procurement_kernel.domain.routing import (
    AMOUNT_CEILING,
    RouteChain,
    RouteRow,
    RouteSource,
    RouteStep,
    StaticChainEntry,
    StaticRouteTable,
    static_chain_key,
)
from procurement_kernel.domain.workflow import (
    ApprovalSlot,
    ApprovalStatus,
    Decision,
    DecisionCheck,
    DecisionFailure,
    Domain,
    PipelineState,
    PipelineStatus,
    PipelineTransition,
    RequestStatus,
    RequestType,
    SlotState,
)

__all__ = [
    "AMOUNT_CEILING",
    "ApprovalLogIntent",
    "ApprovalSlot",
    "ApprovalStatus",
    "Clock",
    "Decision",
    "DecisionCheck",
    "DecisionFailure",
    "DeterministicClock",
    "DispatchReport",
    "Domain",
    "GLOBAL_ROLES",
    "ItemDecision",
    "ItemOverlayResult",
    "ItemOverlaySummary",
    "ItemSnapshot",
    "NotificationIntent",
    "PipelineState",
    "PipelineStatus",
    "PipelineTransition",
    "ROLE_CAPABILITIES",
    "RequestLogIntent",
    "RequestStatus",
    "RequestType",
    "Role",
    "RoleCapabilities",
    "RouteChain",
    "RouteRow",
    "RouteSource",
    "RouteStep",
    "SlotState",
    "StaticChainEntry",
    "StaticRouteTable",
    "SystemClock",
    "is_global_role",
    "parse_role",
    "static_chain_key",
]
