"""
Workflow domain types -- requests, approval slots and pipeline state.

Responsibility:
    Pure value objects for the multi-level approval pipeline of a purchase
    request.  The persisted ``status`` / ``is_active`` column pair of an
    approval is modelled here as one tagged state (``SlotState``) with an
    explicit transition map, so that pipeline transitions can be written as
    pure functions over ``PipelineState`` and tested without a database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by procurement_engines.pipeline and the kernel services.

Invariants enforced:
    - SLOT_TRANSITIONS defines the only valid slot state changes.
      APPROVED and REJECTED are terminal.
    - PipelineState keeps its slots ordered by (level, approval_id).
    - A Decision only ever carries Approved or Rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from procurement_kernel.domain.events import (
    ApprovalLogIntent,
    NotificationIntent,
    RequestLogIntent,
)
from procurement_kernel.exceptions import InvalidRequestError


class RequestType(str, Enum):
    """Kinds of purchase request; each has its own routing table entries."""

    STOCK = "Stock"
    NON_STOCK = "Non-Stock"
    MEDICAL_DEVICE = "Medical Device"
    IT_ITEM = "IT Item"
    MAINTENANCE = "Maintenance"
    WAREHOUSE_SUPPLY = "Warehouse Supply"

    @classmethod
    def parse(cls, value: str | RequestType) -> RequestType:
        if isinstance(value, cls):
            return value
        wanted = str(value).strip().casefold()
        for member in cls:
            if member.value.casefold() == wanted:
                return member
        raise InvalidRequestError(f"unknown request type {value!r}")


class Domain(str, Enum):
    """Department classification that selects the chain variant."""

    MEDICAL = "medical"
    OPERATIONAL = "operational"


class RequestStatus(str, Enum):
    """Request lifecycle.  The workflow engine only moves Submitted requests."""

    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "completed"
    RECEIVED = "Received"


class ApprovalStatus(str, Enum):
    """Persisted status of one approval row or one item decision."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


DECISION_STATUSES: tuple[ApprovalStatus, ...] = (
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
)


class PipelineStatus(str, Enum):
    """Request-level verdict derived from the set of approvals."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class SlotState(str, Enum):
    """Tagged state of one approval slot."""

    DORMANT = "dormant"
    ACTIVE = "active"
    APPROVED = "approved"
    REJECTED = "rejected"


SLOT_TRANSITIONS: dict[SlotState, frozenset[SlotState]] = {
    SlotState.DORMANT: frozenset({SlotState.ACTIVE}),
    SlotState.ACTIVE: frozenset({SlotState.APPROVED, SlotState.REJECTED}),
    SlotState.APPROVED: frozenset(),
    SlotState.REJECTED: frozenset(),
}

TERMINAL_SLOT_STATES: frozenset[SlotState] = frozenset(
    {SlotState.APPROVED, SlotState.REJECTED}
)


def slot_state(status: ApprovalStatus | str, is_active: bool) -> SlotState:
    """Derive the tagged state from the persisted (status, is_active) pair."""
    status = ApprovalStatus(status)
    if status is ApprovalStatus.APPROVED:
        return SlotState.APPROVED
    if status is ApprovalStatus.REJECTED:
        return SlotState.REJECTED
    return SlotState.ACTIVE if is_active else SlotState.DORMANT


def slot_columns(state: SlotState) -> tuple[ApprovalStatus, bool]:
    """Inverse of ``slot_state``: the (status, is_active) pair to persist."""
    return {
        SlotState.DORMANT: (ApprovalStatus.PENDING, False),
        SlotState.ACTIVE: (ApprovalStatus.PENDING, True),
        SlotState.APPROVED: (ApprovalStatus.APPROVED, False),
        SlotState.REJECTED: (ApprovalStatus.REJECTED, False),
    }[state]


@dataclass(frozen=True)
class ApprovalSlot:
    """One approval level of one request."""

    approval_id: int
    level: int
    approver_id: int | None
    state: SlotState
    self_approved: bool = False

    @property
    def status(self) -> ApprovalStatus:
        return slot_columns(self.state)[0]

    @property
    def is_active(self) -> bool:
        return self.state is SlotState.ACTIVE

    @property
    def is_pending(self) -> bool:
        return self.state in (SlotState.DORMANT, SlotState.ACTIVE)

    @property
    def auto_approved(self) -> bool:
        return self.state is SlotState.APPROVED and self.approver_id is None

    def moved_to(self, target: SlotState) -> ApprovalSlot:
        """
        Return a copy in ``target`` state.

        Raises:
            ValueError: If the transition is not in SLOT_TRANSITIONS.
        """
        if target not in SLOT_TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid slot transition {self.state.value} -> {target.value} "
                f"for approval {self.approval_id}"
            )
        return replace(self, state=target)


@dataclass(frozen=True)
class PipelineState:
    """All approval slots of one request, ordered by (level, approval_id)."""

    request_id: int
    request_type: RequestType
    requester_id: int
    slots: tuple[ApprovalSlot, ...] = ()

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.slots, key=lambda s: (s.level, s.approval_id)))
        object.__setattr__(self, "slots", ordered)

    def slot(self, approval_id: int) -> ApprovalSlot | None:
        for s in self.slots:
            if s.approval_id == approval_id:
                return s
        return None

    def active_slots(self) -> tuple[ApprovalSlot, ...]:
        return tuple(s for s in self.slots if s.is_active)

    def pending_slots(self) -> tuple[ApprovalSlot, ...]:
        return tuple(s for s in self.slots if s.is_pending)

    def slots_at_level(self, level: int) -> tuple[ApprovalSlot, ...]:
        return tuple(s for s in self.slots if s.level == level)

    def levels(self) -> tuple[int, ...]:
        return tuple(sorted({s.level for s in self.slots}))

    def with_slot(self, updated: ApprovalSlot) -> PipelineState:
        slots = tuple(
            updated if s.approval_id == updated.approval_id else s
            for s in self.slots
        )
        return replace(self, slots=slots)


@dataclass(frozen=True)
class Decision:
    """An approver's verdict on one approval slot."""

    approval_id: int
    actor_id: int
    status: ApprovalStatus
    comments: str | None = None

    def __post_init__(self) -> None:
        if self.status not in DECISION_STATUSES:
            raise ValueError(f"A decision must be Approved or Rejected, got {self.status}")


class DecisionFailure(str, Enum):
    """Why a decision was refused, in the order the checks run."""

    NOT_FOUND = "not_found"
    ALREADY_DECIDED = "already_decided"
    NOT_ACTIVE = "not_active"
    WRONG_APPROVER = "wrong_approver"
    ROLE_MISMATCH = "role_mismatch"
    PREVIOUS_LEVEL_PENDING = "previous_level_pending"


@dataclass(frozen=True)
class DecisionCheck:
    """Result of the pre-decision checks.  ``failure`` is None iff allowed."""

    allowed: bool
    failure: DecisionFailure | None = None
    reason: str = ""
    pending_levels: tuple[int, ...] = ()

    @classmethod
    def ok(cls) -> DecisionCheck:
        return cls(allowed=True)

    @classmethod
    def refused(
        cls,
        failure: DecisionFailure,
        reason: str,
        pending_levels: tuple[int, ...] = (),
    ) -> DecisionCheck:
        return cls(
            allowed=False,
            failure=failure,
            reason=reason,
            pending_levels=pending_levels,
        )


@dataclass(frozen=True)
class PipelineTransition:
    """
    Outcome of one pure pipeline step.

    ``request_status`` is the request-level verdict after the step;
    ``finalized`` is True when the step settled the request (Approved or
    Rejected).  The log and notification tuples form the outbox.
    """

    state: PipelineState
    request_status: PipelineStatus
    decided: ApprovalSlot | None = None
    activated: tuple[ApprovalSlot, ...] = ()
    finalized: bool = False
    request_logs: tuple[RequestLogIntent, ...] = ()
    approval_logs: tuple[ApprovalLogIntent, ...] = ()
    notifications: tuple[NotificationIntent, ...] = field(default=())

    def then(self, later: PipelineTransition) -> PipelineTransition:
        """Chain two steps: state and verdict from ``later``, outbox concatenated."""
        return PipelineTransition(
            state=later.state,
            request_status=later.request_status,
            decided=later.decided or self.decided,
            activated=self.activated + later.activated,
            finalized=self.finalized or later.finalized,
            request_logs=self.request_logs + later.request_logs,
            approval_logs=self.approval_logs + later.approval_logs,
            notifications=self.notifications + later.notifications,
        )
