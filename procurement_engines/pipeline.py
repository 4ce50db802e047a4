"""
Approval pipeline engine -- the pure state machine.

Responsibility
--------------
Every change to a request's approval slots is computed here as a pure
function ``(PipelineState, input) -> PipelineTransition``.  A transition
carries the new state, the request-level verdict and an outbox of audit
log intents and notification intents.  Nothing here reads a clock,
touches a session or sends anything.

Architecture position
---------------------
**Engines layer** -- pure calculation, zero I/O.  May only import
``procurement_kernel.domain`` types.  ``ApprovalPipelineService`` loads the
state, calls these functions, and writes the result back.

Invariants
----------
* Sequential progression: a decision at level L is refused while any
  lower level is not Approved.
* Single active slot: a level is only activated when no slot is active and
  every slot at the level just decided has cleared.
* Rejection is terminal: the first Rejected slot settles the request.
* ``reconcile_status`` is the pure recomputation of the verdict; every
  transition's ``request_status`` equals it for the resulting state.

Failure modes
-------------
* ``check_decision`` never raises; it returns a ``DecisionCheck`` naming
  the first failed check.
* ``record_decision`` / ``record_auto_approval`` / ``reassign_slot`` raise
  ``ValueError`` when called on a slot the checks would refuse (a
  programming error in the caller, not a user error).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from procurement_kernel.domain.events import (
    ApprovalLogIntent,
    NotificationIntent,
    RequestLogIntent,
    approval_link,
    request_link,
)
from procurement_kernel.domain.roles import Role
from procurement_kernel.domain.workflow import (
    ApprovalSlot,
    ApprovalStatus,
    Decision,
    DecisionCheck,
    DecisionFailure,
    PipelineState,
    PipelineStatus,
    PipelineTransition,
    SlotState,
    TERMINAL_SLOT_STATES,
)
from procurement_engines.tracer import traced_engine


def reconcile_status(slots: Iterable[ApprovalSlot]) -> PipelineStatus:
    """Rejected if any slot is Rejected; Approved if all are Approved."""
    slots = tuple(slots)
    if any(s.state is SlotState.REJECTED for s in slots):
        return PipelineStatus.REJECTED
    if slots and all(s.state is SlotState.APPROVED for s in slots):
        return PipelineStatus.APPROVED
    return PipelineStatus.PENDING


def count_active(state: PipelineState) -> int:
    return len(state.active_slots())


def check_decision(
    state: PipelineState,
    decision: Decision,
    *,
    actor_role: Role | None = None,
    expected_role: Role | None = None,
) -> DecisionCheck:
    """
    Run the pre-decision checks in order: authorization, role, ordering.

    ``expected_role`` is the role the dynamic routes assign to the slot's
    level; pass None when routes are static or the level is unknown.
    """
    slot = state.slot(decision.approval_id)
    if slot is None:
        return DecisionCheck.refused(
            DecisionFailure.NOT_FOUND,
            f"approval {decision.approval_id} is not part of request {state.request_id}",
        )
    if slot.state in TERMINAL_SLOT_STATES:
        return DecisionCheck.refused(
            DecisionFailure.ALREADY_DECIDED,
            f"approval {slot.approval_id} is already {slot.status.value}",
        )
    if not slot.is_active:
        return DecisionCheck.refused(
            DecisionFailure.NOT_ACTIVE,
            f"approval {slot.approval_id} is not active",
        )
    if slot.approver_id != decision.actor_id:
        return DecisionCheck.refused(
            DecisionFailure.WRONG_APPROVER,
            f"user {decision.actor_id} is not the assigned approver",
        )
    if (
        expected_role is not None
        and not slot.self_approved
        and actor_role is not expected_role
    ):
        return DecisionCheck.refused(
            DecisionFailure.ROLE_MISMATCH,
            f"level {slot.level} requires {expected_role.value}",
        )
    pending_levels = tuple(sorted({
        s.level for s in state.slots
        if s.level < slot.level and s.state is not SlotState.APPROVED
    }))
    if pending_levels:
        return DecisionCheck.refused(
            DecisionFailure.PREVIOUS_LEVEL_PENDING,
            "Previous level approvals are still pending.",
            pending_levels=pending_levels,
        )
    return DecisionCheck.ok()


@traced_engine("pipeline.record", "1.0", fingerprint_fields=("decision",))
def record_decision(state: PipelineState, *, decision: Decision) -> PipelineTransition:
    """Close the decided slot and emit the two decision log rows."""
    check = check_decision(state, decision)
    if not check.allowed:
        raise ValueError(f"Decision refused ({check.failure.value}): {check.reason}")

    slot = state.slot(decision.approval_id)
    target = (
        SlotState.APPROVED
        if decision.status is ApprovalStatus.APPROVED
        else SlotState.REJECTED
    )
    decided = slot.moved_to(target)
    new_state = state.with_slot(decided)

    return PipelineTransition(
        state=new_state,
        request_status=reconcile_status(new_state.slots),
        decided=decided,
        request_logs=(
            RequestLogIntent(
                request_id=state.request_id,
                action=f"Approval {decision.status.value}",
                actor_id=decision.actor_id,
                comments=decision.comments,
            ),
        ),
        approval_logs=(
            ApprovalLogIntent(
                approval_id=decided.approval_id,
                request_id=state.request_id,
                approver_id=decision.actor_id,
                action=decision.status.value,
                comments=decision.comments,
            ),
        ),
    )


def _finalize(
    state: PipelineState,
    verdict: PipelineStatus,
    actor_id: int | None,
) -> PipelineTransition:
    return PipelineTransition(
        state=state,
        request_status=verdict,
        finalized=True,
        request_logs=(
            RequestLogIntent(
                request_id=state.request_id,
                action=f"Request marked {verdict.value}",
                actor_id=actor_id,
            ),
        ),
        notifications=(
            NotificationIntent(
                user_id=state.requester_id,
                title=f"Request {verdict.value}",
                message=f"Your purchase request #{state.request_id} has been {verdict.value.lower()}.",
                link=request_link(state.request_id),
                metadata={"request_id": state.request_id, "status": verdict.value},
            ),
        ),
    )


def _activate_level(
    state: PipelineState,
    level: int,
    actor_id: int | None,
) -> PipelineTransition:
    activated = tuple(
        s.moved_to(SlotState.ACTIVE)
        for s in state.slots_at_level(level)
        if s.state is SlotState.DORMANT
    )
    new_state = state
    for slot in activated:
        new_state = new_state.with_slot(slot)

    return PipelineTransition(
        state=new_state,
        request_status=reconcile_status(new_state.slots),
        activated=activated,
        request_logs=(
            RequestLogIntent(
                request_id=state.request_id,
                action=f"Level {level} activated",
                actor_id=actor_id,
            ),
        ),
        notifications=tuple(
            NotificationIntent(
                user_id=slot.approver_id,
                title="Approval Required",
                message=(
                    f"Purchase request #{state.request_id} ({state.request_type.value}) "
                    f"is awaiting your approval at level {slot.level}."
                ),
                link=approval_link(state.request_id),
                metadata={
                    "request_id": state.request_id,
                    "approval_id": slot.approval_id,
                    "level": slot.level,
                },
            )
            for slot in activated
            if slot.approver_id is not None
        ),
    )


@traced_engine("pipeline.advance", "1.0", fingerprint_fields=("after_level",))
def advance_pipeline(
    state: PipelineState,
    *,
    after_level: int,
    actor_id: int | None = None,
) -> PipelineTransition:
    """
    Move the pipeline forward after ``after_level`` has been settled.

    Rejected anywhere finalises as Rejected.  Otherwise, once every slot at
    ``after_level`` has cleared and nothing else is active, the lowest
    dormant level is activated; with no dormant level left the request is
    finalised as Approved.
    """
    verdict = reconcile_status(state.slots)
    if verdict is PipelineStatus.REJECTED:
        return _finalize(state, verdict, actor_id)

    if any(s.is_pending for s in state.slots_at_level(after_level)):
        return PipelineTransition(state=state, request_status=verdict)
    if state.active_slots():
        return PipelineTransition(state=state, request_status=verdict)

    dormant_levels = [s.level for s in state.slots if s.state is SlotState.DORMANT]
    if dormant_levels:
        return _activate_level(state, min(dormant_levels), actor_id)

    if verdict is PipelineStatus.APPROVED:
        return _finalize(state, verdict, actor_id)
    return PipelineTransition(state=state, request_status=verdict)


def activate_first_pending(
    state: PipelineState,
    *,
    actor_id: int | None = None,
) -> PipelineTransition:
    """Creation-time activation: open the lowest pending level, or finalise."""
    return advance_pipeline(state, after_level=0, actor_id=actor_id)


def apply_decision(state: PipelineState, *, decision: Decision) -> PipelineTransition:
    """Record a decision and advance: the full ``(state, decision) -> state`` step."""
    recorded = record_decision(state, decision=decision)
    advanced = advance_pipeline(
        recorded.state,
        after_level=recorded.decided.level,
        actor_id=decision.actor_id,
    )
    return recorded.then(advanced)


@traced_engine("pipeline.auto_approve", "1.0", fingerprint_fields=("approval_id",))
def record_auto_approval(
    state: PipelineState,
    *,
    approval_id: int,
    reason: str,
) -> PipelineTransition:
    """
    Fail-open approval of an active slot whose approver cannot act.

    The slot loses its approver (approver_id becomes None).  Like
    ``record_decision`` this only closes the slot; the caller advances.
    """
    slot = state.slot(approval_id)
    if slot is None or slot.state is not SlotState.ACTIVE:
        raise ValueError(f"Only an active approval can be auto-approved: {approval_id}")

    approved = replace(slot.moved_to(SlotState.APPROVED), approver_id=None)
    new_state = state.with_slot(approved)
    return PipelineTransition(
        state=new_state,
        request_status=reconcile_status(new_state.slots),
        decided=approved,
        request_logs=(
            RequestLogIntent(
                request_id=state.request_id,
                action="Approval Auto-Approved",
                actor_id=None,
                comments=reason,
            ),
        ),
        approval_logs=(
            ApprovalLogIntent(
                approval_id=approval_id,
                request_id=state.request_id,
                approver_id=None,
                action="Auto-Approved",
                comments=reason,
            ),
        ),
    )


def auto_approve_slot(
    state: PipelineState,
    *,
    approval_id: int,
    reason: str,
) -> PipelineTransition:
    """Auto-approve and advance, for chains whose levels are all materialised."""
    recorded = record_auto_approval(state, approval_id=approval_id, reason=reason)
    return recorded.then(
        advance_pipeline(recorded.state, after_level=recorded.decided.level)
    )


@traced_engine("pipeline.reassign", "1.0", fingerprint_fields=("approval_id", "new_approver_id"))
def reassign_slot(
    state: PipelineState,
    *,
    approval_id: int,
    new_approver_id: int,
    previous_approver_id: int | None,
    open_next_level: bool = False,
) -> PipelineTransition:
    """
    Hand an active slot to a replacement approver.

    The slot stays active and still needs a decision.  ``open_next_level``
    additionally activates the next dormant level straight away, which
    leaves two slots active at once.
    """
    slot = state.slot(approval_id)
    if slot is None or slot.state is not SlotState.ACTIVE:
        raise ValueError(f"Only an active approval can be reassigned: {approval_id}")

    reassigned = replace(slot, approver_id=new_approver_id)
    new_state = state.with_slot(reassigned)
    comment = f"Reassigned from user {previous_approver_id} to user {new_approver_id}"
    transition = PipelineTransition(
        state=new_state,
        request_status=reconcile_status(new_state.slots),
        request_logs=(
            RequestLogIntent(
                request_id=state.request_id,
                action="Approval Reassigned",
                actor_id=None,
                comments=comment,
            ),
        ),
        approval_logs=(
            ApprovalLogIntent(
                approval_id=approval_id,
                request_id=state.request_id,
                approver_id=new_approver_id,
                action="Reassigned",
                comments=comment,
            ),
        ),
        notifications=(
            NotificationIntent(
                user_id=new_approver_id,
                title="Approval Reassigned To You",
                message=(
                    f"Purchase request #{state.request_id} was reassigned to you "
                    f"for approval at level {slot.level}."
                ),
                link=approval_link(state.request_id),
                metadata={
                    "request_id": state.request_id,
                    "approval_id": approval_id,
                    "level": slot.level,
                },
            ),
        ),
    )
    if not open_next_level:
        return transition

    next_levels = [
        s.level for s in new_state.slots
        if s.state is SlotState.DORMANT and s.level > slot.level
    ]
    if not next_levels:
        return transition
    return transition.then(_activate_level(new_state, min(next_levels), None))
