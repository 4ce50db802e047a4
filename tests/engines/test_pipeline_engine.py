"""
Tests for the pure approval pipeline engine.

Covers:
- reconcile_status over slot sets
- check_decision: the order of the authorization and sequencing checks
- apply_decision: activation of the next level, rejection, finalisation
- auto_approve_slot and reassign_slot
- Property tests: a chain driven by random verdicts never has two active
  slots and always agrees with the recomputed verdict
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from procurement_engines.pipeline import (
    activate_first_pending,
    advance_pipeline,
    apply_decision,
    auto_approve_slot,
    check_decision,
    count_active,
    reassign_slot,
    reconcile_status,
    record_decision,
)
from procurement_kernel.domain.roles import Role
from procurement_kernel.domain.workflow import (
    ApprovalSlot,
    ApprovalStatus,
    Decision,
    DecisionFailure,
    PipelineState,
    PipelineStatus,
    RequestType,
    SlotState,
)

REQUESTER_ID = 500


def approver_for(level: int) -> int:
    return 100 + level


def make_state(*states: SlotState, approver_ids: dict[int, int | None] | None = None) -> PipelineState:
    """One slot per level; approval ids are ``level * 10``."""
    approver_ids = approver_ids or {}
    return PipelineState(
        request_id=1,
        request_type=RequestType.STOCK,
        requester_id=REQUESTER_ID,
        slots=tuple(
            ApprovalSlot(
                approval_id=level * 10,
                level=level,
                approver_id=approver_ids.get(level, approver_for(level)),
                state=state,
            )
            for level, state in enumerate(states, start=1)
        ),
    )


def approve(level: int, comments: str | None = None) -> Decision:
    return Decision(
        approval_id=level * 10,
        actor_id=approver_for(level),
        status=ApprovalStatus.APPROVED,
        comments=comments,
    )


def reject(level: int) -> Decision:
    return Decision(
        approval_id=level * 10,
        actor_id=approver_for(level),
        status=ApprovalStatus.REJECTED,
    )


D, A, OK, NO = SlotState.DORMANT, SlotState.ACTIVE, SlotState.APPROVED, SlotState.REJECTED


class TestReconcileStatus:

    def test_any_rejection_wins(self):
        assert reconcile_status(make_state(OK, NO, D).slots) is PipelineStatus.REJECTED

    def test_all_approved(self):
        assert reconcile_status(make_state(OK, OK).slots) is PipelineStatus.APPROVED

    def test_pending_otherwise(self):
        assert reconcile_status(make_state(OK, A, D).slots) is PipelineStatus.PENDING

    def test_empty_is_pending(self):
        assert reconcile_status(()) is PipelineStatus.PENDING


class TestCheckDecision:
    """Checks run in order and the first failure is reported."""

    def test_allowed(self):
        assert check_decision(make_state(A, D), approve(1)).allowed

    def test_unknown_approval(self):
        decision = Decision(approval_id=999, actor_id=1, status=ApprovalStatus.APPROVED)
        check = check_decision(make_state(A), decision)
        assert check.failure is DecisionFailure.NOT_FOUND

    def test_already_decided(self):
        check = check_decision(make_state(OK, A), approve(1))
        assert check.failure is DecisionFailure.ALREADY_DECIDED

    def test_not_active(self):
        check = check_decision(make_state(A, D), approve(2))
        assert check.failure is DecisionFailure.NOT_ACTIVE

    def test_wrong_approver(self):
        decision = Decision(approval_id=10, actor_id=999, status=ApprovalStatus.APPROVED)
        check = check_decision(make_state(A, D), decision)
        assert check.failure is DecisionFailure.WRONG_APPROVER

    def test_role_mismatch(self):
        check = check_decision(
            make_state(A, D), approve(1),
            actor_role=Role.COO, expected_role=Role.HOD,
        )
        assert check.failure is DecisionFailure.ROLE_MISMATCH
        assert "requires HOD" in check.reason

    def test_role_check_skipped_without_expected_role(self):
        check = check_decision(make_state(A, D), approve(1), actor_role=Role.COO)
        assert check.allowed

    def test_role_check_skipped_for_self_approved_slot(self):
        state = PipelineState(
            request_id=1,
            request_type=RequestType.STOCK,
            requester_id=REQUESTER_ID,
            slots=(
                ApprovalSlot(10, 1, approver_for(1), SlotState.ACTIVE, self_approved=True),
            ),
        )
        check = check_decision(state, approve(1), actor_role=Role.COO, expected_role=Role.HOD)
        assert check.allowed

    def test_previous_level_pending(self):
        """Two active slots (sweeper opened the next level): the upper one must wait."""
        check = check_decision(make_state(A, A), approve(2))
        assert check.failure is DecisionFailure.PREVIOUS_LEVEL_PENDING
        assert check.pending_levels == (1,)
        assert check.reason == "Previous level approvals are still pending."


class TestApplyDecision:

    def test_approval_activates_next_level(self):
        transition = apply_decision(make_state(A, D, D), decision=approve(1))

        assert transition.request_status is PipelineStatus.PENDING
        assert not transition.finalized
        assert [s.approval_id for s in transition.activated] == [20]
        assert transition.state.slot(20).is_active
        assert count_active(transition.state) == 1
        assert [n.user_id for n in transition.notifications] == [approver_for(2)]
        assert transition.notifications[0].title == "Approval Required"

    def test_decision_logs(self):
        transition = apply_decision(make_state(A, D), decision=approve(1, "fine"))
        assert [log.action for log in transition.request_logs] == [
            "Approval Approved",
            "Level 2 activated",
        ]
        assert len(transition.approval_logs) == 1
        assert transition.approval_logs[0].action == "Approved"
        assert transition.approval_logs[0].comments == "fine"

    def test_last_approval_finalises(self):
        transition = apply_decision(make_state(OK, OK, A), decision=approve(3))

        assert transition.finalized
        assert transition.request_status is PipelineStatus.APPROVED
        assert transition.request_logs[-1].action == "Request marked Approved"
        assert transition.notifications[-1].user_id == REQUESTER_ID
        assert transition.notifications[-1].title == "Request Approved"

    def test_rejection_is_terminal(self):
        transition = apply_decision(make_state(OK, A, D), decision=reject(2))

        assert transition.finalized
        assert transition.request_status is PipelineStatus.REJECTED
        assert transition.activated == ()
        assert transition.state.slot(30).state is SlotState.DORMANT
        assert transition.notifications[-1].title == "Request Rejected"

    def test_record_decision_refuses_invalid_decision(self):
        with pytest.raises(ValueError, match="not_active"):
            record_decision(make_state(A, D), decision=approve(2))

    def test_advance_waits_while_level_has_pending_slots(self):
        state = PipelineState(
            request_id=1,
            request_type=RequestType.STOCK,
            requester_id=REQUESTER_ID,
            slots=(
                ApprovalSlot(10, 1, 101, SlotState.APPROVED),
                ApprovalSlot(11, 1, 102, SlotState.ACTIVE),
                ApprovalSlot(20, 2, 103, SlotState.DORMANT),
            ),
        )
        transition = advance_pipeline(state, after_level=1)
        assert transition.activated == ()
        assert not transition.finalized


class TestActivateFirstPending:

    def test_opens_lowest_dormant_level(self):
        transition = activate_first_pending(make_state(OK, D, D))
        assert [s.level for s in transition.activated] == [2]

    def test_all_auto_approved_finalises_at_creation(self):
        state = make_state(OK, OK, approver_ids={1: None, 2: None})
        transition = activate_first_pending(state)
        assert transition.finalized
        assert transition.request_status is PipelineStatus.APPROVED

    def test_activation_of_auto_approved_level_sends_no_notification(self):
        state = make_state(D, approver_ids={1: None})
        transition = activate_first_pending(state)
        assert transition.notifications == ()


class TestAutoApproveSlot:

    def test_auto_approval_advances(self):
        transition = auto_approve_slot(make_state(A, D), approval_id=10, reason="No active HOD")

        slot = transition.state.slot(10)
        assert slot.state is SlotState.APPROVED
        assert slot.approver_id is None
        assert transition.state.slot(20).is_active
        assert transition.approval_logs[0].action == "Auto-Approved"
        assert transition.request_logs[0].action == "Approval Auto-Approved"
        assert transition.request_logs[0].comments == "No active HOD"

    def test_only_active_slots(self):
        with pytest.raises(ValueError):
            auto_approve_slot(make_state(A, D), approval_id=20, reason="x")


class TestReassignSlot:

    def test_reassignment_keeps_slot_waiting(self):
        transition = reassign_slot(
            make_state(A, D), approval_id=10, new_approver_id=777, previous_approver_id=101,
        )
        slot = transition.state.slot(10)
        assert slot.is_active
        assert slot.approver_id == 777
        assert transition.activated == ()
        assert transition.notifications[0].user_id == 777
        assert transition.approval_logs[0].comments == "Reassigned from user 101 to user 777"

    def test_open_next_level(self):
        transition = reassign_slot(
            make_state(A, D, D),
            approval_id=10,
            new_approver_id=777,
            previous_approver_id=101,
            open_next_level=True,
        )
        assert count_active(transition.state) == 2
        assert [s.level for s in transition.activated] == [2]

    def test_open_next_level_on_last_level_is_plain_reassignment(self):
        transition = reassign_slot(
            make_state(OK, A),
            approval_id=20,
            new_approver_id=777,
            previous_approver_id=102,
            open_next_level=True,
        )
        assert transition.activated == ()


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@st.composite
def chains(draw):
    """A chain of 1-6 levels, some born auto-approved, plus a verdict per level."""
    size = draw(st.integers(min_value=1, max_value=6))
    auto = draw(st.lists(st.booleans(), min_size=size, max_size=size))
    verdicts = draw(st.lists(st.booleans(), min_size=size, max_size=size))
    states = [OK if a else D for a in auto]
    approvers = {level: None for level, a in enumerate(auto, start=1) if a}
    return make_state(*states, approver_ids=approvers), verdicts


class TestPipelineProperties:

    @given(chains())
    @settings(max_examples=200, deadline=None)
    def test_driving_a_chain_to_completion(self, drawn):
        """Single active slot, verdict agreement, rejection terminal, order respected."""
        state, verdicts = drawn
        transition = activate_first_pending(state)
        state = transition.state
        decided_levels: list[int] = []

        while not transition.finalized:
            active = state.active_slots()
            assert len(active) == 1
            slot = active[0]
            assert all(
                s.state is SlotState.APPROVED for s in state.slots if s.level < slot.level
            )
            status = ApprovalStatus.APPROVED if verdicts[slot.level - 1] else ApprovalStatus.REJECTED
            transition = apply_decision(
                state,
                decision=Decision(
                    approval_id=slot.approval_id,
                    actor_id=slot.approver_id,
                    status=status,
                ),
            )
            state = transition.state
            decided_levels.append(slot.level)
            assert transition.request_status is reconcile_status(state.slots)
            assert count_active(state) <= 1

        assert decided_levels == sorted(decided_levels)
        assert count_active(state) == 0
        if any(s.state is SlotState.REJECTED for s in state.slots):
            assert transition.request_status is PipelineStatus.REJECTED
        else:
            assert transition.request_status is PipelineStatus.APPROVED
            assert all(s.state is SlotState.APPROVED for s in state.slots)
