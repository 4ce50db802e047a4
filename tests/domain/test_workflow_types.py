"""
Tests for the pure workflow domain types.

Covers:
- Slot state <-> (status, is_active) mapping and the transition map
- PipelineState ordering and lookups
- Decision and RequestType validation
- Role parsing and the capability map
- Route chain and static table helpers
- Money helpers and the item lock rule
"""

from decimal import Decimal

import pytest

from procurement_kernel.domain.items import ItemOverlaySummary, ItemSnapshot
from procurement_kernel.domain.money import line_total, round_money, to_decimal
from procurement_kernel.domain.roles import (
    GLOBAL_ROLES,
    PROCUREMENT_ALERT_ROLES,
    Role,
    capabilities,
    is_global_role,
    parse_role,
)
from procurement_kernel.domain.routing import (
    RouteChain,
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
    PipelineState,
    RequestType,
    SlotState,
    slot_columns,
    slot_state,
)
from procurement_kernel.exceptions import InvalidRequestError, UnknownRoleError


class TestSlotState:
    """The persisted column pair and the tagged slot state."""

    @pytest.mark.parametrize(
        "status, is_active, expected",
        [
            ("Pending", False, SlotState.DORMANT),
            ("Pending", True, SlotState.ACTIVE),
            ("Approved", False, SlotState.APPROVED),
            ("Approved", True, SlotState.APPROVED),
            ("Rejected", False, SlotState.REJECTED),
        ],
    )
    def test_slot_state_from_columns(self, status, is_active, expected):
        """Decided rows are terminal whatever their active flag says."""
        assert slot_state(status, is_active) is expected

    def test_decided_slots_are_persisted_inactive(self):
        assert slot_columns(SlotState.APPROVED) == (ApprovalStatus.APPROVED, False)
        assert slot_columns(SlotState.REJECTED) == (ApprovalStatus.REJECTED, False)

    def test_dormant_slot_can_only_be_activated(self):
        slot = ApprovalSlot(approval_id=1, level=1, approver_id=5, state=SlotState.DORMANT)
        assert slot.moved_to(SlotState.ACTIVE).is_active
        with pytest.raises(ValueError, match="Invalid slot transition"):
            slot.moved_to(SlotState.APPROVED)

    def test_terminal_slots_never_move(self):
        slot = ApprovalSlot(approval_id=1, level=1, approver_id=5, state=SlotState.REJECTED)
        for target in SlotState:
            with pytest.raises(ValueError):
                slot.moved_to(target)

    def test_auto_approved_means_approved_without_approver(self):
        auto = ApprovalSlot(approval_id=1, level=1, approver_id=None, state=SlotState.APPROVED)
        signed = ApprovalSlot(approval_id=2, level=2, approver_id=9, state=SlotState.APPROVED)
        assert auto.auto_approved
        assert not signed.auto_approved


class TestPipelineState:
    """Ordering and lookups over a request's slots."""

    def test_slots_are_sorted_by_level_then_id(self):
        state = PipelineState(
            request_id=1,
            request_type=RequestType.STOCK,
            requester_id=3,
            slots=(
                ApprovalSlot(approval_id=7, level=2, approver_id=1, state=SlotState.DORMANT),
                ApprovalSlot(approval_id=9, level=1, approver_id=1, state=SlotState.ACTIVE),
                ApprovalSlot(approval_id=4, level=2, approver_id=1, state=SlotState.DORMANT),
            ),
        )
        assert [s.approval_id for s in state.slots] == [9, 4, 7]
        assert state.levels() == (1, 2)
        assert [s.approval_id for s in state.slots_at_level(2)] == [4, 7]

    def test_with_slot_replaces_by_id(self):
        slot = ApprovalSlot(approval_id=1, level=1, approver_id=2, state=SlotState.DORMANT)
        state = PipelineState(request_id=1, request_type=RequestType.STOCK, requester_id=3, slots=(slot,))
        updated = state.with_slot(slot.moved_to(SlotState.ACTIVE))
        assert updated.active_slots()[0].approval_id == 1
        assert state.active_slots() == ()

    def test_unknown_slot_lookup_returns_none(self):
        state = PipelineState(request_id=1, request_type=RequestType.STOCK, requester_id=3)
        assert state.slot(99) is None


class TestDecisionAndRequestType:

    def test_decision_rejects_pending_status(self):
        with pytest.raises(ValueError, match="Approved or Rejected"):
            Decision(approval_id=1, actor_id=2, status=ApprovalStatus.PENDING)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Stock", RequestType.STOCK),
            ("non-stock", RequestType.NON_STOCK),
            ("  Medical Device ", RequestType.MEDICAL_DEVICE),
            ("warehouse supply", RequestType.WAREHOUSE_SUPPLY),
            (RequestType.IT_ITEM, RequestType.IT_ITEM),
        ],
    )
    def test_request_type_parse(self, raw, expected):
        assert RequestType.parse(raw) is expected

    def test_unknown_request_type_is_a_validation_error(self):
        with pytest.raises(InvalidRequestError):
            RequestType.parse("Furniture")


class TestRoles:
    """Role normalisation and the capability map."""

    @pytest.mark.parametrize(
        "raw",
        ["WarehouseManager", "warehouse_manager", "Warehouse Manager", "WAREHOUSE-MANAGER"],
    )
    def test_parse_role_ignores_case_and_separators(self, raw):
        assert parse_role(raw) is Role.WAREHOUSE_MANAGER

    def test_parse_role_unknown(self):
        with pytest.raises(UnknownRoleError):
            parse_role("Janitor")

    def test_parse_role_non_string(self):
        with pytest.raises(UnknownRoleError):
            parse_role(42)

    def test_global_roles(self):
        assert GLOBAL_ROLES == {Role.SCM, Role.COO, Role.CMO, Role.CFO, Role.CEO}
        assert not is_global_role(Role.HOD)
        assert not is_global_role(Role.WAREHOUSE_MANAGER)

    def test_cost_update_capability(self):
        privileged = {r for r in Role if capabilities(r).can_update_cost}
        assert privileged == {
            Role.SCM,
            Role.PROCUREMENT_SUPERVISOR,
            Role.PROCUREMENT_SPECIALIST,
        }

    def test_creation_permissions(self):
        assert capabilities(Role.WAREHOUSE_KEEPER).can_create_stock
        assert capabilities(Role.WAREHOUSE_MANAGER).can_create_stock
        assert not capabilities(Role.REQUESTER).can_create_stock
        assert capabilities(Role.TECHNICIAN).can_create_maintenance
        assert not capabilities(Role.HOD).can_create_maintenance

    def test_procurement_alert_roles(self):
        assert Role.SCM in PROCUREMENT_ALERT_ROLES
        assert Role.HOD not in PROCUREMENT_ALERT_ROLES


class TestRouting:

    def test_static_chain_key_capitalizes_domain(self):
        assert static_chain_key("Non-Stock", "operational", 10001, 999999999) == (
            "Non-Stock-Operational-10001-999999999"
        )

    def test_route_chain_helpers(self):
        chain = RouteChain(
            steps=(RouteStep(level=1, role=Role.HOD), RouteStep(level=3, role=Role.SCM)),
            source=RouteSource.DYNAMIC,
        )
        assert chain.roles() == (Role.HOD, Role.SCM)
        assert chain.levels() == (1, 3)
        assert chain.role_at(3) is Role.SCM
        assert chain.role_at(2) is None
        assert RouteChain.skipped().is_empty

    def test_static_table_bands_are_sorted(self):
        high = StaticChainEntry("Stock", "medical", 5001, 999999999, (Role.HOD, Role.SCM))
        low = StaticChainEntry("Stock", "medical", 0, 5000, (Role.HOD,))
        table = StaticRouteTable(entries=(high, low))
        assert table.bands_for("Stock", "medical") == (low, high)
        assert table.chain_for("Stock-Medical-0-5000") == (Role.HOD,)
        assert table.chain_for("Stock-Medical-1-2") is None
        assert len(table) == 2


class TestMoneyAndItems:

    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12.50", Decimal("12.50")),
            (7, Decimal("7")),
            (1.1, Decimal("1.1")),
            ("abc", None),
            (None, None),
            (True, None),
        ],
    )
    def test_to_decimal(self, raw, expected):
        assert to_decimal(raw) == expected

    def test_line_total(self):
        assert line_total(3, Decimal("19.999")) == Decimal("60.00")
        assert line_total(3, None) is None

    def test_item_lock_rule(self):
        rejected = ItemSnapshot(
            item_id=1, request_id=1, item_name="Gloves", quantity=1,
            unit_cost=None, total_cost=None,
            approval_status=ApprovalStatus.REJECTED, approved_by=10,
        )
        assert rejected.is_locked_for(11)
        assert not rejected.is_locked_for(10)

    def test_approved_items_are_never_locked(self):
        approved = ItemSnapshot(
            item_id=1, request_id=1, item_name="Gloves", quantity=1,
            unit_cost=None, total_cost=None,
            approval_status=ApprovalStatus.APPROVED, approved_by=10,
        )
        assert not approved.is_locked_for(11)

    def test_summary_comment(self):
        summary = ItemOverlaySummary(approved=2, rejected=1, pending=0, quantity_adjusted=1)
        assert summary.as_comment() == "approved=2 rejected=1 pending=0 quantity_adjusted=1"
