"""
Tests for ItemOverlayService.decide_items().

Covers:
- Approve / reject / quantity adjustment and cost recomputation
- The rejection lock against other approvers
- Refusals for unassigned, dormant and decided slots
- Warehouse Supply requests having no item overlay
- Rejected items surviving final approval
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from procurement_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    ApprovalNotActiveError,
    InvalidItemDecisionError,
    ItemLockedError,
    ItemOverlayNotApplicableError,
    NotAssignedApproverError,
    RequestedItemNotFoundError,
)
from procurement_kernel.models.audit import RequestLogModel
from procurement_kernel.models.request import PurchaseRequestModel, RequestedItemModel


@pytest.fixture
def two_item_request(services, session, hospital):
    created = services.requests.create_request(
        hospital.keeper_cardio.id,
        "Stock",
        [
            {"item_name": "Gloves", "quantity": 2, "unit_cost": 100},
            {"item_name": "Monitor cable", "quantity": 1, "unit_cost": 500},
        ],
    )
    glove_id, cable_id = session.scalars(
        select(RequestedItemModel.id)
        .where(RequestedItemModel.request_id == created.request_id)
        .order_by(RequestedItemModel.id)
    ).all()
    approvals = services.pipeline.approvals_for(created.request_id)
    return created, approvals, glove_id, cable_id


def test_reject_one_and_grow_the_other(services, session, hospital, two_item_request):
    created, approvals, glove_id, cable_id = two_item_request
    assert created.estimated_cost == Decimal("700")

    outcome = services.items.decide_items(
        approvals[0].id,
        hospital.hod_cardio.id,
        [
            {"item_id": glove_id, "status": "Rejected", "comments": "Stock on hand"},
            {"item_id": cable_id, "status": "Approved", "quantity": 2},
        ],
    )

    assert outcome.estimated_cost == Decimal("1200.00")
    assert outcome.summary.approved == 1
    assert outcome.summary.rejected == 1
    assert outcome.summary.quantity_adjusted == 1
    assert outcome.locked_item_ids == ()

    gloves = session.get(RequestedItemModel, glove_id)
    cable = session.get(RequestedItemModel, cable_id)
    assert gloves.approval_status == "Rejected"
    assert gloves.approved_by == hospital.hod_cardio.id
    assert gloves.approval_comments == "Stock on hand"
    assert gloves.total_cost == Decimal("200")
    assert cable.quantity == 2
    assert cable.total_cost == Decimal("1000")
    assert session.get(PurchaseRequestModel, created.request_id).estimated_cost == Decimal("1200")

    log = session.scalars(
        select(RequestLogModel).where(
            RequestLogModel.request_id == created.request_id,
            RequestLogModel.action == "Item Decisions Recorded",
        )
    ).one()
    assert log.comments == "approved=1 rejected=1 pending=0 quantity_adjusted=1"


def test_overlay_leaves_the_approval_pending(services, hospital, two_item_request):
    created, approvals, glove_id, _ = two_item_request
    services.items.decide_items(
        approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Approved"}],
    )
    first = services.pipeline.approvals_for(created.request_id)[0]
    assert first.status == "Pending"
    assert first.is_active


def test_rejection_locks_item_for_later_approvers(services, session, hospital, two_item_request):
    created, approvals, glove_id, cable_id = two_item_request
    services.items.decide_items(
        approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Rejected"}],
    )
    services.pipeline.decide(approvals[0].id, hospital.hod_cardio.id, "Approved")

    with pytest.raises(ItemLockedError) as exc_info:
        services.items.decide_items(
            approvals[1].id, hospital.cmo.id, [{"item_id": glove_id, "status": "Approved"}],
        )
    assert exc_info.value.item_ids == (glove_id,)

    outcome = services.items.decide_items(
        approvals[1].id, hospital.cmo.id, [{"item_id": cable_id, "status": "Approved"}],
    )
    assert outcome.locked_item_ids == (glove_id,)


def test_rejecting_approver_may_change_their_mind(services, session, hospital, two_item_request):
    _, approvals, glove_id, _ = two_item_request
    services.items.decide_items(
        approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Rejected"}],
    )
    services.items.decide_items(
        approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Approved"}],
    )
    assert session.get(RequestedItemModel, glove_id).approval_status == "Approved"


def test_rejected_items_stay_rejected_after_final_approval(
    services, session, hospital, two_item_request,
):
    created, approvals, glove_id, cable_id = two_item_request
    services.items.decide_items(
        approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Rejected"}],
    )
    services.pipeline.decide(approvals[0].id, hospital.hod_cardio.id, "Approved")
    services.pipeline.decide(approvals[1].id, hospital.cmo.id, "Approved")
    services.pipeline.decide(approvals[2].id, hospital.scm.id, "Approved")

    assert session.get(RequestedItemModel, glove_id).approval_status == "Rejected"
    assert session.get(RequestedItemModel, cable_id).approval_status == "Approved"


def test_only_the_assigned_approver(services, hospital, two_item_request):
    _, approvals, glove_id, _ = two_item_request
    with pytest.raises(NotAssignedApproverError):
        services.items.decide_items(
            approvals[0].id, hospital.scm.id, [{"item_id": glove_id, "status": "Approved"}],
        )


def test_dormant_slot(services, hospital, two_item_request):
    _, approvals, glove_id, _ = two_item_request
    with pytest.raises(ApprovalNotActiveError):
        services.items.decide_items(
            approvals[1].id, hospital.cmo.id, [{"item_id": glove_id, "status": "Approved"}],
        )


def test_decided_slot(services, hospital, two_item_request):
    _, approvals, glove_id, _ = two_item_request
    services.pipeline.decide(approvals[0].id, hospital.hod_cardio.id, "Approved")
    with pytest.raises(ApprovalAlreadyDecidedError):
        services.items.decide_items(
            approvals[0].id, hospital.hod_cardio.id, [{"item_id": glove_id, "status": "Approved"}],
        )


def test_unknown_item(services, hospital, two_item_request):
    _, approvals, _, _ = two_item_request
    with pytest.raises(RequestedItemNotFoundError) as exc_info:
        services.items.decide_items(
            approvals[0].id, hospital.hod_cardio.id, [{"item_id": 98765, "status": "Approved"}],
        )
    assert exc_info.value.item_ids == (98765,)


@pytest.mark.parametrize(
    "decisions",
    [
        [],
        [{"item_id": 1, "status": "Maybe"}],
        [{"item_id": "x", "status": "Approved"}],
        [{"item_id": 1, "status": "Approved", "quantity": 0}],
        [{"item_id": 1, "status": "Approved"}, {"item_id": 1, "status": "Rejected"}],
    ],
)
def test_malformed_decisions(services, hospital, two_item_request, decisions):
    _, approvals, _, _ = two_item_request
    with pytest.raises(InvalidItemDecisionError):
        services.items.decide_items(approvals[0].id, hospital.hod_cardio.id, decisions)


def test_warehouse_supply_has_no_overlay(services, session, hospital):
    created = services.requests.create_request(
        hospital.staff_fac.id,
        "Warehouse Supply",
        [{"item_name": "Paper towels", "quantity": 40, "unit_cost": 3}],
        supply_domain="operational",
    )
    first = services.pipeline.approvals_for(created.request_id)[0]
    item_id = session.scalars(
        select(RequestedItemModel.id).where(RequestedItemModel.request_id == created.request_id)
    ).one()

    with pytest.raises(ItemOverlayNotApplicableError):
        services.items.decide_items(
            first.id, hospital.wm.id, [{"item_id": item_id, "status": "Approved"}],
        )
