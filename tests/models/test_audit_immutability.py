"""
Audit trail rows are append-only.

The ORM listeners on RequestLogModel and ApprovalLogModel refuse every
UPDATE and DELETE that goes through the session.
"""

import pytest
from sqlalchemy import select

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.models.audit import ApprovalLogModel, RequestLogModel


@pytest.fixture
def decided(services, hospital):
    created = services.requests.create_request(
        hospital.hod_fac.id, "IT Item", [{"item_name": "Scanner", "quantity": 1, "unit_cost": 250}],
    )
    return created.request_id


def first_row(session, model, request_id):
    return session.scalars(
        select(model).where(model.request_id == request_id).order_by(model.id)
    ).first()


@pytest.mark.parametrize("model", [RequestLogModel, ApprovalLogModel])
def test_update_is_refused(session, decided, model):
    row = first_row(session, model, decided)
    row.comments = "rewritten"
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    assert exc_info.value.entity_id == str(row.id)


@pytest.mark.parametrize("model", [RequestLogModel, ApprovalLogModel])
def test_delete_is_refused(session, decided, model):
    row = first_row(session, model, decided)
    session.delete(row)
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_violation_is_logged(session, decided, captured_logs):
    row = first_row(session, RequestLogModel, decided)
    row.action = "Tampered"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
    (record,) = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
    assert record["entity_type"] == "RequestLog"
    assert record["operation"] == "UPDATE"


def test_every_transition_is_audited_in_order(services, session, hospital, decided):
    approvals = services.pipeline.approvals_for(decided)
    services.pipeline.decide(approvals[1].id, hospital.scm.id, "Approved", comments="ok")

    actions = session.scalars(
        select(RequestLogModel.action)
        .where(RequestLogModel.request_id == decided)
        .order_by(RequestLogModel.id)
    ).all()
    assert actions == [
        "Created",
        "Level 2 activated",
        "Approval Approved",
        "Request marked Approved",
        "Items Auto-Approved",
    ]
    approval_actions = session.scalars(
        select(ApprovalLogModel.action)
        .where(ApprovalLogModel.request_id == decided)
        .order_by(ApprovalLogModel.id)
    ).all()
    assert approval_actions == ["Self-Approved", "Approved"]
