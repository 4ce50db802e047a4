"""Tests for ReminderService.remind_pending()."""

import pytest

from procurement_kernel.domain.roles import Role


def it_request(services, requester):
    created = services.requests.create_request(
        requester.id, "IT Item", [{"item_name": "Docking station", "quantity": 1, "unit_cost": 180}],
    )
    return created.request_id, services.pipeline.approvals_for(created.request_id)


def test_nothing_before_the_window(services, clock, hospital):
    it_request(services, hospital.staff_fac)
    clock.advance_days(2)
    assert services.reminders.remind_pending(3).reminded_approval_ids == ()


def test_reminds_active_approver_after_the_window(services, session, clock, hospital):
    request_id, approvals = it_request(services, hospital.staff_fac)
    clock.advance_days(3)

    result = services.reminders.remind_pending(3)

    assert result.reminded_approval_ids == (approvals[0].id,)
    (notification,) = result.notifications
    assert notification.user_id == hospital.hod_fac.id
    assert notification.title == "Pending Approval Reminder"
    assert "more than 3 day(s)" in notification.message
    assert notification.metadata == {
        "request_id": request_id,
        "approval_id": approvals[0].id,
        "level": 1,
    }
    session.refresh(approvals[0])
    assert approvals[0].reminder_sent_at is not None


def test_one_reminder_per_window(services, clock, hospital):
    _, approvals = it_request(services, hospital.staff_fac)
    clock.advance_days(3)
    assert len(services.reminders.remind_pending(3).notifications) == 1

    clock.advance_days(1)
    assert services.reminders.remind_pending(3).notifications == ()

    clock.advance_days(2)
    assert services.reminders.remind_pending(3).reminded_approval_ids == (approvals[0].id,)


def test_finished_and_auto_approved_slots_are_skipped(services, org, clock, hospital):
    _, decided = it_request(services, hospital.staff_fac)
    services.pipeline.decide(decided[0].id, hospital.hod_fac.id, "Rejected")

    laundry = org.department("Laundry", "operational")
    _, auto = it_request(services, org.user(Role.REQUESTER, laundry))
    assert auto[0].approver_id is None

    clock.advance_days(10)
    result = services.reminders.remind_pending(3)

    assert result.reminded_approval_ids == (auto[1].id,)
    assert result.notifications[0].user_id == hospital.scm.id


def test_zero_days_reminds_immediately(services, hospital):
    _, approvals = it_request(services, hospital.staff_fac)
    assert services.reminders.remind_pending(0).reminded_approval_ids == (approvals[0].id,)


def test_negative_window_is_rejected(services):
    with pytest.raises(ValueError):
        services.reminders.remind_pending(-1)
