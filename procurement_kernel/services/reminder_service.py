"""
ReminderService -- nudges approvers who have sat on a request.

Responsibility:
    Finds active, Pending approvals on requests older than N days whose
    approver has not been reminded in the last N days, stamps
    ``reminder_sent_at`` and returns one reminder notification per slot.

Architecture position:
    Kernel > Services -- imperative shell, run by the maintenance CLI.

Invariants enforced:
    - A slot is reminded at most once per window of N days.
    - Auto-approved slots (no approver) are never reminded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent, approval_link
from procurement_kernel.domain.workflow import ApprovalStatus, RequestStatus
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.request import PurchaseRequestModel
from procurement_kernel.services.base import BaseService

logger = get_logger("services.reminders")

DEFAULT_REMINDER_AFTER_DAYS = 3


@dataclass(frozen=True)
class ReminderResult:
    reminded_approval_ids: tuple[int, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()


class ReminderService(BaseService):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def remind_pending(self, older_than_days: int = DEFAULT_REMINDER_AFTER_DAYS) -> ReminderResult:
        if older_than_days < 0:
            raise ValueError(f"older_than_days must be >= 0, got {older_than_days}")
        now = self.clock.now()
        cutoff = now - timedelta(days=older_than_days)
        stmt = (
            select(ApprovalModel, PurchaseRequestModel)
            .join(PurchaseRequestModel, PurchaseRequestModel.id == ApprovalModel.request_id)
            .where(
                ApprovalModel.status == ApprovalStatus.PENDING.value,
                ApprovalModel.is_active.is_(True),
                ApprovalModel.approver_id.is_not(None),
                PurchaseRequestModel.status == RequestStatus.SUBMITTED.value,
                PurchaseRequestModel.created_at <= cutoff,
                or_(
                    ApprovalModel.reminder_sent_at.is_(None),
                    ApprovalModel.reminder_sent_at <= cutoff,
                ),
            )
            .order_by(ApprovalModel.id)
            .with_for_update(of=ApprovalModel)
        )

        reminded: list[int] = []
        notifications: list[NotificationIntent] = []
        for approval, request in self.session.execute(stmt):
            approval.reminder_sent_at = now
            reminded.append(approval.id)
            notifications.append(
                NotificationIntent(
                    user_id=approval.approver_id,
                    title="Pending Approval Reminder",
                    message=(
                        f"Purchase request #{request.id} ({request.request_type}) has been "
                        f"waiting for your approval at level {approval.approval_level} "
                        f"for more than {older_than_days} day(s)."
                    ),
                    link=approval_link(request.id),
                    metadata={
                        "request_id": request.id,
                        "approval_id": approval.id,
                        "level": approval.approval_level,
                    },
                )
            )
        self.session.flush()

        logger.info(
            "approval_reminders_prepared",
            extra={"count": len(reminded), "older_than_days": older_than_days},
        )
        return ReminderResult(
            reminded_approval_ids=tuple(reminded),
            notifications=tuple(notifications),
        )
