"""
Module: procurement_kernel.models.approval
Responsibility: ORM persistence for approval slots.

Architecture position: Kernel > Models.

Invariants enforced:
    - UNIQUE(request_id, approval_level): one slot per level.
    - CHECK on status values.
    - Rows are never deleted; later levels are added as new rows.
    - ``approver_id`` NULL with status Approved means auto-approved.

Failure modes:
    - IntegrityError on a second slot for the same level.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TimestampedBase
from procurement_kernel.domain.workflow import (
    ApprovalSlot,
    ApprovalStatus,
    SlotState,
    slot_columns,
    slot_state,
)


class ApprovalModel(TimestampedBase):
    """One approval level of one request."""

    __tablename__ = "approvals"

    __table_args__ = (
        UniqueConstraint("request_id", "approval_level", name="uq_approval_request_level"),
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected')",
            name="ck_approval_status",
        ),
        Index("idx_approval_approver_queue", "approver_id", "status", "is_active"),
        Index("idx_approval_request", "request_id"),
    )

    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id"), nullable=False)
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approval_level: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    self_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    comments: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def state(self) -> SlotState:
        return slot_state(self.status, self.is_active)

    def to_slot(self) -> ApprovalSlot:
        return ApprovalSlot(
            approval_id=self.id,
            level=self.approval_level,
            approver_id=self.approver_id,
            state=self.state,
            self_approved=self.self_approved,
        )

    def apply_slot(self, slot: ApprovalSlot) -> None:
        """Copy the slot's state and approver onto the persisted columns."""
        status, is_active = slot_columns(slot.state)
        self.status = status.value
        self.is_active = is_active
        self.approver_id = slot.approver_id

    def __repr__(self) -> str:
        return (
            f"<ApprovalModel {self.id} req={self.request_id} L{self.approval_level} "
            f"{self.status}{' active' if self.is_active else ''}>"
        )
