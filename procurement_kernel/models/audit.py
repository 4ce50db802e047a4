"""
Module: procurement_kernel.models.audit
Responsibility: Append-only audit trail of the workflow -- one RequestLog per
    workflow transition and one ApprovalLog per approval decision.

Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are never updated or deleted.  ORM ``before_update`` and
      ``before_delete`` listeners raise ImmutabilityViolationError.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("models.audit")


class RequestLogModel(Base):
    """One workflow transition of a request."""

    __tablename__ = "request_logs"

    __table_args__ = (
        Index("idx_request_log_request", "request_id", "created_at"),
    )

    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    comments: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<RequestLogModel req={self.request_id} {self.action!r}>"


class ApprovalLogModel(Base):
    """One decision (or automatic resolution) on an approval slot."""

    __tablename__ = "approval_logs"

    __table_args__ = (
        Index("idx_approval_log_approval", "approval_id"),
        Index("idx_approval_log_request", "request_id"),
    )

    approval_id: Mapped[int] = mapped_column(ForeignKey("approvals.id"), nullable=False)
    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id"), nullable=False)
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    comments: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ApprovalLogModel approval={self.approval_id} {self.action!r}>"


def _block(entity_type: str, target: Base, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"Audit rows are append-only -- cannot {operation.lower()}",
    )


@event.listens_for(RequestLogModel, "before_update")
def prevent_request_log_update(mapper, connection, target):
    _block("RequestLog", target, "UPDATE")


@event.listens_for(RequestLogModel, "before_delete")
def prevent_request_log_delete(mapper, connection, target):
    _block("RequestLog", target, "DELETE")


@event.listens_for(ApprovalLogModel, "before_update")
def prevent_approval_log_update(mapper, connection, target):
    _block("ApprovalLog", target, "UPDATE")


@event.listens_for(ApprovalLogModel, "before_delete")
def prevent_approval_log_delete(mapper, connection, target):
    _block("ApprovalLog", target, "DELETE")
