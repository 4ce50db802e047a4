"""
Item decision overlay types.

Per-item approve / reject / adjust decisions recorded inside one approval
level.  These never change an approval's status; only the top-level
decision does.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from procurement_kernel.domain.workflow import ApprovalStatus

ITEM_DECISION_STATUSES: tuple[ApprovalStatus, ...] = (
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.PENDING,
)


@dataclass(frozen=True)
class ItemSnapshot:
    item_id: int
    request_id: int
    item_name: str
    quantity: int
    unit_cost: Decimal | None
    total_cost: Decimal | None
    approval_status: ApprovalStatus | None = None
    approved_by: int | None = None
    approval_comments: str | None = None

    def is_locked_for(self, actor_id: int) -> bool:
        """Rejected by someone else: only that identity may change it."""
        return (
            self.approval_status is ApprovalStatus.REJECTED
            and self.approved_by is not None
            and self.approved_by != actor_id
        )


@dataclass(frozen=True)
class ItemDecision:
    item_id: int
    status: ApprovalStatus
    quantity: int | None = None
    comments: str | None = None


@dataclass(frozen=True)
class ItemOverlaySummary:
    approved: int = 0
    rejected: int = 0
    pending: int = 0
    quantity_adjusted: int = 0

    def as_comment(self) -> str:
        return (
            f"approved={self.approved} rejected={self.rejected} "
            f"pending={self.pending} quantity_adjusted={self.quantity_adjusted}"
        )


@dataclass(frozen=True)
class ItemOverlayResult:
    updated: tuple[ItemSnapshot, ...]
    summary: ItemOverlaySummary
    locked_item_ids: tuple[int, ...]
    estimated_cost: Decimal
