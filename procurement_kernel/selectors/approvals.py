"""
Module: procurement_kernel.selectors.approvals
Responsibility: Read models over approval slots -- an approver's queue and
    the progress of one request through its chain.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import aliased

from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.organization import UserModel
from procurement_kernel.models.request import PurchaseRequestModel
from procurement_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PendingApprovalView:
    approval_id: int
    request_id: int
    request_type: str
    level: int
    estimated_cost: Decimal
    is_urgent: bool
    requester_id: int
    submitted_at: datetime


@dataclass(frozen=True)
class ApprovalProgressView:
    approval_id: int
    level: int
    approver_id: int | None
    approver_name: str | None
    approver_role: str | None
    status: str
    is_active: bool
    comments: str | None
    approved_at: datetime | None


class ApprovalSelector(BaseSelector):

    def pending_for_approver(self, user_id: int) -> tuple[PendingApprovalView, ...]:
        """Active, pending approvals waiting on ``user_id``; urgent first."""
        stmt = (
            select(ApprovalModel, PurchaseRequestModel)
            .join(PurchaseRequestModel, PurchaseRequestModel.id == ApprovalModel.request_id)
            .where(
                ApprovalModel.approver_id == user_id,
                ApprovalModel.status == "Pending",
                ApprovalModel.is_active.is_(True),
            )
            .order_by(
                PurchaseRequestModel.is_urgent.desc(),
                PurchaseRequestModel.created_at,
                ApprovalModel.id,
            )
        )
        return tuple(
            PendingApprovalView(
                approval_id=approval.id,
                request_id=request.id,
                request_type=request.request_type,
                level=approval.approval_level,
                estimated_cost=request.estimated_cost,
                is_urgent=request.is_urgent or approval.is_urgent,
                requester_id=request.requester_id,
                submitted_at=request.created_at,
            )
            for approval, request in self.session.execute(stmt)
        )

    def progress(self, request_id: int) -> tuple[ApprovalProgressView, ...]:
        """Every slot of the request in level order, with approver details."""
        approver = aliased(UserModel)
        stmt = (
            select(ApprovalModel, approver)
            .outerjoin(approver, approver.id == ApprovalModel.approver_id)
            .where(ApprovalModel.request_id == request_id)
            .order_by(ApprovalModel.approval_level, ApprovalModel.id)
        )
        return tuple(
            ApprovalProgressView(
                approval_id=approval.id,
                level=approval.approval_level,
                approver_id=approval.approver_id,
                approver_name=user.name if user is not None else None,
                approver_role=user.role if user is not None else None,
                status=approval.status,
                is_active=approval.is_active,
                comments=approval.comments,
                approved_at=approval.approved_at,
            )
            for approval, user in self.session.execute(stmt)
        )
