"""
Module: procurement_kernel.models.request
Responsibility: ORM persistence for purchase requests and their items.

Architecture position: Kernel > Models.

Invariants enforced:
    - All amounts are Decimal (Numeric(38, 9)); never float.
    - ``status`` and ``request_type`` hold enum values as strings.
    - A RequestedItem belongs to exactly one request.
    - ``estimated_cost`` and ``status`` are the only request fields the
      workflow changes after creation (plus ``requester_id`` when a
      Maintenance request is confirmed, and the urgency flag).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TimestampedBase
from procurement_kernel.domain.items import ItemSnapshot
from procurement_kernel.domain.workflow import (
    ApprovalStatus,
    Domain,
    RequestStatus,
    RequestType,
)


class PurchaseRequestModel(TimestampedBase):
    """
    A purchase request travelling through its approval chain.

    Guarantees:
        - ``request_domain`` is fixed at creation from the department type
          (or the explicit override for Warehouse Supply).
        - ``approvals`` are ordered by (level, id).
    """

    __tablename__ = "requests"

    __table_args__ = (
        Index("idx_request_status", "status"),
        Index("idx_request_department", "department_id"),
        Index("idx_request_requester", "requester_id"),
    )

    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False)
    request_domain: Mapped[str] = mapped_column(String(20), nullable=False)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    justification: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    estimated_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.SUBMITTED.value,
    )
    is_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    items: Mapped[list["RequestedItemModel"]] = relationship(
        "RequestedItemModel",
        back_populates="request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RequestedItemModel.id",
    )

    @property
    def type_enum(self) -> RequestType:
        return RequestType(self.request_type)

    @property
    def domain_enum(self) -> Domain:
        return Domain(self.request_domain)

    @property
    def status_enum(self) -> RequestStatus:
        return RequestStatus(self.status)

    def __repr__(self) -> str:
        return f"<PurchaseRequestModel {self.id} {self.request_type} [{self.status}]>"


class RequestedItemModel(TimestampedBase):
    """
    One line of a purchase request.

    ``approval_status`` is NULL until a reviewer records an item decision;
    it is only used by the item decision overlay.
    """

    __tablename__ = "requested_items"

    __table_args__ = (
        Index("idx_requested_item_request", "request_id"),
    )

    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id"), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    approval_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    approval_comments: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    request: Mapped[PurchaseRequestModel] = relationship(
        "PurchaseRequestModel",
        back_populates="items",
    )

    def to_snapshot(self) -> ItemSnapshot:
        return ItemSnapshot(
            item_id=self.id,
            request_id=self.request_id,
            item_name=self.item_name,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            approval_status=(
                ApprovalStatus(self.approval_status) if self.approval_status else None
            ),
            approved_by=self.approved_by,
            approval_comments=self.approval_comments,
        )

    def __repr__(self) -> str:
        return f"<RequestedItemModel {self.id} {self.item_name} x{self.quantity}>"
