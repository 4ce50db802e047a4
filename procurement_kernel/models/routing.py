"""
Module: procurement_kernel.models.routing
Responsibility: ORM persistence for the dynamic approval routes table.

Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are reference data: the workflow only reads them.
    - ``department_type`` is stored lowercased; ``request_type`` holds a
      ``RequestType`` value.
    - Empty min/max bounds mean 0 and the amount ceiling.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TimestampedBase
from procurement_kernel.domain.routing import RouteRow


class ApprovalRouteModel(TimestampedBase):
    """One step of a cost-tiered approval chain for a (type, domain) pair."""

    __tablename__ = "approval_routes"

    __table_args__ = (
        Index("idx_route_lookup", "request_type", "department_type", "approval_level"),
    )

    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    department_type: Mapped[str] = mapped_column(String(20), nullable=False)
    approval_level: Mapped[int] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    min_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_row(self) -> RouteRow:
        return RouteRow(
            route_id=self.id,
            request_type=self.request_type,
            department_type=self.department_type,
            level=self.approval_level,
            role=self.role,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
        )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRouteModel {self.request_type}/{self.department_type} "
            f"L{self.approval_level} {self.role}>"
        )
