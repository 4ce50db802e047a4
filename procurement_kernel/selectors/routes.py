"""
Module: procurement_kernel.selectors.routes
Responsibility: Read-only access to routing reference data: dynamic route
    rows and department types.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select

from procurement_kernel.domain.routing import AMOUNT_CEILING, RouteRow
from procurement_kernel.models.organization import DepartmentModel
from procurement_kernel.models.routing import ApprovalRouteModel
from procurement_kernel.selectors.base import BaseSelector


class RouteSelector(BaseSelector):
    """Route rows and department types for the route resolver."""

    def lookup_routes(self, request_type: str, domain: str, amount: int) -> tuple[RouteRow, ...]:
        """
        Rows for (type, domain) whose band contains ``amount``.

        Missing bounds are treated as 0 and the amount ceiling.  Ordered by
        level, then insertion order.
        """
        stmt = (
            select(ApprovalRouteModel)
            .where(
                ApprovalRouteModel.request_type == request_type,
                func.lower(ApprovalRouteModel.department_type) == domain.lower(),
                func.coalesce(ApprovalRouteModel.min_amount, Decimal("0")) <= amount,
                func.coalesce(ApprovalRouteModel.max_amount, Decimal(AMOUNT_CEILING)) >= amount,
            )
            .order_by(ApprovalRouteModel.approval_level, ApprovalRouteModel.id)
        )
        return tuple(route.to_row() for route in self.session.scalars(stmt))

    def lookup_department_type(self, department_id: int) -> str | None:
        dept_type = self.session.scalar(
            select(DepartmentModel.type).where(DepartmentModel.id == department_id)
        )
        if dept_type is None:
            return None
        return dept_type.strip().lower() or None
