"""
Module: procurement_kernel.selectors.directory
Responsibility: The user directory -- who is active, and which user fills a
    role for a department.

Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Only active users are eligible approvers.
    - Global roles are looked up by role alone; department-scoped roles by
      role and department.
    - When several users qualify, the lowest id wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select

from procurement_kernel.domain.roles import (
    Role,
    canonical_role_name,
    is_global_role,
    parse_role,
)
from procurement_kernel.exceptions import UserNotFoundError
from procurement_kernel.models.organization import DepartmentModel, UserModel
from procurement_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class UserInfo:
    user_id: int
    name: str
    email: str
    role: Role
    department_id: int | None
    is_active: bool


def _to_info(user: UserModel) -> UserInfo:
    return UserInfo(
        user_id=user.id,
        name=user.name,
        email=user.email,
        role=parse_role(user.role),
        department_id=user.department_id,
        is_active=user.is_active,
    )


def _stored_role():
    # Same normalisation as parse_role, so stored spellings such as
    # "warehouse_manager" still match.
    stored = UserModel.role
    for separator in (" ", "-", "_"):
        stored = func.replace(stored, separator, "")
    return func.lower(stored)


def _role_matches(role: Role):
    return _stored_role() == canonical_role_name(role.value)


class UserDirectory(BaseSelector):
    """Read access to users for assignment and authorization."""

    def get(self, user_id: int) -> UserInfo | None:
        user = self.session.get(UserModel, user_id)
        return _to_info(user) if user is not None else None

    def require(self, user_id: int) -> UserInfo:
        info = self.get(user_id)
        if info is None:
            raise UserNotFoundError(user_id)
        return info

    def is_active(self, user_id: int) -> bool:
        active = self.session.scalar(
            select(UserModel.is_active).where(UserModel.id == user_id)
        )
        return bool(active)

    def find_eligible_approver(
        self,
        role: Role,
        department_id: int | None = None,
    ) -> UserInfo | None:
        """
        First active user holding ``role``.

        Department-scoped roles require ``department_id``; without one there
        is no eligible user.
        """
        stmt = select(UserModel).where(
            _role_matches(role),
            UserModel.is_active.is_(True),
        )
        if not is_global_role(role):
            if department_id is None:
                return None
            stmt = stmt.where(UserModel.department_id == department_id)
        user = self.session.scalars(stmt.order_by(UserModel.id).limit(1)).first()
        return _to_info(user) if user is not None else None

    def first_department_with(self, role: Role, department_type: str) -> int | None:
        """Lowest-id department of ``department_type`` that has an active ``role`` holder."""
        stmt = (
            select(DepartmentModel.id)
            .join(UserModel, UserModel.department_id == DepartmentModel.id)
            .where(
                func.lower(DepartmentModel.type) == department_type.lower(),
                _role_matches(role),
                UserModel.is_active.is_(True),
            )
            .order_by(DepartmentModel.id)
            .limit(1)
        )
        return self.session.scalar(stmt)

    def active_users_with_roles(self, roles: Iterable[Role]) -> tuple[UserInfo, ...]:
        names = [canonical_role_name(role.value) for role in roles]
        stmt = (
            select(UserModel)
            .where(_stored_role().in_(names), UserModel.is_active.is_(True))
            .order_by(UserModel.id)
        )
        return tuple(_to_info(user) for user in self.session.scalars(stmt))
