"""
Module: procurement_kernel.models.organization
Responsibility: ORM persistence for departments and users -- the data behind
    the user directory the approver assignor consults.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Department type is stored lowercased ("medical" / "operational").
    - A user's role is stored as the ``Role`` value; ``role_enum`` parses it.
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TimestampedBase
from procurement_kernel.domain.roles import Role, parse_role


class DepartmentModel(TimestampedBase):
    """A hospital department; its type selects the chain domain."""

    __tablename__ = "departments"

    __table_args__ = (
        UniqueConstraint("name", name="uq_department_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    users: Mapped[list["UserModel"]] = relationship(
        "UserModel",
        back_populates="department",
    )

    def __repr__(self) -> str:
        return f"<DepartmentModel {self.id} {self.name} [{self.type}]>"


class UserModel(TimestampedBase):
    """
    A portal user.

    Guarantees:
        - ``role`` holds a ``Role`` value.
        - Inactive users are never selected as approvers.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_role_department", "role", "department_id", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    department: Mapped[DepartmentModel | None] = relationship(
        "DepartmentModel",
        back_populates="users",
    )

    @property
    def role_enum(self) -> Role:
        return parse_role(self.role)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<UserModel {self.id} {self.role} dept={self.department_id} {state}>"
