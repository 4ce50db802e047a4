"""
Module: procurement_kernel.models.notification
Responsibility: In-app notifications written by ``DatabaseNotifier`` after a
    workflow transaction has committed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class NotificationModel(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notification_user_unread", "user_id", "is_read"),
    )

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(4000), nullable=False)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    payload: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<NotificationModel user={self.user_id} {self.title!r}>"
