"""
Outbox events produced by workflow transitions.

Responsibility:
    Pure transitions never write logs or send notifications themselves.
    They return these intents; services persist the log intents inside the
    caller's transaction, and the facade drains the notification intents
    only after the transaction commits.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RequestLogIntent:
    """One row for the request audit trail."""

    request_id: int
    action: str
    actor_id: int | None
    comments: str | None = None


@dataclass(frozen=True)
class ApprovalLogIntent:
    """One row for the approval decision audit trail."""

    approval_id: int
    request_id: int
    approver_id: int | None
    action: str
    comments: str | None = None


@dataclass(frozen=True)
class NotificationIntent:
    """A message for one user, dispatched after commit (fire-and-forget)."""

    user_id: int
    title: str
    message: str
    link: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DispatchReport:
    """Delivery counts for the notifications of one committed operation."""

    sent: int = 0
    failed: int = 0


def request_link(request_id: int) -> str:
    return f"/requests/{request_id}"


def approval_link(request_id: int) -> str:
    return f"/approvals/{request_id}"
