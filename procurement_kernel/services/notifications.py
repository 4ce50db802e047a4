"""
Notification dispatch -- the post-commit half of the outbox.

Responsibility:
    Delivers the ``NotificationIntent`` values a committed workflow
    operation produced.  Delivery is fire-and-forget: a failing notifier
    is logged and skipped, it never reaches the caller.

Architecture position:
    Kernel > Services.  Called only by the facade, after
    ``session_scope`` has committed.  ``DatabaseNotifier`` opens its own
    short transaction so a delivery problem cannot touch the workflow
    transaction that produced it.

Invariants enforced:
    - ``NotificationDispatcher.dispatch`` never raises for a delivery
      failure.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from procurement_kernel.db.engine import session_scope
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.notification import NotificationModel

logger = get_logger("services.notifications")


class Notifier(Protocol):
    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...


class LoggingNotifier:
    """Writes each notification to the log and nothing else."""

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "notification_sent",
            extra={"user_id": user_id, "title": title, "link": link},
        )


class DatabaseNotifier:
    """Persists in-app notifications, one short transaction each."""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                NotificationModel(
                    user_id=user_id,
                    title=title,
                    message=message,
                    link=link,
                    payload=dict(metadata or {}),
                    is_read=False,
                    created_at=self._clock.now(),
                )
            )


class NotificationDispatcher:
    """Drains notification intents through a ``Notifier``."""

    def __init__(self, notifier: Notifier):
        self._notifier = notifier

    def dispatch(self, intents: Iterable[NotificationIntent]) -> DispatchReport:
        sent = 0
        failed = 0
        for intent in intents:
            try:
                self._notifier.notify(
                    intent.user_id,
                    intent.title,
                    intent.message,
                    link=intent.link,
                    metadata=dict(intent.metadata),
                )
            except Exception:
                # The workflow transition is already committed.
                failed += 1
                logger.warning(
                    "notification_dispatch_failed",
                    extra={"user_id": intent.user_id, "title": intent.title},
                    exc_info=True,
                )
                continue
            sent += 1
        if sent or failed:
            logger.debug("notifications_dispatched", extra={"sent": sent, "failed": failed})
        return DispatchReport(sent=sent, failed=failed)
