"""
AuditService -- append-only writer for the workflow audit trail.

Responsibility:
    Persists request log and approval log rows, either one at a time or by
    draining the log intents of a ``PipelineTransition``.  Every row is
    stamped from the injected clock.

Architecture position:
    Kernel > Services -- imperative shell.  Called by every other write
    service inside the caller's transaction.

Invariants enforced:
    - Audit rows are only ever inserted; the ORM listeners in
      ``models.audit`` reject updates and deletes.
    - Within each log kind, rows are flushed in the order the intents
      were produced.

Failure modes:
    - ImmutabilityViolationError if a caller mutates a flushed row.
"""

from collections.abc import Iterable

from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import ApprovalLogIntent, RequestLogIntent
from procurement_kernel.domain.workflow import PipelineTransition
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.audit import ApprovalLogModel, RequestLogModel
from procurement_kernel.services.base import BaseService

logger = get_logger("services.audit")


class AuditService(BaseService):
    """Writes RequestLog and ApprovalLog rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def log_request_event(
        self,
        request_id: int,
        action: str,
        actor_id: int | None,
        comments: str | None = None,
    ) -> RequestLogModel:
        row = RequestLogModel(
            request_id=request_id,
            action=action,
            actor_id=actor_id,
            comments=comments,
            created_at=self.clock.now(),
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(
            "request_log_written",
            extra={"request_id": request_id, "action": action, "actor_id": actor_id},
        )
        return row

    def log_approval_event(
        self,
        approval_id: int,
        request_id: int,
        approver_id: int | None,
        action: str,
        comments: str | None = None,
    ) -> ApprovalLogModel:
        row = ApprovalLogModel(
            approval_id=approval_id,
            request_id=request_id,
            approver_id=approver_id,
            action=action,
            comments=comments,
            created_at=self.clock.now(),
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(
            "approval_log_written",
            extra={"approval_id": approval_id, "action": action, "approver_id": approver_id},
        )
        return row

    def record_intents(
        self,
        request_logs: Iterable[RequestLogIntent] = (),
        approval_logs: Iterable[ApprovalLogIntent] = (),
    ) -> int:
        """Persist log intents; returns the number of rows written."""
        written = 0
        for intent in approval_logs:
            self.log_approval_event(
                approval_id=intent.approval_id,
                request_id=intent.request_id,
                approver_id=intent.approver_id,
                action=intent.action,
                comments=intent.comments,
            )
            written += 1
        for intent in request_logs:
            self.log_request_event(
                request_id=intent.request_id,
                action=intent.action,
                actor_id=intent.actor_id,
                comments=intent.comments,
            )
            written += 1
        return written

    def record(self, transition: PipelineTransition) -> int:
        """Persist the audit outbox of a pipeline transition."""
        return self.record_intents(transition.request_logs, transition.approval_logs)
