"""
ProcurementWorkflow -- the public entry point of the approval workflow.

Responsibility:
    Runs each workflow operation as one unit of work: opens a session,
    builds the service graph through ``WorkflowOrchestrator``, calls the
    kernel, commits, and only then dispatches the notifications the
    operation produced.  The delivery counts come back on the result
    (``result.dispatch``); the facade itself holds no per-call state.

Architecture position:
    Services -- the outermost layer.  The only place that owns
    transaction boundaries and post-commit side effects.

Invariants enforced:
    - A failing operation rolls back everything it wrote; no notification
      of a rolled-back operation is ever dispatched.
    - A failing notifier never fails a committed operation.
    - Every operation runs under its own correlation id.

Failure modes:
    - Every ``ProcurementWorkflowError`` raised by the kernel propagates
      unchanged after rollback.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar
from uuid import uuid4

from procurement_kernel.db.engine import session_scope
from procurement_kernel.domain.items import ItemDecision
from procurement_kernel.domain.workflow import ApprovalStatus, RequestType
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.selectors.approvals import ApprovalProgressView, PendingApprovalView
from procurement_kernel.services.approval_pipeline import CostUpdateOutcome, DecisionOutcome
from procurement_kernel.services.item_overlay import ItemDecisionOutcome
from procurement_kernel.services.notifications import NotificationDispatcher
from procurement_kernel.services.reassignment_sweeper import SweepResult
from procurement_kernel.services.reminder_service import ReminderResult
from procurement_kernel.services.request_service import NewRequestItem, RequestCreated
from procurement_kernel.services.validation import validate_identifier
from procurement_services.orchestrator import WorkflowOrchestrator
from procurement_services.runtime import WorkflowRuntime

logger = get_logger("services.workflow")

T = TypeVar("T")


class ProcurementWorkflow:
    """
    Transaction-owning facade over the kernel services.

    Usage:
        runtime = bootstrap("postgresql://...")
        workflow = ProcurementWorkflow(runtime)
        created = workflow.create_request(requester_id=7, request_type="Stock", items=[...])
    """

    def __init__(self, runtime: WorkflowRuntime):
        self._runtime = runtime
        self._dispatcher = NotificationDispatcher(runtime.notifier)

    @property
    def runtime(self) -> WorkflowRuntime:
        return self._runtime

    def _run(
        self,
        operation: str,
        work: Callable[[WorkflowOrchestrator], T],
        *,
        writes: bool = True,
    ) -> T:
        start = time.monotonic()
        with LogContext.bind(correlation_id=str(uuid4())):
            with session_scope(self._runtime.session_factory) as session:
                orchestrator = WorkflowOrchestrator(
                    session, self._runtime.config, self._runtime.clock,
                )
                result = work(orchestrator)

            notifications = getattr(result, "notifications", ())
            if writes and notifications:
                result = dataclasses.replace(
                    result, dispatch=self._dispatcher.dispatch(notifications),
                )

            logger.info(
                "workflow_operation_completed",
                extra={
                    "operation": operation,
                    "notification_count": len(notifications),
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                },
            )
        return result

    # -- write operations --------------------------------------------------

    def create_request(
        self,
        requester_id: int | str,
        request_type: str | RequestType,
        items: Iterable[NewRequestItem | Mapping[str, Any]],
        *,
        department_id: int | str | None = None,
        justification: str | None = None,
        supply_domain: str | None = None,
        is_urgent: bool = False,
    ) -> RequestCreated:
        items = tuple(items)
        return self._run(
            "create_request",
            lambda o: o.requests.create_request(
                requester_id,
                request_type,
                items,
                department_id=department_id,
                justification=justification,
                supply_domain=supply_domain,
                is_urgent=is_urgent,
            ),
        )

    def decide(
        self,
        approval_id: int | str,
        actor_id: int | str,
        status: str | ApprovalStatus,
        *,
        comments: str | None = None,
        is_urgent: bool = False,
        estimated_cost: object = None,
    ) -> DecisionOutcome:
        """Record an Approved or Rejected decision on the active slot."""
        return self._run(
            "decide",
            lambda o: o.pipeline.decide(
                approval_id,
                actor_id,
                status,
                comments=comments,
                is_urgent=is_urgent,
                estimated_cost=estimated_cost,
            ),
        )

    def decide_items(
        self,
        approval_id: int | str,
        actor_id: int | str,
        items: Iterable[ItemDecision | Mapping[str, Any]],
    ) -> ItemDecisionOutcome:
        items = tuple(items)
        return self._run(
            "decide_items",
            lambda o: o.items.decide_items(approval_id, actor_id, items),
        )

    def update_estimated_cost(
        self,
        request_id: int | str,
        actor_id: int | str,
        estimated_cost: object,
    ) -> CostUpdateOutcome:
        return self._run(
            "update_estimated_cost",
            lambda o: o.requests.update_estimated_cost(request_id, actor_id, estimated_cost),
        )

    # -- maintenance -------------------------------------------------------

    def sweep_inactive_approvers(self) -> SweepResult:
        """Reassign or auto-approve every slot held by a deactivated user."""
        return self._run("sweep_inactive_approvers", lambda o: o.sweeper.sweep())

    def remind_pending_approvals(self, older_than_days: int | None = None) -> ReminderResult:
        if older_than_days is None:
            older_than_days = self._runtime.config.settings.reminder_after_days
        return self._run(
            "remind_pending_approvals",
            lambda o: o.reminders.remind_pending(older_than_days),
        )

    # -- read side ---------------------------------------------------------

    def pending_approvals(self, user_id: int | str) -> tuple[PendingApprovalView, ...]:
        user_id = validate_identifier("user_id", user_id)
        return self._run(
            "pending_approvals",
            lambda o: o.approvals.pending_for_approver(user_id),
            writes=False,
        )

    def approval_progress(self, request_id: int | str) -> tuple[ApprovalProgressView, ...]:
        request_id = validate_identifier("request_id", request_id)
        return self._run(
            "approval_progress",
            lambda o: o.approvals.progress(request_id),
            writes=False,
        )
