"""
Kernel services -- the imperative shell of the approval workflow.

Every service takes the caller's ``Session`` and flushes; none of them
commits.  Outcomes carry their notification intents so the caller can
dispatch them after its own commit.
"""

from procurement_kernel.services.approval_pipeline import (
    ApprovalPipelineService,
    CostUpdateOutcome,
    DecisionOutcome,
)
from procurement_kernel.services.approver_assignor import ApproverAssignor
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.item_overlay import ItemDecisionOutcome, ItemOverlayService
from procurement_kernel.services.notifications import (
    DatabaseNotifier,
    DispatchReport,
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)
from procurement_kernel.services.reassignment_sweeper import (
    ReassignmentSweeper,
    SweepEntry,
    SweepFailure,
    SweepResult,
)
from procurement_kernel.services.reminder_service import ReminderResult, ReminderService
from procurement_kernel.services.request_service import (
    NewRequestItem,
    RequestCreated,
    RequestService,
)
from procurement_kernel.services.route_resolver import RouteResolver

__all__ = [
    "ApprovalPipelineService",
    "ApproverAssignor",
    "AuditService",
    "CostUpdateOutcome",
    "DatabaseNotifier",
    "DecisionOutcome",
    "DispatchReport",
    "ItemDecisionOutcome",
    "ItemOverlayService",
    "LoggingNotifier",
    "NewRequestItem",
    "NotificationDispatcher",
    "Notifier",
    "ReassignmentSweeper",
    "ReminderResult",
    "ReminderService",
    "RequestCreated",
    "RequestService",
    "RouteResolver",
    "SweepEntry",
    "SweepFailure",
    "SweepResult",
]
