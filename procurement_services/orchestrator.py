"""
procurement_services.orchestrator -- DI container for the kernel services.

Responsibility:
    Creates every workflow service for one session exactly once and wires
    them together.  No service constructs another internally.

Architecture position:
    Services -- the only place where kernel services are composed.  Built
    per transaction by ``ProcurementWorkflow``.

Invariants enforced:
    - Single-instance lifecycle: one AuditService, one UserDirectory, one
      ApprovalPipelineService per session.
    - All services share the same Session and Clock.

Usage:
    orchestrator = WorkflowOrchestrator(session, config, clock)
    orchestrator.requests.create_request(...)
    orchestrator.pipeline.decide(...)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from procurement_config.schema import WorkflowConfig
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.selectors.approvals import ApprovalSelector
from procurement_kernel.selectors.directory import UserDirectory
from procurement_kernel.selectors.routes import RouteSelector
from procurement_kernel.services.approval_pipeline import ApprovalPipelineService
from procurement_kernel.services.approver_assignor import ApproverAssignor
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.item_overlay import ItemOverlayService
from procurement_kernel.services.reassignment_sweeper import ReassignmentSweeper
from procurement_kernel.services.reminder_service import ReminderService
from procurement_kernel.services.request_service import RequestService
from procurement_kernel.services.route_resolver import RouteResolver


class WorkflowOrchestrator:
    """
    Central factory for the workflow services of one session.

    Non-goals:
        - Does NOT manage transaction boundaries.
    """

    def __init__(
        self,
        session: Session,
        config: WorkflowConfig,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self.clock = clock or SystemClock()
        self.config = config

        # Read side
        self.directory = UserDirectory(session)
        self.routes = RouteSelector(session)
        self.approvals = ApprovalSelector(session)

        # Foundational services
        self.audit = AuditService(session, self.clock)
        self.resolver = RouteResolver(self.routes, config.static_routes)
        self.assignor = ApproverAssignor(
            session, self.clock, directory=self.directory, audit=self.audit,
        )

        # Pipeline and its callers
        self.pipeline = ApprovalPipelineService(
            session,
            self.clock,
            audit=self.audit,
            directory=self.directory,
            resolver=self.resolver,
            assignor=self.assignor,
        )
        self.requests = RequestService(
            session,
            self.clock,
            audit=self.audit,
            directory=self.directory,
            routes=self.routes,
            resolver=self.resolver,
            assignor=self.assignor,
            pipeline=self.pipeline,
        )
        self.items = ItemOverlayService(session, self.clock, audit=self.audit)
        self.sweeper = ReassignmentSweeper(
            session,
            self.clock,
            directory=self.directory,
            pipeline=self.pipeline,
            open_next_level=config.settings.reassign_opens_next_level,
        )
        self.reminders = ReminderService(session, self.clock)
