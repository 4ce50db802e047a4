"""
ItemOverlayService -- per-item decisions inside one approval level.

Responsibility:
    Lets the approver holding the active slot approve, reject or adjust
    individual request items.  Persists the new item rows, recomputes the
    request's estimated cost and writes one summary audit row.

Architecture position:
    Kernel > Services -- imperative shell around
    ``procurement_engines.item_overlay``.

Invariants enforced:
    - Only the assigned approver of an active, Pending slot may call it.
    - An item Rejected by one identity cannot be changed by another.
    - The overlay never changes an approval's status and never advances
      the pipeline.
    - Warehouse Supply requests have no item overlay.

Failure modes:
    - InvalidItemDecisionError / InvalidIdentifierError on bad input.
    - ApprovalNotFoundError, RequestedItemNotFoundError.
    - ApprovalAlreadyDecidedError, ApprovalNotActiveError,
      NotAssignedApproverError, ItemLockedError.
    - ItemOverlayNotApplicableError for Warehouse Supply.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_engines.item_overlay import apply_item_decisions
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent
from procurement_kernel.domain.items import ItemDecision, ItemOverlaySummary, ItemSnapshot
from procurement_kernel.domain.workflow import ApprovalStatus, RequestType
from procurement_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    ApprovalNotActiveError,
    ItemLockedError,
    ItemOverlayNotApplicableError,
    NotAssignedApproverError,
    RequestedItemNotFoundError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.request import RequestedItemModel
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.validation import parse_item_decisions, validate_identifier

logger = get_logger("services.item_overlay")


@dataclass(frozen=True)
class ItemDecisionOutcome:
    approval_id: int
    request_id: int
    updated_items: tuple[ItemSnapshot, ...]
    summary: ItemOverlaySummary
    locked_item_ids: tuple[int, ...]
    estimated_cost: Decimal
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()


class ItemOverlayService(BaseService):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        audit: AuditService,
    ):
        super().__init__(session, clock)
        self._audit = audit

    def decide_items(
        self,
        approval_id: int | str,
        actor_id: int | str,
        items: Iterable[ItemDecision | Mapping[str, object]],
    ) -> ItemDecisionOutcome:
        approval_id = validate_identifier("approval_id", approval_id)
        actor_id = validate_identifier("actor_id", actor_id)
        decisions = parse_item_decisions(items)

        approval = self.lock_approval(approval_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise ApprovalAlreadyDecidedError(approval.id, approval.status)
        if not approval.is_active:
            raise ApprovalNotActiveError(approval.id)
        if approval.approver_id != actor_id:
            raise NotAssignedApproverError(approval.id, actor_id, approval.approver_id)

        request = self.lock_request(approval.request_id)
        if request.type_enum is RequestType.WAREHOUSE_SUPPLY:
            raise ItemOverlayNotApplicableError(request.id, request.request_type)

        with LogContext.bind(request_id=request.id, approval_id=approval.id, actor_id=actor_id):
            rows = {
                row.id: row
                for row in self.session.scalars(
                    select(RequestedItemModel)
                    .where(RequestedItemModel.request_id == request.id)
                    .order_by(RequestedItemModel.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            }
            unknown = tuple(d.item_id for d in decisions if d.item_id not in rows)
            if unknown:
                raise RequestedItemNotFoundError(request.id, unknown)

            snapshots = [row.to_snapshot() for row in rows.values()]
            locked = tuple(
                d.item_id for d in decisions
                if rows[d.item_id].to_snapshot().is_locked_for(actor_id)
            )
            if locked:
                logger.warning(
                    "item_decision_locked",
                    extra={"item_ids": list(locked), "actor_id": actor_id},
                )
                raise ItemLockedError(locked, actor_id)

            result = apply_item_decisions(snapshots, decisions=decisions, actor_id=actor_id)

            now = self.clock.now()
            for snapshot in result.updated:
                row = rows[snapshot.item_id]
                row.quantity = snapshot.quantity
                row.total_cost = snapshot.total_cost
                row.approval_status = snapshot.approval_status.value
                row.approved_by = snapshot.approved_by
                row.approval_comments = snapshot.approval_comments
                row.approved_at = now
            request.estimated_cost = result.estimated_cost
            self.session.flush()

            self._audit.log_request_event(
                request_id=request.id,
                action="Item Decisions Recorded",
                actor_id=actor_id,
                comments=result.summary.as_comment(),
            )
            logger.info(
                "item_decisions_recorded",
                extra={
                    "request_id": request.id,
                    "approval_id": approval.id,
                    "approved": result.summary.approved,
                    "rejected": result.summary.rejected,
                    "pending": result.summary.pending,
                    "quantity_adjusted": result.summary.quantity_adjusted,
                    "estimated_cost": result.estimated_cost,
                },
            )

        return ItemDecisionOutcome(
            approval_id=approval.id,
            request_id=request.id,
            updated_items=result.updated,
            summary=result.summary,
            locked_item_ids=result.locked_item_ids,
            estimated_cost=result.estimated_cost,
        )
