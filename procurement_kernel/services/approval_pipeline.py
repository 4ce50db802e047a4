"""
ApprovalPipelineService -- the imperative shell around the pipeline engine.

Responsibility:
    Loads a request's approval slots into a ``PipelineState``, runs the
    pure transitions from ``procurement_engines.pipeline`` against it, and
    writes the result back: slot columns, request status, audit rows.
    Also materialises chain steps into approval rows and applies
    privileged estimated-cost updates.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the facade for
    decisions, and by ``RequestService`` / ``ReassignmentSweeper`` for
    materialisation and activation.

Decision sequence (``decide``):
    1. Validate the id and status (no lock taken on bad input).
    2. Lock the approval row, then its request row (FOR UPDATE).
    3. Authorization, role-consistency and ordering checks via
       ``check_decision``; HOD decisions must come from the request's
       department.
    4. Optional cost update (privileged) and urgency flag.
    5. Record the decision and its two log rows.
    6. On Approved (``complete_approval``, shared with the sweeper):
       confirm a Maintenance request if this was its first
       step, re-resolve the chain at the current cost and insert any
       missing higher levels, then advance.  On Rejected: finalise.
    7. Recompute the verdict from the persisted slots and compare it with
       the stepwise result.

Invariants enforced:
    - At most one slot is active while the request is Submitted (unless
      the sweeper was configured to open the next level on reassignment).
    - Request status is Rejected iff a slot is Rejected, Approved iff every
      slot is Approved and the chain has no unmaterialised levels.
    - Approval rows are never deleted; only new, higher levels are added.

Failure modes:
    - ValidationError / AuthorizationError / SequencingError: raised before
      any write.
    - NoRouteChainError after the checks pass: the caller's transaction
      must be rolled back; nothing partial is committed.
    - PipelineInconsistencyError if the stepwise verdict and the
      recomputed verdict disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from procurement_engines.pipeline import (
    activate_first_pending,
    advance_pipeline,
    check_decision,
    reconcile_status,
    record_decision,
)
from procurement_engines.routing import missing_steps
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent
from procurement_kernel.domain.money import round_money
from procurement_kernel.domain.roles import Role, capabilities
from procurement_kernel.domain.routing import RouteChain
from procurement_kernel.domain.workflow import (
    ApprovalStatus,
    Decision,
    DecisionCheck,
    DecisionFailure,
    PipelineState,
    PipelineStatus,
    PipelineTransition,
    RequestStatus,
    RequestType,
)
from procurement_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    ApprovalNotActiveError,
    ApprovalNotFoundError,
    CostUpdateNotPermittedError,
    DepartmentMismatchError,
    NotAssignedApproverError,
    PipelineInconsistencyError,
    PreviousLevelPendingError,
    RequestNotFoundError,
    RoleMismatchError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.request import PurchaseRequestModel, RequestedItemModel
from procurement_kernel.selectors.directory import UserDirectory, UserInfo
from procurement_kernel.services.approver_assignor import ApproverAssignor
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.route_resolver import RouteResolver
from procurement_kernel.services.validation import (
    parse_decision_status,
    parse_estimated_cost,
    validate_identifier,
)

logger = get_logger("services.approval_pipeline")


@dataclass(frozen=True)
class DecisionOutcome:
    """Result of one top-level decision."""

    approval_id: int
    request_id: int
    decision: ApprovalStatus
    request_status: RequestStatus
    activated_approval_ids: tuple[int, ...]
    finalized: bool
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()


@dataclass(frozen=True)
class CostUpdateOutcome:
    request_id: int
    previous_cost: Decimal
    estimated_cost: Decimal
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()


def _request_status_for(verdict: PipelineStatus) -> RequestStatus:
    if verdict is PipelineStatus.PENDING:
        return RequestStatus.SUBMITTED
    return RequestStatus(verdict.value)


class ApprovalPipelineService(BaseService):
    """
    Drives one request's approval slots.

    Contract:
        Every method flushes inside the caller's transaction.  ``decide``
        either completes every step or raises; the caller rolls back on
        any exception.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        audit: AuditService,
        directory: UserDirectory,
        resolver: RouteResolver,
        assignor: ApproverAssignor,
    ):
        super().__init__(session, clock)
        self._audit = audit
        self._directory = directory
        self._resolver = resolver
        self._assignor = assignor

    # -- state -----------------------------------------------------------

    def approvals_for(self, request_id: int) -> list[ApprovalModel]:
        return list(
            self.session.scalars(
                select(ApprovalModel)
                .where(ApprovalModel.request_id == request_id)
                .order_by(ApprovalModel.approval_level, ApprovalModel.id)
            )
        )

    def load_state(self, request_id: int) -> PipelineState:
        request = self.session.get(PurchaseRequestModel, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return PipelineState(
            request_id=request.id,
            request_type=request.type_enum,
            requester_id=request.requester_id,
            slots=tuple(a.to_slot() for a in self.approvals_for(request.id)),
        )

    # -- materialisation and activation ----------------------------------

    def materialize(
        self,
        request: PurchaseRequestModel,
        chain: RouteChain,
        *,
        above_level: int = 0,
        requester_role: Role | None = None,
    ) -> tuple[ApprovalModel, ...]:
        """
        Insert a row for every chain step not yet present above ``above_level``.

        A ``Requester`` step is signed off under the requester's own id.
        When ``requester_role`` is given and equals the role of the chain's
        first step, that step is self-approved as well; later steps never
        are.
        """
        existing = {a.approval_level for a in self.approvals_for(request.id)}
        first_step = chain.steps[0] if chain.steps else None
        created: list[ApprovalModel] = []
        for step in missing_steps(chain, existing, above_level):
            if step.role is Role.REQUESTER or (
                requester_role is not None
                and step == first_step
                and step.role is requester_role
            ):
                created.append(self._assignor.assign_self(step.role, request, step.level))
            else:
                created.append(self._assignor.assign(step.role, request, step.level))

        if created:
            logger.info(
                "approval_levels_materialized",
                extra={
                    "request_id": request.id,
                    "source": chain.source.value,
                    "levels": [a.approval_level for a in created],
                    "above_level": above_level,
                },
            )
        return tuple(created)

    def activate(
        self,
        request: PurchaseRequestModel,
        *,
        actor_id: int | None = None,
    ) -> PipelineTransition:
        """Open the lowest pending level (or finalise if nothing is pending)."""
        transition = activate_first_pending(self.load_state(request.id), actor_id=actor_id)
        self.apply_transition(request, transition, actor_id=actor_id)
        return transition

    def apply_transition(
        self,
        request: PurchaseRequestModel,
        transition: PipelineTransition,
        *,
        actor_id: int | None = None,
        comments: str | None = None,
    ) -> None:
        """Write a pure transition back: slot columns, audit rows, request status."""
        by_id = {a.id: a for a in self.approvals_for(request.id)}
        if transition.decided is not None:
            approval = by_id[transition.decided.approval_id]
            approval.apply_slot(transition.decided)
            approval.approved_at = self.clock.now()
            if comments is not None:
                approval.comments = comments
        for slot in transition.activated:
            by_id[slot.approval_id].apply_slot(slot)
        self.session.flush()

        self._audit.record(transition)
        if transition.finalized:
            self._finalize(request, transition.request_status, actor_id)

    def _finalize(
        self,
        request: PurchaseRequestModel,
        verdict: PipelineStatus,
        actor_id: int | None,
    ) -> None:
        status = _request_status_for(verdict)
        request.status = status.value
        if status is RequestStatus.APPROVED:
            self._auto_approve_items(request, actor_id)
        self.session.flush()
        logger.info(
            "request_finalized",
            extra={"request_id": request.id, "status": status.value},
        )

    def _auto_approve_items(self, request: PurchaseRequestModel, actor_id: int | None) -> int:
        """Items nobody decided on are approved with the request."""
        undecided = self.session.scalars(
            select(RequestedItemModel).where(
                RequestedItemModel.request_id == request.id,
                or_(
                    RequestedItemModel.approval_status.is_(None),
                    RequestedItemModel.approval_status == ApprovalStatus.PENDING.value,
                ),
            )
        ).all()
        now = self.clock.now()
        for item in undecided:
            item.approval_status = ApprovalStatus.APPROVED.value
            item.approved_at = now
        self.session.flush()
        count = len(undecided)
        if count:
            self._audit.log_request_event(
                request_id=request.id,
                action="Items Auto-Approved",
                actor_id=actor_id,
                comments=f"{count} item(s) without an explicit decision approved with the request",
            )
        return count

    # -- decisions -------------------------------------------------------

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
        approval_id = validate_identifier("approval_id", approval_id)
        actor_id = validate_identifier("actor_id", actor_id)
        decision_status = parse_decision_status(status)

        approval = self.lock_approval(approval_id)
        request = self.lock_request(approval.request_id)
        with LogContext.bind(
            request_id=request.id, approval_id=approval_id, actor_id=actor_id,
        ):
            return self._decide_locked(
                approval,
                request,
                Decision(
                    approval_id=approval_id,
                    actor_id=actor_id,
                    status=decision_status,
                    comments=comments,
                ),
                is_urgent=is_urgent,
                estimated_cost=estimated_cost,
            )

    def _decide_locked(
        self,
        approval: ApprovalModel,
        request: PurchaseRequestModel,
        decision: Decision,
        *,
        is_urgent: bool,
        estimated_cost: object,
    ) -> DecisionOutcome:
        actor = self._directory.get(decision.actor_id)
        state = self.load_state(request.id)
        expected_role = self._expected_role(request, approval)
        check = check_decision(
            state,
            decision,
            actor_role=actor.role if actor is not None else None,
            expected_role=expected_role,
        )
        if not check.allowed:
            raise self._refusal(check, approval, decision.actor_id, actor, expected_role)
        self._check_department(actor, request)

        if estimated_cost is not None:
            self.apply_cost_update(request, actor, estimated_cost)
        if is_urgent:
            approval.is_urgent = True
            request.is_urgent = True

        level = approval.approval_level
        recorded = record_decision(state, decision=decision)
        self.apply_transition(
            request, recorded, actor_id=decision.actor_id, comments=decision.comments,
        )

        if decision.status is ApprovalStatus.APPROVED:
            advanced = self.complete_approval(
                request, state, level=level, actor_id=decision.actor_id,
            )
        else:
            advanced = advance_pipeline(
                recorded.state, after_level=level, actor_id=decision.actor_id,
            )
            self.apply_transition(request, advanced, actor_id=decision.actor_id)
        transition = recorded.then(advanced)
        self._verify_consistency(request, transition)

        logger.info(
            "approval_decision_recorded",
            extra={
                "request_id": request.id,
                "approval_id": approval.id,
                "level": level,
                "decision": decision.status.value,
                "request_status": request.status,
                "activated": [s.approval_id for s in transition.activated],
            },
        )
        return DecisionOutcome(
            approval_id=approval.id,
            request_id=request.id,
            decision=decision.status,
            request_status=RequestStatus(request.status),
            activated_approval_ids=tuple(s.approval_id for s in transition.activated),
            finalized=transition.finalized,
            notifications=transition.notifications,
        )

    def complete_approval(
        self,
        request: PurchaseRequestModel,
        before: PipelineState,
        *,
        level: int,
        actor_id: int | None,
    ) -> PipelineTransition:
        """
        Follow-up of a slot that has just been Approved, decided or auto-approved.

        ``before`` is the pipeline as it was before the approval.  The first
        approval of a Maintenance request confirms it; a confirming approver
        becomes the requester, an auto-approved confirmation keeps the
        original one.  The chain is then re-resolved at the current cost,
        missing higher levels are inserted, and the pipeline advances.
        """
        if self._is_confirmation(request, before, level):
            if actor_id is not None:
                self._confirm_maintenance(request, actor_id)
            else:
                logger.warning(
                    "maintenance_confirmation_auto_approved",
                    extra={"request_id": request.id, "requester_id": request.requester_id},
                )
        chain = self._resolver.resolve(
            request.type_enum, request.domain_enum, request.estimated_cost,
        )
        self.materialize(request, chain, above_level=level)

        advanced = advance_pipeline(
            self.load_state(request.id), after_level=level, actor_id=actor_id,
        )
        self.apply_transition(request, advanced, actor_id=actor_id)
        return advanced

    def _expected_role(
        self,
        request: PurchaseRequestModel,
        approval: ApprovalModel,
    ) -> Role | None:
        """Role the dynamic routes assign to the approval's level, if any."""
        if approval.self_approved:
            return None
        chain = self._resolver.resolve_dynamic(
            request.type_enum, request.domain_enum, request.estimated_cost,
        )
        return chain.role_at(approval.approval_level) if chain is not None else None

    def _refusal(
        self,
        check: DecisionCheck,
        approval: ApprovalModel,
        actor_id: int,
        actor: UserInfo | None,
        expected_role: Role | None,
    ) -> Exception:
        logger.warning(
            "approval_decision_refused",
            extra={
                "approval_id": approval.id,
                "actor_id": actor_id,
                "failure": check.failure.value,
                "reason": check.reason,
            },
        )
        failure = check.failure
        if failure is DecisionFailure.ALREADY_DECIDED:
            return ApprovalAlreadyDecidedError(approval.id, approval.status)
        if failure is DecisionFailure.NOT_ACTIVE:
            return ApprovalNotActiveError(approval.id)
        if failure is DecisionFailure.WRONG_APPROVER:
            return NotAssignedApproverError(approval.id, actor_id, approval.approver_id)
        if failure is DecisionFailure.ROLE_MISMATCH:
            return RoleMismatchError(
                approval.id,
                expected_role.value if expected_role is not None else "unknown",
                actor.role.value if actor is not None else "unknown",
            )
        if failure is DecisionFailure.PREVIOUS_LEVEL_PENDING:
            return PreviousLevelPendingError(
                approval.id, approval.approval_level, check.pending_levels,
            )
        return ApprovalNotFoundError(approval.id)

    def _check_department(self, actor: UserInfo | None, request: PurchaseRequestModel) -> None:
        if actor is None or actor.role is not Role.HOD:
            return
        if actor.department_id != request.department_id:
            logger.warning(
                "approval_department_mismatch",
                extra={
                    "actor_id": actor.user_id,
                    "actor_department_id": actor.department_id,
                    "request_department_id": request.department_id,
                },
            )
            raise DepartmentMismatchError(
                actor.user_id, actor.department_id, request.department_id,
            )

    @staticmethod
    def _is_confirmation(
        request: PurchaseRequestModel,
        state: PipelineState,
        level: int,
    ) -> bool:
        """First approval of a Maintenance request, before its chain exists."""
        return (
            request.type_enum is RequestType.MAINTENANCE
            and level == 1
            and not any(s.level > 1 for s in state.slots)
        )

    def _confirm_maintenance(self, request: PurchaseRequestModel, actor_id: int) -> None:
        previous = request.requester_id
        request.requester_id = actor_id
        self.session.flush()
        self._audit.log_request_event(
            request_id=request.id,
            action="Requester Reassigned",
            actor_id=actor_id,
            comments=f"Maintenance request confirmed; requester changed from user {previous} to user {actor_id}",
        )
        logger.info(
            "maintenance_request_confirmed",
            extra={
                "request_id": request.id,
                "previous_requester_id": previous,
                "requester_id": actor_id,
            },
        )

    def _verify_consistency(
        self,
        request: PurchaseRequestModel,
        transition: PipelineTransition,
    ) -> None:
        recomputed = reconcile_status(self.load_state(request.id).slots)
        stepwise = transition.request_status
        persisted = RequestStatus(request.status)
        if recomputed is not stepwise or persisted is not _request_status_for(recomputed):
            logger.critical(
                "pipeline_inconsistency_detected",
                extra={
                    "request_id": request.id,
                    "stepwise": stepwise.value,
                    "recomputed": recomputed.value,
                    "request_status": persisted.value,
                },
            )
            raise PipelineInconsistencyError(request.id, stepwise.value, recomputed.value)

    # -- cost ------------------------------------------------------------

    def apply_cost_update(
        self,
        request: PurchaseRequestModel,
        actor: UserInfo | None,
        value: object,
    ) -> CostUpdateOutcome:
        """
        Overwrite the request's estimated cost.

        Raises:
            CostUpdateNotPermittedError: Actor's role lacks the capability.
            InvalidEstimatedCostError: Value is not a positive amount.
        """
        if actor is None or not capabilities(actor.role).can_update_cost:
            raise CostUpdateNotPermittedError(
                actor.user_id if actor is not None else None,
                actor.role.value if actor is not None else "unknown",
            )
        amount = parse_estimated_cost(value)
        previous = round_money(request.estimated_cost or Decimal("0"))
        request.estimated_cost = amount
        self.session.flush()
        self._audit.log_request_event(
            request_id=request.id,
            action="Total Cost Updated",
            actor_id=actor.user_id,
            comments=f"Estimated cost changed from {previous} to {amount}",
        )
        logger.info(
            "estimated_cost_updated",
            extra={
                "request_id": request.id,
                "previous_cost": previous,
                "estimated_cost": amount,
            },
        )
        return CostUpdateOutcome(
            request_id=request.id,
            previous_cost=previous,
            estimated_cost=amount,
        )
