"""
ReassignmentSweeper -- repairs pipelines stuck on inactive approvers.

Responsibility:
    Finds every active, Pending approval whose approver has been
    deactivated.  Each one is handed to an active user with the same role
    (and, for department roles, the same department); when nobody
    qualifies, the level is auto-approved and completed like a decided
    approval: the chain is re-resolved at the current cost before the
    pipeline advances.

Architecture position:
    Kernel > Services -- imperative shell, run by the maintenance CLI or a
    scheduler through the facade.

Invariants enforced:
    - Each row is repaired inside its own SAVEPOINT, after locking the
      approval and its request.  A failing row is rolled back and
      collected; the sweep continues with the next one.
    - Repairs that activate a further level whose approver is also
      inactive are picked up in the same sweep, so a second sweep with no
      intervening change finds nothing to do.
    - A reassigned slot keeps waiting for a decision unless the sweeper
      was built with ``open_next_level=True``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_engines.pipeline import reassign_slot, record_auto_approval
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent
from procurement_kernel.domain.workflow import ApprovalStatus
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.organization import UserModel
from procurement_kernel.selectors.directory import UserDirectory
from procurement_kernel.services.approval_pipeline import ApprovalPipelineService
from procurement_kernel.services.base import BaseService

logger = get_logger("services.reassignment_sweeper")


@dataclass(frozen=True)
class SweepEntry:
    approval_id: int
    request_id: int
    level: int
    previous_approver_id: int | None
    new_approver_id: int | None


@dataclass(frozen=True)
class SweepFailure:
    approval_id: int
    error: str
    code: str


@dataclass(frozen=True)
class SweepResult:
    reassigned: tuple[SweepEntry, ...] = ()
    auto_approved: tuple[SweepEntry, ...] = ()
    failed: tuple[SweepFailure, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()

    @property
    def total(self) -> int:
        return len(self.reassigned) + len(self.auto_approved) + len(self.failed)


class ReassignmentSweeper(BaseService):
    """
    Idempotent repair pass over stale approvals.

    Contract:
        ``sweep`` flushes inside the caller's transaction.  Failed rows
        leave no partial state behind; the caller still commits the rows
        that succeeded.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        directory: UserDirectory,
        pipeline: ApprovalPipelineService,
        open_next_level: bool = False,
    ):
        super().__init__(session, clock)
        self._directory = directory
        self._pipeline = pipeline
        self._open_next_level = open_next_level

    def stale_approval_ids(self, exclude: set[int] | frozenset[int] = frozenset()) -> list[int]:
        stmt = (
            select(ApprovalModel.id)
            .join(UserModel, UserModel.id == ApprovalModel.approver_id)
            .where(
                ApprovalModel.status == ApprovalStatus.PENDING.value,
                ApprovalModel.is_active.is_(True),
                UserModel.is_active.is_(False),
            )
            .order_by(ApprovalModel.id)
        )
        return [approval_id for approval_id in self.session.scalars(stmt) if approval_id not in exclude]

    def sweep(self) -> SweepResult:
        reassigned: list[SweepEntry] = []
        auto_approved: list[SweepEntry] = []
        failed: list[SweepFailure] = []
        notifications: list[NotificationIntent] = []
        visited: set[int] = set()

        batch = self.stale_approval_ids()
        while batch:
            for approval_id in batch:
                visited.add(approval_id)
                try:
                    with self.session.begin_nested():
                        repaired = self._repair(approval_id)
                except Exception as exc:
                    logger.warning(
                        "sweep_row_failed",
                        extra={"approval_id": approval_id, "error": str(exc)},
                        exc_info=True,
                    )
                    failed.append(
                        SweepFailure(
                            approval_id=approval_id,
                            error=str(exc),
                            code=getattr(exc, "code", type(exc).__name__),
                        )
                    )
                    continue
                if repaired is None:
                    continue
                entry, intents = repaired
                notifications.extend(intents)
                if entry.new_approver_id is None:
                    auto_approved.append(entry)
                else:
                    reassigned.append(entry)
            batch = self.stale_approval_ids(exclude=visited)

        result = SweepResult(
            reassigned=tuple(reassigned),
            auto_approved=tuple(auto_approved),
            failed=tuple(failed),
            notifications=tuple(notifications),
        )
        logger.info(
            "reassignment_sweep_completed",
            extra={
                "reassigned": len(result.reassigned),
                "auto_approved": len(result.auto_approved),
                "failed": len(result.failed),
            },
        )
        return result

    def _repair(
        self,
        approval_id: int,
    ) -> tuple[SweepEntry, tuple[NotificationIntent, ...]] | None:
        approval = self.lock_approval(approval_id)
        if (
            approval.status != ApprovalStatus.PENDING.value
            or not approval.is_active
            or approval.approver_id is None
            or self._directory.is_active(approval.approver_id)
        ):
            # Repaired concurrently since the scan.
            return None

        request = self.lock_request(approval.request_id)
        previous = self._directory.require(approval.approver_id)
        with LogContext.bind(request_id=request.id, approval_id=approval.id):
            replacement = self._directory.find_eligible_approver(
                previous.role, previous.department_id,
            )
            state = self._pipeline.load_state(request.id)
            if replacement is not None:
                transition = reassign_slot(
                    state,
                    approval_id=approval.id,
                    new_approver_id=replacement.user_id,
                    previous_approver_id=previous.user_id,
                    open_next_level=self._open_next_level,
                )
                approval.approver_id = replacement.user_id
                self._pipeline.apply_transition(request, transition)
                logger.info(
                    "approval_reassigned",
                    extra={
                        "previous_approver_id": previous.user_id,
                        "new_approver_id": replacement.user_id,
                        "level": approval.approval_level,
                    },
                )
            else:
                department = (
                    f" in department {previous.department_id}"
                    if previous.department_id is not None
                    else ""
                )
                reason = f"No active {previous.role.value}{department}"
                recorded = record_auto_approval(state, approval_id=approval.id, reason=reason)
                self._pipeline.apply_transition(request, recorded, comments=reason)
                advanced = self._pipeline.complete_approval(
                    request, state, level=approval.approval_level, actor_id=None,
                )
                transition = recorded.then(advanced)
                logger.warning(
                    "approval_auto_approved",
                    extra={
                        "previous_approver_id": previous.user_id,
                        "level": approval.approval_level,
                        "reason": reason,
                    },
                )

        entry = SweepEntry(
            approval_id=approval.id,
            request_id=request.id,
            level=approval.approval_level,
            previous_approver_id=previous.user_id,
            new_approver_id=replacement.user_id if replacement is not None else None,
        )
        return entry, transition.notifications
