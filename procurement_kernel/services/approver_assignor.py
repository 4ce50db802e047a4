"""
ApproverAssignor -- who fills each approval slot.

Responsibility:
    Creates the approval row for one step of a chain: finds the active
    user who holds the step's role, and when nobody does, records the
    level as auto-approved so the pipeline can move past it.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    ``ApprovalPipelineService.materialize`` and by ``RequestService`` for
    the Maintenance confirmation slot.

Invariants enforced:
    - Global roles (SCM, COO, CMO, CFO, CEO) are assigned without regard
      to department; every other role needs an active user in the target
      department.
    - WarehouseManager targets a department other than the requester's:
      for Non-Stock the first operational department with an active
      WarehouseManager, for Warehouse Supply a department whose type is
      the request's domain.
    - New rows are dormant (Pending, inactive).  Auto-approved and
      self-approved rows are born Approved with ``approved_at`` set.
    - Auto-approval is fail-open and always audited on both trails.

Failure modes:
    - NoDesignatedRequesterError when a Maintenance request's department
      has no active Requester to confirm it.
"""

from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.roles import Role
from procurement_kernel.domain.workflow import ApprovalStatus, Domain, RequestType
from procurement_kernel.exceptions import NoDesignatedRequesterError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.request import PurchaseRequestModel
from procurement_kernel.selectors.directory import UserDirectory
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.base import BaseService

logger = get_logger("services.approver_assignor")


class ApproverAssignor(BaseService):
    """Materialises single approval rows."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        directory: UserDirectory,
        audit: AuditService,
    ):
        super().__init__(session, clock)
        self._directory = directory
        self._audit = audit

    def target_department(self, role: Role, request: PurchaseRequestModel) -> int | None:
        """Department whose users are searched for ``role``."""
        if role is not Role.WAREHOUSE_MANAGER:
            return request.department_id

        request_type = request.type_enum
        if request_type is RequestType.NON_STOCK:
            department_id = self._directory.first_department_with(
                role, Domain.OPERATIONAL.value,
            )
        elif request_type is RequestType.WAREHOUSE_SUPPLY:
            department_id = self._directory.first_department_with(
                role, request.request_domain,
            )
        else:
            department_id = None
        return department_id if department_id is not None else request.department_id

    def assign(self, role: Role, request: PurchaseRequestModel, level: int) -> ApprovalModel:
        """Create the dormant slot for ``role`` at ``level``, or auto-approve it."""
        department_id = self.target_department(role, request)
        approver = self._directory.find_eligible_approver(role, department_id)
        if approver is None:
            return self._auto_approve(role, department_id, request, level)

        approval = ApprovalModel(
            request_id=request.id,
            approver_id=approver.user_id,
            approval_level=level,
            status=ApprovalStatus.PENDING.value,
            is_active=False,
            is_urgent=request.is_urgent,
        )
        self.session.add(approval)
        self.session.flush()
        logger.info(
            "approver_assigned",
            extra={
                "request_id": request.id,
                "approval_id": approval.id,
                "level": level,
                "role": role.value,
                "approver_id": approver.user_id,
                "department_id": department_id,
            },
        )
        return approval

    def assign_self(self, role: Role, request: PurchaseRequestModel, level: int) -> ApprovalModel:
        """The requester already holds ``role``: the level is approved in their name."""
        now = self.clock.now()
        approval = ApprovalModel(
            request_id=request.id,
            approver_id=request.requester_id,
            approval_level=level,
            status=ApprovalStatus.APPROVED.value,
            is_active=False,
            is_urgent=request.is_urgent,
            self_approved=True,
            comments=f"Self-approved: requester holds {role.value}",
            approved_at=now,
        )
        self.session.add(approval)
        self.session.flush()
        self._audit.log_approval_event(
            approval_id=approval.id,
            request_id=request.id,
            approver_id=request.requester_id,
            action="Self-Approved",
            comments=approval.comments,
        )
        logger.info(
            "approval_self_approved",
            extra={
                "request_id": request.id,
                "approval_id": approval.id,
                "level": level,
                "role": role.value,
            },
        )
        return approval

    def assign_confirmation(self, request: PurchaseRequestModel) -> ApprovalModel:
        """Level 1 of a Maintenance request: the department's designated Requester."""
        requester = self._directory.find_eligible_approver(
            Role.REQUESTER, request.department_id,
        )
        if requester is None:
            logger.warning(
                "designated_requester_missing",
                extra={"request_id": request.id, "department_id": request.department_id},
            )
            raise NoDesignatedRequesterError(request.department_id)

        approval = ApprovalModel(
            request_id=request.id,
            approver_id=requester.user_id,
            approval_level=1,
            status=ApprovalStatus.PENDING.value,
            is_active=False,
            is_urgent=request.is_urgent,
        )
        self.session.add(approval)
        self.session.flush()
        logger.info(
            "confirmation_slot_assigned",
            extra={
                "request_id": request.id,
                "approval_id": approval.id,
                "approver_id": requester.user_id,
            },
        )
        return approval

    def _auto_approve(
        self,
        role: Role,
        department_id: int | None,
        request: PurchaseRequestModel,
        level: int,
    ) -> ApprovalModel:
        reason = (
            f"No active {role.value} available"
            + (f" in department {department_id}" if department_id is not None else "")
        )
        approval = ApprovalModel(
            request_id=request.id,
            approver_id=None,
            approval_level=level,
            status=ApprovalStatus.APPROVED.value,
            is_active=False,
            is_urgent=request.is_urgent,
            comments=reason,
            approved_at=self.clock.now(),
        )
        self.session.add(approval)
        self.session.flush()

        self._audit.log_approval_event(
            approval_id=approval.id,
            request_id=request.id,
            approver_id=None,
            action="Auto-Approved",
            comments=reason,
        )
        self._audit.log_request_event(
            request_id=request.id,
            action="Approval Auto-Approved",
            actor_id=None,
            comments=f"Level {level} ({role.value}): {reason}",
        )
        logger.warning(
            "approval_auto_approved",
            extra={
                "request_id": request.id,
                "approval_id": approval.id,
                "level": level,
                "role": role.value,
                "department_id": department_id,
            },
        )
        return approval
