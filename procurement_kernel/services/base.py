"""
BaseService -- abstract base for the workflow's write services.

Responsibility:
    Holds the caller's ``Session`` and ``Clock`` and provides the row
    locking helpers every decision path needs.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back.  The facade (or the test harness) owns the boundary.
    - Rows that a decision reads and then writes are locked with
      SELECT ... FOR UPDATE before they are read.  SQLite ignores the
      clause; its writer lock serialises the transaction instead.
"""

from abc import ABC

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import ApprovalNotFoundError, RequestNotFoundError
from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.request import PurchaseRequestModel


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def lock_approval(self, approval_id: int) -> ApprovalModel:
        approval = self.session.scalars(
            select(ApprovalModel)
            .where(ApprovalModel.id == approval_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if approval is None:
            raise ApprovalNotFoundError(approval_id)
        return approval

    def lock_request(self, request_id: int) -> PurchaseRequestModel:
        request = self.session.scalars(
            select(PurchaseRequestModel)
            .where(PurchaseRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if request is None:
            raise RequestNotFoundError(request_id)
        return request
