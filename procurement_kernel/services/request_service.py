"""
RequestService -- submission of purchase requests and standalone cost edits.

Responsibility:
    Validates a new request, stores it with its items, builds its approval
    chain and opens the first level, all in the caller's transaction.
    Also warns procurement staff when the same items were already
    requested by the department this month.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates routing to
    ``RouteResolver``, row creation to ``ApprovalPipelineService`` /
    ``ApproverAssignor`` and activation to the pipeline engine.

Invariants enforced:
    - A request and its whole approval set are created atomically.
    - Stock requests come from warehouse staff, Maintenance requests from
      technicians.
    - The estimated cost at creation is the sum of the item line totals.
    - The route domain is fixed at creation.

Failure modes:
    - InvalidRequestError / RequestTypeNotPermittedError before any write.
    - NoRouteChainError / NoDesignatedRequesterError: the caller must roll
      back; no request row survives.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement_engines.routing import resolve_route_domain
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DispatchReport, NotificationIntent, request_link
from procurement_kernel.domain.money import line_total, round_money, to_decimal
from procurement_kernel.domain.roles import PROCUREMENT_ALERT_ROLES, Role, capabilities
from procurement_kernel.domain.routing import RouteSource
from procurement_kernel.domain.workflow import (
    Domain,
    RequestStatus,
    RequestType,
)
from procurement_kernel.exceptions import (
    InvalidRequestError,
    RequestTypeNotPermittedError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.request import PurchaseRequestModel, RequestedItemModel
from procurement_kernel.selectors.directory import UserDirectory
from procurement_kernel.selectors.routes import RouteSelector
from procurement_kernel.services.approval_pipeline import (
    ApprovalPipelineService,
    CostUpdateOutcome,
)
from procurement_kernel.services.approver_assignor import ApproverAssignor
from procurement_kernel.services.audit_service import AuditService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.route_resolver import RouteResolver
from procurement_kernel.services.validation import validate_identifier

logger = get_logger("services.request")


@dataclass(frozen=True)
class NewRequestItem:
    """One line of a request being submitted."""

    item_name: str
    quantity: int
    unit_cost: Decimal | None = None


@dataclass(frozen=True)
class RequestCreated:
    request_id: int
    request_type: RequestType
    domain: Domain
    estimated_cost: Decimal
    route_source: RouteSource
    approval_ids: tuple[int, ...]
    request_status: RequestStatus
    duplicate_request_ids: tuple[int, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()
    dispatch: DispatchReport = DispatchReport()


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _parse_item(index: int, raw: NewRequestItem | Mapping[str, object]) -> NewRequestItem:
    if isinstance(raw, NewRequestItem):
        name, quantity, unit_cost = raw.item_name, raw.quantity, raw.unit_cost
    else:
        name, quantity, unit_cost = raw.get("item_name"), raw.get("quantity"), raw.get("unit_cost")

    if not isinstance(name, str) or not name.strip():
        raise InvalidRequestError(f"item {index}: item_name is required")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequestError(f"item {index}: quantity must be a positive integer")
    cost = None
    if unit_cost is not None:
        cost = to_decimal(unit_cost)
        if cost is None or not cost.is_finite() or cost < 0:
            raise InvalidRequestError(f"item {index}: unit_cost must be a non-negative amount")
    return NewRequestItem(item_name=name.strip(), quantity=quantity, unit_cost=cost)


class RequestService(BaseService):
    """
    Creates requests and edits their estimated cost.

    Contract:
        ``create_request`` returns a ``RequestCreated`` whose
        ``notifications`` must be dispatched only after the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        audit: AuditService,
        directory: UserDirectory,
        routes: RouteSelector,
        resolver: RouteResolver,
        assignor: ApproverAssignor,
        pipeline: ApprovalPipelineService,
    ):
        super().__init__(session, clock)
        self._audit = audit
        self._directory = directory
        self._routes = routes
        self._resolver = resolver
        self._assignor = assignor
        self._pipeline = pipeline

    def create_request(
        self,
        requester_id: int | str,
        request_type: str | RequestType,
        items: Iterable[NewRequestItem | Mapping[str, object]],
        *,
        department_id: int | str | None = None,
        justification: str | None = None,
        supply_domain: str | None = None,
        is_urgent: bool = False,
    ) -> RequestCreated:
        requester_id = validate_identifier("requester_id", requester_id)
        rtype = RequestType.parse(request_type)
        lines = tuple(_parse_item(i, raw) for i, raw in enumerate(items, start=1))
        if not lines:
            raise InvalidRequestError("at least one item is required")

        requester = self._directory.require(requester_id)
        if not requester.is_active:
            raise InvalidRequestError(f"requester {requester_id} is inactive")
        self._check_type_permission(rtype, requester.role)

        if department_id is None:
            department_id = requester.department_id
        if department_id is None:
            raise InvalidRequestError("department_id is required")
        department_id = validate_identifier("department_id", department_id)
        department_type = self._routes.lookup_department_type(department_id)
        domain = resolve_route_domain(rtype, department_type, supply_domain)

        estimated = round_money(sum(
            (line_total(line.quantity, line.unit_cost) or Decimal("0") for line in lines),
            Decimal("0"),
        ))

        now = self.clock.now()
        request = PurchaseRequestModel(
            request_type=rtype.value,
            department_id=department_id,
            request_domain=domain.value,
            requester_id=requester_id,
            justification=justification,
            estimated_cost=estimated,
            status=RequestStatus.SUBMITTED.value,
            is_urgent=bool(is_urgent),
            created_at=now,
            updated_at=now,
        )
        self.session.add(request)
        self.session.flush()
        for line in lines:
            self.session.add(
                RequestedItemModel(
                    request_id=request.id,
                    item_name=line.item_name,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    total_cost=line_total(line.quantity, line.unit_cost),
                    created_at=now,
                    updated_at=now,
                )
            )
        self.session.flush()

        with LogContext.bind(request_id=request.id, actor_id=requester_id):
            self._audit.log_request_event(
                request_id=request.id,
                action="Created",
                actor_id=requester_id,
                comments=justification,
            )

            chain = self._resolver.resolve(rtype, domain, estimated, at_creation=True)
            if chain.source is RouteSource.SKIPPED:
                self._assignor.assign_confirmation(request)
            else:
                self._pipeline.materialize(request, chain, requester_role=requester.role)
            transition = self._pipeline.activate(request, actor_id=requester_id)

            duplicates, warnings = self._duplicate_warnings(request, lines, now)
            approvals = self._pipeline.approvals_for(request.id)
            logger.info(
                "request_created",
                extra={
                    "request_id": request.id,
                    "request_type": rtype.value,
                    "domain": domain.value,
                    "estimated_cost": estimated,
                    "route_source": chain.source.value,
                    "levels": [a.approval_level for a in approvals],
                    "request_status": request.status,
                },
            )

        return RequestCreated(
            request_id=request.id,
            request_type=rtype,
            domain=domain,
            estimated_cost=estimated,
            route_source=chain.source,
            approval_ids=tuple(a.id for a in approvals),
            request_status=RequestStatus(request.status),
            duplicate_request_ids=duplicates,
            notifications=transition.notifications + warnings,
        )

    def update_estimated_cost(
        self,
        request_id: int | str,
        actor_id: int | str,
        estimated_cost: object,
    ) -> CostUpdateOutcome:
        """Privileged overwrite of a request's estimated cost."""
        request_id = validate_identifier("request_id", request_id)
        actor_id = validate_identifier("actor_id", actor_id)
        actor = self._directory.require(actor_id)
        request = self.lock_request(request_id)
        with LogContext.bind(request_id=request_id, actor_id=actor_id):
            return self._pipeline.apply_cost_update(request, actor, estimated_cost)

    @staticmethod
    def _check_type_permission(request_type: RequestType, role: Role) -> None:
        caps = capabilities(role)
        if request_type is RequestType.STOCK and not caps.can_create_stock:
            raise RequestTypeNotPermittedError(request_type.value, role.value)
        if request_type is RequestType.MAINTENANCE and not caps.can_create_maintenance:
            raise RequestTypeNotPermittedError(request_type.value, role.value)

    def _duplicate_warnings(
        self,
        request: PurchaseRequestModel,
        lines: tuple[NewRequestItem, ...],
        now: datetime,
    ) -> tuple[tuple[int, ...], tuple[NotificationIntent, ...]]:
        """Other requests of the department this month naming the same items."""
        names = sorted({line.item_name.casefold() for line in lines})
        stmt = (
            select(RequestedItemModel.request_id, RequestedItemModel.item_name)
            .join(PurchaseRequestModel, PurchaseRequestModel.id == RequestedItemModel.request_id)
            .where(
                PurchaseRequestModel.department_id == request.department_id,
                PurchaseRequestModel.request_type == request.request_type,
                PurchaseRequestModel.id != request.id,
                PurchaseRequestModel.created_at >= _month_start(now),
                func.lower(RequestedItemModel.item_name).in_(names),
            )
            .order_by(RequestedItemModel.request_id)
        )
        rows = self.session.execute(stmt).all()
        if not rows:
            return (), ()

        request_ids = tuple(sorted({row.request_id for row in rows}))
        item_names = sorted({row.item_name for row in rows})
        recipients = self._directory.active_users_with_roles(PROCUREMENT_ALERT_ROLES)
        logger.warning(
            "duplicate_request_detected",
            extra={
                "request_id": request.id,
                "department_id": request.department_id,
                "duplicate_request_ids": list(request_ids),
                "items": item_names,
            },
        )
        message = (
            f"Request #{request.id} repeats items already requested this month "
            f"by the same department ({', '.join(item_names)}; "
            f"see request(s) {', '.join(f'#{rid}' for rid in request_ids)})."
        )
        return request_ids, tuple(
            NotificationIntent(
                user_id=user.user_id,
                title="Possible Duplicate Request",
                message=message,
                link=request_link(request.id),
                metadata={
                    "request_id": request.id,
                    "duplicate_request_ids": list(request_ids),
                },
            )
            for user in recipients
        )
