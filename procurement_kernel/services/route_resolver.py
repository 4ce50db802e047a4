"""
RouteResolver -- which roles must approve a request, in what order.

Responsibility:
    Turns (request type, domain, amount) into a ``RouteChain``.  Dynamic
    route rows from the database take precedence; when none match, the
    static table shipped with the workflow configuration is consulted.

Architecture position:
    Kernel > Services.  Read-only: reads route rows through
    ``RouteSelector`` and delegates band selection to
    ``procurement_engines.routing``.

Invariants enforced:
    - Amounts are normalised before matching (invalid or negative -> 0,
      fractions truncated).
    - Maintenance requests skip routing at creation; their chain is
      resolved once the department's Requester confirms them.
    - A dynamic chain never repeats a level or a role.

Failure modes:
    - NoRouteChainError when neither source yields a chain.
    - UnknownRoleError when a dynamic row names a role outside ``Role``.
"""

from decimal import Decimal

from procurement_engines.routing import (
    normalize_amount,
    select_route_steps,
    select_static_chain,
)
from procurement_kernel.domain.routing import RouteChain, RouteSource, StaticRouteTable
from procurement_kernel.domain.workflow import Domain, RequestType
from procurement_kernel.exceptions import NoRouteChainError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.selectors.routes import RouteSelector

logger = get_logger("services.route_resolver")


class RouteResolver:
    """
    Resolves approval chains from dynamic routes, then the static table.

    Contract:
        ``resolve`` always returns a non-empty chain, or a SKIPPED chain for
        Maintenance at creation, or raises ``NoRouteChainError``.
    """

    def __init__(self, routes: RouteSelector, static_table: StaticRouteTable):
        self._routes = routes
        self._static_table = static_table

    def resolve_dynamic(
        self,
        request_type: RequestType,
        domain: Domain,
        amount: Decimal | int | None,
    ) -> RouteChain | None:
        """Chain from the routes table only; None when no row matches."""
        normalized = normalize_amount(amount)
        rows = self._routes.lookup_routes(request_type.value, domain.value, normalized)
        steps = select_route_steps(rows, normalized)
        if not steps:
            return None
        return RouteChain(steps=steps, source=RouteSource.DYNAMIC)

    def resolve(
        self,
        request_type: RequestType,
        domain: Domain,
        amount: Decimal | int | None,
        *,
        at_creation: bool = False,
    ) -> RouteChain:
        if at_creation and request_type is RequestType.MAINTENANCE:
            logger.info(
                "route_chain_skipped",
                extra={"request_type": request_type.value, "reason": "confirmation_first"},
            )
            return RouteChain.skipped()

        normalized = normalize_amount(amount)
        chain = self.resolve_dynamic(request_type, domain, normalized)
        if chain is None:
            chain = select_static_chain(self._static_table, request_type, domain, normalized)
        if chain is None or chain.is_empty:
            logger.error(
                "route_chain_missing",
                extra={
                    "request_type": request_type.value,
                    "domain": domain.value,
                    "amount": normalized,
                },
            )
            raise NoRouteChainError(request_type.value, domain.value, normalized)

        logger.info(
            "route_chain_resolved",
            extra={
                "request_type": request_type.value,
                "domain": domain.value,
                "amount": normalized,
                "source": chain.source.value,
                "chain_key": chain.key,
                "roles": [role.value for role in chain.roles()],
            },
        )
        return chain
