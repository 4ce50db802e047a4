"""
Typed Exception Hierarchy for the Procurement Approval Workflow.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a CLI, a scheduled job) must be able to tell a bad
input apart from a caller who is not allowed to act, a decision that arrived
out of order, or a routing table that has no entry for a request.  Each of
those is a distinct class here, carries a machine-readable ``code`` and an
``http_status`` hint, and stores its context as attributes so that logs and
API responses never have to parse message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementWorkflowError (base)
    |
    +-- ValidationError                      400  no mutation
    |   +-- InvalidIdentifierError
    |   +-- InvalidDecisionStatusError
    |   +-- UnknownRoleError
    |   +-- InvalidRequestError
    |   +-- InvalidItemDecisionError
    |   +-- InvalidEstimatedCostError
    |   +-- ItemOverlayNotApplicableError
    |
    +-- NotFoundError                        404  no mutation
    |   +-- ApprovalNotFoundError
    |   +-- RequestNotFoundError
    |   +-- RequestedItemNotFoundError
    |   +-- UserNotFoundError
    |
    +-- AuthorizationError                   403  no mutation
    |   +-- NotAssignedApproverError
    |   +-- RoleMismatchError
    |   +-- DepartmentMismatchError
    |   +-- ItemLockedError
    |   +-- CostUpdateNotPermittedError
    |   +-- RequestTypeNotPermittedError
    |
    +-- SequencingError                      409  no mutation
    |   +-- ApprovalAlreadyDecidedError
    |   +-- ApprovalNotActiveError
    |   +-- PreviousLevelPendingError
    |
    +-- ConfigurationError                   400  transaction rolled back
    |   +-- NoRouteChainError
    |   +-- NoDesignatedRequesterError
    |   +-- InvalidWorkflowConfigError
    |
    +-- IntegrityError                       500  transaction rolled back
        +-- ImmutabilityViolationError
        +-- PipelineInconsistencyError

Fail-open auto-approval (no eligible approver for a role) is NOT an error.
It is recorded in the audit trail and the pipeline moves on.
"""


class ProcurementWorkflowError(Exception):
    """
    Base exception for all workflow errors.

    Every subclass has a ``code`` class attribute for machine-readable
    identification and an ``http_status`` hint for transport layers.
    """

    code: str = "PROCUREMENT_WORKFLOW_ERROR"
    http_status: int = 500


# Validation


class ValidationError(ProcurementWorkflowError):
    """Malformed input. Nothing was mutated."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidIdentifierError(ValidationError):
    """An identifier is not a positive integer."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class InvalidDecisionStatusError(ValidationError):
    """A decision status outside the allowed set."""

    code: str = "INVALID_DECISION_STATUS"

    def __init__(self, status: object, allowed: tuple[str, ...]):
        self.status = status
        self.allowed = allowed
        super().__init__(
            f"Invalid status {status!r}; expected one of {', '.join(allowed)}"
        )


class UnknownRoleError(ValidationError):
    """A role name that does not map to any known role."""

    code: str = "UNKNOWN_ROLE"

    def __init__(self, role: object):
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class InvalidRequestError(ValidationError):
    """A purchase request payload failed validation."""

    code: str = "INVALID_REQUEST"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid request: {reason}")


class InvalidItemDecisionError(ValidationError):
    """An item decision payload failed validation."""

    code: str = "INVALID_ITEM_DECISION"

    def __init__(self, item_id: object, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Invalid decision for item {item_id!r}: {reason}")


class InvalidEstimatedCostError(ValidationError):
    """Estimated cost must be a positive number."""

    code: str = "INVALID_ESTIMATED_COST"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Estimated cost must be a positive number, got {value!r}")


class ItemOverlayNotApplicableError(ValidationError):
    """Item-level decisions are not supported for this request type."""

    code: str = "ITEM_OVERLAY_NOT_APPLICABLE"

    def __init__(self, request_id: int, request_type: str):
        self.request_id = request_id
        self.request_type = request_type
        super().__init__(
            f"Item-level approval is not available for {request_type} request {request_id}"
        )


# Not found


class NotFoundError(ProcurementWorkflowError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class ApprovalNotFoundError(NotFoundError):
    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, approval_id: int):
        self.approval_id = approval_id
        super().__init__(f"Approval not found: {approval_id}")


class RequestNotFoundError(NotFoundError):
    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class RequestedItemNotFoundError(NotFoundError):
    code: str = "REQUESTED_ITEM_NOT_FOUND"

    def __init__(self, request_id: int, item_ids: tuple[int, ...]):
        self.request_id = request_id
        self.item_ids = item_ids
        super().__init__(
            f"Items {list(item_ids)} do not belong to request {request_id}"
        )


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# Authorization


class AuthorizationError(ProcurementWorkflowError):
    """The acting user may not perform this operation."""

    code: str = "AUTHORIZATION_ERROR"
    http_status: int = 403


class NotAssignedApproverError(AuthorizationError):
    """The acting user is not the approver assigned to this approval."""

    code: str = "NOT_ASSIGNED_APPROVER"

    def __init__(self, approval_id: int, actor_id: int, approver_id: int | None):
        self.approval_id = approval_id
        self.actor_id = actor_id
        self.approver_id = approver_id
        super().__init__(
            f"User {actor_id} is not the assigned approver of approval {approval_id}"
        )


class RoleMismatchError(AuthorizationError):
    """The acting user's role does not match the role routed to this level."""

    code: str = "ROLE_MISMATCH"

    def __init__(self, approval_id: int, expected_role: str, actual_role: str):
        self.approval_id = approval_id
        self.expected_role = expected_role
        self.actual_role = actual_role
        super().__init__(
            f"Approval {approval_id} requires role {expected_role}, "
            f"acting user has {actual_role}"
        )


class DepartmentMismatchError(AuthorizationError):
    """A department-scoped approver acted outside their department."""

    code: str = "DEPARTMENT_MISMATCH"

    def __init__(self, actor_id: int, actor_department_id: int | None, request_department_id: int):
        self.actor_id = actor_id
        self.actor_department_id = actor_department_id
        self.request_department_id = request_department_id
        super().__init__(
            f"User {actor_id} may only act on requests from department "
            f"{actor_department_id}, not {request_department_id}"
        )


class ItemLockedError(AuthorizationError):
    """Items rejected by another approver cannot be changed."""

    code: str = "ITEM_LOCKED"

    def __init__(self, item_ids: tuple[int, ...], actor_id: int):
        self.item_ids = item_ids
        self.actor_id = actor_id
        super().__init__(
            f"Items {list(item_ids)} were rejected by another approver and are locked"
        )


class CostUpdateNotPermittedError(AuthorizationError):
    code: str = "COST_UPDATE_NOT_PERMITTED"

    def __init__(self, actor_id: int, role: str):
        self.actor_id = actor_id
        self.role = role
        super().__init__(f"Role {role} may not update the estimated cost")


class RequestTypeNotPermittedError(AuthorizationError):
    """The requester's role may not submit this request type."""

    code: str = "REQUEST_TYPE_NOT_PERMITTED"

    def __init__(self, request_type: str, role: str):
        self.request_type = request_type
        self.role = role
        super().__init__(f"Role {role} may not submit {request_type} requests")


# Sequencing


class SequencingError(ProcurementWorkflowError):
    """The decision arrived at the wrong point in the pipeline."""

    code: str = "SEQUENCING_ERROR"
    http_status: int = 409


class ApprovalAlreadyDecidedError(SequencingError):
    code: str = "APPROVAL_ALREADY_DECIDED"

    def __init__(self, approval_id: int, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(f"Approval {approval_id} has already been {status.lower()}")


class ApprovalNotActiveError(SequencingError):
    code: str = "APPROVAL_NOT_ACTIVE"

    def __init__(self, approval_id: int):
        self.approval_id = approval_id
        super().__init__(f"Approval {approval_id} is not active yet")


class PreviousLevelPendingError(SequencingError):
    code: str = "PREVIOUS_LEVEL_PENDING"

    def __init__(self, approval_id: int, level: int, pending_levels: tuple[int, ...]):
        self.approval_id = approval_id
        self.level = level
        self.pending_levels = pending_levels
        super().__init__(
            f"Previous level approvals are still pending: levels {list(pending_levels)}"
        )


# Configuration


class ConfigurationError(ProcurementWorkflowError):
    """Routing or organisation data cannot support the request."""

    code: str = "CONFIGURATION_ERROR"
    http_status: int = 400


class NoRouteChainError(ConfigurationError):
    """No approval chain is defined for a type/domain/amount combination."""

    code: str = "NO_ROUTE_CHAIN"

    def __init__(self, request_type: str, domain: str, amount: int):
        self.request_type = request_type
        self.domain = domain
        self.amount = amount
        super().__init__(
            f"No approval chain for {request_type} / {domain} / amount {amount}"
        )


class NoDesignatedRequesterError(ConfigurationError):
    code: str = "NO_DESIGNATED_REQUESTER"

    def __init__(self, department_id: int):
        self.department_id = department_id
        super().__init__(
            f"No designated requester found for department {department_id}"
        )


class InvalidWorkflowConfigError(ConfigurationError):
    """The workflow configuration file failed validation."""

    code: str = "INVALID_WORKFLOW_CONFIG"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = errors
        self.source = source
        super().__init__(
            f"Invalid workflow configuration ({source or 'inline'}): "
            + "; ".join(errors)
        )


# Integrity


class IntegrityError(ProcurementWorkflowError):
    """Internal invariant broken. Always rolls back."""

    code: str = "INTEGRITY_ERROR"
    http_status: int = 500


class ImmutabilityViolationError(IntegrityError):
    """Attempted to modify or delete an append-only audit record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class PipelineInconsistencyError(IntegrityError):
    """Stepwise status and recomputed status disagree."""

    code: str = "PIPELINE_INCONSISTENCY"

    def __init__(self, request_id: int, stepwise: str, recomputed: str):
        self.request_id = request_id
        self.stepwise = stepwise
        self.recomputed = recomputed
        super().__init__(
            f"Request {request_id}: stepwise status {stepwise} "
            f"disagrees with recomputed status {recomputed}"
        )
