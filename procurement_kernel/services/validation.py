"""
Input validation shared by the write services.

Every public service entry point normalises its raw inputs here before it
takes any lock, so a malformed call never reaches the database.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from procurement_kernel.domain.items import ITEM_DECISION_STATUSES, ItemDecision
from procurement_kernel.domain.money import round_money, to_decimal
from procurement_kernel.domain.workflow import ApprovalStatus, DECISION_STATUSES
from procurement_kernel.exceptions import (
    InvalidDecisionStatusError,
    InvalidEstimatedCostError,
    InvalidIdentifierError,
    InvalidItemDecisionError,
)


def validate_identifier(field: str, value: object) -> int:
    """Positive integer id; digit strings are accepted."""
    if isinstance(value, bool):
        raise InvalidIdentifierError(field, value)
    if isinstance(value, int):
        if value > 0:
            return value
        raise InvalidIdentifierError(field, value)
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        if parsed > 0:
            return parsed
    raise InvalidIdentifierError(field, value)


def _parse_status(
    value: object,
    allowed: tuple[ApprovalStatus, ...],
) -> ApprovalStatus | None:
    if isinstance(value, ApprovalStatus):
        return value if value in allowed else None
    if not isinstance(value, str):
        return None
    wanted = value.strip().casefold()
    for status in allowed:
        if status.value.casefold() == wanted:
            return status
    return None


def parse_decision_status(value: object) -> ApprovalStatus:
    """Approved or Rejected, case-insensitively."""
    status = _parse_status(value, DECISION_STATUSES)
    if status is None:
        raise InvalidDecisionStatusError(value, tuple(s.value for s in DECISION_STATUSES))
    return status


def parse_estimated_cost(value: object) -> Decimal:
    """A finite, strictly positive amount rounded to cents."""
    amount = to_decimal(value)
    if amount is None or not amount.is_finite() or amount <= 0:
        raise InvalidEstimatedCostError(value)
    return round_money(amount)


def _parse_quantity(item_id: object, value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidItemDecisionError(item_id, f"quantity must be a positive integer, got {value!r}")
    return value


def parse_item_decisions(
    raw: Iterable[ItemDecision | Mapping[str, object]],
) -> tuple[ItemDecision, ...]:
    """
    Normalise item decisions given as ``ItemDecision`` or plain mappings
    with ``item_id``, ``status`` and optional ``quantity`` / ``comments``.

    Raises:
        InvalidItemDecisionError: Empty batch, unknown status, bad quantity
            or the same item named twice.
    """
    decisions: list[ItemDecision] = []
    seen: set[int] = set()
    for entry in raw:
        if isinstance(entry, ItemDecision):
            item_id, status, quantity, comments = (
                entry.item_id, entry.status, entry.quantity, entry.comments,
            )
        else:
            item_id = entry.get("item_id")
            status = entry.get("status")
            quantity = entry.get("quantity")
            comments = entry.get("comments")

        try:
            parsed_id = validate_identifier("item_id", item_id)
        except InvalidIdentifierError as exc:
            raise InvalidItemDecisionError(item_id, "item_id must be a positive integer") from exc
        if parsed_id in seen:
            raise InvalidItemDecisionError(parsed_id, "item appears more than once")
        seen.add(parsed_id)

        parsed_status = _parse_status(status, ITEM_DECISION_STATUSES)
        if parsed_status is None:
            raise InvalidItemDecisionError(
                parsed_id,
                f"status must be one of {[s.value for s in ITEM_DECISION_STATUSES]}, got {status!r}",
            )
        decisions.append(
            ItemDecision(
                item_id=parsed_id,
                status=parsed_status,
                quantity=_parse_quantity(parsed_id, quantity),
                comments=str(comments) if comments is not None else None,
            )
        )
    if not decisions:
        raise InvalidItemDecisionError(None, "at least one item decision is required")
    return tuple(decisions)
