"""
Item decision overlay engine -- pure functions, no I/O.

Responsibility
--------------
Merge one approver's per-item decisions (status, optional quantity
revision, comments) into the request's item snapshots, count what
changed, and recompute the request's estimated cost.

Architecture position
---------------------
**Engines layer** -- pure calculation.  ``ItemOverlayService`` loads and
locks the items, enforces the lock rule, and persists the result.

Invariants
----------
* Lock rule: an item Rejected by one approver identity cannot be changed
  by a different identity (``locked_item_ids``).
* ``total_cost`` is recomputed as quantity x unit_cost only when the
  quantity changes.
* The estimated cost is the sum of ``total_cost`` over every item of the
  request (unknown totals count as zero).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from procurement_kernel.domain.items import (
    ItemDecision,
    ItemOverlayResult,
    ItemOverlaySummary,
    ItemSnapshot,
)
from procurement_kernel.domain.money import line_total, round_money
from procurement_kernel.domain.workflow import ApprovalStatus
from procurement_engines.tracer import traced_engine


def locked_item_ids(items: Sequence[ItemSnapshot], actor_id: int) -> tuple[int, ...]:
    return tuple(item.item_id for item in items if item.is_locked_for(actor_id))


def estimated_cost(items: Sequence[ItemSnapshot]) -> Decimal:
    total = sum((item.total_cost or Decimal("0") for item in items), Decimal("0"))
    return round_money(total)


@traced_engine("item_overlay", "1.0", fingerprint_fields=("decisions", "actor_id"))
def apply_item_decisions(
    items: Sequence[ItemSnapshot],
    *,
    decisions: Sequence[ItemDecision],
    actor_id: int,
) -> ItemOverlayResult:
    """
    Apply ``decisions`` to ``items``.

    Raises:
        ValueError: If a decision names an item that is not in ``items`` or
            targets an item locked against ``actor_id``.
    """
    by_id = {item.item_id: item for item in items}
    counts = {status: 0 for status in ApprovalStatus}
    quantity_adjusted = 0
    updated: dict[int, ItemSnapshot] = {}

    for decision in decisions:
        current = updated.get(decision.item_id) or by_id.get(decision.item_id)
        if current is None:
            raise ValueError(f"Item {decision.item_id} is not part of this request")
        if current.is_locked_for(actor_id):
            raise ValueError(f"Item {decision.item_id} is locked against user {actor_id}")

        quantity = current.quantity
        total_cost = current.total_cost
        if decision.quantity is not None and decision.quantity != current.quantity:
            quantity = decision.quantity
            total_cost = line_total(quantity, current.unit_cost)
            quantity_adjusted += 1

        updated[decision.item_id] = replace(
            current,
            quantity=quantity,
            total_cost=total_cost,
            approval_status=decision.status,
            approved_by=actor_id,
            approval_comments=decision.comments,
        )
        counts[decision.status] += 1

    merged = [updated.get(item.item_id, item) for item in items]
    untouched = [item for item in items if item.item_id not in updated]

    return ItemOverlayResult(
        updated=tuple(updated.values()),
        summary=ItemOverlaySummary(
            approved=counts[ApprovalStatus.APPROVED],
            rejected=counts[ApprovalStatus.REJECTED],
            pending=counts[ApprovalStatus.PENDING],
            quantity_adjusted=quantity_adjusted,
        ),
        locked_item_ids=locked_item_ids(untouched, actor_id),
        estimated_cost=estimated_cost(merged),
    )
