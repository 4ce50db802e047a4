"""
Module: procurement_engines
Responsibility:
    Pure engines of the approval workflow: route selection, the pipeline
    state machine, and the item decision overlay.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel.domain (and sibling engine modules).
    MUST NOT import procurement_kernel services, models or selectors.

Invariants enforced:
    - Engines never read the clock; timestamps are applied by services.
    - Identical inputs always produce identical outputs.

Usage:
    from procurement_engines.pipeline import apply_decision, reconcile_status
    from procurement_engines.routing import select_route_steps
    from procurement_engines.item_overlay import apply_item_decisions
"""

from procurement_engines.item_overlay import (
    apply_item_decisions,
    estimated_cost,
    locked_item_ids,
)
from procurement_engines.pipeline import (
    activate_first_pending,
    advance_pipeline,
    apply_decision,
    auto_approve_slot,
    check_decision,
    count_active,
    reassign_slot,
    reconcile_status,
    record_auto_approval,
    record_decision,
)
from procurement_engines.routing import (
    dedupe_chain,
    missing_steps,
    normalize_amount,
    normalize_department_type,
    resolve_route_domain,
    select_route_steps,
    select_static_chain,
)

__all__ = [
    "activate_first_pending",
    "advance_pipeline",
    "apply_decision",
    "apply_item_decisions",
    "auto_approve_slot",
    "check_decision",
    "count_active",
    "dedupe_chain",
    "estimated_cost",
    "locked_item_ids",
    "missing_steps",
    "normalize_amount",
    "normalize_department_type",
    "reassign_slot",
    "reconcile_status",
    "record_auto_approval",
    "record_decision",
    "resolve_route_domain",
    "select_route_steps",
    "select_static_chain",
]
