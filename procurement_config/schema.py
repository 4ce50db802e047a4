"""
Workflow configuration schema.

The typed form of a YAML configuration set: global settings plus the
static route table used when the database holds no dynamic route for a
request.  Everything here is frozen; the loader builds it and the runtime
holds it for the life of the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from procurement_kernel.domain.routing import AMOUNT_CEILING, StaticRouteTable


@dataclass(frozen=True)
class WorkflowSettings:
    """Tunable knobs of the workflow."""

    reminder_after_days: int = 3
    # When true, a sweeper reassignment also activates the next dormant level.
    reassign_opens_next_level: bool = False
    max_amount: int = AMOUNT_CEILING


@dataclass(frozen=True)
class WorkflowConfig:
    """A loaded, validated configuration set."""

    settings: WorkflowSettings
    static_routes: StaticRouteTable
    version: int = 1
    checksum: str = ""
    source: str | None = None
    warnings: tuple[str, ...] = field(default=())
