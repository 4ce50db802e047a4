"""
Configuration Validator (``procurement_config.validator``).

Responsibility
--------------
Structural checks on a parsed ``WorkflowConfig`` before the runtime
accepts it.

Invariants enforced
-------------------
* Every band has ``low <= high`` and stays within ``max_amount``.
* Bands of one (type, domain) pair never overlap.
* Every chain names at least one role and no role twice.
* ``Requester`` may only open a Maintenance chain.
* Every request type except Maintenance has a chain for both domains
  (warning only: dynamic routes may cover the gap).

Failure modes
-------------
* ``errors`` non-empty  -> the configuration MUST NOT be used.
* ``warnings``  -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from procurement_config.schema import WorkflowConfig
from procurement_kernel.domain.roles import Role
from procurement_kernel.domain.workflow import Domain, RequestType


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_workflow_config(config: WorkflowConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()
    settings = config.settings
    table = config.static_routes

    if settings.reminder_after_days < 0:
        result.errors.append("settings.reminder_after_days must be >= 0")
    if settings.max_amount <= 0:
        result.errors.append("settings.max_amount must be positive")

    for entry in table.entries:
        if entry.low > entry.high:
            result.errors.append(f"{entry.key}: low bound exceeds high bound")
        if entry.high > settings.max_amount:
            result.errors.append(f"{entry.key}: high bound exceeds max_amount {settings.max_amount}")
        if not entry.roles:
            result.errors.append(f"{entry.key}: chain has no roles")
        if len(set(entry.roles)) != len(entry.roles):
            result.errors.append(f"{entry.key}: chain repeats a role")
        if Role.REQUESTER in entry.roles:
            if entry.request_type != RequestType.MAINTENANCE.value:
                result.errors.append(f"{entry.key}: only Maintenance chains may include Requester")
            elif entry.roles[0] is not Role.REQUESTER:
                result.errors.append(f"{entry.key}: Requester must be the first step")

    for request_type in RequestType:
        for domain in Domain:
            bands = table.bands_for(request_type.value, domain.value)
            for lower, upper in zip(bands, bands[1:]):
                if upper.low <= lower.high:
                    result.errors.append(f"{lower.key} overlaps {upper.key}")
            if not bands and request_type is not RequestType.MAINTENANCE:
                result.warnings.append(
                    f"no static chain for {request_type.value}/{domain.value}"
                )
            elif bands and bands[0].low > 0:
                result.warnings.append(
                    f"{request_type.value}/{domain.value}: amounts below {bands[0].low} have no chain"
                )

    return result
