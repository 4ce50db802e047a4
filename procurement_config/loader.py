"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into the typed
``procurement_config.schema`` dataclasses.  Runtime code never calls this
directly; the single entry point is
``procurement_config.load_workflow_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` (or ``UnknownRoleError`` for a role
  outside the closed role set) with a message naming the offending key.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  form of the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import WorkflowConfig, WorkflowSettings
from procurement_kernel.domain.roles import parse_role
from procurement_kernel.domain.routing import StaticChainEntry, StaticRouteTable
from procurement_kernel.domain.workflow import Domain, RequestType
from procurement_kernel.exceptions import InvalidRequestError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_chain_key(key: str) -> tuple[RequestType, Domain, int, int]:
    """
    Split ``"Non-Stock-Operational-10001-999999999"`` into its parts.

    The request type may itself contain hyphens, so the key is split from
    the right.
    """
    parts = str(key).rsplit("-", 3)
    if len(parts) != 4:
        raise ValueError(f"static route key {key!r} must look like '<type>-<Domain>-<low>-<high>'")
    type_part, domain_part, low_part, high_part = parts
    try:
        request_type = RequestType.parse(type_part)
    except InvalidRequestError as exc:
        raise ValueError(f"static route key {key!r}: unknown request type {type_part!r}") from exc
    try:
        domain = Domain(domain_part.strip().lower())
    except ValueError as exc:
        raise ValueError(f"static route key {key!r}: unknown domain {domain_part!r}") from exc
    if not (low_part.isdigit() and high_part.isdigit()):
        raise ValueError(f"static route key {key!r}: band bounds must be whole numbers")
    return request_type, domain, int(low_part), int(high_part)


def parse_settings(data: Mapping[str, Any] | None) -> WorkflowSettings:
    data = data or {}
    if not isinstance(data, Mapping):
        raise ValueError("settings must be a mapping")
    defaults = WorkflowSettings()
    reminder_after_days = data.get("reminder_after_days", defaults.reminder_after_days)
    if isinstance(reminder_after_days, bool) or not isinstance(reminder_after_days, int):
        raise ValueError(f"settings.reminder_after_days must be an integer, got {reminder_after_days!r}")
    reassign = data.get("reassign_opens_next_level", defaults.reassign_opens_next_level)
    if not isinstance(reassign, bool):
        raise ValueError(f"settings.reassign_opens_next_level must be a boolean, got {reassign!r}")
    max_amount = data.get("max_amount", defaults.max_amount)
    if isinstance(max_amount, bool) or not isinstance(max_amount, int):
        raise ValueError(f"settings.max_amount must be an integer, got {max_amount!r}")
    return WorkflowSettings(
        reminder_after_days=reminder_after_days,
        reassign_opens_next_level=reassign,
        max_amount=max_amount,
    )


def parse_static_routes(data: Mapping[str, Any] | None) -> StaticRouteTable:
    if data is not None and not isinstance(data, Mapping):
        raise ValueError("static_routes must be a mapping of chain key to roles")
    entries = []
    for key, roles in (data or {}).items():
        request_type, domain, low, high = parse_chain_key(key)
        if not isinstance(roles, list):
            raise ValueError(f"static route {key!r}: roles must be a list")
        entries.append(
            StaticChainEntry(
                request_type=request_type.value,
                domain=domain.value,
                low=low,
                high=high,
                roles=tuple(parse_role(role) for role in roles),
            )
        )
    return StaticRouteTable(entries=tuple(entries))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any], source: str | None = None) -> WorkflowConfig:
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version must be an integer, got {version!r}")
    return WorkflowConfig(
        settings=parse_settings(data.get("settings")),
        static_routes=parse_static_routes(data.get("static_routes")),
        version=version,
        checksum=compute_checksum(data),
        source=source,
    )
