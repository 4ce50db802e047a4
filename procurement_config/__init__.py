"""
procurement_config -- single public entry point for workflow configuration.

Responsibility:
    ``load_workflow_config()`` is the only way runtime code obtains
    configuration.  It reads a YAML set (the packaged default unless a path
    is given), parses it, validates it and returns a frozen
    ``WorkflowConfig``.

Architecture position:
    Configuration layer.  Depends on ``procurement_kernel.domain`` for the
    role and route types; the kernel never imports this package.  The
    runtime bootstrap loads the configuration once and passes it down.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``InvalidWorkflowConfigError`` -- parse or validation errors.

Audit relevance:
    Every successful load emits a ``WORKFLOW_CONFIG_TRACE`` log entry with
    the source path, version, checksum and static chain count.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import yaml

from procurement_config.loader import load_yaml_file, parse_config
from procurement_config.schema import WorkflowConfig, WorkflowSettings
from procurement_config.validator import ConfigValidationResult, validate_workflow_config
from procurement_kernel.exceptions import InvalidWorkflowConfigError, UnknownRoleError
from procurement_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def load_workflow_config(path: Path | str | None = None) -> WorkflowConfig:
    """
    Load, parse and validate a workflow configuration set.

    Args:
        path: YAML file to load.  Defaults to the packaged
            ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        InvalidWorkflowConfigError: If the document cannot be parsed or
            fails validation.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        data = load_yaml_file(source)
        config = parse_config(data, source=str(source))
    except (yaml.YAMLError, ValueError, UnknownRoleError) as exc:
        raise InvalidWorkflowConfigError([str(exc)], source=str(source)) from exc

    validation = validate_workflow_config(config)
    if not validation.is_valid:
        _logger.error(
            "workflow_config_invalid",
            extra={"source": str(source), "errors": validation.errors},
        )
        raise InvalidWorkflowConfigError(validation.errors, source=str(source))
    for warning in validation.warnings:
        _logger.warning("workflow_config_warning", extra={"source": str(source), "warning": warning})

    config = replace(config, warnings=tuple(validation.warnings))
    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "source": str(source),
            "version": config.version,
            "checksum": config.checksum,
            "static_chain_count": len(config.static_routes),
        },
    )
    return config


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "WorkflowConfig",
    "WorkflowSettings",
    "load_workflow_config",
    "validate_workflow_config",
]
