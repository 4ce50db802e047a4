"""
Procurement services -- process wiring and the transaction-owning facade.

``bootstrap`` builds a ``WorkflowRuntime`` once per process;
``ProcurementWorkflow`` runs every operation as one committed unit of work.
"""

from procurement_services.orchestrator import WorkflowOrchestrator
from procurement_services.runtime import WorkflowRuntime, bootstrap, shutdown
from procurement_services.workflow import ProcurementWorkflow

__all__ = [
    "ProcurementWorkflow",
    "WorkflowOrchestrator",
    "WorkflowRuntime",
    "bootstrap",
    "shutdown",
]
