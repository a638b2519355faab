"""
Error taxonomy for the autonomous gate and workflow engine.

NotFoundError and ValidationError are raised straight to the caller with no
partial mutation. CollaboratorError wraps a failed external call where the
operation cannot degrade to a fallback.
"""

from __future__ import annotations


class StewardError(Exception):
    """Base class for all errors raised by the core."""


class NotFoundError(StewardError, LookupError):
    """A referenced decision or workflow does not exist."""


class DecisionNotFoundError(NotFoundError):
    def __init__(self, decision_id: str):
        super().__init__(f"Autonomous decision {decision_id} not found")
        self.decision_id = decision_id


class WorkflowNotFoundError(NotFoundError):
    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow {workflow_id} not found")
        self.workflow_id = workflow_id


class ValidationError(StewardError, ValueError):
    """Input rejected before any state change."""


class CollaboratorError(StewardError):
    """An external collaborator call failed and no fallback applies."""

    def __init__(self, collaborator: str, cause: BaseException | None = None):
        message = f"{collaborator} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.collaborator = collaborator
        self.cause = cause


class EngineNotReadyError(StewardError):
    """A required component failed to initialize."""


__all__ = [
    "CollaboratorError",
    "DecisionNotFoundError",
    "EngineNotReadyError",
    "NotFoundError",
    "StewardError",
    "ValidationError",
    "WorkflowNotFoundError",
]
