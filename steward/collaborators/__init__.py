"""External collaborators consumed by the core.

Routing, prediction, orchestration and long-term memory all live outside
this package. The core only talks to them through the interfaces in base.py
and treats every call as a possibly-failing, possibly-suspending service.
"""

from .base import (
    CognitivePredictor,
    Collaborator,
    CompletionRecorder,
    ProjectInsightsSource,
    RoutingPrimitive,
    SequencePredictor,
    WorkflowOrchestrator,
    WorkflowSuggester,
)

__all__ = [
    "CognitivePredictor",
    "Collaborator",
    "CompletionRecorder",
    "ProjectInsightsSource",
    "RoutingPrimitive",
    "SequencePredictor",
    "WorkflowOrchestrator",
    "WorkflowSuggester",
]
