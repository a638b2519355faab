"""Predictive workflows - suggest, tune and supervise multi-step work

Philosophy:
    A plan is only useful if it fits the brain that has to run it.
    High-load steps go where capacity is, breaks are planned not hoped for,
    and if every predictor is down there is still a sane default plan.

Components:
    models.py: Steps, suggestions and the cognitive snapshot
    aggregator.py: Concurrent proposals from sequence predictor and memory
    optimizer.py: Timing hints, load advisories, break and accommodation notes
    ranker.py: Additive scoring with a deterministic tie-break
    monitoring.py: Cancellable capacity and break loops per workflow
    supervisor.py: Create, execute, hand off completion, always clean up
    engine.py: PredictiveWorkflowEngine facade over all of the above
"""

from .aggregator import AggregationResult, SuggestionAggregator
from .engine import PredictiveWorkflowEngine
from .models import (
    CognitiveContext,
    CognitiveLoad,
    Step,
    SuggestionSource,
    WorkflowSuggestion,
    fallback_suggestion,
)
from .monitoring import CognitiveMonitor
from .optimizer import CognitiveOptimizer
from .ranker import SuggestionRanker, score_suggestion
from .supervisor import ActiveWorkflow, WorkflowState, WorkflowSupervisor

__all__ = [
    "ActiveWorkflow",
    "AggregationResult",
    "CognitiveContext",
    "CognitiveLoad",
    "CognitiveMonitor",
    "CognitiveOptimizer",
    "PredictiveWorkflowEngine",
    "Step",
    "SuggestionAggregator",
    "SuggestionRanker",
    "SuggestionSource",
    "WorkflowState",
    "WorkflowSuggestion",
    "WorkflowSupervisor",
    "fallback_suggestion",
    "score_suggestion",
]
