"""Autonomous routing - autopilot for routine model selection

Philosophy:
    Every confirmation prompt costs attention.
    If the same project keeps getting the same model and the user keeps
    being happy with it, stop asking. The moment that changes, start
    asking again and say why.

Components:
    patterns.py: Learned (project, model) statistics
        - Qualification from long-term project memory
        - Clamped feedback updates and auto-disable
        - Serialized per-key writes

    gate.py: The autopilot decision gate
        - Ordered eligibility checks with escalation triggers
        - Bounded log of autonomous executions
        - Feedback and manual override learning
"""

from .gate import (
    AutonomousDecisionGate,
    AutonomousDecisionLogEntry,
    BaselineDecision,
    EscalationTrigger,
)
from .patterns import (
    HistoricalSuccessRateEstimator,
    PatternStore,
    RoutingPattern,
    UsageStabilityEstimator,
    apply_feedback,
    qualifies,
)

__all__ = [
    "AutonomousDecisionGate",
    "AutonomousDecisionLogEntry",
    "BaselineDecision",
    "EscalationTrigger",
    "HistoricalSuccessRateEstimator",
    "PatternStore",
    "RoutingPattern",
    "UsageStabilityEstimator",
    "apply_feedback",
    "qualifies",
]
