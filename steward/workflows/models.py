"""
Workflow data structures shared by the aggregator, optimizer, ranker and
supervisor.

Collaborators hand over plain dicts; from_dict()/from_source() parse them
into these dataclasses and keep any unknown keys in `extra` so nothing a
source reported is lost on the way back out through to_dict().
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from steward.config_models import BreakPreferences


class CognitiveLoad(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestionSource(StrEnum):
    TASK_SEQUENCE_PREDICTOR = "task_sequence_predictor"
    WORKFLOW_MEMORY = "workflow_memory"
    FALLBACK_ENGINE = "fallback_engine"


class SwitchingSeverity(StrEnum):
    MINIMAL = "minimal"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


def classify_switching_severity(switching_cost: float) -> SwitchingSeverity:
    if switching_cost >= 0.3:
        return SwitchingSeverity.HIGH
    if switching_cost >= 0.15:
        return SwitchingSeverity.MODERATE
    if switching_cost > 0.05:
        return SwitchingSeverity.LOW
    return SwitchingSeverity.MINIMAL


def _parse_load(value: Any) -> CognitiveLoad:
    try:
        return CognitiveLoad(str(value).lower())
    except ValueError:
        return CognitiveLoad.MEDIUM


def _parse_time(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


# ---------------------------------------------------------------------------
# Steps and suggestions
# ---------------------------------------------------------------------------

@dataclass
class Recommendation:
    type: str
    message: str
    priority: str = "medium"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "priority": self.priority}


_STEP_FIELDS = {
    "phase", "task_type", "estimated_duration", "cognitive_load", "confidence",
    "dependencies", "parallel_possible",
}


@dataclass
class Step:
    phase: str
    task_type: str
    estimated_duration: float
    cognitive_load: CognitiveLoad
    confidence: float
    dependencies: list[str] = field(default_factory=list)
    parallel_possible: bool = False

    # Added by the optimizer
    optimal_timing: list[str] = field(default_factory=list)
    cognitive_recommendations: list[Recommendation] = field(default_factory=list)
    break_recommendation: dict[str, Any] | None = None
    adhd_accommodations: list[str] = field(default_factory=list)

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Step:
        phase = data.get("phase") or data.get("task_type") or "Step"
        return cls(
            phase=phase,
            task_type=data.get("task_type") or phase.lower(),
            estimated_duration=float(data.get("estimated_duration") or 0),
            cognitive_load=_parse_load(data.get("cognitive_load", "medium")),
            confidence=float(data.get("confidence", 0.5)),
            dependencies=list(data.get("dependencies") or []),
            parallel_possible=bool(data.get("parallel_possible", False)),
            extra={k: v for k, v in data.items() if k not in _STEP_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        result = {
            **self.extra,
            "phase": self.phase,
            "task_type": self.task_type,
            "estimated_duration": self.estimated_duration,
            "cognitive_load": self.cognitive_load.value,
            "confidence": self.confidence,
            "dependencies": self.dependencies,
            "parallel_possible": self.parallel_possible,
        }
        if self.optimal_timing:
            result["optimal_timing"] = self.optimal_timing
            result["cognitive_recommendations"] = [r.to_dict() for r in self.cognitive_recommendations]
            result["break_recommendation"] = self.break_recommendation
            result["adhd_accommodations"] = self.adhd_accommodations
        return result


_SUGGESTION_FIELDS = {
    "workflow_id", "id", "name", "project_context", "steps", "total_estimated_duration",
    "completion_probability", "source", "pattern_based", "based_on_completions",
}


@dataclass
class WorkflowSuggestion:
    """A candidate plan: ordered steps plus provenance and estimates."""

    id: str
    name: str
    project_context: str
    steps: list[Step]
    source: SuggestionSource
    total_estimated_duration: float | None = None
    completion_probability: float | None = None
    pattern_based: bool = False
    based_on_completions: int = 0

    cognitively_optimized: bool = False
    cognitive_optimization: dict[str, Any] | None = None
    ranking_score: float | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_source(
        cls,
        data: dict[str, Any],
        source: SuggestionSource,
        project_context: str,
        based_on_completions: int = 0,
    ) -> WorkflowSuggestion:
        steps = [Step.from_dict(s) for s in data.get("steps") or []]
        total = data.get("total_estimated_duration")
        if total is None and steps:
            total = sum(s.estimated_duration for s in steps)

        return cls(
            id=str(data.get("workflow_id") or data.get("id") or f"{source.value}_{uuid.uuid4().hex[:8]}"),
            name=data.get("name") or f"{project_context} workflow",
            project_context=data.get("project_context") or project_context,
            steps=steps,
            source=source,
            total_estimated_duration=total,
            completion_probability=data.get("completion_probability"),
            pattern_based=bool(data.get("pattern_based", source == SuggestionSource.WORKFLOW_MEMORY)),
            based_on_completions=int(data.get("based_on_completions", based_on_completions) or 0),
            extra={k: v for k, v in data.items() if k not in _SUGGESTION_FIELDS},
        )

    @property
    def high_load_ratio(self) -> float:
        if not self.steps:
            return 0.0
        high = sum(1 for s in self.steps if s.cognitive_load == CognitiveLoad.HIGH)
        return high / len(self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "workflow_id": self.id,
            "name": self.name,
            "project_context": self.project_context,
            "steps": [s.to_dict() for s in self.steps],
            "total_estimated_duration": self.total_estimated_duration,
            "completion_probability": self.completion_probability,
            "source": self.source.value,
            "pattern_based": self.pattern_based,
            "based_on_completions": self.based_on_completions,
            "cognitively_optimized": self.cognitively_optimized,
            "cognitive_optimization": self.cognitive_optimization,
            "ranking_score": self.ranking_score,
        }


FALLBACK_PHASES = (
    ("Planning", "planning", 20, CognitiveLoad.MEDIUM),
    ("Implementation", "implementation", 50, CognitiveLoad.HIGH),
    ("Review", "review", 20, CognitiveLoad.MEDIUM),
)
FALLBACK_CONFIDENCE = 0.7


def fallback_suggestion(project_context: str) -> WorkflowSuggestion:
    """The fixed Planning -> Implementation -> Review plan."""
    steps = [
        Step(
            phase=phase,
            task_type=task_type,
            estimated_duration=duration,
            cognitive_load=load,
            confidence=FALLBACK_CONFIDENCE,
        )
        for phase, task_type, duration, load in FALLBACK_PHASES
    ]
    return WorkflowSuggestion(
        id=f"fallback_{uuid.uuid4().hex[:8]}",
        name=f"Default {project_context} Workflow",
        project_context=project_context,
        steps=steps,
        source=SuggestionSource.FALLBACK_ENGINE,
        total_estimated_duration=sum(s.estimated_duration for s in steps),
        completion_probability=FALLBACK_CONFIDENCE,
    )


# ---------------------------------------------------------------------------
# Cognitive context
# ---------------------------------------------------------------------------

@dataclass
class CapacityPrediction:
    predicted_capacity: float = 0.7
    confidence: float = 0.5
    recommendations: list[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CapacityPrediction:
        return cls(
            predicted_capacity=float(data.get("predicted_capacity", 0.7)),
            confidence=float(data.get("confidence", 0.5)),
            recommendations=list(data.get("recommendations") or []),
        )


@dataclass
class HyperfocusWindow:
    start_time: datetime
    end_time: datetime | None = None


@dataclass
class HyperfocusPrediction:
    next_window: HyperfocusWindow | None = None
    confidence: float = 0.5

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HyperfocusPrediction:
        window = data.get("next_hyperfocus_window")
        next_window = None
        if window and window.get("start_time"):
            next_window = HyperfocusWindow(
                start_time=_parse_time(window["start_time"]),
                end_time=_parse_time(window.get("end_time")),
            )
        return cls(next_window=next_window, confidence=float(data.get("confidence", 0.5)))


@dataclass
class ContextSwitchingAnalysis:
    recent_switches: int = 1
    switching_cost: float = 0.1
    severity: SwitchingSeverity = SwitchingSeverity.MINIMAL


@dataclass
class CognitiveContext:
    """Point-in-time snapshot used to optimize and rank suggestions."""

    capacity: CapacityPrediction = field(default_factory=CapacityPrediction)
    hyperfocus: HyperfocusPrediction = field(default_factory=HyperfocusPrediction)
    adhd_accommodations_active: bool = False
    break_preferences: BreakPreferences = field(default_factory=BreakPreferences)
    context_switching: ContextSwitchingAnalysis = field(default_factory=ContextSwitchingAnalysis)
    taken_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def default(cls) -> CognitiveContext:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        window = self.hyperfocus.next_window
        return {
            "current_capacity": {
                "predicted_capacity": self.capacity.predicted_capacity,
                "confidence": self.capacity.confidence,
                "recommendations": self.capacity.recommendations,
            },
            "hyperfocus_prediction": {
                "next_hyperfocus_window": {
                    "start_time": window.start_time.isoformat(),
                    "end_time": window.end_time.isoformat() if window.end_time else None,
                } if window else None,
                "confidence": self.hyperfocus.confidence,
            },
            "adhd_accommodations_active": self.adhd_accommodations_active,
            "break_preferences": self.break_preferences.model_dump(),
            "context_switching_analysis": {
                "recent_switches": self.context_switching.recent_switches,
                "switching_cost": self.context_switching.switching_cost,
                "severity": self.context_switching.severity.value,
            },
            "taken_at": self.taken_at.isoformat(),
        }


__all__ = [
    "CapacityPrediction",
    "CognitiveContext",
    "CognitiveLoad",
    "ContextSwitchingAnalysis",
    "FALLBACK_PHASES",
    "HyperfocusPrediction",
    "HyperfocusWindow",
    "Recommendation",
    "Step",
    "SuggestionSource",
    "SwitchingSeverity",
    "WorkflowSuggestion",
    "classify_switching_severity",
    "fallback_suggestion",
]
