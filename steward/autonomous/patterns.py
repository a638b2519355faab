"""
Routing Pattern Store

Learned statistics for each (project_context, model) combination, and the
rules for mutating them.

Rules:
    - confidence and success_rate stay inside [0.50, 0.99] after feedback
    - success feedback: confidence +0.02, success_rate +0.01
    - failure feedback: confidence -0.05, success_rate -0.03
    - a pattern whose success_rate drops below the minimum is disabled
      and never re-enabled automatically
    - patterns are never deleted

All writes go through PatternStore.update(), which serializes access per key
so the clamp-and-disable rules run exactly once per write.

Usage:
    from steward.autonomous.patterns import PatternStore, apply_feedback

    store = PatternStore()
    await store.load_from_insights(project_memory, criteria)
    await store.update("steward-development", "gpt-4",
                       lambda p: apply_feedback(p, success=False))
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from steward.collaborators.base import ProjectInsightsSource
from steward.config_models import AutonomousCriteria
from steward.logging_config import get_logger

logger = get_logger(__name__)

PatternKey = tuple[str, str]

CONFIDENCE_FLOOR = 0.50
CONFIDENCE_CEILING = 0.99

SUCCESS_CONFIDENCE_STEP = 0.02
SUCCESS_RATE_STEP = 0.01
FAILURE_CONFIDENCE_STEP = 0.05
FAILURE_RATE_STEP = 0.03

DEFAULT_MIN_SUCCESS_RATE = 0.85


def _clamp(value: float) -> float:
    return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, value))


@dataclass
class RoutingPattern:
    """Learned statistics for one (project, model) combination."""

    project_context: str
    model: str
    confidence: float
    success_rate: float
    usage_count: int = 0
    stability: bool = False
    enabled: bool = True
    last_used: datetime | None = None
    last_feedback: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> PatternKey:
        return (self.project_context, self.model)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_context": self.project_context,
            "model": self.model,
            "confidence": self.confidence,
            "success_rate": self.success_rate,
            "usage_count": self.usage_count,
            "stability": self.stability,
            "enabled": self.enabled,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "last_feedback": self.last_feedback.isoformat() if self.last_feedback else None,
            "created_at": self.created_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Mutation rules
# ---------------------------------------------------------------------------

def apply_feedback(
    pattern: RoutingPattern,
    success: bool,
    min_success_rate: float = DEFAULT_MIN_SUCCESS_RATE,
) -> RoutingPattern:
    """Return a copy of the pattern with one feedback event applied."""
    if success:
        confidence = _clamp(pattern.confidence + SUCCESS_CONFIDENCE_STEP)
        success_rate = _clamp(pattern.success_rate + SUCCESS_RATE_STEP)
        enabled = pattern.enabled
    else:
        confidence = _clamp(pattern.confidence - FAILURE_CONFIDENCE_STEP)
        success_rate = _clamp(pattern.success_rate - FAILURE_RATE_STEP)
        enabled = pattern.enabled and success_rate >= min_success_rate
        if pattern.enabled and not enabled:
            logger.info(
                f"Disabled autonomous routing for {pattern.project_context}:{pattern.model} "
                f"due to low success rate ({success_rate:.2f})"
            )

    return dataclasses.replace(
        pattern,
        confidence=confidence,
        success_rate=success_rate,
        enabled=enabled,
        last_feedback=datetime.now(),
    )


def record_usage(pattern: RoutingPattern) -> RoutingPattern:
    return dataclasses.replace(
        pattern, usage_count=pattern.usage_count + 1, last_used=datetime.now()
    )


# ---------------------------------------------------------------------------
# Estimators
# ---------------------------------------------------------------------------

class SuccessRateEstimator(Protocol):
    def estimate(self, model_usage: dict[str, Any], project_insights: dict[str, Any]) -> float:
        ...


class StabilityEstimator(Protocol):
    def estimate(self, model_usage: dict[str, Any], project_insights: dict[str, Any]) -> bool:
        ...


class HistoricalSuccessRateEstimator:
    """
    Success rate from observed feedback.

    Uses success_count / feedback_count when the project memory reports
    feedback, then a reported success_rate, then a fixed prior.
    """

    def __init__(self, prior: float = 0.9):
        self.prior = prior

    def estimate(self, model_usage: dict[str, Any], project_insights: dict[str, Any]) -> float:
        feedback_count = model_usage.get("feedback_count") or 0
        if feedback_count > 0:
            return model_usage.get("success_count", 0) / feedback_count
        if model_usage.get("success_rate") is not None:
            return float(model_usage["success_rate"])
        return self.prior


class UsageStabilityEstimator:
    """Stable when reported as such, else when usage is well past the minimum sample."""

    def __init__(self, min_usage: int = 5):
        self.min_usage = min_usage

    def estimate(self, model_usage: dict[str, Any], project_insights: dict[str, Any]) -> bool:
        if "pattern_stability" in model_usage:
            return bool(model_usage["pattern_stability"])
        return model_usage.get("usage_count", 0) >= self.min_usage * 2


def qualifies(
    usage_count: int,
    total_decisions: int,
    success_rate: float,
    criteria: AutonomousCriteria,
) -> bool:
    """Whether a (project, model) pair may enter the store."""
    if total_decisions <= 0:
        return False

    usage_frequency = usage_count / total_decisions
    if usage_frequency < criteria.min_confidence_score:
        return False

    if usage_count < criteria.min_historical_usage:
        return False

    return success_rate >= criteria.min_success_rate


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class PatternStore:
    """
    Key-value store of routing patterns with serialized per-key writes.

    Readers get copies; the only way to change a stored pattern is put() or
    update().
    """

    def __init__(self) -> None:
        self._patterns: dict[PatternKey, RoutingPattern] = {}
        self._locks: dict[PatternKey, asyncio.Lock] = {}

    def _get_lock(self, key: PatternKey) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, key: object) -> bool:
        return key in self._patterns

    def get(self, project_context: str, model: str) -> RoutingPattern | None:
        pattern = self._patterns.get((project_context, model))
        return dataclasses.replace(pattern) if pattern else None

    def all(self) -> list[RoutingPattern]:
        return [dataclasses.replace(p) for p in self._patterns.values()]

    def by_project(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {}
        for pattern in self._patterns.values():
            grouped.setdefault(pattern.project_context, []).append({
                "model": pattern.model,
                "confidence": pattern.confidence,
                "usage_count": pattern.usage_count,
                "enabled": pattern.enabled,
            })
        return grouped

    async def put(self, pattern: RoutingPattern) -> None:
        async with self._get_lock(pattern.key):
            self._patterns[pattern.key] = dataclasses.replace(pattern)

    async def update(
        self,
        project_context: str,
        model: str,
        fn: Callable[[RoutingPattern], RoutingPattern],
    ) -> RoutingPattern | None:
        """
        Apply fn to the stored pattern and store the result.

        Returns:
            The updated pattern, or None when no pattern exists for the key
        """
        key = (project_context, model)
        async with self._get_lock(key):
            current = self._patterns.get(key)
            if current is None:
                return None
            updated = fn(dataclasses.replace(current))
            self._patterns[key] = updated
            return dataclasses.replace(updated)

    async def load_from_insights(
        self,
        source: ProjectInsightsSource,
        criteria: AutonomousCriteria,
        success_estimator: SuccessRateEstimator | None = None,
        stability_estimator: StabilityEstimator | None = None,
    ) -> int:
        """
        Populate the store from long-term project statistics.

        Returns:
            Number of patterns added or refreshed
        """
        success_estimator = success_estimator or HistoricalSuccessRateEstimator()
        stability_estimator = stability_estimator or UsageStabilityEstimator(
            criteria.min_historical_usage
        )

        cross_session = await source.get_cross_session_insights()
        loaded = 0

        for project in cross_session.get("projects", []):
            project_context = project.get("project_context")
            if not project_context:
                continue

            insights = await source.get_project_insights(project_context)
            total_decisions = insights.get("total_decisions", 0)
            if not insights.get("model_usage") or total_decisions < criteria.min_historical_usage:
                continue

            for usage in insights["model_usage"]:
                model = usage.get("selected_model")
                usage_count = usage.get("usage_count", 0)
                if not model:
                    continue

                success_rate = success_estimator.estimate(usage, insights)
                if not qualifies(usage_count, total_decisions, success_rate, criteria):
                    continue

                await self.put(RoutingPattern(
                    project_context=project_context,
                    model=model,
                    confidence=usage_count / total_decisions,
                    success_rate=success_rate,
                    usage_count=usage_count,
                    stability=stability_estimator.estimate(usage, insights),
                    last_used=datetime.now(),
                ))
                loaded += 1

        logger.info(f"Loaded {loaded} high-confidence routing patterns")
        return loaded


__all__ = [
    "CONFIDENCE_CEILING",
    "CONFIDENCE_FLOOR",
    "HistoricalSuccessRateEstimator",
    "PatternKey",
    "PatternStore",
    "RoutingPattern",
    "StabilityEstimator",
    "SuccessRateEstimator",
    "UsageStabilityEstimator",
    "apply_feedback",
    "qualifies",
    "record_usage",
]
