"""
Suggestion Ranker

Scores enriched suggestions with a fixed additive formula and sorts them
best first. Scores are never negative.

Scoring:
    + completion_probability * 30           (0.5 when unknown)
    + 20 + min(10, completions * 2)         pattern/history based
    + 15                                    cognitively optimized
    - 10  capacity < 0.5 and > 50% of steps are high load
    + 10  capacity > 0.8 and > 30% of steps are high load
    + 5                                     total duration in [30, 120] min
    + 8   accommodations on and applied by the optimizer

Ties are broken by source (workflow memory, then sequence predictor, then
fallback), then by input order.
"""

from __future__ import annotations

import dataclasses

from steward.logging_config import get_logger
from steward.workflows.models import CognitiveContext, SuggestionSource, WorkflowSuggestion

logger = get_logger(__name__)

SOURCE_PRIORITY = {
    SuggestionSource.WORKFLOW_MEMORY: 0,
    SuggestionSource.TASK_SEQUENCE_PREDICTOR: 1,
    SuggestionSource.FALLBACK_ENGINE: 2,
}

DEFAULT_COMPLETION_PROBABILITY = 0.5
DEFAULT_DURATION = 60
PREFERRED_DURATION = (30, 120)


def score_suggestion(suggestion: WorkflowSuggestion, context: CognitiveContext) -> float:
    score = 0.0

    probability = suggestion.completion_probability
    if probability is None:
        probability = DEFAULT_COMPLETION_PROBABILITY
    score += probability * 30

    if suggestion.pattern_based:
        score += 20
        score += min(10, suggestion.based_on_completions * 2)

    if suggestion.cognitively_optimized:
        score += 15

    capacity = context.capacity.predicted_capacity
    high_ratio = suggestion.high_load_ratio
    if capacity < 0.5 and high_ratio > 0.5:
        score -= 10
    elif capacity > 0.8 and high_ratio > 0.3:
        score += 10

    duration = suggestion.total_estimated_duration
    if duration is None:
        duration = DEFAULT_DURATION
    if PREFERRED_DURATION[0] <= duration <= PREFERRED_DURATION[1]:
        score += 5

    optimization = suggestion.cognitive_optimization or {}
    if context.adhd_accommodations_active and optimization.get("adhd_accommodations_applied"):
        score += 8

    return max(0.0, score)


class SuggestionRanker:
    def rank(
        self,
        suggestions: list[WorkflowSuggestion],
        context: CognitiveContext,
        limit: int | None = None,
    ) -> list[WorkflowSuggestion]:
        """
        Score and sort suggestions, best first.

        Returns copies carrying ranking_score; the inputs are not modified.
        """
        scored = [
            dataclasses.replace(s, ranking_score=score_suggestion(s, context))
            for s in suggestions
        ]
        # sorted() is stable, so equal keys keep input order
        ranked = sorted(
            scored,
            key=lambda s: (-s.ranking_score, SOURCE_PRIORITY.get(s.source, len(SOURCE_PRIORITY))),
        )

        if ranked:
            logger.debug(
                f"Ranked {len(ranked)} suggestions, top {ranked[0].id} scored {ranked[0].ranking_score:.1f}"
            )

        if limit is not None:
            ranked = ranked[:limit]
        return ranked


__all__ = ["SOURCE_PRIORITY", "SuggestionRanker", "score_suggestion"]
