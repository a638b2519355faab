"""
Cognitive Optimizer

Annotates every step of a suggestion with a timing hint, load advisories,
a break recommendation and accommodation hints, then attaches a
workflow-level summary (hyperfocus alignment, breaks, context switching).

Never reorders or drops steps. The input suggestion is left untouched;
a new, annotated copy is returned.

Timing:
    high load   -> "now" when capacity > 0.8, else the next hyperfocus
                   window, else morning/afternoon peaks
    medium load -> flexible
    low load    -> any time

Advisories:
    defer_high_load     high load and capacity < 0.6
    break_long_task     accommodations on and step > 90 minutes
    parallel_execution  accommodations on and step can run in parallel
    minimize_switching  context switching severity is high
"""

from __future__ import annotations

import dataclasses
from typing import Any

from steward.logging_config import get_logger
from steward.workflows.models import (
    CognitiveContext,
    CognitiveLoad,
    Recommendation,
    Step,
    SwitchingSeverity,
    WorkflowSuggestion,
)

logger = get_logger(__name__)

HIGH_CAPACITY = 0.8
DEFER_CAPACITY = 0.6
LONG_TASK_MINUTES = 90


# ---------------------------------------------------------------------------
# Per-step rules
# ---------------------------------------------------------------------------

def find_optimal_timing(step: Step, context: CognitiveContext) -> list[str]:
    if step.cognitive_load == CognitiveLoad.HIGH:
        if context.capacity.predicted_capacity > HIGH_CAPACITY:
            return ["now", "current_high_capacity"]

        window = context.hyperfocus.next_window
        if window is not None:
            start = window.start_time
            return [f"hyperfocus_window_{start.hour}:{start.minute:02d}"]

        return ["morning_peak", "afternoon_secondary_peak"]

    if step.cognitive_load == CognitiveLoad.MEDIUM:
        return ["current_moderate_capacity", "flexible_timing"]

    return ["any_time", "fill_low_capacity_gaps"]


def recommendations_for_step(
    step: Step, context: CognitiveContext, accommodations: bool
) -> list[Recommendation]:
    recommendations = []

    if step.cognitive_load == CognitiveLoad.HIGH and context.capacity.predicted_capacity < DEFER_CAPACITY:
        recommendations.append(Recommendation(
            type="defer_high_load",
            message="Consider deferring this high-load task until higher cognitive capacity",
            priority="medium",
        ))

    if accommodations:
        if step.estimated_duration > LONG_TASK_MINUTES:
            recommendations.append(Recommendation(
                type="break_long_task",
                message="Consider breaking this task into smaller chunks",
                priority="high",
            ))

        if step.parallel_possible:
            recommendations.append(Recommendation(
                type="parallel_execution",
                message="This task can run in parallel - good for maintaining engagement",
                priority="low",
            ))

    if context.context_switching.severity == SwitchingSeverity.HIGH:
        recommendations.append(Recommendation(
            type="minimize_switching",
            message="Batch this task with similar activities to reduce context switching cost",
            priority="medium",
        ))

    return recommendations


def break_after_step(
    step: Step, context: CognitiveContext, accommodations: bool
) -> dict[str, Any] | None:
    if not accommodations:
        return None

    prefs = context.break_preferences
    if step.estimated_duration >= prefs.active_break_interval:
        return {"type": "active", "duration_minutes": prefs.active_break_duration}
    if step.estimated_duration >= prefs.micro_break_interval or step.cognitive_load == CognitiveLoad.HIGH:
        return {"type": "micro", "duration_minutes": prefs.micro_break_duration}
    return None


def accommodations_for_step(step: Step, context: CognitiveContext, accommodations: bool) -> list[str]:
    if not accommodations:
        return []

    hints = []
    if step.cognitive_load == CognitiveLoad.HIGH:
        hints.append("single_task_focus")
    if step.estimated_duration > context.break_preferences.micro_break_interval:
        hints.append("timeboxed_chunks")
    hints.append("visible_progress_checkpoint")
    return hints


# ---------------------------------------------------------------------------
# Workflow-level summary
# ---------------------------------------------------------------------------

def align_with_hyperfocus(steps: list[Step], context: CognitiveContext) -> dict[str, Any]:
    high_steps = [i for i, s in enumerate(steps) if s.cognitive_load == CognitiveLoad.HIGH]
    window = context.hyperfocus.next_window

    if context.capacity.predicted_capacity > HIGH_CAPACITY:
        recommendation = "Start high-load steps now while capacity is high"
    elif window is not None:
        recommendation = f"Schedule high-load steps for the hyperfocus window at {window.start_time:%H:%M}"
    else:
        recommendation = "No hyperfocus window predicted - use morning peak for high-load steps"

    return {
        "high_load_steps": high_steps,
        "next_window_start": window.start_time.isoformat() if window else None,
        "window_confidence": context.hyperfocus.confidence,
        "recommendation": recommendation,
    }


def collect_break_recommendations(steps: list[Step]) -> list[dict[str, Any]]:
    elapsed = 0.0
    breaks = []
    for index, step in enumerate(steps):
        elapsed += step.estimated_duration
        if step.break_recommendation:
            breaks.append({
                "after_step": index,
                "after_phase": step.phase,
                "at_minute": elapsed,
                **step.break_recommendation,
            })
    return breaks


def optimize_context_switching(steps: list[Step], context: CognitiveContext) -> dict[str, Any]:
    transitions = sum(
        1 for prev, cur in zip(steps, steps[1:]) if prev.task_type != cur.task_type
    )
    note = "Keep related steps together"
    if context.context_switching.severity == SwitchingSeverity.HIGH:
        note = "Switching cost is high - batch similar steps and avoid interleaving other projects"
    return {
        "severity": context.context_switching.severity.value,
        "phase_transitions": transitions,
        "note": note,
    }


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------

class CognitiveOptimizer:
    def optimize(
        self,
        suggestion: WorkflowSuggestion,
        context: CognitiveContext,
        accommodations: bool | None = None,
    ) -> WorkflowSuggestion:
        """
        Return an annotated copy of the suggestion.

        Args:
            suggestion: Suggestion as produced by the aggregator
            context: Current cognitive snapshot
            accommodations: Whether ADHD accommodations are on; defaults to
                the snapshot's flag
        """
        if accommodations is None:
            accommodations = context.adhd_accommodations_active

        steps = [
            dataclasses.replace(
                step,
                optimal_timing=find_optimal_timing(step, context),
                cognitive_recommendations=recommendations_for_step(step, context, accommodations),
                break_recommendation=break_after_step(step, context, accommodations),
                adhd_accommodations=accommodations_for_step(step, context, accommodations),
            )
            for step in suggestion.steps
        ]

        logger.debug(
            f"Optimizing {suggestion.id} ({len(steps)} steps, accommodations={accommodations})"
        )

        summary = {
            "hyperfocus_alignment": align_with_hyperfocus(steps, context),
            "break_recommendations": collect_break_recommendations(steps),
            "context_switching_optimization": optimize_context_switching(steps, context),
            "adhd_accommodations_applied": accommodations,
        }

        return dataclasses.replace(
            suggestion,
            steps=steps,
            cognitively_optimized=True,
            cognitive_optimization=summary,
        )


__all__ = [
    "CognitiveOptimizer",
    "align_with_hyperfocus",
    "break_after_step",
    "find_optimal_timing",
    "recommendations_for_step",
]
