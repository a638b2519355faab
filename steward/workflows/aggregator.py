"""
Suggestion Aggregator

Collects workflow proposals from the sequence predictor and the
history-based suggester concurrently, and normalizes both into
WorkflowSuggestion with provenance.

Never fails hard: a source that raises or returns nothing is skipped.
If every source comes back empty the result is empty and the engine
substitutes the fallback plan.

Output order is fixed regardless of which source answers first:
predictor suggestion, then memory suggestions in the order memory gave them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from steward.collaborators.base import SequencePredictor, WorkflowSuggester
from steward.logging_config import get_logger
from steward.workflows.models import SuggestionSource, WorkflowSuggestion

logger = get_logger(__name__)


@dataclass
class AggregationResult:
    suggestions: list[WorkflowSuggestion] = field(default_factory=list)
    based_on_completions: int = 0
    failed_sources: list[str] = field(default_factory=list)

    @property
    def learning_available(self) -> bool:
        return self.based_on_completions > 0


class SuggestionAggregator:
    def __init__(
        self,
        sequence_predictor: SequencePredictor | None = None,
        workflow_suggester: WorkflowSuggester | None = None,
    ):
        self.sequence_predictor = sequence_predictor
        self.workflow_suggester = workflow_suggester

    async def _from_predictor(
        self, project_context: str, progress: list[Any]
    ) -> list[WorkflowSuggestion]:
        if self.sequence_predictor is None:
            return []
        raw = await self.sequence_predictor.generate_workflow_suggestion(project_context, progress)
        if not raw or not raw.get("steps"):
            return []
        return [WorkflowSuggestion.from_source(
            raw, SuggestionSource.TASK_SEQUENCE_PREDICTOR, project_context
        )]

    async def _from_memory(
        self, project_context: str, task_input: str, options: dict[str, Any]
    ) -> tuple[list[WorkflowSuggestion], int]:
        if self.workflow_suggester is None:
            return [], 0
        raw = await self.workflow_suggester.get_workflow_suggestions(
            project_context, task_input, options
        )
        if not raw or not raw.get("success"):
            return [], 0

        completions = int(raw.get("based_on_completions") or 0)
        suggestions = [
            WorkflowSuggestion.from_source(
                s, SuggestionSource.WORKFLOW_MEMORY, project_context, completions
            )
            for s in raw.get("suggestions") or []
            if s.get("steps")
        ]
        return suggestions, completions

    async def aggregate(
        self,
        task_input: str,
        project_context: str,
        options: dict[str, Any] | None = None,
    ) -> AggregationResult:
        """
        Gather proposals from both sources.

        Args:
            task_input: The user's task text
            project_context: Resolved project the task belongs to
            options: Passed to the memory suggester; current_progress is
                handed to the sequence predictor

        Returns:
            AggregationResult with normalized suggestions in source order
        """
        options = options or {}
        predicted, remembered = await asyncio.gather(
            self._from_predictor(project_context, options.get("current_progress") or []),
            self._from_memory(project_context, task_input, options),
            return_exceptions=True,
        )

        result = AggregationResult()

        if isinstance(predicted, BaseException):
            logger.warning(f"Sequence predictor failed for {project_context}: {predicted}")
            result.failed_sources.append(SuggestionSource.TASK_SEQUENCE_PREDICTOR.value)
        else:
            result.suggestions.extend(predicted)

        if isinstance(remembered, BaseException):
            logger.warning(f"Workflow memory failed for {project_context}: {remembered}")
            result.failed_sources.append(SuggestionSource.WORKFLOW_MEMORY.value)
        else:
            suggestions, completions = remembered
            result.suggestions.extend(suggestions)
            result.based_on_completions = completions

        return result


__all__ = ["AggregationResult", "SuggestionAggregator"]
