"""
Collaborator Base Classes

Abstract interfaces for the services the autonomous gate and the workflow
engine depend on. Implementations live elsewhere (routing engine, predictors,
project/workflow memory); tests supply in-memory fakes.

Design Principles:
- Async-first: every call is a potential suspension point
- Plain dicts cross the boundary; the core parses them into its own types
- initialize()/close() have sensible defaults so simple fakes stay small
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any


class Collaborator(ABC):
    """Lifecycle hooks shared by every collaborator."""

    @property
    def name(self) -> str:
        return type(self).__name__

    async def initialize(self) -> bool:
        """Prepare the collaborator. Returns False when it cannot be used."""
        return True

    async def close(self) -> None:
        return None


class RoutingPrimitive(Collaborator):
    """The single-shot router that classifies a task and proposes a model."""

    @abstractmethod
    async def make_routing_decision(
        self,
        task_input: str,
        user_profile: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Route one task.

        Returns:
            dict shaped like::

                {
                    "task": str,
                    "selection": {"model": str, "confidence": float, "reason": str},
                    "memory_integration": {"context_analysis": {
                        "project_context": {"project": str},
                        "context_switching": {"switch_frequency": float},
                    }},
                    "metadata": {...},
                }
        """
        ...

    @abstractmethod
    async def record_routing_feedback(
        self,
        decision: dict[str, Any],
        success: bool,
        rating: float | None = None,
        comments: str | None = None,
    ) -> None:
        ...


class SequencePredictor(Collaborator):
    """Predicts the next steps of a project from its current progress."""

    @abstractmethod
    async def generate_workflow_suggestion(
        self, project_context: str, progress: list[Any]
    ) -> dict[str, Any] | None:
        ...


class WorkflowSuggester(Collaborator):
    """Suggests workflows from completed-workflow history."""

    @abstractmethod
    async def get_workflow_suggestions(
        self,
        project_context: str,
        task_input: str,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Returns:
            dict with success, suggestions (list of dicts) and
            based_on_completions (int)
        """
        ...


class CompletionRecorder(Collaborator):
    """Durable memory that learns from finished workflows."""

    @abstractmethod
    async def record_workflow_completion(self, record: dict[str, Any]) -> None:
        ...


class CognitivePredictor(Collaborator):
    """Estimates cognitive capacity and upcoming hyperfocus windows."""

    @abstractmethod
    async def predict_cognitive_capacity(
        self, at: datetime, complexity: str, context: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Returns:
            dict with predicted_capacity (0-1), confidence (0-1) and optionally
            recommendations and switching_cost
        """
        ...

    @abstractmethod
    async def predict_hyperfocus_cycle(self, at: datetime) -> dict[str, Any]:
        """
        Returns:
            dict with next_hyperfocus_window ({"start_time", "end_time"} or None)
            and confidence
        """
        ...


class WorkflowOrchestrator(Collaborator):
    """Materializes and runs workflows step by step."""

    @abstractmethod
    async def create_workflow(
        self,
        task_input: str,
        project_context: str,
        user_profile: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Returns:
            dict with success, workflow_id and workflow (dict)
        """
        ...

    @abstractmethod
    async def execute_workflow(
        self, workflow_id: str, options: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Returns:
            dict with success, steps_completed, duration and success_rate
        """
        ...


class ProjectInsightsSource(Collaborator):
    """Long-term per-project routing statistics."""

    @abstractmethod
    async def get_cross_session_insights(self) -> dict[str, Any]:
        """
        Returns:
            dict with projects: [{"project_context": str, ...}, ...]
        """
        ...

    @abstractmethod
    async def get_project_insights(self, project_context: str) -> dict[str, Any]:
        """
        Returns:
            dict with total_decisions (int) and model_usage:
            [{"selected_model": str, "usage_count": int, ...}, ...]
        """
        ...
