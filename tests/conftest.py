"""Shared test fixtures for Steward tests.

This module provides in-memory fakes for every external collaborator and
common fixtures used across the test modules:
- Routing decisions and a fake router
- Fake predictors, workflow memory and orchestrator
- Standard user settings and a seeded pattern store

Usage:
    async def test_something(gate, router):
        router.decision = make_decision(confidence=0.95)
        ...
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from steward.autonomous.gate import AutonomousDecisionGate
from steward.autonomous.patterns import PatternStore, RoutingPattern
from steward.collaborators.base import (
    CognitivePredictor,
    CompletionRecorder,
    ProjectInsightsSource,
    RoutingPrimitive,
    SequencePredictor,
    WorkflowOrchestrator,
    WorkflowSuggester,
)
from steward.config_models import UserSettings


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"

PROJECT = "steward-development"
MODEL = "gpt-4"


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────


def make_decision(
    project: str | None = PROJECT,
    model: str = MODEL,
    confidence: float = 0.95,
    switch_frequency: float = 0.1,
    reason: str = "Code task in a familiar project",
) -> dict[str, Any]:
    """Routing decision shaped like the router's output."""
    analysis: dict[str, Any] = {"context_switching": {"switch_frequency": switch_frequency}}
    if project is not None:
        analysis["project_context"] = {"project": project}
    return {
        "task": "Refactor the routing module",
        "selection": {"model": model, "confidence": confidence, "reason": reason},
        "memory_integration": {"context_analysis": analysis},
        "metadata": {"router": "fake"},
    }


def make_pattern(
    project: str = PROJECT,
    model: str = MODEL,
    confidence: float = 0.93,
    success_rate: float = 0.9,
    usage_count: int = 10,
    stability: bool = True,
    enabled: bool = True,
) -> RoutingPattern:
    return RoutingPattern(
        project_context=project,
        model=model,
        confidence=confidence,
        success_rate=success_rate,
        usage_count=usage_count,
        stability=stability,
        enabled=enabled,
    )


def make_step(
    phase: str = "Implementation",
    duration: float = 30,
    load: str = "medium",
    parallel: bool = False,
) -> dict[str, Any]:
    return {
        "phase": phase,
        "task_type": phase.lower(),
        "estimated_duration": duration,
        "cognitive_load": load,
        "confidence": 0.8,
        "parallel_possible": parallel,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Fake Collaborators
# ─────────────────────────────────────────────────────────────────────────────


class FakeRouter(RoutingPrimitive):
    def __init__(self, decision: dict[str, Any] | None = None):
        self.decision = decision or make_decision()
        self.error: Exception | None = None
        self.feedback_error: Exception | None = None
        self.feedback: list[dict[str, Any]] = []
        self.calls = 0

    async def make_routing_decision(self, task_input, user_profile, options=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {**self.decision, "task": task_input}

    async def record_routing_feedback(self, decision, success, rating=None, comments=None):
        if self.feedback_error is not None:
            raise self.feedback_error
        self.feedback.append({
            "decision": decision,
            "success": success,
            "rating": rating,
            "comments": comments,
        })


class FakeInsights(ProjectInsightsSource):
    def __init__(self, projects: dict[str, dict[str, Any]] | None = None):
        self.projects = projects or {}
        self.error: Exception | None = None

    async def get_cross_session_insights(self):
        if self.error is not None:
            raise self.error
        return {"projects": [{"project_context": name} for name in self.projects]}

    async def get_project_insights(self, project_context):
        return self.projects[project_context]


class FakeSequencePredictor(SequencePredictor):
    def __init__(self, suggestion: dict[str, Any] | None = None):
        self.suggestion = suggestion
        self.error: Exception | None = None
        self.delay = 0.0
        self.progress_seen: list[Any] | None = None

    async def generate_workflow_suggestion(self, project_context, progress):
        self.progress_seen = progress
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.suggestion


class FakeWorkflowMemory(WorkflowSuggester, CompletionRecorder):
    def __init__(self, suggestions: list[dict[str, Any]] | None = None, completions: int = 0):
        self.suggestions = suggestions or []
        self.based_on_completions = completions
        self.error: Exception | None = None
        self.record_error: Exception | None = None
        self.delay = 0.0
        self.recorded: list[dict[str, Any]] = []

    async def get_workflow_suggestions(self, project_context, task_input, options=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {
            "success": True,
            "suggestions": self.suggestions,
            "based_on_completions": self.based_on_completions,
        }

    async def record_workflow_completion(self, record):
        if self.record_error is not None:
            raise self.record_error
        self.recorded.append(record)


class FakeCognitivePredictor(CognitivePredictor):
    def __init__(
        self,
        capacity: float = 0.7,
        switching_cost: float = 0.1,
        hyperfocus_start: datetime | None = None,
    ):
        self.capacity = capacity
        self.switching_cost = switching_cost
        self.hyperfocus_start = hyperfocus_start
        self.error: Exception | None = None
        self.calls = 0

    async def predict_cognitive_capacity(self, at, complexity, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {
            "predicted_capacity": self.capacity,
            "confidence": 0.8,
            "switching_cost": self.switching_cost,
        }

    async def predict_hyperfocus_cycle(self, at):
        window = None
        if self.hyperfocus_start is not None:
            window = {
                "start_time": self.hyperfocus_start.isoformat(),
                "end_time": (self.hyperfocus_start + timedelta(hours=2)).isoformat(),
            }
        return {"next_hyperfocus_window": window, "confidence": 0.6}


class FakeOrchestrator(WorkflowOrchestrator):
    def __init__(self, steps: int = 3):
        self.steps = steps
        self.create_result: dict[str, Any] | None = None
        self.create_error: Exception | None = None
        self.execute_error: Exception | None = None
        self.execute_result: dict[str, Any] | None = None
        self.on_execute: Callable[[str, dict[str, Any]], Any] | None = None
        self.execute_delay = 0.0
        self.created = 0
        self.execute_options: dict[str, Any] | None = None
        self.init_ok = True

    async def initialize(self):
        return self.init_ok

    async def create_workflow(self, task_input, project_context, user_profile, options=None):
        if self.create_error is not None:
            raise self.create_error
        if self.create_result is not None:
            return self.create_result
        self.created += 1
        return {
            "success": True,
            "workflow_id": f"wf_{self.created}",
            "workflow": {
                "steps": [make_step(f"Step {i}") for i in range(self.steps)],
                "estimated_duration": 90,
                "execution_strategy": "sequential",
            },
        }

    async def execute_workflow(self, workflow_id, options=None):
        self.execute_options = options
        if self.on_execute is not None:
            self.on_execute(workflow_id, options or {})
        if self.execute_delay:
            await asyncio.sleep(self.execute_delay)
        if self.execute_error is not None:
            raise self.execute_error
        if self.execute_result is not None:
            return self.execute_result
        return {"success": True, "steps_completed": self.steps, "duration": 75, "success_rate": 1.0}


# ─────────────────────────────────────────────────────────────────────────────
# Settings Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def autopilot_settings() -> UserSettings:
    """User who has opted in to autonomous routing."""
    return UserSettings(autonomous_routing={"enable_autopilot": True})


@pytest.fixture
def adhd_settings() -> UserSettings:
    """User with ADHD accommodations and autopilot on."""
    return UserSettings(
        autonomous_routing={"enable_autopilot": True},
        cognitive_optimization={"adhd_accommodations": True},
    )


# ─────────────────────────────────────────────────────────────────────────────
# Gate Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()


@pytest.fixture
def store() -> PatternStore:
    """Store seeded with the standard (steward-development, gpt-4) pattern."""
    s = PatternStore()
    pattern = make_pattern()
    s._patterns[pattern.key] = pattern
    return s


@pytest.fixture
def gate(router: FakeRouter, store: PatternStore) -> AutonomousDecisionGate:
    """Gate with autopilot on and the standard pattern loaded."""
    g = AutonomousDecisionGate(router, store=store, confidence_threshold=0.9)
    g.set_autopilot_mode(True)
    return g


# ─────────────────────────────────────────────────────────────────────────────
# Workflow Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def predictor_suggestion() -> dict[str, Any]:
    return {
        "name": "Predicted feature workflow",
        "steps": [
            make_step("Planning", 20, "medium"),
            make_step("Implementation", 60, "high"),
            make_step("Testing", 30, "medium", parallel=True),
        ],
        "completion_probability": 0.8,
    }


@pytest.fixture
def memory_suggestions() -> list[dict[str, Any]]:
    return [
        {
            "workflow_id": "mem_1",
            "name": "Remembered feature workflow",
            "steps": [
                make_step("Design", 25, "medium"),
                make_step("Build", 45, "high"),
            ],
            "completion_probability": 0.85,
        },
    ]


@pytest.fixture
def sequence_predictor(predictor_suggestion) -> FakeSequencePredictor:
    return FakeSequencePredictor(predictor_suggestion)


@pytest.fixture
def workflow_memory(memory_suggestions) -> FakeWorkflowMemory:
    return FakeWorkflowMemory(memory_suggestions, completions=4)


@pytest.fixture
def cognitive_predictor() -> FakeCognitivePredictor:
    return FakeCognitivePredictor()


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


# ─────────────────────────────────────────────────────────────────────────────
# Async Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def anyio_backend() -> str:
    """Backend for async tests."""
    return "asyncio"
