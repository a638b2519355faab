"""
Predictive Workflow Engine

Single entry point tying the pieces together:

    generate_workflow_suggestions
        aggregator (predictor + memory)  ||  cognitive context
        -> cognitive optimizer -> ranker -> top N
    create_workflow / execute_workflow
        -> WorkflowSupervisor (monitoring, autonomous routing, learning)

Starts even when collaborators fail to initialize. In that state
initialized is False, suggestions come from the fixed fallback plan and
workflow creation is refused only if the orchestrator itself is down.

Usage:
    engine = PredictiveWorkflowEngine(
        router=router,
        sequence_predictor=predictor,
        workflow_suggester=memory,
        completion_recorder=memory,
        cognitive_predictor=cognitive,
        orchestrator=orchestrator,
        insights=project_memory,
    )
    await engine.initialize()
    result = await engine.generate_workflow_suggestions(
        "Add OAuth login", "steward-development", settings
    )
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any

from steward.autonomous.gate import AutonomousDecisionGate
from steward.autonomous.patterns import StabilityEstimator, SuccessRateEstimator
from steward.collaborators.base import (
    CognitivePredictor,
    Collaborator,
    CompletionRecorder,
    ProjectInsightsSource,
    RoutingPrimitive,
    SequencePredictor,
    WorkflowOrchestrator,
    WorkflowSuggester,
)
from steward.config_models import UserSettings, WorkflowEngineConfig, load_and_validate
from steward.errors import EngineNotReadyError
from steward.logging_config import get_logger
from steward.workflows.aggregator import SuggestionAggregator
from steward.workflows.models import (
    CapacityPrediction,
    CognitiveContext,
    ContextSwitchingAnalysis,
    HyperfocusPrediction,
    classify_switching_severity,
    fallback_suggestion,
)
from steward.workflows.optimizer import CognitiveOptimizer
from steward.workflows.ranker import SuggestionRanker
from steward.workflows.supervisor import WorkflowSupervisor

logger = get_logger(__name__)

TASK_COMPLEXITY = "moderate"
DEFAULT_SWITCHING_COST = 0.1
DEFAULT_RECENT_SWITCHES = 1


class PredictiveWorkflowEngine:
    def __init__(
        self,
        config: WorkflowEngineConfig | None = None,
        router: RoutingPrimitive | None = None,
        sequence_predictor: SequencePredictor | None = None,
        workflow_suggester: WorkflowSuggester | None = None,
        completion_recorder: CompletionRecorder | None = None,
        cognitive_predictor: CognitivePredictor | None = None,
        orchestrator: WorkflowOrchestrator | None = None,
        insights: ProjectInsightsSource | None = None,
        success_estimator: SuccessRateEstimator | None = None,
        stability_estimator: StabilityEstimator | None = None,
    ):
        self.config = config or load_and_validate()

        self.router = router
        self.sequence_predictor = sequence_predictor
        self.workflow_suggester = workflow_suggester
        self.completion_recorder = completion_recorder
        self.cognitive_predictor = cognitive_predictor
        self.orchestrator = orchestrator
        self.insights = insights
        self._estimators = (success_estimator, stability_estimator)

        self.gate: AutonomousDecisionGate | None = None
        if router is not None:
            self.gate = AutonomousDecisionGate(
                router,
                criteria=self.config.autonomous,
                confidence_threshold=self.config.engine.autonomous_confidence_threshold,
            )

        self.aggregator = SuggestionAggregator(sequence_predictor, workflow_suggester)
        self.optimizer = CognitiveOptimizer()
        self.ranker = SuggestionRanker()
        self.supervisor: WorkflowSupervisor | None = None
        if orchestrator is not None:
            self.supervisor = WorkflowSupervisor(
                orchestrator,
                recorder=completion_recorder,
                settings=self.config.engine,
                monitoring=self.config.monitoring,
            )

        self.initialized = False
        self.components_ready = {
            "task_predictor": False,
            "cognitive_predictor": False,
            "workflow_orchestrator": False,
            "autonomous_router": False,
            "workflow_memory": False,
        }
        self._started = time.monotonic()

    # -- lifecycle ------------------------------------------------------------

    def _collaborators(self) -> list[Collaborator]:
        seen: dict[int, Collaborator] = {}
        for c in (
            self.router,
            self.sequence_predictor,
            self.workflow_suggester,
            self.completion_recorder,
            self.cognitive_predictor,
            self.orchestrator,
            self.insights,
        ):
            if c is not None:
                seen.setdefault(id(c), c)
        return list(seen.values())

    async def _init_component(self, name: str, *collaborators: Collaborator | None) -> bool:
        ready = False
        if all(c is not None for c in collaborators):
            try:
                results = await asyncio.gather(*(c.initialize() for c in collaborators))
                ready = all(results)
            except Exception as e:
                logger.warning(f"Component {name} failed to initialize: {e}")

        self.components_ready[name] = ready
        return ready

    async def _init_autonomous_router(self) -> bool:
        if not await self._init_component("autonomous_router", self.router):
            return False
        estimators = self._estimators
        ready = await self.gate.initialize(self.insights, *estimators)
        self.components_ready["autonomous_router"] = ready
        return ready

    async def initialize(self) -> bool:
        """
        Initialize every collaborator concurrently.

        Returns:
            True when every component is ready. On False the engine still
            serves fallback suggestions; see components_ready for detail.
        """
        logger.info("Initializing PredictiveWorkflowEngine...")

        memory = [self.workflow_suggester]
        if self.completion_recorder is not self.workflow_suggester:
            memory.append(self.completion_recorder)

        results = await asyncio.gather(
            self._init_component("task_predictor", self.sequence_predictor),
            self._init_component("cognitive_predictor", self.cognitive_predictor),
            self._init_component("workflow_orchestrator", self.orchestrator),
            self._init_autonomous_router(),
            self._init_component("workflow_memory", *memory),
        )

        if self.supervisor is not None:
            self.supervisor.gate = self.gate if self.components_ready["autonomous_router"] else None
            self.supervisor.cognitive_predictor = (
                self.cognitive_predictor if self.components_ready["cognitive_predictor"] else None
            )

        self.initialized = all(results)
        if self.initialized:
            logger.info("PredictiveWorkflowEngine initialized successfully")
        else:
            logger.warning(f"Some components failed to initialize: {self.components_ready}")
        return self.initialized

    async def close(self) -> None:
        if self.supervisor is not None:
            await self.supervisor.cleanup_all()

        collaborators = self._collaborators()
        results = await asyncio.gather(
            *(c.close() for c in collaborators), return_exceptions=True
        )
        for collaborator, result in zip(collaborators, results):
            if isinstance(result, BaseException):
                logger.error(f"Error closing {collaborator.name}: {result}")

        self.initialized = False
        logger.info("PredictiveWorkflowEngine closed")

    # -- cognitive context ----------------------------------------------------

    async def get_cognitive_context(
        self, settings: UserSettings | dict[str, Any] | None = None
    ) -> CognitiveContext:
        """Fresh snapshot from the cognitive predictor, or the default one."""
        if not self.components_ready["cognitive_predictor"]:
            return CognitiveContext.default()

        user_settings = UserSettings.coerce(settings)
        cognitive = user_settings.cognitive_optimization
        now = datetime.now()

        try:
            capacity_raw, hyperfocus_raw = await asyncio.gather(
                self.cognitive_predictor.predict_cognitive_capacity(
                    now,
                    TASK_COMPLEXITY,
                    {"adhd_accommodations": cognitive.adhd_accommodations},
                ),
                self.cognitive_predictor.predict_hyperfocus_cycle(now),
            )
            capacity = CapacityPrediction.from_dict(capacity_raw or {})
            hyperfocus = HyperfocusPrediction.from_dict(hyperfocus_raw or {})
        except Exception as e:
            logger.warning(f"Error getting cognitive context: {e}")
            return CognitiveContext.default()

        switching_cost = float((capacity_raw or {}).get("switching_cost", DEFAULT_SWITCHING_COST))
        recent_switches = int((capacity_raw or {}).get("recent_switches", DEFAULT_RECENT_SWITCHES))

        return CognitiveContext(
            capacity=capacity,
            hyperfocus=hyperfocus,
            adhd_accommodations_active=cognitive.adhd_accommodations,
            break_preferences=cognitive.break_preferences,
            context_switching=ContextSwitchingAnalysis(
                recent_switches=recent_switches,
                switching_cost=switching_cost,
                severity=classify_switching_severity(switching_cost),
            ),
            taken_at=now,
        )

    # -- suggestions ----------------------------------------------------------

    def _components_used(self) -> dict[str, bool]:
        return {
            "task_predictor": self.components_ready["task_predictor"],
            "workflow_memory": self.components_ready["workflow_memory"],
            "cognitive_predictor": self.components_ready["cognitive_predictor"],
        }

    def get_fallback_suggestions(
        self,
        task_input: str,
        project_context: str,
        context: CognitiveContext | None = None,
    ) -> dict[str, Any]:
        context = context or CognitiveContext.default()
        ranked = self.ranker.rank([fallback_suggestion(project_context)], context)
        return {
            "success": True,
            "task_input": task_input,
            "project_context": project_context,
            "suggestions": [s.to_dict() for s in ranked],
            "cognitive_analysis": context.to_dict(),
            "fallback": True,
            "components_used": dict(self.components_ready),
            "learning_available": False,
        }

    async def generate_workflow_suggestions(
        self,
        task_input: str,
        project_context: str,
        settings: UserSettings | dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Ranked, cognitively tuned workflow suggestions for a task.

        Args:
            task_input: The user's task text
            project_context: Project the task belongs to
            settings: User settings (model or dict)
            options: current_progress for the sequence predictor, anything
                else is passed to the memory suggester

        Returns:
            dict with success, suggestions (best first, at most
            max_workflow_suggestions), cognitive_analysis, generation_time (ms),
            components_used, learning_available and fallback
        """
        if not self.initialized or not self.config.engine.predictive_workflows_enabled:
            return self.get_fallback_suggestions(task_input, project_context)

        user_settings = UserSettings.coerce(settings)
        start = time.perf_counter()

        try:
            aggregation, context = await asyncio.gather(
                self.aggregator.aggregate(task_input, project_context, options),
                self.get_cognitive_context(user_settings),
            )
        except Exception as e:
            logger.error(f"Error generating workflow suggestions: {e}")
            return self.get_fallback_suggestions(task_input, project_context)

        if not aggregation.suggestions:
            logger.info(f"No workflow suggestions for {project_context}, using fallback plan")
            return self.get_fallback_suggestions(task_input, project_context, context)

        suggestions = aggregation.suggestions
        if self.config.engine.cognitive_optimization_enabled:
            suggestions = [self.optimizer.optimize(s, context) for s in suggestions]

        ranked = self.ranker.rank(
            suggestions, context, limit=self.config.engine.max_workflow_suggestions
        )

        return {
            "success": True,
            "task_input": task_input,
            "project_context": project_context,
            "suggestions": [s.to_dict() for s in ranked],
            "cognitive_analysis": context.to_dict(),
            "generation_time": (time.perf_counter() - start) * 1000,
            "components_used": self._components_used(),
            "learning_available": aggregation.learning_available,
            "failed_sources": aggregation.failed_sources,
            "fallback": False,
        }

    # -- workflows ------------------------------------------------------------

    def _require_supervisor(self) -> WorkflowSupervisor:
        if self.supervisor is None or not self.components_ready["workflow_orchestrator"]:
            raise EngineNotReadyError("Workflow orchestrator is not ready")
        return self.supervisor

    async def create_workflow(
        self,
        task_input: str,
        project_context: str,
        settings: UserSettings | dict[str, Any] | None = None,
        suggestion: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        supervisor = self._require_supervisor()
        return await supervisor.create(task_input, project_context, settings, suggestion, options)

    async def execute_workflow(
        self,
        workflow_id: str,
        settings: UserSettings | dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        supervisor = self._require_supervisor()
        return await supervisor.execute(workflow_id, settings, options)

    # -- status ---------------------------------------------------------------

    def get_engine_status(self) -> dict[str, Any]:
        supervisor = self.supervisor
        return {
            "initialized": self.initialized,
            "components_ready": dict(self.components_ready),
            "configuration": self.config.model_dump(),
            "active_workflows": len(supervisor.active_workflows) if supervisor else 0,
            "cognitive_monitoring_active": supervisor.active_monitors if supervisor else 0,
            "autonomous_decisions_logged": len(supervisor.decision_log) if supervisor else 0,
            "uptime": time.monotonic() - self._started,
        }


__all__ = ["PredictiveWorkflowEngine"]
