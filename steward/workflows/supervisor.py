"""
Workflow Supervisor

Owns every accepted workflow from creation to cleanup.

States:
    CREATED -> MONITORING (optional) -> EXECUTING -> COMPLETED | FAILED
    CLEANED_UP is reached from every path; the entry is then removed.

execute():
    - starts the cognitive monitor when monitoring is enabled
    - injects autonomous routing options (threshold, gate, decision callback)
      when routing is enabled for the workflow
    - hands a completion record to workflow memory on success
    - always stops the monitor and drops the entry, whether the orchestrator
      succeeds, reports failure, or raises
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from steward.autonomous.gate import AutonomousDecisionGate
from steward.collaborators.base import (
    CognitivePredictor,
    CompletionRecorder,
    WorkflowOrchestrator,
)
from steward.config_models import EngineSettings, MonitoringSettings, UserSettings
from steward.errors import CollaboratorError, ValidationError, WorkflowNotFoundError
from steward.logging_config import bind_workflow, get_logger, unbind_workflow
from steward.workflows.models import SuggestionSource, WorkflowSuggestion
from steward.workflows.monitoring import CognitiveMonitor

logger = get_logger(__name__)

DECISION_LOG_SIZE = 100


class WorkflowState(StrEnum):
    CREATED = "created"
    MONITORING = "monitoring"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


@dataclass
class ActiveWorkflow:
    workflow_id: str
    project_context: str
    original_task: str
    settings: UserSettings
    workflow: dict[str, Any] = field(default_factory=dict)
    suggestion: WorkflowSuggestion | None = None
    cognitive_monitoring_enabled: bool = False
    autonomous_routing_enabled: bool = False
    state: WorkflowState = WorkflowState.CREATED
    monitor: CognitiveMonitor | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def step_count(self) -> int:
        steps = self.workflow.get("steps")
        if steps:
            return len(steps)
        if self.suggestion is not None:
            return len(self.suggestion.steps)
        return 0

    @property
    def estimated_duration(self) -> float | None:
        estimate = self.workflow.get("estimated_duration")
        if estimate is None and self.suggestion is not None:
            estimate = self.suggestion.total_estimated_duration
        return estimate

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "project_context": self.project_context,
            "original_task": self.original_task,
            "state": self.state.value,
            "cognitive_monitoring_enabled": self.cognitive_monitoring_enabled,
            "autonomous_routing_enabled": self.autonomous_routing_enabled,
            "steps": self.step_count,
            "estimated_duration": self.estimated_duration,
            "created_at": self.created_at.isoformat(),
        }


class WorkflowSupervisor:
    def __init__(
        self,
        orchestrator: WorkflowOrchestrator,
        gate: AutonomousDecisionGate | None = None,
        recorder: CompletionRecorder | None = None,
        cognitive_predictor: CognitivePredictor | None = None,
        settings: EngineSettings | None = None,
        monitoring: MonitoringSettings | None = None,
    ):
        self.orchestrator = orchestrator
        self.gate = gate
        self.recorder = recorder
        self.cognitive_predictor = cognitive_predictor
        self.settings = settings or EngineSettings()
        self.monitoring = monitoring or MonitoringSettings()

        self._active: dict[str, ActiveWorkflow] = {}
        self._decisions: deque[dict[str, Any]] = deque(maxlen=DECISION_LOG_SIZE)

    # -- queries --------------------------------------------------------------

    def get(self, workflow_id: str) -> ActiveWorkflow | None:
        return self._active.get(workflow_id)

    @property
    def active_workflows(self) -> list[str]:
        return list(self._active)

    @property
    def active_monitors(self) -> int:
        return sum(1 for a in self._active.values() if a.monitor is not None and a.monitor.running)

    @property
    def decision_log(self) -> list[dict[str, Any]]:
        return list(self._decisions)

    def autonomous_decision_count(self, workflow_id: str) -> int:
        return sum(1 for d in self._decisions if d["workflow_id"] == workflow_id)

    # -- create ---------------------------------------------------------------

    async def create(
        self,
        task_input: str,
        project_context: str,
        settings: UserSettings | dict[str, Any] | None = None,
        suggestion: WorkflowSuggestion | dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Materialize a workflow through the orchestrator and start tracking it.

        Returns:
            The orchestrator result plus an engine_integration block. A result
            with success False is returned unchanged and nothing is tracked.

        Raises:
            CollaboratorError: when the orchestrator raises
        """
        user_settings = UserSettings.coerce(settings)
        if isinstance(suggestion, dict):
            suggestion = WorkflowSuggestion.from_source(
                suggestion, _source_of(suggestion), project_context
            )

        create_options = dict(options or {})
        if suggestion is not None:
            create_options["workflow_suggestion"] = suggestion.to_dict()

        try:
            result = await self.orchestrator.create_workflow(
                task_input, project_context, user_settings.model_dump(), create_options
            )
        except Exception as e:
            logger.error(f"Error creating workflow for {project_context}: {e}")
            raise CollaboratorError("workflow_orchestrator", e) from e

        if not result.get("success"):
            logger.warning(f"Workflow orchestrator declined {project_context}: {result.get('error')}")
            return result

        workflow_id = result["workflow_id"]
        active = ActiveWorkflow(
            workflow_id=workflow_id,
            project_context=project_context,
            original_task=task_input,
            settings=user_settings,
            workflow=dict(result.get("workflow") or {}),
            suggestion=suggestion,
            cognitive_monitoring_enabled=self.settings.cognitive_optimization_enabled,
            autonomous_routing_enabled=(
                self.settings.autonomous_routing_enabled
                and user_settings.autonomous_routing.enable_autopilot
            ),
        )
        self._active[workflow_id] = active
        logger.info(f"Created workflow {workflow_id} for {project_context}")

        return {
            **result,
            "engine_integration": {
                "cognitive_monitoring": active.cognitive_monitoring_enabled,
                "autonomous_routing": active.autonomous_routing_enabled,
                "learning_enabled": self.settings.workflow_learning_enabled,
            },
        }

    # -- execute --------------------------------------------------------------

    def _build_monitor(self, active: ActiveWorkflow) -> CognitiveMonitor:
        prefs = active.settings.cognitive_optimization.break_preferences
        if "micro_break_interval" in prefs.model_fields_set:
            break_minutes = prefs.micro_break_interval
        else:
            break_minutes = self.monitoring.default_micro_break_interval

        return CognitiveMonitor(
            active.workflow_id,
            predictor=self.cognitive_predictor,
            break_preferences=prefs,
            capacity_interval=self.monitoring.capacity_check_interval_minutes * 60,
            break_interval=break_minutes * 60,
            capacity_threshold=self.settings.cognitive_capacity_threshold,
        )

    def record_autonomous_decision(self, workflow_id: str, decision: dict[str, Any]) -> None:
        self._decisions.append({
            "workflow_id": workflow_id,
            "timestamp": datetime.now().isoformat(),
            "decision": decision,
        })

    def _routing_options(self, active: ActiveWorkflow) -> dict[str, Any]:
        workflow_id = active.workflow_id
        threshold = (
            active.settings.autonomous_routing.confidence_threshold
            or self.settings.autonomous_confidence_threshold
        )
        return {
            "enabled": True,
            "confidence_threshold": threshold,
            "gate": self.gate,
            "decision_callback": lambda decision: self.record_autonomous_decision(workflow_id, decision),
        }

    async def execute(
        self,
        workflow_id: str,
        settings: UserSettings | dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Run a created workflow.

        Args:
            workflow_id: Id returned by create()
            settings: Overrides the settings given at creation
            options: Passed through to the orchestrator

        Raises:
            WorkflowNotFoundError: when the id was never created or is gone
            ValidationError: when the workflow is already executing
            CollaboratorError: when the orchestrator raises (after cleanup)
        """
        active = self._active.get(workflow_id)
        if active is None:
            raise WorkflowNotFoundError(workflow_id)
        # Only one execute per workflow; a second run would orphan the first monitor
        if active.state != WorkflowState.CREATED:
            raise ValidationError(f"Workflow {workflow_id} is already {active.state.value}")
        if settings is not None:
            active.settings = UserSettings.coerce(settings)

        bind_workflow(workflow_id)
        try:
            if active.cognitive_monitoring_enabled:
                active.monitor = self._build_monitor(active)
                active.monitor.start()
                active.state = WorkflowState.MONITORING

            execute_options = dict(options or {})
            if active.autonomous_routing_enabled and self.gate is not None:
                execute_options["autonomous_routing"] = self._routing_options(active)

            active.state = WorkflowState.EXECUTING
            try:
                result = await self.orchestrator.execute_workflow(workflow_id, execute_options)
            except Exception as e:
                active.state = WorkflowState.FAILED
                logger.error(f"Error executing workflow {workflow_id}: {e}")
                raise CollaboratorError("workflow_orchestrator", e) from e

            if active.monitor is not None:
                await active.monitor.stop()

            if result.get("success"):
                active.state = WorkflowState.COMPLETED
                await self._hand_off_completion(active, result)
            else:
                active.state = WorkflowState.FAILED
                logger.warning(f"Workflow {workflow_id} reported failure: {result.get('error')}")

            return {
                **result,
                "engine_integration": {
                    "cognitive_monitoring_active": active.cognitive_monitoring_enabled,
                    "autonomous_decisions_made": self.autonomous_decision_count(workflow_id),
                    "cognitive_optimizations_applied": (
                        active.monitor.optimizations_applied if active.monitor else 0
                    ),
                },
            }
        finally:
            await self.cleanup(workflow_id)
            unbind_workflow()

    # -- completion -----------------------------------------------------------

    def completion_record(self, active: ActiveWorkflow, result: dict[str, Any]) -> dict[str, Any]:
        steps = active.step_count or 1
        monitor = active.monitor
        return {
            "workflow_id": active.workflow_id,
            "project_context": active.project_context,
            "original_task": active.original_task,
            "steps_completed": result.get("steps_completed", 0),
            "actual_duration": result.get("duration") or active.estimated_duration,
            "estimated_duration": active.estimated_duration,
            "success_rate": result.get("success_rate", 1.0),
            "user_modifications": list(active.workflow.get("user_modifications") or []),
            "cognitive_load_actual": list(monitor.capacity_checks) if monitor else [],
            "autonomous_routing_usage": self.autonomous_decision_count(active.workflow_id) / steps,
            "execution_strategy": active.workflow.get("execution_strategy"),
        }

    async def _hand_off_completion(self, active: ActiveWorkflow, result: dict[str, Any]) -> None:
        if not self.settings.workflow_learning_enabled or self.recorder is None:
            return

        record = self.completion_record(active, result)
        try:
            await self.recorder.record_workflow_completion(record)
        except Exception as e:
            logger.warning(f"Failed to record completion for workflow {active.workflow_id}: {e}")
            return

        logger.info(f"Processed completion for workflow {active.workflow_id} - learning data recorded")

    # -- cleanup --------------------------------------------------------------

    async def cleanup(self, workflow_id: str) -> bool:
        """Stop monitoring and forget the workflow. Returns False if it was not tracked."""
        active = self._active.pop(workflow_id, None)
        if active is None:
            return False

        if active.monitor is not None:
            await active.monitor.stop()
        active.state = WorkflowState.CLEANED_UP
        logger.debug(f"Cleaned up workflow {workflow_id}")
        return True

    async def cleanup_all(self) -> int:
        workflow_ids = list(self._active)
        for workflow_id in workflow_ids:
            await self.cleanup(workflow_id)
        return len(workflow_ids)


def _source_of(data: dict[str, Any]) -> SuggestionSource:
    try:
        return SuggestionSource(data.get("source"))
    except ValueError:
        return SuggestionSource.TASK_SEQUENCE_PREDICTOR


__all__ = ["ActiveWorkflow", "WorkflowState", "WorkflowSupervisor"]
