"""Tests for steward/workflows/supervisor.py and monitoring.py

Tests the workflow lifecycle:
- Creation and registration with policy and user flags
- Autonomous routing option injection and decision counting
- Periodic monitoring while executing
- Completion hand-off to workflow memory
- Unconditional cleanup on success, reported failure and raised errors
"""

import asyncio

import pytest

from steward.autonomous.gate import AutonomousDecisionGate
from steward.config_models import EngineSettings, MonitoringSettings, UserSettings
from steward.errors import CollaboratorError, ValidationError, WorkflowNotFoundError
from steward.workflows.monitoring import CognitiveMonitor
from steward.workflows.supervisor import WorkflowState, WorkflowSupervisor
from tests.conftest import FakeCognitivePredictor, FakeRouter

# ~12ms between ticks
FAST_MINUTES = 0.0002


@pytest.fixture
def fast_settings() -> UserSettings:
    """Autopilot on, micro breaks every ~12ms."""
    return UserSettings(
        autonomous_routing={"enable_autopilot": True},
        cognitive_optimization={"break_preferences": {"micro_break_interval": FAST_MINUTES}},
    )


@pytest.fixture
def supervisor(orchestrator, workflow_memory, cognitive_predictor) -> WorkflowSupervisor:
    return WorkflowSupervisor(
        orchestrator,
        gate=AutonomousDecisionGate(FakeRouter()),
        recorder=workflow_memory,
        cognitive_predictor=cognitive_predictor,
        monitoring=MonitoringSettings(capacity_check_interval_minutes=FAST_MINUTES),
    )


def capture_monitor(supervisor, orchestrator) -> list:
    captured = []
    orchestrator.on_execute = lambda wid, opts: captured.append(supervisor.get(wid).monitor)
    return captured


# ─────────────────────────────────────────────────────────────────────────────
# Create
# ─────────────────────────────────────────────────────────────────────────────


class TestCreate:
    """Tests for WorkflowSupervisor.create()."""

    @pytest.mark.asyncio
    async def test_registers_workflow(self, supervisor, autopilot_settings):
        result = await supervisor.create("Add login", "steward-development", autopilot_settings)

        assert result["success"] is True
        assert result["engine_integration"] == {
            "cognitive_monitoring": True,
            "autonomous_routing": True,
            "learning_enabled": True,
        }
        active = supervisor.get(result["workflow_id"])
        assert active.state == WorkflowState.CREATED
        assert active.step_count == 3

    @pytest.mark.asyncio
    async def test_autonomous_needs_user_opt_in(self, supervisor):
        result = await supervisor.create("Add login", "steward-development", UserSettings())
        assert supervisor.get(result["workflow_id"]).autonomous_routing_enabled is False

    @pytest.mark.asyncio
    async def test_autonomous_needs_policy(self, orchestrator, autopilot_settings):
        supervisor = WorkflowSupervisor(
            orchestrator, settings=EngineSettings(autonomous_routing_enabled=False)
        )
        result = await supervisor.create("Add login", "steward-development", autopilot_settings)
        assert supervisor.get(result["workflow_id"]).autonomous_routing_enabled is False

    @pytest.mark.asyncio
    async def test_suggestion_passed_to_orchestrator(self, supervisor, orchestrator, predictor_suggestion):
        seen = {}

        async def create_workflow(task_input, project_context, user_profile, options=None):
            seen.update(options)
            return {"success": True, "workflow_id": "wf_s", "workflow": {}}

        orchestrator.create_workflow = create_workflow
        await supervisor.create("Add login", "steward-development", suggestion=predictor_suggestion)

        assert [s["phase"] for s in seen["workflow_suggestion"]["steps"]] == [
            "Planning", "Implementation", "Testing",
        ]
        assert supervisor.get("wf_s").step_count == 3
        assert supervisor.get("wf_s").estimated_duration == 110

    @pytest.mark.asyncio
    async def test_declined_not_tracked(self, supervisor, orchestrator):
        orchestrator.create_result = {"success": False, "error": "bad task"}

        result = await supervisor.create("Add login", "steward-development")

        assert result == {"success": False, "error": "bad task"}
        assert supervisor.active_workflows == []

    @pytest.mark.asyncio
    async def test_orchestrator_error_raised(self, supervisor, orchestrator):
        orchestrator.create_error = RuntimeError("orchestrator down")

        with pytest.raises(CollaboratorError, match="orchestrator down"):
            await supervisor.create("Add login", "steward-development")
        assert supervisor.active_workflows == []


# ─────────────────────────────────────────────────────────────────────────────
# Execute
# ─────────────────────────────────────────────────────────────────────────────


class TestExecute:
    """Tests for WorkflowSupervisor.execute()."""

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, supervisor):
        with pytest.raises(WorkflowNotFoundError):
            await supervisor.execute("wf_missing")

    @pytest.mark.asyncio
    async def test_success_hands_off_and_cleans_up(self, supervisor, workflow_memory, autopilot_settings):
        created = await supervisor.create("Add login", "steward-development", autopilot_settings)
        workflow_id = created["workflow_id"]

        result = await supervisor.execute(workflow_id)

        assert result["success"] is True
        assert result["engine_integration"]["cognitive_monitoring_active"] is True
        assert workflow_id not in supervisor.active_workflows

        record = workflow_memory.recorded[0]
        assert record["workflow_id"] == workflow_id
        assert record["steps_completed"] == 3
        assert record["actual_duration"] == 75
        assert record["estimated_duration"] == 90
        assert record["success_rate"] == 1.0
        assert record["execution_strategy"] == "sequential"
        assert record["autonomous_routing_usage"] == 0

    @pytest.mark.asyncio
    async def test_monitoring_ticks_then_stops(
        self, supervisor, orchestrator, cognitive_predictor, fast_settings
    ):
        orchestrator.execute_delay = 0.1
        captured = capture_monitor(supervisor, orchestrator)
        created = await supervisor.create("Add login", "steward-development", fast_settings)

        result = await supervisor.execute(created["workflow_id"])

        monitor = captured[0]
        assert isinstance(monitor, CognitiveMonitor)
        assert len(monitor.capacity_checks) >= 1
        assert len(monitor.break_recommendations) >= 1
        assert result["engine_integration"]["cognitive_optimizations_applied"] == monitor.optimizations_applied
        assert monitor.running is False

        calls, breaks = cognitive_predictor.calls, len(monitor.break_recommendations)
        await asyncio.sleep(0.06)
        assert cognitive_predictor.calls == calls
        assert len(monitor.break_recommendations) == breaks

    @pytest.mark.asyncio
    async def test_failure_propagates_after_cleanup(
        self, supervisor, orchestrator, cognitive_predictor, workflow_memory, fast_settings
    ):
        orchestrator.execute_delay = 0.05
        orchestrator.execute_error = RuntimeError("step 2 crashed")
        captured = capture_monitor(supervisor, orchestrator)
        created = await supervisor.create("Add login", "steward-development", fast_settings)
        workflow_id = created["workflow_id"]

        with pytest.raises(CollaboratorError, match="step 2 crashed"):
            await supervisor.execute(workflow_id)

        assert workflow_id not in supervisor.active_workflows
        assert supervisor.active_monitors == 0
        assert workflow_memory.recorded == []

        monitor = captured[0]
        assert monitor.running is False
        calls = cognitive_predictor.calls
        await asyncio.sleep(0.06)
        assert cognitive_predictor.calls == calls

    @pytest.mark.asyncio
    async def test_reported_failure_cleans_up(self, supervisor, orchestrator, workflow_memory):
        orchestrator.execute_result = {"success": False, "error": "user cancelled"}
        created = await supervisor.create("Add login", "steward-development")

        result = await supervisor.execute(created["workflow_id"])

        assert result["success"] is False
        assert "engine_integration" in result
        assert workflow_memory.recorded == []
        assert supervisor.active_workflows == []

    @pytest.mark.asyncio
    async def test_execute_twice_not_found(self, supervisor):
        created = await supervisor.create("Add login", "steward-development")
        await supervisor.execute(created["workflow_id"])

        with pytest.raises(WorkflowNotFoundError):
            await supervisor.execute(created["workflow_id"])

    @pytest.mark.asyncio
    async def test_concurrent_execute_leaves_no_monitor_running(self, supervisor, orchestrator, fast_settings):
        orchestrator.execute_delay = 0.05
        built = []
        build_monitor = supervisor._build_monitor

        def tracking_build(active):
            monitor = build_monitor(active)
            built.append(monitor)
            return monitor

        supervisor._build_monitor = tracking_build
        created = await supervisor.create("Add login", "steward-development", fast_settings)
        workflow_id = created["workflow_id"]

        results = await asyncio.gather(
            supervisor.execute(workflow_id),
            supervisor.execute(workflow_id),
            return_exceptions=True,
        )
        await asyncio.sleep(0.05)

        assert results[0]["success"] is True
        assert isinstance(results[1], ValidationError)
        assert len(built) == 1
        assert not any(m.running for m in built)
        assert supervisor.active_workflows == []

    @pytest.mark.asyncio
    async def test_monitoring_disabled(self, orchestrator):
        supervisor = WorkflowSupervisor(
            orchestrator, settings=EngineSettings(cognitive_optimization_enabled=False)
        )
        captured = capture_monitor(supervisor, orchestrator)
        created = await supervisor.create("Add login", "steward-development")

        result = await supervisor.execute(created["workflow_id"])

        assert captured == [None]
        assert result["engine_integration"]["cognitive_optimizations_applied"] == 0


# ─────────────────────────────────────────────────────────────────────────────
# Autonomous Routing
# ─────────────────────────────────────────────────────────────────────────────


class TestAutonomousRouting:
    @pytest.mark.asyncio
    async def test_options_injected(self, supervisor, orchestrator, workflow_memory, autopilot_settings):
        def route_two_steps(workflow_id, options):
            callback = options["autonomous_routing"]["decision_callback"]
            callback({"selection": {"model": "gpt-4"}})
            callback({"selection": {"model": "gpt-4"}})

        orchestrator.on_execute = route_two_steps
        created = await supervisor.create("Add login", "steward-development", autopilot_settings)

        result = await supervisor.execute(created["workflow_id"], options={"dry_run": False})

        routing = orchestrator.execute_options["autonomous_routing"]
        assert routing["enabled"] is True
        assert routing["confidence_threshold"] == 0.9
        assert routing["gate"] is supervisor.gate
        assert orchestrator.execute_options["dry_run"] is False
        assert result["engine_integration"]["autonomous_decisions_made"] == 2
        assert workflow_memory.recorded[0]["autonomous_routing_usage"] == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_user_threshold_used(self, supervisor, orchestrator):
        settings = {"autonomous_routing": {"enable_autopilot": True, "confidence_threshold": 0.8}}
        created = await supervisor.create("Add login", "steward-development", settings)

        await supervisor.execute(created["workflow_id"])

        assert orchestrator.execute_options["autonomous_routing"]["confidence_threshold"] == 0.8

    @pytest.mark.asyncio
    async def test_not_injected_without_opt_in(self, supervisor, orchestrator):
        created = await supervisor.create("Add login", "steward-development", UserSettings())

        await supervisor.execute(created["workflow_id"])

        assert "autonomous_routing" not in orchestrator.execute_options

    def test_decision_log_bounded(self, supervisor):
        for i in range(120):
            supervisor.record_autonomous_decision("wf_1", {"n": i})

        log = supervisor.decision_log
        assert len(log) == 100
        assert log[0]["decision"] == {"n": 20}


# ─────────────────────────────────────────────────────────────────────────────
# Completion Hand-off
# ─────────────────────────────────────────────────────────────────────────────


class TestCompletion:
    @pytest.mark.asyncio
    async def test_recorder_failure_does_not_fail_execute(self, supervisor, workflow_memory):
        workflow_memory.record_error = RuntimeError("disk full")
        created = await supervisor.create("Add login", "steward-development")

        result = await supervisor.execute(created["workflow_id"])

        assert result["success"] is True
        assert supervisor.active_workflows == []

    @pytest.mark.asyncio
    async def test_learning_disabled(self, orchestrator, workflow_memory):
        supervisor = WorkflowSupervisor(
            orchestrator,
            recorder=workflow_memory,
            settings=EngineSettings(workflow_learning_enabled=False),
        )
        created = await supervisor.create("Add login", "steward-development")

        await supervisor.execute(created["workflow_id"])

        assert workflow_memory.recorded == []

    @pytest.mark.asyncio
    async def test_cleanup_all(self, supervisor):
        await supervisor.create("a", "p")
        await supervisor.create("b", "p")

        assert await supervisor.cleanup_all() == 2
        assert supervisor.active_workflows == []
        assert await supervisor.cleanup("wf_1") is False


# ─────────────────────────────────────────────────────────────────────────────
# Monitor
# ─────────────────────────────────────────────────────────────────────────────


class TestCognitiveMonitor:
    @pytest.mark.asyncio
    async def test_capacity_sample_flagged_below_threshold(self):
        monitor = CognitiveMonitor("wf_1", FakeCognitivePredictor(capacity=0.3), capacity_threshold=0.4)

        sample = await monitor.check_capacity()

        assert sample["predicted_capacity"] == 0.3
        assert sample["below_threshold"] is True

    @pytest.mark.asyncio
    async def test_no_predictor_no_sample(self):
        monitor = CognitiveMonitor("wf_1")
        assert await monitor.check_capacity() is None
        assert monitor.capacity_checks == []

    @pytest.mark.asyncio
    async def test_break_reminder_uses_duration(self):
        monitor = CognitiveMonitor("wf_1")
        reminder = await monitor.check_break()
        assert reminder["type"] == "micro"
        assert reminder["duration_minutes"] == 5

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self):
        predictor = FakeCognitivePredictor()
        predictor.error = RuntimeError("sensor offline")
        monitor = CognitiveMonitor("wf_1", predictor, capacity_interval=0.005, break_interval=10)

        async with monitor:
            await asyncio.sleep(0.05)
            assert monitor.running is True

        assert monitor.errors >= 2
        assert monitor.running is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        monitor = CognitiveMonitor("wf_1", capacity_interval=10, break_interval=10)
        monitor.start()
        await monitor.stop()
        await monitor.stop()
        assert monitor.running is False
