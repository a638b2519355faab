"""
Autonomous Decision Gate
========================
Decides whether a single routing decision can run without asking the user.

Flow:
    task -> RoutingPrimitive (baseline decision)
         -> ordered eligibility checks (first failure wins)
         -> execute: wrap decision, bump pattern usage, append to log

Eligibility checks, in order:
    1. global autopilot enabled            else autopilot_disabled
    2. project context known               else new_project_type
    3. baseline confidence >= threshold    else low_confidence
    4. context switching penalty <= 0.20   else context_switching_high
    5. pattern exists for (project, model) else new_pattern
       pattern not disabled by feedback    else pattern_disabled
    6. pattern stable (if required)        else pattern_unstable
    7. user opted in to autopilot          else user_disabled

Every refusal carries a reason and a trigger so the caller can explain it.
Feedback and manual overrides flow back into the PatternStore.
"""

from __future__ import annotations

import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from steward.autonomous.patterns import (
    PatternStore,
    RoutingPattern,
    SuccessRateEstimator,
    StabilityEstimator,
    apply_feedback,
    record_usage,
)
from steward.collaborators.base import ProjectInsightsSource, RoutingPrimitive
from steward.config_models import (
    MAX_CONFIDENCE_THRESHOLD,
    MIN_CONFIDENCE_THRESHOLD,
    AutonomousCriteria,
    UserSettings,
)
from steward.errors import DecisionNotFoundError, ValidationError
from steward.logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_PROJECT = "unknown"
OVERRIDE_RATING = 0.3
AUTOPILOT_VERSION = "1.0"
STATISTICS_WINDOW = 50


class EscalationTrigger(StrEnum):
    AUTOPILOT_DISABLED = "autopilot_disabled"
    NEW_PROJECT_TYPE = "new_project_type"
    LOW_CONFIDENCE = "low_confidence"
    CONTEXT_SWITCHING_HIGH = "context_switching_high"
    NEW_PATTERN = "new_pattern"
    PATTERN_DISABLED = "pattern_disabled"
    PATTERN_UNSTABLE = "pattern_unstable"
    USER_DISABLED = "user_disabled"
    ROUTER_ERROR = "router_error"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class BaselineDecision:
    """The fields of a router decision the gate cares about."""
    project_context: str
    model: str
    confidence: float
    context_switching_penalty: float
    reason: str
    raw: dict[str, Any]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> BaselineDecision:
        selection = raw.get("selection") or {}
        analysis = (raw.get("memory_integration") or {}).get("context_analysis") or {}
        project = (analysis.get("project_context") or {}).get("project") or UNKNOWN_PROJECT
        switching = analysis.get("context_switching") or {}
        return cls(
            project_context=project,
            model=selection.get("model", ""),
            confidence=float(selection.get("confidence") or 0.0),
            context_switching_penalty=float(switching.get("switch_frequency") or 0.0),
            reason=selection.get("reason", ""),
            raw=raw,
        )


@dataclass
class Eligibility:
    eligible: bool
    reason: str = ""
    trigger: EscalationTrigger | None = None
    confidence: float | None = None
    pattern: RoutingPattern | None = None


@dataclass
class AutonomousDecisionLogEntry:
    """One autonomous execution. Feedback and override are filled in later."""
    id: str
    timestamp: datetime
    task_input: str
    project_context: str
    selected_model: str
    decision_confidence: float
    baseline_confidence: float
    pattern_confidence: float
    reasoning: str
    execution_time_ms: float
    user_reviewed: bool = False
    user_feedback: dict[str, Any] | None = None
    user_override: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "task_input": self.task_input,
            "project_context": self.project_context,
            "selected_model": self.selected_model,
            "decision_confidence": self.decision_confidence,
            "baseline_confidence": self.baseline_confidence,
            "pattern_confidence": self.pattern_confidence,
            "reasoning": self.reasoning,
            "execution_time_ms": self.execution_time_ms,
            "user_reviewed": self.user_reviewed,
            "user_feedback": self.user_feedback,
            "user_override": self.user_override,
        }


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

class AutonomousDecisionGate:
    """
    Autopilot for routine routing decisions.

    Holds the global autopilot flag, the confidence threshold, the pattern
    store and a bounded log of autonomous executions.
    """

    def __init__(
        self,
        router: RoutingPrimitive,
        store: PatternStore | None = None,
        criteria: AutonomousCriteria | None = None,
        confidence_threshold: float = 0.9,
    ):
        self._validate_threshold(confidence_threshold)
        self.router = router
        self.store = store or PatternStore()
        self.criteria = criteria or AutonomousCriteria()
        self.confidence_threshold = confidence_threshold
        self.autopilot_enabled = False
        self.user_preferences: dict[str, Any] = {}

        self._log: deque[AutonomousDecisionLogEntry] = deque(
            maxlen=self.criteria.decision_log_size
        )
        self._escalations: Counter[str] = Counter()

    async def initialize(
        self,
        insights: ProjectInsightsSource | None = None,
        success_estimator: SuccessRateEstimator | None = None,
        stability_estimator: StabilityEstimator | None = None,
    ) -> bool:
        """Load qualifying patterns from project memory, if one is given."""
        if insights is None:
            return True
        try:
            await self.store.load_from_insights(
                insights, self.criteria, success_estimator, stability_estimator
            )
        except Exception as e:
            logger.warning(f"Could not load high-confidence patterns: {e}")
            return False
        return True

    # -- settings -------------------------------------------------------------

    @staticmethod
    def _validate_threshold(threshold: float) -> None:
        if not MIN_CONFIDENCE_THRESHOLD <= threshold <= MAX_CONFIDENCE_THRESHOLD:
            raise ValidationError(
                f"Confidence threshold must be between {MIN_CONFIDENCE_THRESHOLD} "
                f"and {MAX_CONFIDENCE_THRESHOLD}"
            )

    def set_autopilot_mode(
        self, enabled: bool, user_preferences: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        self.autopilot_enabled = enabled
        self.user_preferences = {**self.user_preferences, **(user_preferences or {})}

        if enabled:
            logger.info("Autopilot mode enabled for high-confidence routing decisions")
        else:
            logger.info("Autopilot mode disabled - all decisions require manual confirmation")

        return {
            "autopilot_enabled": self.autopilot_enabled,
            "confidence_threshold": self.confidence_threshold,
            "high_confidence_patterns": len(self.store),
        }

    def set_confidence_threshold(self, threshold: float) -> dict[str, Any]:
        self._validate_threshold(threshold)
        self.confidence_threshold = threshold
        logger.info(f"Autonomous routing confidence threshold set to {round(threshold * 100)}%")
        return {"confidence_threshold": threshold}

    # -- gating ---------------------------------------------------------------

    def _refuse(self, reason: str, trigger: EscalationTrigger) -> Eligibility:
        self._escalations[trigger.value] += 1
        return Eligibility(eligible=False, reason=reason, trigger=trigger)

    def assess_eligibility(
        self, baseline: BaselineDecision, settings: UserSettings
    ) -> Eligibility:
        """Run checks 2-7 against a baseline decision. First failure wins."""
        if self.criteria.exclude_new_project_types and baseline.project_context == UNKNOWN_PROJECT:
            return self._refuse("Unknown project context", EscalationTrigger.NEW_PROJECT_TYPE)

        if baseline.confidence < self.confidence_threshold:
            return self._refuse(
                f"Confidence {round(baseline.confidence * 100)}% below threshold "
                f"{round(self.confidence_threshold * 100)}%",
                EscalationTrigger.LOW_CONFIDENCE,
            )

        if baseline.context_switching_penalty > self.criteria.max_context_switching_penalty:
            return self._refuse(
                "High context switching penalty detected",
                EscalationTrigger.CONTEXT_SWITCHING_HIGH,
            )

        pattern = self.store.get(baseline.project_context, baseline.model)
        if pattern is None:
            return self._refuse(
                "No high-confidence pattern found for this combination",
                EscalationTrigger.NEW_PATTERN,
            )

        if not pattern.enabled:
            return self._refuse(
                "Pattern disabled after negative feedback",
                EscalationTrigger.PATTERN_DISABLED,
            )

        if self.criteria.require_pattern_stability and not pattern.stability:
            return self._refuse(
                "Pattern not stable enough for autonomous routing",
                EscalationTrigger.PATTERN_UNSTABLE,
            )

        if not settings.autonomous_routing.enable_autopilot:
            return self._refuse(
                "User has disabled autonomous routing",
                EscalationTrigger.USER_DISABLED,
            )

        return Eligibility(
            eligible=True,
            confidence=min(baseline.confidence, pattern.confidence),
            pattern=pattern,
        )

    async def attempt(
        self,
        task_input: str,
        settings: UserSettings | dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Try to route a task without user confirmation.

        Returns:
            {"autonomous": False, "reason", "trigger", ...} on refusal, or
            {"autonomous": True, "decision", "confidence", "pattern", ...}
        """
        if not self.autopilot_enabled:
            self._escalations[EscalationTrigger.AUTOPILOT_DISABLED.value] += 1
            return {
                "autonomous": False,
                "reason": "autopilot disabled",
                "trigger": EscalationTrigger.AUTOPILOT_DISABLED.value,
            }

        user_settings = UserSettings.coerce(settings)

        try:
            raw = await self.router.make_routing_decision(
                task_input, user_settings.model_dump(), options or {}
            )
        except Exception as e:
            logger.error(f"Error in autonomous routing: {e}")
            self._escalations[EscalationTrigger.ROUTER_ERROR.value] += 1
            return {
                "autonomous": False,
                "reason": "Autonomous routing error",
                "trigger": EscalationTrigger.ROUTER_ERROR.value,
                "error": str(e),
            }

        baseline = BaselineDecision.from_dict(raw)
        eligibility = self.assess_eligibility(baseline, user_settings)

        if not eligibility.eligible:
            logger.debug(f"Escalating to manual routing: {eligibility.trigger}")
            return {
                "autonomous": False,
                "reason": eligibility.reason,
                "trigger": eligibility.trigger.value,
                "standard_decision": raw,
            }

        decision, entry, pattern = await self._execute(task_input, baseline, eligibility)

        return {
            "autonomous": True,
            "decision": decision,
            "decision_id": entry.id,
            "confidence": eligibility.confidence,
            "pattern": pattern.to_dict(),
            "execution_time": entry.execution_time_ms,
        }

    async def _execute(
        self, task_input: str, baseline: BaselineDecision, eligibility: Eligibility
    ) -> tuple[dict[str, Any], AutonomousDecisionLogEntry, RoutingPattern]:
        start = time.perf_counter()
        raw = baseline.raw
        reason = f"Autonomous routing: {baseline.reason}"

        decision = {
            **raw,
            "autonomous": True,
            "autonomous_confidence": eligibility.confidence,
            "autonomous_pattern_match": True,
            "selection": {
                **(raw.get("selection") or {}),
                "reason": reason,
                "autonomous": True,
                "manual_override_available": True,
            },
            "metadata": {
                **(raw.get("metadata") or {}),
                "autonomous_routing": True,
                "autopilot_version": AUTOPILOT_VERSION,
                "can_override": True,
            },
        }

        used = await self.store.update(baseline.project_context, baseline.model, record_usage)
        pattern = used or eligibility.pattern

        execution_time_ms = (time.perf_counter() - start) * 1000
        decision["execution_time"] = execution_time_ms

        entry = AutonomousDecisionLogEntry(
            id=f"auto_{uuid.uuid4().hex[:12]}",
            timestamp=datetime.now(),
            task_input=raw.get("task", task_input),
            project_context=baseline.project_context,
            selected_model=baseline.model,
            decision_confidence=eligibility.confidence,
            baseline_confidence=baseline.confidence,
            pattern_confidence=eligibility.pattern.confidence,
            reasoning=reason,
            execution_time_ms=execution_time_ms,
        )
        self._log.append(entry)
        decision["decision_id"] = entry.id

        return decision, entry, pattern

    # -- feedback -------------------------------------------------------------

    def _find_entry(self, decision_id: str) -> AutonomousDecisionLogEntry:
        for entry in self._log:
            if entry.id == decision_id:
                return entry
        raise DecisionNotFoundError(decision_id)

    async def _update_pattern(self, entry: AutonomousDecisionLogEntry, success: bool) -> bool:
        updated = await self.store.update(
            entry.project_context,
            entry.selected_model,
            lambda p: apply_feedback(p, success, self.criteria.min_success_rate),
        )
        return updated is not None

    async def record_feedback(self, decision_id: str, feedback: dict[str, Any]) -> dict[str, Any]:
        """
        Record user feedback on an autonomous decision.

        Args:
            decision_id: Log entry id returned by attempt()
            feedback: dict with success (bool), rating, comments

        Raises:
            DecisionNotFoundError: when the id is not in the log
        """
        entry = self._find_entry(decision_id)
        success = bool(feedback.get("success"))

        entry.user_reviewed = True
        entry.user_feedback = {
            "success": success,
            "rating": feedback.get("rating"),
            "comments": feedback.get("comments"),
            "timestamp": datetime.now().isoformat(),
        }

        updated_pattern = await self._update_pattern(entry, success)

        routing_decision = {
            "selection": {"model": entry.selected_model},
            "memory_integration": {
                "context_analysis": {"project_context": {"project": entry.project_context}}
            },
        }
        forwarded = True
        try:
            await self.router.record_routing_feedback(
                routing_decision, success, feedback.get("rating"), feedback.get("comments")
            )
        except Exception as e:
            logger.warning(f"Failed to forward routing feedback for {decision_id}: {e}")
            forwarded = False

        return {
            "success": True,
            "message": "Autonomous routing feedback recorded",
            "updated_pattern": updated_pattern,
            "feedback_forwarded": forwarded,
        }

    async def override(self, decision_id: str, manual_selection: dict[str, Any]) -> dict[str, Any]:
        """
        Replace an autonomous choice with the user's own.

        Counts as failed feedback (rating 0.3) against the original pattern.

        Raises:
            DecisionNotFoundError: when the id is not in the log
        """
        entry = self._find_entry(decision_id)
        new_model = manual_selection.get("model")

        entry.user_override = {
            "original_model": entry.selected_model,
            "override_model": new_model,
            "override_reason": manual_selection.get("reason"),
            "rating": OVERRIDE_RATING,
            "timestamp": datetime.now().isoformat(),
        }

        await self._update_pattern(entry, success=False)

        logger.info(f"Autonomous decision {decision_id} overridden: {entry.selected_model} -> {new_model}")

        return {
            "success": True,
            "message": "Autonomous decision overridden",
            "original_model": entry.selected_model,
            "new_model": new_model,
        }

    # -- reporting ------------------------------------------------------------

    @property
    def log(self) -> list[AutonomousDecisionLogEntry]:
        return list(self._log)

    def success_rate(self) -> float | None:
        """Share of reviewed decisions the user marked successful."""
        reviewed = [e for e in self._log if e.user_reviewed]
        if not reviewed:
            return None
        successful = [
            e for e in reviewed
            if e.user_feedback and e.user_feedback.get("success") is not False
        ]
        return len(successful) / len(reviewed)

    def get_decision_history(self, limit: int = 20) -> dict[str, Any]:
        entries = list(self._log)[-limit:] if limit > 0 else []
        return {
            "decisions": [e.to_dict() for e in entries],
            "total_autonomous_decisions": len(self._log),
            "autopilot_enabled": self.autopilot_enabled,
            "confidence_threshold": self.confidence_threshold,
            "high_confidence_patterns": len(self.store),
            "success_rate": self.success_rate(),
        }

    def get_statistics(self) -> dict[str, Any]:
        recent = list(self._log)[-STATISTICS_WINDOW:]
        overrides = sum(1 for e in recent if e.user_override)
        return {
            "autopilot_enabled": self.autopilot_enabled,
            "confidence_threshold": self.confidence_threshold,
            "total_autonomous_decisions": len(self._log),
            "high_confidence_patterns": len(self.store),
            "recent_decisions": len(recent),
            "override_rate": overrides / len(recent) if recent else 0,
            "success_rate": self.success_rate(),
            "patterns_by_project": self.store.by_project(),
            "escalation_reasons": dict(self._escalations),
        }


__all__ = [
    "AutonomousDecisionGate",
    "AutonomousDecisionLogEntry",
    "BaselineDecision",
    "Eligibility",
    "EscalationTrigger",
]
