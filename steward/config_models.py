from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from steward import CONFIG_PATH
from steward.errors import ValidationError
from steward.logging_config import get_logger

logger = get_logger(__name__)

MIN_CONFIDENCE_THRESHOLD = 0.70
MAX_CONFIDENCE_THRESHOLD = 0.99


# =============================================================================
# WorkflowEngineConfig (args/workflows.yaml)
# =============================================================================

class AutonomousCriteria(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_confidence_score: float = Field(default=0.9, ge=0.0, le=1.0)
    min_historical_usage: int = Field(default=5, ge=1)
    min_success_rate: float = Field(default=0.85, ge=0.0, le=1.0)
    max_context_switching_penalty: float = Field(default=0.2, ge=0.0, le=1.0)
    require_pattern_stability: bool = Field(default=True)
    exclude_new_project_types: bool = Field(default=True)
    decision_log_size: int = Field(default=100, ge=1)


class EngineSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    predictive_workflows_enabled: bool = Field(default=True)
    autonomous_routing_enabled: bool = Field(default=True)
    cognitive_optimization_enabled: bool = Field(default=True)
    workflow_learning_enabled: bool = Field(default=True)
    max_workflow_suggestions: int = Field(default=3, ge=1)
    autonomous_confidence_threshold: float = Field(
        default=0.9, ge=MIN_CONFIDENCE_THRESHOLD, le=MAX_CONFIDENCE_THRESHOLD
    )
    cognitive_capacity_threshold: float = Field(default=0.4, ge=0.0, le=1.0)


class MonitoringSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    capacity_check_interval_minutes: float = Field(default=15, gt=0)
    default_micro_break_interval: float = Field(default=25, gt=0)


class WorkflowEngineConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    autonomous: AutonomousCriteria = Field(default_factory=AutonomousCriteria)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)


# =============================================================================
# UserSettings (per-user profile passed with every request)
# =============================================================================

class BreakPreferences(BaseModel):
    model_config = ConfigDict(extra="allow")
    micro_break_interval: float = Field(default=25, gt=0)
    micro_break_duration: float = Field(default=5, ge=0)
    active_break_interval: float = Field(default=90, gt=0)
    active_break_duration: float = Field(default=15, ge=0)


class AutonomousRoutingPreferences(BaseModel):
    model_config = ConfigDict(extra="allow")
    enable_autopilot: bool = Field(default=False)
    confidence_threshold: Optional[float] = Field(
        default=None, ge=MIN_CONFIDENCE_THRESHOLD, le=MAX_CONFIDENCE_THRESHOLD
    )


class CognitiveOptimizationPreferences(BaseModel):
    model_config = ConfigDict(extra="allow")
    adhd_accommodations: bool = Field(default=False)
    break_preferences: BreakPreferences = Field(default_factory=BreakPreferences)


class UserSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    user_id: str = Field(default="owner")
    autonomous_routing: AutonomousRoutingPreferences = Field(
        default_factory=AutonomousRoutingPreferences
    )
    cognitive_optimization: CognitiveOptimizationPreferences = Field(
        default_factory=CognitiveOptimizationPreferences
    )

    @classmethod
    def coerce(cls, settings: UserSettings | dict[str, Any] | None) -> UserSettings:
        """Accept a model, a plain dict, or None."""
        if settings is None:
            return cls()
        if isinstance(settings, cls):
            return settings
        try:
            return cls.model_validate(settings)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid user settings: {e}") from e


# =============================================================================
# load_and_validate
# =============================================================================

def load_and_validate(path: Path | None = None) -> WorkflowEngineConfig:
    yaml_path = path or CONFIG_PATH

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return WorkflowEngineConfig.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        return WorkflowEngineConfig()


__all__ = [
    "AutonomousCriteria",
    "AutonomousRoutingPreferences",
    "BreakPreferences",
    "CognitiveOptimizationPreferences",
    "EngineSettings",
    "MAX_CONFIDENCE_THRESHOLD",
    "MIN_CONFIDENCE_THRESHOLD",
    "MonitoringSettings",
    "UserSettings",
    "WorkflowEngineConfig",
    "load_and_validate",
]
