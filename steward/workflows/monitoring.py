"""
Cognitive Monitor

Two periodic loops owned by one running workflow:
    - capacity check: asks the cognitive predictor for current capacity and
      records a sample, flagged when it drops below the configured threshold
    - break check: records a micro-break reminder at the user's interval

A loop error is logged and the loop keeps going. stop() cancels both tasks
and waits for them, so no tick can fire after it returns. It is safe to
call more than once.

Usage:
    monitor = CognitiveMonitor(workflow_id, predictor, break_preferences)
    async with monitor:
        ...  # run the workflow
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from steward.collaborators.base import CognitivePredictor
from steward.config_models import BreakPreferences
from steward.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CAPACITY_INTERVAL = 15 * 60
DEFAULT_CAPACITY_THRESHOLD = 0.4


class CognitiveMonitor:
    def __init__(
        self,
        workflow_id: str,
        predictor: CognitivePredictor | None = None,
        break_preferences: BreakPreferences | None = None,
        capacity_interval: float = DEFAULT_CAPACITY_INTERVAL,
        break_interval: float | None = None,
        capacity_threshold: float = DEFAULT_CAPACITY_THRESHOLD,
    ):
        """
        Args:
            workflow_id: Workflow this monitor belongs to
            predictor: Source of capacity samples; without one the capacity
                loop records nothing
            break_preferences: User's break settings
            capacity_interval: Seconds between capacity checks
            break_interval: Seconds between break checks; defaults to the
                user's micro-break interval
            capacity_threshold: Capacity below which a sample is flagged
        """
        self.workflow_id = workflow_id
        self.predictor = predictor
        self.break_preferences = break_preferences or BreakPreferences()
        self.capacity_interval = capacity_interval
        self.break_interval = (
            break_interval
            if break_interval is not None
            else self.break_preferences.micro_break_interval * 60
        )
        self.capacity_threshold = capacity_threshold

        self.start_time: datetime | None = None
        self.capacity_checks: list[dict[str, Any]] = []
        self.break_recommendations: list[dict[str, Any]] = []
        self.errors = 0
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    @property
    def optimizations_applied(self) -> int:
        return len(self.capacity_checks) + len(self.break_recommendations)

    # -- ticks ----------------------------------------------------------------

    async def check_capacity(self) -> dict[str, Any] | None:
        if self.predictor is None:
            return None

        now = datetime.now()
        prediction = await self.predictor.predict_cognitive_capacity(now, "medium", {})
        capacity = float(prediction.get("predicted_capacity", 0.7))
        sample = {
            "timestamp": now.isoformat(),
            "predicted_capacity": capacity,
            "confidence": prediction.get("confidence"),
            "below_threshold": capacity < self.capacity_threshold,
        }
        self.capacity_checks.append(sample)

        if sample["below_threshold"]:
            logger.info(
                f"Capacity {capacity:.2f} below threshold {self.capacity_threshold:.2f} "
                f"during workflow {self.workflow_id}"
            )
        else:
            logger.debug(f"Capacity check for {self.workflow_id}: {capacity:.2f}")
        return sample

    async def check_break(self) -> dict[str, Any]:
        reminder = {
            "timestamp": datetime.now().isoformat(),
            "type": "micro",
            "duration_minutes": self.break_preferences.micro_break_duration,
            "message": f"Take a {self.break_preferences.micro_break_duration:g} minute break",
        }
        self.break_recommendations.append(reminder)
        logger.debug(f"Break reminder for {self.workflow_id}")
        return reminder

    # -- loops ----------------------------------------------------------------

    async def _run_loop(self, name: str, interval: float, tick) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await tick()
            except Exception as e:
                self.errors += 1
                logger.warning(f"{name} loop error for workflow {self.workflow_id}: {e}")

    def start(self) -> None:
        """Schedule both loops on the running event loop. No-op if already running."""
        if self.running:
            return

        self.start_time = datetime.now()
        self._tasks = [
            asyncio.create_task(
                self._run_loop("Capacity check", self.capacity_interval, self.check_capacity),
                name=f"capacity-check-{self.workflow_id}",
            ),
            asyncio.create_task(
                self._run_loop("Break check", self.break_interval, self.check_break),
                name=f"break-check-{self.workflow_id}",
            ),
        ]
        logger.debug(
            f"Started monitoring {self.workflow_id} "
            f"(capacity every {self.capacity_interval}s, breaks every {self.break_interval}s)"
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug(f"Stopped monitoring {self.workflow_id}")

    async def __aenter__(self) -> CognitiveMonitor:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "running": self.running,
            "capacity_checks": list(self.capacity_checks),
            "break_recommendations": list(self.break_recommendations),
            "errors": self.errors,
        }


__all__ = ["CognitiveMonitor"]
