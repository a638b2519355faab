"""
Logging for The Steward's routing and workflow core.

structlog on top of stdlib logging, so records from third-party libraries
and from steward modules share one handler and one format.

Every event carries the steward component that emitted it (autonomous,
workflows, ...) and, while a workflow executes, its workflow_id.

Environment:
    STEWARD_LOG_LEVEL   DEBUG | INFO | WARNING | ERROR (default INFO)
    STEWARD_LOG_FORMAT  "json" for one JSON object per line, else console

Usage:
    from steward.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info(f"Loaded {count} high-confidence routing patterns")
"""

from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LEVEL_ENV = "STEWARD_LOG_LEVEL"
FORMAT_ENV = "STEWARD_LOG_FORMAT"
DEFAULT_LEVEL = "INFO"
ROOT_PACKAGE = "steward"


def add_component(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """steward.workflows.engine -> component=workflows"""
    name = event_dict.get("logger") or ""
    parts = name.split(".")
    if len(parts) > 1 and parts[0] == ROOT_PACKAGE:
        event_dict.setdefault("component", parts[1])
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Route structlog and stdlib logging through a single stderr handler."""
    level = level or os.environ.get(LEVEL_ENV, DEFAULT_LEVEL)
    if json_output is None:
        json_output = os.environ.get(FORMAT_ENV, "").lower() == "json"

    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_workflow(workflow_id: str) -> None:
    """Attach a workflow id to every log line emitted by the current task."""
    structlog.contextvars.bind_contextvars(workflow_id=workflow_id)


def unbind_workflow() -> None:
    structlog.contextvars.unbind_contextvars("workflow_id")


__all__ = ["add_component", "bind_workflow", "get_logger", "setup_logging", "unbind_workflow"]
