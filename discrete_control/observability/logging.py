from __future__ import annotations

import logging
from typing import Any, Literal

import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

# Per-frame positions are noisy floats; 6 places is far below a scene unit.
_FLOAT_PLACES = 6


def _round_floats(value: Any) -> Any:
    if isinstance(value, float):
        return round(value, _FLOAT_PLACES)
    if isinstance(value, dict):
        return {k: _round_floats(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_round_floats(v) for v in value]
    return value


def round_floats(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return {k: _round_floats(v) for k, v in event_dict.items()}


def configure_logging(*, level: LogLevel = "INFO", json_logs: bool = True) -> None:
    """Configure stdlib logging + structlog.

    JSON by default so controller events (``action.*``, ``queue.*``,
    ``physics.*``) can be collected by the host process; console rendering
    is for local runs.
    """

    logging.basicConfig(level=getattr(logging, level), format="%(message)s")

    processors: list[structlog.types.Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        round_floats,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "discrete-control") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def component_logger(component: str, **initial: Any) -> structlog.stdlib.BoundLogger:
    return get_logger().bind(component=component, **initial)
