from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping

import orjson
import structlog

# orjson refuses integers outside the 64-bit range; scaled amounts routinely are.
_INT64_MIN = -(1 << 63)
_UINT64_MAX = (1 << 64) - 1


def _json_serializer(obj: Any, default: Any) -> str:
    return orjson.dumps(obj, default=default).decode("utf-8")


def stringify_big_ints(
    _logger: Any,
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and not _INT64_MIN <= value <= _UINT64_MAX:
            event_dict[key] = str(value)
    return event_dict


def configure_logging(*, level: str = "INFO") -> None:
    """
    Configure structured JSON logging for the whole process.

    Call once at startup.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        # Merge context variables (pool_id, component, account, ...)
        structlog.contextvars.merge_contextvars,

        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),

        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.dict_tracebacks,

        stringify_big_ints,
        structlog.processors.JSONRenderer(serializer=_json_serializer),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # stdlib logging (fastapi, ASGI server) goes to the same stream
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def bind_context(**values: Any) -> None:
    """
    Bind contextual information to all future log entries.

    Example:
        bind_context(pool_id="default", component="api")
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    """Drop every value bound with bind_context (app shutdown)."""
    structlog.contextvars.clear_contextvars()
