"""Structured logging configuration for StoryScope.

Modules log through ``logging.getLogger(__name__)``; ``setup_logging``
installs a single root handler whose formatter runs those records through
the structlog processor chain. Output is JSON in containers and
human-readable on a terminal. Task ids bound with ``bind_request_context``
appear on every line emitted while a pipeline run is in progress.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

HANDLER_NAME = "storyscope"

# Client libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
    "google",
)


def is_cloud_environment() -> bool:
    """Check if running in a cloud environment (Kubernetes, Cloud Run, etc.)."""
    return bool(
        os.getenv("KUBERNETES_SERVICE_HOST")
        or os.getenv("K_SERVICE")  # Cloud Run
        or os.getenv("GAE_ENV")  # App Engine
    )


def _service_adder(service_name: str | None):
    def add_service(logger, method_name, event_dict):
        if service_name:
            event_dict.setdefault("service", service_name)
        return event_dict

    return add_service


def _shared_processors(service_name: str | None) -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _service_adder(service_name),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def setup_logging(
    level: str = "INFO",
    force_json: bool = False,
    service_name: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Safe to call more than once; the handler installed by a previous call is
    replaced, handlers owned by anything else are left alone.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        force_json: Force JSON output even in non-cloud environments
        service_name: Name of the service, added to every log event
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    use_json = force_json or is_cloud_environment()

    shared = _shared_processors(service_name)
    if use_json:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


def bind_request_context(
    request_id: str | None = None,
    task_id: int | str | None = None,
    **kwargs: Any,
) -> None:
    """Attach identifiers to every log line of the current context.

    Args:
        request_id: Unique request identifier
        task_id: Automation task being processed
        **kwargs: Additional context to bind
    """
    context: dict[str, Any] = {}
    if request_id:
        context["request_id"] = request_id
    if task_id is not None:
        context["task_id"] = task_id
    context.update(kwargs)

    if context:
        structlog.contextvars.bind_contextvars(**context)


def unbind_trace_context(*keys: str) -> None:
    """Drop ``keys`` from the bound context, or everything when none given."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()
