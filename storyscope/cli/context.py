"""Shared utilities for CLI command modules."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from storyscope import config
from storyscope.utils.logging_config import setup_logging as _setup_structured_logging

T = TypeVar("T")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for CLI commands.

    Parameters
    ----------
    log_level:
        Logging level name (e.g., ``"INFO"``).
    """
    _setup_structured_logging(
        level=log_level,
        force_json=config.LOG_JSON,
        service_name="storyscope-cli",
    )


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Drive a coroutine to completion from synchronous command handlers."""
    return asyncio.run(coro)
