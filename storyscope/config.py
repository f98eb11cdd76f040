"""Centralized configuration for StoryScope.

This module reads environment variables (optionally from a .env file) and
exposes simple constants and a small helper to access configuration values.
Provider routing for the LLM layer is read separately by
``storyscope.services.llm.settings`` so it can be reloaded at runtime.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

# If a .env file is present, load it without overriding the real environment.
_env_path = Path(".") / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=str(_env_path), override=False)

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _redact_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


# Runtime / deployment context
APP_ENV: str = os.getenv("APP_ENV", os.getenv("ENVIRONMENT", "local"))
IN_KUBERNETES: bool = bool(os.getenv("KUBERNETES_SERVICE_HOST"))

# Database configuration
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///data/storyscope.db")
DATABASE_ECHO: bool = _env_bool("DATABASE_ECHO", False)

# Core configuration values
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = _env_bool("LOG_JSON", False)

# HTTP API
ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "*")

# Scraping behaviour
REQUEST_TIMEOUT: int = _env_int("REQUEST_TIMEOUT", 20)
SCRAPER_USER_AGENT: str = os.getenv(
    "SCRAPER_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
)
REDDIT_CLIENT_ID: Optional[str] = os.getenv("REDDIT_CLIENT_ID")
REDDIT_CLIENT_SECRET: Optional[str] = os.getenv("REDDIT_CLIENT_SECRET")
REDDIT_USER_AGENT: str = os.getenv("REDDIT_USER_AGENT", "StoryScope/1.0")
REDDIT_MAX_RETRIES: int = _env_int("REDDIT_MAX_RETRIES", 3)
REDDIT_BACKOFF_BASE: float = float(os.getenv("REDDIT_BACKOFF_BASE", "0.5"))

# Pipeline pacing (caller-side, independent of orchestration backoff)
PIPELINE_BATCH_DELAY: float = float(os.getenv("PIPELINE_BATCH_DELAY", "1.0"))
PIPELINE_STORYBOARD_DELAY: float = float(
    os.getenv("PIPELINE_STORYBOARD_DELAY", "0.5")
)


def get_config() -> Dict[str, Any]:
    """Return a dict of the most important configuration values.

    Database passwords are masked so the result is safe to log.
    """

    return {
        "runtime": {
            "environment": APP_ENV,
            "in_kubernetes": IN_KUBERNETES,
        },
        "database_url": _redact_url(DATABASE_URL),
        "database_echo": DATABASE_ECHO,
        "log_level": LOG_LEVEL,
        "allowed_origins": ALLOWED_ORIGINS,
        "scraping": {
            "request_timeout": REQUEST_TIMEOUT,
            "reddit_configured": bool(REDDIT_CLIENT_ID and REDDIT_CLIENT_SECRET),
            "reddit_max_retries": REDDIT_MAX_RETRIES,
        },
        "pipeline": {
            "batch_delay": PIPELINE_BATCH_DELAY,
            "storyboard_delay": PIPELINE_STORYBOARD_DELAY,
        },
    }
