"""Pytest-wide fixtures and hooks for StoryScope tests."""

from __future__ import annotations

import os

import pytest

# Force tests onto an in-memory SQLite database before storyscope.config loads
if os.environ.get("PYTEST_KEEP_DB_ENV") != "true":
    os.environ["DATABASE_URL"] = "sqlite://"

_AI_ENV_VARS = (
    "AI_PRIMARY_SERVICE",
    "AI_FALLBACK_SERVICE",
    "AI_RETRY_ATTEMPTS",
    "AI_TIMEOUT_MS",
    "AI_RATE_LIMIT_DELAY",
    "AI_BATCH_SIZE",
    "AI_ENABLE_FALLBACK",
    "AI_MAX_OUTPUT_TOKENS",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "CLAUDE_API_KEY",
    "ANTHROPIC_API_KEY",
    "CLAUDE_MODEL",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
)


@pytest.fixture
def clean_ai_env(monkeypatch):
    """Remove provider credentials and routing overrides from the environment."""
    for name in _AI_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def db_session():
    """Yield a session on a fresh in-memory database."""
    from storyscope.models.database import DatabaseManager

    manager = DatabaseManager("sqlite://")
    session = manager.new_session()
    try:
        yield session
    finally:
        session.close()
        manager.close()


@pytest.fixture
def sample_item():
    from storyscope.models.content import ContentItem

    return ContentItem(
        video_id="dQw4w9WgXcQ",
        title="The Haunting of Hill Road",
        channel_name="Night Tales",
        channel_id="UC123",
        description="A ghost story told by the people who lived it.",
        view_count="1.2M views",
        upload_date="2 days ago",
        duration="12:34",
        video_url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    )
