"""Configuration helpers for the AI orchestration layer."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class UnknownProviderError(KeyError):
    """Raised when a provider name is not part of the registered set."""

    def __init__(self, name: object):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown AI service: {self.name}"


class ProviderName(str, Enum):
    """Closed set of supported language-model backends."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: "str | ProviderName") -> "ProviderName":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnknownProviderError(value)

    def __str__(self) -> str:
        return self.value


DEFAULT_PRIMARY = ProviderName.OPENAI
DEFAULT_FALLBACK: Optional[ProviderName] = ProviderName.CLAUDE
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_RATE_LIMIT_DELAY_MS = 1_000
DEFAULT_BATCH_SIZE = 3
DEFAULT_MAX_OUTPUT_TOKENS = 2_000

_DISABLED_FALLBACK = {"", "none", "off", "disabled"}


@dataclass(frozen=True, slots=True)
class OrchestrationConfig:
    """Immutable routing and retry policy snapshot."""

    primary: ProviderName = DEFAULT_PRIMARY
    fallback: Optional[ProviderName] = DEFAULT_FALLBACK
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    rate_limit_delay_ms: int = DEFAULT_RATE_LIMIT_DELAY_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    fallback_enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.primary, ProviderName):
            raise ValueError("primary must be a ProviderName")
        if self.fallback is not None and not isinstance(self.fallback, ProviderName):
            raise ValueError("fallback must be a ProviderName or None")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.rate_limit_delay_ms < 0:
            raise ValueError("rate_limit_delay_ms must be >= 0")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def to_dict(self) -> dict[str, object]:
        return {
            "primary_service": self.primary.value,
            "fallback_service": self.fallback.value if self.fallback else None,
            "retry_attempts": self.retry_attempts,
            "timeout_ms": self.timeout_ms,
            "rate_limit_delay_ms": self.rate_limit_delay_ms,
            "batch_size": self.batch_size,
            "enable_fallback": self.fallback_enabled,
        }


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Credentials and model selection for each provider adapter."""

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    claude_api_key: Optional[str] = None
    claude_model: str = "claude-3-5-sonnet-20241022"
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS

    def has_api_key(self, provider: "ProviderName | str") -> bool:
        name = ProviderName.parse(provider)
        if name is ProviderName.OPENAI:
            return bool(self.openai_api_key)
        if name is ProviderName.CLAUDE:
            return bool(self.claude_api_key)
        return bool(self.google_api_key)


def _int_from_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring out-of-range %s=%r; using %s", name, raw, default)
        return default
    return value


def _provider_from_env(name: str, default: ProviderName) -> ProviderName:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return ProviderName.parse(raw)
    except UnknownProviderError:
        logger.warning("Unknown provider %s=%r; using %s", name, raw, default.value)
        return default


def _fallback_from_env() -> Optional[ProviderName]:
    raw = os.getenv("AI_FALLBACK_SERVICE")
    if raw is None:
        return DEFAULT_FALLBACK
    if raw.strip().lower() in _DISABLED_FALLBACK:
        return None
    try:
        return ProviderName.parse(raw)
    except UnknownProviderError:
        logger.warning(
            "Unknown provider AI_FALLBACK_SERVICE=%r; using %s",
            raw,
            DEFAULT_FALLBACK,
        )
        return DEFAULT_FALLBACK


def load_orchestration_config() -> OrchestrationConfig:
    """Build the routing policy from ``AI_*`` environment variables."""

    return OrchestrationConfig(
        primary=_provider_from_env("AI_PRIMARY_SERVICE", DEFAULT_PRIMARY),
        fallback=_fallback_from_env(),
        retry_attempts=_int_from_env("AI_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS, 1),
        timeout_ms=_int_from_env("AI_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, 1),
        rate_limit_delay_ms=_int_from_env(
            "AI_RATE_LIMIT_DELAY", DEFAULT_RATE_LIMIT_DELAY_MS, 0
        ),
        batch_size=_int_from_env("AI_BATCH_SIZE", DEFAULT_BATCH_SIZE, 1),
        # Only an explicit "false" turns fallback off
        fallback_enabled=os.getenv("AI_ENABLE_FALLBACK", "true").strip().lower()
        != "false",
    )


def load_provider_settings() -> ProviderSettings:
    """Load provider credentials from the environment (dotenv already applied)."""

    return ProviderSettings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        claude_api_key=os.getenv("CLAUDE_API_KEY") or os.getenv("ANTHROPIC_API_KEY"),
        claude_model=os.getenv("CLAUDE_MODEL", "claude-3-5-sonnet-20241022"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
        max_output_tokens=_int_from_env(
            "AI_MAX_OUTPUT_TOKENS", DEFAULT_MAX_OUTPUT_TOKENS, 1
        ),
    )
