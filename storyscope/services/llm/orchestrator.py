"""Retry, timeout and fallback orchestration across AI providers."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from storyscope.models.content import ContentAnalysis, ContentItem, Storyboard

from .providers import LLMProviderError, ProviderClient, ProviderRegistry
from .settings import (
    OrchestrationConfig,
    ProviderName,
    UnknownProviderError,
    load_orchestration_config,
)
from .stats import (
    ProviderConnectivity,
    ProviderHealth,
    ProviderStats,
    classify_health,
)

logger = logging.getLogger(__name__)

SUPPORTED_OPERATIONS = (
    "analyze_content",
    "generate_storyboard",
    "generate_summary",
    "test_connection",
)

_CONFIG_FIELDS = {field.name for field in dataclasses.fields(OrchestrationConfig)}

SleepFunc = Callable[[float], Awaitable[Any]]


class OperationTimeoutError(LLMProviderError):
    """Raised when a single provider attempt exceeds the configured timeout."""

    def __init__(self, message: str = "Operation timeout"):
        super().__init__(message)


class AllProvidersExhaustedError(RuntimeError):
    """Raised when the primary (and fallback, if any) exhausted every attempt."""

    def __init__(self, primary_error: str, fallback_error: Optional[str] = None):
        super().__init__(f"All AI services failed. Primary: {primary_error}")
        self.primary_error = primary_error
        self.fallback_error = fallback_error


class NoProvidersAvailableError(RuntimeError):
    """Raised by auto-configuration when no provider passed its probe."""

    def __init__(self, message: str = "No AI services available"):
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    success: bool
    data: Any = None
    error: Optional[str] = None


class OrchestrationManager:
    """Routes operations to a primary provider with retries and fallback.

    Every call reads one configuration snapshot at its start. Setters swap
    the snapshot atomically, so in-flight calls keep the routing they began
    with.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        config: Optional[OrchestrationConfig] = None,
        *,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        self._registry = registry or ProviderRegistry()
        self._config = config or load_orchestration_config()
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._stats: Dict[ProviderName, ProviderStats] = {
            name: ProviderStats() for name in self._registry.names()
        }
        logger.info(
            "AI orchestration ready: primary=%s fallback=%s",
            self._config.primary.value,
            self._config.fallback.value if self._config.fallback else None,
        )

    @property
    def config(self) -> OrchestrationConfig:
        return self._config

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def stats_for(self, name: "str | ProviderName") -> ProviderStats:
        return self._stats[self._registry.resolve(name)]

    # ------------------------------------------------------------------
    # Core execution
    # ------------------------------------------------------------------

    async def execute_with_fallback(self, operation: str, *args: Any) -> Any:
        config = self._config
        if operation not in SUPPORTED_OPERATIONS:
            raise ValueError(f"Unsupported AI operation '{operation}'")

        primary = await self.try_service_operation(
            config.primary, operation, args, config=config
        )
        if primary.success:
            return primary.data

        logger.warning(
            "Primary AI service %s failed for %s: %s",
            config.primary.value,
            operation,
            primary.error,
        )

        fallback_error: Optional[str] = None
        if (
            config.fallback_enabled
            and config.fallback is not None
            and config.fallback != config.primary
        ):
            logger.info("Trying fallback AI service %s", config.fallback.value)
            fallback = await self.try_service_operation(
                config.fallback, operation, args, config=config
            )
            if fallback.success:
                return fallback.data
            fallback_error = fallback.error
            logger.error(
                "Fallback AI service %s also failed for %s: %s",
                config.fallback.value,
                operation,
                fallback_error,
            )

        raise AllProvidersExhaustedError(primary.error or "unknown error", fallback_error)

    async def try_service_operation(
        self,
        provider: "str | ProviderName",
        operation: str,
        args: Sequence[Any] = (),
        *,
        config: Optional[OrchestrationConfig] = None,
    ) -> OperationOutcome:
        """Run ``operation`` on one provider with timeout and linear backoff."""
        config = config or self._config
        name = self._registry.resolve(provider)
        stats = self._stats.setdefault(name, ProviderStats())
        attempts = config.retry_attempts
        last_error = "unknown error"

        for attempt in range(1, attempts + 1):
            start = time.perf_counter()
            stats.record_request()
            try:
                client = self._registry.get_instance(name)
                data = await self._call_with_timeout(
                    getattr(client, operation)(*args), config.timeout_seconds
                )
            except Exception as exc:
                stats.record_failure()
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "AI service %s attempt %d/%d failed for %s: %s",
                    name.value,
                    attempt,
                    attempts,
                    operation,
                    last_error,
                )
                if attempt < attempts:
                    await self._sleep(config.rate_limit_delay_ms * attempt / 1000)
                continue

            elapsed_ms = (time.perf_counter() - start) * 1000
            stats.record_success(elapsed_ms)
            logger.debug(
                "AI service %s completed %s in %.0fms", name.value, operation, elapsed_ms
            )
            return OperationOutcome(success=True, data=data)

        return OperationOutcome(success=False, error=last_error)

    @staticmethod
    async def _call_with_timeout(awaitable: Awaitable[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise OperationTimeoutError() from exc

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    async def analyze_content(self, item: ContentItem) -> ContentAnalysis:
        return await self.execute_with_fallback("analyze_content", item)

    async def generate_storyboard(
        self, item: ContentItem, analysis: Optional[ContentAnalysis]
    ) -> Storyboard:
        return await self.execute_with_fallback("generate_storyboard", item, analysis)

    async def generate_summary(
        self,
        items: Sequence[ContentItem],
        analyses: Sequence[Optional[ContentAnalysis]],
    ) -> str:
        return await self.execute_with_fallback("generate_summary", items, analyses)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_service(self, preferred: "str | ProviderName | None" = None) -> ProviderClient:
        """Return the adapter for ``preferred``, or the primary when unknown."""
        if preferred is not None:
            try:
                return self._registry.get_instance(preferred)
            except UnknownProviderError:
                logger.warning(
                    "AI service %s not available, using primary %s",
                    preferred,
                    self._config.primary.value,
                )
        return self._registry.get_instance(self._config.primary)

    # ------------------------------------------------------------------
    # Health & auto-configuration
    # ------------------------------------------------------------------

    async def test_all_providers(self) -> Dict[ProviderName, ProviderConnectivity]:
        """Probe every registered provider once; statistics are not touched."""
        timeout = self._config.timeout_seconds
        results: Dict[ProviderName, ProviderConnectivity] = {}

        for name in self._registry.names():
            start = time.perf_counter()
            try:
                client = self._registry.get_instance(name)
                await self._call_with_timeout(client.test_connection(), timeout)
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.warning("AI service %s connectivity test failed: %s", name.value, message)
                results[name] = ProviderConnectivity(available=False, error=message)
                continue

            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info("AI service %s responded in %.0fms", name.value, elapsed_ms)
            results[name] = ProviderConnectivity(
                available=True, response_time_ms=elapsed_ms
            )

        return results

    def get_service_health(self) -> Dict[ProviderName, ProviderHealth]:
        return {name: classify_health(stats) for name, stats in self._stats.items()}

    async def auto_configure(self) -> OrchestrationConfig:
        """Choose the fastest available provider as primary, next as fallback."""
        results = await self.test_all_providers()
        available = [
            (name, result.response_time_ms or 0.0)
            for name, result in results.items()
            if result.available
        ]
        if not available:
            raise NoProvidersAvailableError()

        available.sort(key=lambda entry: entry[1])
        changes: Dict[str, Any] = {"primary": available[0][0]}
        if len(available) > 1:
            changes["fallback"] = available[1][0]

        self._config = dataclasses.replace(self._config, **changes)
        logger.info(
            "Auto-configured AI services: primary=%s fallback=%s",
            self._config.primary.value,
            self._config.fallback.value if self._config.fallback else None,
        )
        return self._config

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = self._config.to_dict()
        payload["available_services"] = [name.value for name in self._registry.names()]
        payload["service_stats"] = self.get_service_stats()
        return payload

    def get_service_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name.value: stats.to_dict() for name, stats in self._stats.items()}

    def set_primary_service(self, name: "str | ProviderName") -> None:
        provider = self._registry.resolve(name)
        self._config = dataclasses.replace(self._config, primary=provider)
        logger.info("Primary AI service set to %s", provider.value)

    def set_fallback_service(self, name: "str | ProviderName | None") -> None:
        provider = None if name is None else self._registry.resolve(name)
        self._config = dataclasses.replace(self._config, fallback=provider)
        logger.info("Fallback AI service set to %s", provider.value if provider else None)

    def update_config(self, **changes: Any) -> OrchestrationConfig:
        """Validate and apply a partial configuration change."""
        unknown = set(changes) - _CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        if "primary" in changes:
            changes["primary"] = self._registry.resolve(changes["primary"])
        if "fallback" in changes and changes["fallback"] is not None:
            if str(changes["fallback"]).strip().lower() == "none":
                changes["fallback"] = None
            else:
                changes["fallback"] = self._registry.resolve(changes["fallback"])

        self._config = dataclasses.replace(self._config, **changes)
        logger.info("AI configuration updated: %s", sorted(changes))
        return self._config

    def reset_stats(self) -> None:
        for stats in self._stats.values():
            stats.reset()
        logger.info("AI service statistics reset")


__all__ = [
    "AllProvidersExhaustedError",
    "NoProvidersAvailableError",
    "OperationOutcome",
    "OperationTimeoutError",
    "OrchestrationManager",
    "SUPPORTED_OPERATIONS",
]
