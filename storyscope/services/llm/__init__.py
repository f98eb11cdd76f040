"""Pluggable AI providers and the orchestration layer that routes between them."""

from .content_pipeline import (
    ContentPipeline,
    PipelineResult,
    SearchParameters,
    build_report,
    parse_prompt,
)
from .orchestrator import (
    AllProvidersExhaustedError,
    NoProvidersAvailableError,
    OperationOutcome,
    OperationTimeoutError,
    OrchestrationManager,
)
from .providers import (
    ClaudeProvider,
    GeminiProvider,
    LLMConfigurationError,
    LLMProviderError,
    LLMRateLimitError,
    OpenAIProvider,
    ProviderClient,
    ProviderRegistry,
)
from .settings import (
    OrchestrationConfig,
    ProviderName,
    ProviderSettings,
    UnknownProviderError,
    load_orchestration_config,
    load_provider_settings,
)
from .stats import (
    HealthStatus,
    ProviderConnectivity,
    ProviderHealth,
    ProviderStats,
    classify_health,
)

__all__ = [
    "AllProvidersExhaustedError",
    "ClaudeProvider",
    "ContentPipeline",
    "GeminiProvider",
    "HealthStatus",
    "LLMConfigurationError",
    "LLMProviderError",
    "LLMRateLimitError",
    "NoProvidersAvailableError",
    "OpenAIProvider",
    "OperationOutcome",
    "OperationTimeoutError",
    "OrchestrationConfig",
    "OrchestrationManager",
    "PipelineResult",
    "ProviderClient",
    "ProviderConnectivity",
    "ProviderHealth",
    "ProviderName",
    "ProviderRegistry",
    "ProviderSettings",
    "ProviderStats",
    "SearchParameters",
    "UnknownProviderError",
    "build_report",
    "classify_health",
    "load_orchestration_config",
    "load_provider_settings",
    "parse_prompt",
]
