"""AI provider adapters and the lazily populated provider registry."""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from storyscope.models.content import ContentAnalysis, ContentItem, Storyboard

from . import prompts
from .settings import (
    ProviderName,
    ProviderSettings,
    UnknownProviderError,
    load_provider_settings,
)

logger = logging.getLogger(__name__)

ErrorType = Optional[Type[BaseException]]
ClientTuple = Tuple[Any, ErrorType, ErrorType]


def _import_module(module_name: str) -> Optional[Any]:
    """Import a module lazily, returning None when it cannot be loaded."""

    try:  # pragma: no cover - import side effects only when available
        return importlib.import_module(module_name)
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        logger.debug("Module %s not available: %s", module_name, exc)
        return None


class LLMProviderError(RuntimeError):
    """Base exception raised when a provider fails to produce an output."""


class LLMRateLimitError(LLMProviderError):
    """Raised when a provider reports a rate limit condition."""


class LLMConfigurationError(LLMProviderError):
    """Raised when required configuration for a provider is missing."""


class ProviderClient(ABC):
    """Abstract base class implemented by concrete provider adapters.

    Subclasses only supply ``_complete``; prompt construction and response
    parsing are shared so every backend produces the same shapes.
    """

    provider_name: ProviderName

    def __init__(self, settings: ProviderSettings):
        self._settings = settings
        self._client: Optional[Any] = None

    @property
    def name(self) -> str:
        return self.provider_name.value

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier sent to the vendor API."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when credentials for the provider are configured."""

    @abstractmethod
    async def _complete(
        self,
        system: Optional[str],
        prompt: str,
        *,
        max_tokens: int,
        temperature: Optional[float],
    ) -> str:
        """Send a single prompt and return the response text."""

    async def analyze_content(self, item: ContentItem) -> ContentAnalysis:
        text = await self._complete(
            prompts.ANALYSIS_SYSTEM_PROMPT,
            prompts.build_analysis_prompt(item),
            max_tokens=self._settings.max_output_tokens,
            temperature=prompts.ANALYSIS_TEMPERATURE,
        )
        analysis = prompts.parse_analysis_response(text)
        logger.info("Analyzed content with %s: %s", self.name, item.title)
        return analysis

    async def generate_storyboard(
        self, item: ContentItem, analysis: Optional[ContentAnalysis]
    ) -> Storyboard:
        text = await self._complete(
            prompts.STORYBOARD_SYSTEM_PROMPT,
            prompts.build_storyboard_prompt(item, analysis),
            max_tokens=self._settings.max_output_tokens,
            temperature=prompts.STORYBOARD_TEMPERATURE,
        )
        storyboard = prompts.parse_storyboard_response(text)
        logger.info("Generated storyboard with %s: %s", self.name, item.title)
        return storyboard

    async def generate_summary(
        self,
        items: Sequence[ContentItem],
        analyses: Sequence[Optional[ContentAnalysis]],
    ) -> str:
        text = await self._complete(
            prompts.SUMMARY_SYSTEM_PROMPT,
            prompts.build_summary_prompt(items, analyses),
            max_tokens=self._settings.max_output_tokens,
            temperature=prompts.SUMMARY_TEMPERATURE,
        )
        logger.info("Generated summary report with %s", self.name)
        return text

    async def test_connection(self) -> str:
        return await self._complete(
            None,
            prompts.CONNECTION_TEST_PROMPT,
            max_tokens=prompts.CONNECTION_TEST_MAX_TOKENS,
            temperature=None,
        )

    @staticmethod
    def _translate_error(
        exc: Exception, error_cls: ErrorType, rate_cls: ErrorType
    ) -> Exception:
        if rate_cls and isinstance(exc, rate_cls):
            return LLMRateLimitError(str(exc))
        if error_cls and isinstance(exc, error_cls):
            return LLMProviderError(str(exc))
        return exc


class OpenAIProvider(ProviderClient):
    provider_name = ProviderName.OPENAI

    @property
    def model_name(self) -> str:
        return self._settings.openai_model

    def is_available(self) -> bool:
        return bool(self._settings.openai_api_key)

    def _client_tuple(self) -> ClientTuple:
        module = _import_module("openai")
        if module is None:
            return (None, None, None)

        client_cls = getattr(module, "AsyncOpenAI", None)
        error_cls = getattr(module, "OpenAIError", None)
        rate_cls = getattr(module, "RateLimitError", None)

        if client_cls is None:
            logger.debug("AsyncOpenAI class missing in openai module")
            return (None, error_cls, rate_cls)

        if self._client is None:
            self._client = client_cls(api_key=self._settings.openai_api_key)
        return (self._client, error_cls, rate_cls)

    async def _complete(
        self,
        system: Optional[str],
        prompt: str,
        *,
        max_tokens: int,
        temperature: Optional[float],
    ) -> str:
        if not self._settings.openai_api_key:
            raise LLMConfigurationError("OPENAI_API_KEY is not configured")
        client, error_cls, rate_cls = self._client_tuple()
        if client is None:
            raise LLMConfigurationError("OpenAI client is unavailable")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            request["temperature"] = temperature

        try:
            response = await client.chat.completions.create(**request)
        except Exception as exc:  # pragma: no cover - client specific
            translated = self._translate_error(exc, error_cls, rate_cls)
            if translated is exc:
                raise
            raise translated from exc

        return _coalesce_chat_text(response)


class ClaudeProvider(ProviderClient):
    provider_name = ProviderName.CLAUDE

    @property
    def model_name(self) -> str:
        return self._settings.claude_model

    def is_available(self) -> bool:
        return bool(self._settings.claude_api_key)

    def _client_tuple(self) -> ClientTuple:
        module = _import_module("anthropic")
        if module is None:
            return (None, None, None)

        client_cls = getattr(module, "AsyncAnthropic", None)
        error_cls = getattr(module, "AnthropicError", None)
        rate_cls = getattr(module, "RateLimitError", None)

        if client_cls is None:
            logger.debug("AsyncAnthropic client class missing")
            return (None, error_cls, rate_cls)

        if self._client is None:
            self._client = client_cls(api_key=self._settings.claude_api_key)
        return (self._client, error_cls, rate_cls)

    async def _complete(
        self,
        system: Optional[str],
        prompt: str,
        *,
        max_tokens: int,
        temperature: Optional[float],
    ) -> str:
        if not self._settings.claude_api_key:
            raise LLMConfigurationError("CLAUDE_API_KEY is not configured")
        client, error_cls, rate_cls = self._client_tuple()
        if client is None:
            raise LLMConfigurationError("Anthropic client is unavailable")

        request: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system
        if temperature is not None:
            request["temperature"] = temperature

        try:
            result = await client.messages.create(**request)
        except Exception as exc:  # pragma: no cover - client specific
            translated = self._translate_error(exc, error_cls, rate_cls)
            if translated is exc:
                raise
            raise translated from exc

        return _coalesce_claude_text(result)


class GeminiProvider(ProviderClient):
    provider_name = ProviderName.GEMINI

    def __init__(self, settings: ProviderSettings):
        super().__init__(settings)
        self._models: Dict[Optional[str], Any] = {}

    @property
    def model_name(self) -> str:
        return self._settings.gemini_model

    def is_available(self) -> bool:
        return bool(self._settings.google_api_key)

    def _client_tuple(self) -> ClientTuple:
        module = _import_module("google.generativeai")
        if module is None:
            return (None, None, None)

        configure = getattr(module, "configure", None)
        model_cls = getattr(module, "GenerativeModel", None)
        core_errors = _import_module("google.api_core.exceptions")
        error_cls = getattr(core_errors, "GoogleAPIError", None)
        rate_cls = getattr(core_errors, "ResourceExhausted", None)

        if configure is None or model_cls is None:
            logger.debug("google-generativeai client helpers missing")
            return (None, error_cls, rate_cls)

        if self._client is None:
            configure(api_key=self._settings.google_api_key)
            self._client = model_cls
        return (self._client, error_cls, rate_cls)

    def _model_for(self, model_cls: Any, system: Optional[str]) -> Any:
        model = self._models.get(system)
        if model is None:
            if system:
                model = model_cls(self.model_name, system_instruction=system)
            else:
                model = model_cls(self.model_name)
            self._models[system] = model
        return model

    async def _complete(
        self,
        system: Optional[str],
        prompt: str,
        *,
        max_tokens: int,
        temperature: Optional[float],
    ) -> str:
        if not self._settings.google_api_key:
            raise LLMConfigurationError("GOOGLE_API_KEY is not configured")
        model_cls, error_cls, rate_cls = self._client_tuple()
        if model_cls is None:
            raise LLMConfigurationError("Gemini client is unavailable")

        generation_config: Dict[str, Any] = {"max_output_tokens": max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature

        model = self._model_for(model_cls, system)
        try:
            result = await model.generate_content_async(
                prompt, generation_config=generation_config
            )
        except Exception as exc:  # pragma: no cover - client specific
            translated = self._translate_error(exc, error_cls, rate_cls)
            if translated is exc:
                raise
            raise translated from exc

        return _coalesce_gemini_text(result)


ProviderFactory = Callable[[ProviderSettings], ProviderClient]

DEFAULT_FACTORIES: Dict[ProviderName, ProviderFactory] = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.CLAUDE: ClaudeProvider,
    ProviderName.GEMINI: GeminiProvider,
}


class ProviderRegistry:
    """Maps provider names to lazily created, cached adapter instances."""

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        factories: Optional[Mapping[ProviderName, ProviderFactory]] = None,
    ) -> None:
        self._settings = settings or load_provider_settings()
        self._factories: Dict[ProviderName, ProviderFactory] = dict(
            factories if factories is not None else DEFAULT_FACTORIES
        )
        self._instances: Dict[ProviderName, ProviderClient] = {}

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    def register(self, name: ProviderName, factory: ProviderFactory) -> None:
        self._factories[name] = factory
        self._instances.pop(name, None)

    def names(self) -> List[ProviderName]:
        return list(self._factories)

    def resolve(self, name: "str | ProviderName") -> ProviderName:
        provider = ProviderName.parse(name)
        if provider not in self._factories:
            raise UnknownProviderError(name)
        return provider

    def get_instance(self, name: "str | ProviderName") -> ProviderClient:
        provider = self.resolve(name)
        instance = self._instances.get(provider)
        if instance is None:
            instance = self._factories[provider](self._settings)
            self._instances[provider] = instance
            logger.debug("Instantiated provider %s", provider.value)
        return instance

    def instantiated(self, name: "str | ProviderName") -> bool:
        return ProviderName.parse(name) in self._instances


def _coalesce_chat_text(response: Any) -> str:
    try:
        choices = getattr(response, "choices", None)
        if choices:
            message = getattr(choices[0], "message", None)
            if isinstance(message, dict):
                content = message.get("content")
            else:
                content = getattr(message, "content", None)
            if content:
                return str(content)
        output_text = getattr(response, "output_text", None)
        if output_text:
            return str(output_text)
    except Exception as exc:  # pragma: no cover
        logger.debug("Failed to coalesce OpenAI response text: %s", exc)
    return ""


def _coalesce_claude_text(response: Any) -> str:
    try:
        content = getattr(response, "content", None)
        if isinstance(content, list):
            parts = []
            for item in content:
                text = getattr(item, "text", None)
                if text:
                    parts.append(str(text))
            if parts:
                return "\n".join(parts)
        text_value = getattr(response, "text", None)
        if text_value:
            return str(text_value)
    except Exception as exc:  # pragma: no cover
        logger.debug("Failed to coalesce Claude response text: %s", exc)
    return ""


def _coalesce_gemini_text(response: Any) -> str:
    try:
        text_value = getattr(response, "text", None)
        if text_value:
            return str(text_value)
    except ValueError:
        # Blocked or empty candidates raise on .text access
        pass
    try:
        candidates = getattr(response, "candidates", None)
        if candidates:
            parts: list[str] = []
            for candidate in candidates:
                content = getattr(candidate, "content", None)
                if content is None:
                    continue
                for part in getattr(content, "parts", []) or []:
                    text = getattr(part, "text", None)
                    if text:
                        parts.append(str(text))
            if parts:
                return "\n".join(parts)
    except Exception as exc:  # pragma: no cover
        logger.debug("Failed to coalesce Gemini response text: %s", exc)
    return ""
