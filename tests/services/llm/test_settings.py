import logging

import pytest

from storyscope.services.llm.settings import (
    OrchestrationConfig,
    ProviderName,
    ProviderSettings,
    UnknownProviderError,
    load_orchestration_config,
    load_provider_settings,
)


def test_defaults_without_environment(clean_ai_env):
    config = load_orchestration_config()

    assert config.primary is ProviderName.OPENAI
    assert config.fallback is ProviderName.CLAUDE
    assert config.retry_attempts == 3
    assert config.timeout_ms == 30_000
    assert config.rate_limit_delay_ms == 1_000
    assert config.batch_size == 3
    assert config.fallback_enabled is True
    assert config.timeout_seconds == 30.0


def test_environment_overrides(clean_ai_env):
    clean_ai_env.setenv("AI_PRIMARY_SERVICE", "Gemini")
    clean_ai_env.setenv("AI_FALLBACK_SERVICE", "openai")
    clean_ai_env.setenv("AI_RETRY_ATTEMPTS", "5")
    clean_ai_env.setenv("AI_TIMEOUT_MS", "1500")
    clean_ai_env.setenv("AI_RATE_LIMIT_DELAY", "0")
    clean_ai_env.setenv("AI_BATCH_SIZE", "7")

    config = load_orchestration_config()

    assert config.primary is ProviderName.GEMINI
    assert config.fallback is ProviderName.OPENAI
    assert config.retry_attempts == 5
    assert config.timeout_ms == 1500
    assert config.rate_limit_delay_ms == 0
    assert config.batch_size == 7


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("false", False), ("FALSE", False), ("0", True), ("no", True), ("true", True)],
)
def test_only_literal_false_disables_fallback(clean_ai_env, raw, expected):
    clean_ai_env.setenv("AI_ENABLE_FALLBACK", raw)

    assert load_orchestration_config().fallback_enabled is expected


@pytest.mark.parametrize("raw", ["none", "", "disabled"])
def test_fallback_can_be_unset(clean_ai_env, raw):
    clean_ai_env.setenv("AI_FALLBACK_SERVICE", raw)

    assert load_orchestration_config().fallback is None


def test_invalid_values_fall_back_to_defaults(clean_ai_env, caplog):
    clean_ai_env.setenv("AI_PRIMARY_SERVICE", "skynet")
    clean_ai_env.setenv("AI_RETRY_ATTEMPTS", "zero")
    clean_ai_env.setenv("AI_TIMEOUT_MS", "-5")

    with caplog.at_level(logging.WARNING):
        config = load_orchestration_config()

    assert config.primary is ProviderName.OPENAI
    assert config.retry_attempts == 3
    assert config.timeout_ms == 30_000
    assert "skynet" in caplog.text


@pytest.mark.parametrize(
    "kwargs",
    [
        {"retry_attempts": 0},
        {"timeout_ms": 0},
        {"rate_limit_delay_ms": -1},
        {"batch_size": 0},
        {"primary": "openai"},
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        OrchestrationConfig(**kwargs)


def test_config_to_dict_uses_public_field_names():
    config = OrchestrationConfig(fallback=None, fallback_enabled=False)

    assert config.to_dict() == {
        "primary_service": "openai",
        "fallback_service": None,
        "retry_attempts": 3,
        "timeout_ms": 30_000,
        "rate_limit_delay_ms": 1_000,
        "batch_size": 3,
        "enable_fallback": False,
    }


def test_provider_name_parse():
    assert ProviderName.parse(" CLAUDE ") is ProviderName.CLAUDE
    assert str(ProviderName.GEMINI) == "gemini"
    with pytest.raises(UnknownProviderError) as excinfo:
        ProviderName.parse("bard")
    assert excinfo.value.name == "bard"
    assert isinstance(excinfo.value, KeyError)


def test_provider_settings_from_environment(clean_ai_env):
    clean_ai_env.setenv("OPENAI_API_KEY", "sk-1")
    clean_ai_env.setenv("ANTHROPIC_API_KEY", "anthropic-key")
    clean_ai_env.setenv("GEMINI_MODEL", "gemini-pro")
    clean_ai_env.setenv("AI_MAX_OUTPUT_TOKENS", "512")

    settings = load_provider_settings()

    assert settings.openai_api_key == "sk-1"
    assert settings.claude_api_key == "anthropic-key"
    assert settings.gemini_model == "gemini-pro"
    assert settings.max_output_tokens == 512
    assert settings.has_api_key("openai") is True
    assert settings.has_api_key(ProviderName.GEMINI) is False


def test_claude_key_prefers_dedicated_variable(clean_ai_env):
    clean_ai_env.setenv("CLAUDE_API_KEY", "claude-key")
    clean_ai_env.setenv("ANTHROPIC_API_KEY", "anthropic-key")

    assert load_provider_settings().claude_api_key == "claude-key"


def test_provider_settings_are_frozen():
    settings = ProviderSettings()

    with pytest.raises(AttributeError):
        settings.openai_api_key = "nope"
