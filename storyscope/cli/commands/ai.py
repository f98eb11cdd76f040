"""CLI commands for inspecting and tuning AI provider routing."""

from __future__ import annotations

import logging

from storyscope.services.llm import (
    NoProvidersAvailableError,
    OrchestrationManager,
)

from ..context import run_async

logger = logging.getLogger(__name__)


def add_ai_parser(subparsers) -> None:
    """Register the ``ai`` subcommand group."""

    parser = subparsers.add_parser(
        "ai",
        help="Inspect and configure AI provider orchestration",
    )

    sub = parser.add_subparsers(
        dest="ai_command",
        help="AI command suite",
    )

    sub.add_parser(
        "status",
        help=(
            "Show routing configuration and provider health; request statistics "
            "cover this process only"
        ),
    )
    sub.add_parser(
        "test",
        help="Send a connectivity probe to every provider",
    )
    sub.add_parser(
        "auto-configure",
        help="Pick primary and fallback providers by probe latency",
    )

    parser.set_defaults(func=handle_ai_command)


def handle_ai_command(args) -> int:
    """Dispatch ``ai`` subcommands."""

    command = getattr(args, "ai_command", None)
    handler = _AI_HANDLERS.get(command or "")
    if handler is None:
        print("Please provide an AI subcommand (status, test, auto-configure)")
        return 1

    return handler(args)


def _build_manager() -> OrchestrationManager:
    return OrchestrationManager()


def _handle_ai_status(args) -> int:
    del args  # Unused
    manager = _build_manager()
    config = manager.get_config()
    settings = manager.registry.settings

    print("\n=== AI Service Configuration ===")
    print(f"Primary service: {config['primary_service']}")
    fallback = config["fallback_service"] or "none"
    state = "enabled" if config["enable_fallback"] else "disabled"
    print(f"Fallback service: {fallback} ({state})")
    print(f"Retry attempts: {config['retry_attempts']}")
    print(f"Timeout: {config['timeout_ms']}ms")
    print(f"Rate limit delay: {config['rate_limit_delay_ms']}ms")
    print(f"Batch size: {config['batch_size']}")

    print("\n=== Providers (statistics for this process only) ===")
    health = manager.get_service_health()
    for name in manager.registry.names():
        key_state = "yes" if settings.has_api_key(name) else "no"
        verdict = health[name]
        print(
            f"{name.value}: api key configured? {key_state}; "
            f"status {verdict.status.value}; "
            f"{verdict.total_requests} requests; "
            f"success rate {verdict.success_rate:.2f}%"
        )
    return 0


def _handle_ai_test(args) -> int:
    del args  # Unused
    manager = _build_manager()
    results = run_async(manager.test_all_providers())

    print("\n=== AI Connectivity ===")
    for name, result in results.items():
        if result.available:
            print(f"{name.value}: available ({result.response_time_ms or 0:.0f}ms)")
        else:
            print(f"{name.value}: unavailable - {result.error}")

    if not any(result.available for result in results.values()):
        logger.warning("No AI services responded to the connectivity test")
        return 1
    return 0


def _handle_ai_auto_configure(args) -> int:
    del args  # Unused
    manager = _build_manager()
    try:
        config = run_async(manager.auto_configure())
    except NoProvidersAvailableError as exc:
        print(f"Auto-configuration failed: {exc}")
        return 1

    fallback = config.fallback.value if config.fallback else "none"
    print(f"Primary service: {config.primary.value}")
    print(f"Fallback service: {fallback}")
    print(
        "To keep this routing, set "
        f"AI_PRIMARY_SERVICE={config.primary.value} "
        f"AI_FALLBACK_SERVICE={fallback}"
    )
    return 0


_AI_HANDLERS = {
    "status": _handle_ai_status,
    "test": _handle_ai_test,
    "auto-configure": _handle_ai_auto_configure,
}
