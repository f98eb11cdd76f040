"""Streamlined CLI interface with modular command structure."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from typing import cast

from .commands.ai import add_ai_parser, handle_ai_command  # noqa: F401
from .commands.analyze import (  # noqa: F401
    add_analyze_parser,
    handle_analyze_command,
)

CommandHandler = Callable[[argparse.Namespace], int]

COMMAND_HANDLER_ATTRS: dict[str, str] = {
    "ai": "handle_ai_command",
    "analyze": "handle_analyze_command",
}


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="storyscope",
        description="StoryScope - content scraping, AI analysis and storyboards",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=False,
    )

    add_ai_parser(subparsers)
    add_analyze_parser(subparsers)

    return parser


def _resolve_handler(
    args: argparse.Namespace,
    overrides: dict[str, CommandHandler] | None = None,
) -> CommandHandler | None:
    command = getattr(args, "command", None)
    if overrides and command and command in overrides:
        return overrides[command]

    func = getattr(args, "func", None)
    if callable(func):
        return cast(CommandHandler, func)

    if command is None:
        return None

    attr_name = COMMAND_HANDLER_ATTRS.get(command)
    if not attr_name:
        return None

    handler = globals().get(attr_name)
    if callable(handler):
        return cast(CommandHandler, handler)

    return None


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
    handler_overrides: dict[str, CommandHandler] | None = None,
) -> int:
    """Main CLI entry point."""

    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = getattr(args, "log_level", "INFO") or "INFO"
    if setup_logging_func is None:
        from .context import setup_logging as default_setup_logging

        setup_logging_func = default_setup_logging

    setup_logging_func(log_level)

    handler = _resolve_handler(args, overrides=handler_overrides)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
