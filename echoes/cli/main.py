"""
Command line entrypoint for Errors & Echoes.

Version: 0.1.0
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from echoes import __version__
from echoes.config import load_config
from echoes.core.dispatch import ConnectivityStatus
from echoes.core.exceptions import EchoesError
from echoes.core.logging_utils import configure_logging
from echoes.cli.command_handlers import (
    format_json,
    handle_attribute,
    handle_report,
    handle_test_endpoint,
)

logger = logging.getLogger(__name__)


def _read_stack(path: Optional[Path]) -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""

    parser = argparse.ArgumentParser(description="Attribute plugin errors and report them to their authors")
    parser.add_argument("--version", action="version", version=f"echoes {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to echoes.yaml (or its directory)")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    subcommands = parser.add_subparsers(dest="command", required=True)

    attribute_parser = subcommands.add_parser("attribute", help="Attribute a stack trace to a plugin")
    attribute_parser.add_argument("stack_file", type=Path, nargs="?", default=None, help="File holding the stack (default: stdin)")
    attribute_parser.add_argument("--module-hint", help="Module id hint from the capture site")
    attribute_parser.add_argument("--source", default="cli", help="Capture-site tag")

    report_parser = subcommands.add_parser("report", help="Print the report that would be sent")
    report_parser.add_argument("stack_file", type=Path, nargs="?", default=None, help="File holding the stack (default: stdin)")
    report_parser.add_argument("--message", default="", help="Error message")
    report_parser.add_argument("--type", dest="error_type", default="Error", help="Error type name")
    report_parser.add_argument(
        "--privacy-level",
        choices=["minimal", "standard", "detailed"],
        default=None,
        help="Override the configured privacy level",
    )
    report_parser.add_argument("--module-hint", help="Module id hint from the capture site")

    test_parser = subcommands.add_parser("test-endpoint", help="Probe a collection endpoint")
    target = test_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--name", help="Name of a configured endpoint")
    target.add_argument("--url", help="Endpoint URL to probe")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entrypoint for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    active_level = configure_logging(args.log_level or config.logging.level, log_file=config.logging.path)
    logger.debug("Log level set to %s", active_level)

    try:
        if args.command == "attribute":
            print(format_json(handle_attribute(
                config,
                _read_stack(args.stack_file),
                module_hint=args.module_hint,
                source=args.source,
            )))
            return 0

        if args.command == "report":
            print(format_json(handle_report(
                config,
                _read_stack(args.stack_file),
                message=args.message,
                error_type=args.error_type,
                privacy_level=args.privacy_level,
                module_hint=args.module_hint,
            )))
            return 0

        if args.command == "test-endpoint":
            status = handle_test_endpoint(config, name=args.name, url=args.url)
            print(status.value)
            return 0 if status is ConnectivityStatus.SUCCESS else 1
    except (EchoesError, OSError) as e:
        logger.error("%s", e)
        return 2

    parser.error(f"Unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
