#!/usr/bin/env python3
"""CLI entry point for GemChat."""

import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

from gemchat.config import (
    PROVIDERS,
    apply_cli_overrides,
    load_config,
    require_api_key,
    resolve_tracing,
)
from gemchat.exceptions import ConfigError
from cli.cli_app import VERSION, CLIApp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemchat",
        description="AI powered CLI assistant with file system capabilities",
    )
    parser.add_argument("-k", "--key", help="Model API key (can also use GEMINI_API_KEY env var)")
    parser.add_argument("-m", "--model", help="Model to use (default: gemini-2.0-flash)")
    parser.add_argument("-p", "--provider", choices=PROVIDERS, help="Model provider")
    parser.add_argument(
        "-l", "--langsmith-key",
        help="LangSmith API key for tracing (can also use LANGSMITH_API_KEY env var)",
    )
    parser.add_argument("-t", "--tracing", action="store_true", help="Enable tracing with LangSmith")
    parser.add_argument("-n", "--no-history", action="store_true", help="Disable chat history saving")
    parser.add_argument("--no-tools", action="store_true", help="Plain chat without file tools")
    parser.add_argument("--debug", action="store_true", help="Write debug logs and a JSONL turn trace")
    parser.add_argument("-c", "--config", default="gemchat.json", help="Path to a JSON config file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = apply_cli_overrides(load_config(args.config), args)
        require_api_key(config)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 1

    warning = resolve_tracing(config)
    if warning:
        print(warning, file=sys.stderr)

    app = CLIApp(config)
    return asyncio.run(app.run())


if __name__ == "__main__":
    sys.exit(main())
