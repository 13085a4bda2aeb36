#!/usr/bin/env python3
"""
Run the slackmod webhook server via: python -m slackmod

Usage:
    python -m slackmod                      # Bind to SLACKMOD_HOST/SLACKMOD_PORT
    python -m slackmod --port 8080          # Override the port
    python -m slackmod --log-level DEBUG --text-logs
"""

import argparse
import sys
from dataclasses import replace

from aiohttp import web

from slackmod.__version__ import __version__
from slackmod.config import SlackModConfig
from slackmod.context import create_context
from slackmod.exceptions import ConfigurationError
from slackmod.logging_config import configure_logging, get_logger
from slackmod.server import EVENTS_PATH, create_app

logger = get_logger("slackmod")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="slackmod", description="Slack Events API webhook server")
    parser.add_argument("--host", help="Bind address (default: SLACKMOD_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: SLACKMOD_PORT or 3000)")
    parser.add_argument("--log-level", help="Log level (default: SLACKMOD_LOG_LEVEL or INFO)")
    parser.add_argument("--text-logs", action="store_true", help="Human-readable logs instead of JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_output=False if args.text_logs else None)

    try:
        config = SlackModConfig.from_env()
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=e.message)
        return 1

    if args.host:
        config = replace(config, host=args.host)
    if args.port:
        config = replace(config, port=args.port)

    context = create_context(config)
    logger.info(
        "Starting slackmod",
        version=__version__,
        host=config.host,
        port=config.port,
        events_enabled=config.events.enabled,
        events_path=EVENTS_PATH,
        webhook_url=config.events.webhook_url,
    )
    web.run_app(create_app(context), host=config.host, port=config.port, print=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
