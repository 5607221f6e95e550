#!/usr/bin/env python3
"""
streamwatch - main entry point for python -m streamwatch
"""

import argparse
import asyncio
import sys

from . import __version__


async def _run(args) -> None:
    from .service import StreamService
    from .utils.config import load_config
    from .utils.logging import setup_logging

    extra = {"debug": True, "logging": {"level": "DEBUG"}} if args.debug else None
    config = await load_config(args.config, extra)
    setup_logging(
        app_name=config.app_name,
        log_level=config.logging.level,
        log_dir=config.logging.directory,
        enable_json=config.logging.format == "json",
        enable_sentry=config.logging.enable_sentry,
        sentry_dsn=config.logging.sentry_dsn,
    )
    await StreamService(config).run()


def main():
    """Main entry point for python -m streamwatch"""
    parser = argparse.ArgumentParser(description="Keep Discord channels in sync with live Twitch streams")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--config", action="append", help="Config file path (repeatable)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.version:
        print(f"streamwatch v{__version__}")
        return

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\nstreamwatch stopped by user", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"streamwatch error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
