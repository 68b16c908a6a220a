"""``hook-runner`` command line entry point.

Usage: hook-runner [CONFIG] [--host HOST] [--port PORT] [--check]
"""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from hook_runner import __version__
from hook_runner.config import get_settings
from hook_runner.core.exceptions import ConfigError
from hook_runner.core.logging import setup_logging, shutdown_logging
from hook_runner.main import create_app
from hook_runner.services.config_store import ConfigStore
from hook_runner.services.reload_trigger import ignore_reload_signal

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 1
EXIT_LOG_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="hook-runner",
        description="Run local commands for verified Gitea push webhooks",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=settings.config_path,
        help=f"Hook file (JSON or YAML), default {settings.config_path}",
    )
    parser.add_argument("--host", default=None, help="Override the hook file's Address")
    parser.add_argument("--port", type=int, default=None, help="Override the hook file's Port")
    parser.add_argument(
        "--check", action="store_true", help="Validate the hook file and exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    if settings.enable_reload_signal and not args.check:
        ignore_reload_signal()

    try:
        store = ConfigStore.from_file(args.config)
    except ConfigError as e:
        print(f"hook-runner: cannot load configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    config = store.current()
    if args.check:
        print(
            f"{args.config}: OK ({len(config.repositories)} repository rule(s), "
            f"listening on {config.listen_host}:{config.port})"
        )
        return 0

    try:
        setup_logging(log_file=config.logfile, settings=settings)
    except OSError as e:
        print(f"hook-runner: cannot open log file {config.logfile}: {e}", file=sys.stderr)
        return EXIT_LOG_ERROR

    host = args.host or config.listen_host
    port = args.port if args.port is not None else config.port
    logger.info(f"Listening on {host}:{port}")

    app = create_app(settings, store=store, manage_logging=False)
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        shutdown_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
