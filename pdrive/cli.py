"""Command line interface for the pdrive client."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import UploadProgressDisplay, human_size, mask_token, render_configuration_summary
from .errors import ConfigError
from .models import ClientConfig
from .orchestrator import UploadOrchestrator
from .services.config import load_config


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


async def _run_upload(
    source: Path,
    config: ClientConfig,
    show_progress: bool = True,
) -> int:
    progress = UploadProgressDisplay(source.name, enabled=show_progress)
    async with UploadOrchestrator(config) as orchestrator:
        progress.start()
        try:
            outcome = await orchestrator.upload(source, progress.get_callback())
        except BaseException:
            progress.complete(success=False)
            raise
        progress.complete(success=outcome.success, error=outcome.error)

    if not outcome.success:
        print(f"ERROR: {outcome.error}", file=sys.stderr)
        return 1

    print(outcome.url)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdrive-up",
        description="Upload a file to a pdrive server (multipart for large files).",
    )
    parser.add_argument("source", nargs="?", type=Path, help="File to upload")
    parser.add_argument("--token", default=None, help="Bearer token (overrides config)")
    parser.add_argument("--api-url", default=None, help="Server base URL (overrides config)")
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="Concurrent part uploads (default from config, 2)",
    )
    parser.add_argument(
        "--part-size",
        type=int,
        default=None,
        help="Part size in bytes; larger files use multipart (default 50 MiB)",
    )
    parser.add_argument(
        "--cancel-on-failure",
        action="store_true",
        default=None,
        help="Cancel in-flight part uploads as soon as one part fails",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: <user config dir>/pdrive-client/config.toml)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Read PDRIVE_* settings from this .env file (default: ./.env if present)",
    )
    parser.add_argument("--no-progress", action="store_true", help="Do not render progress bars")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"pdrive-up {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.exists():
        print(f"ERROR: source does not exist: {source}", file=sys.stderr)
        return 1
    if not source.is_file():
        print(f"ERROR: source is not a file: {source}", file=sys.stderr)
        return 1

    env_file = args.env_file
    if env_file is not None and not env_file.is_file():
        print(f"ERROR: env file not found: {env_file}", file=sys.stderr)
        return 1

    try:
        config = load_config(
            config_path=args.config,
            env_file=env_file,
            overrides={
                "token": args.token,
                "api_url": args.api_url,
                "concurrent_requests": args.workers,
                "part_size": args.part_size,
                "cancel_on_failure": args.cancel_on_failure,
            },
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    size = source.stat().st_size
    show_progress = not args.silent and not args.no_progress
    if show_progress:
        render_configuration_summary(
            {
                "Source": str(source),
                "Size": human_size(size),
                "Mode": "multipart" if size > config.part_size else "single",
                "API URL": config.api_url,
                "Token": mask_token(config.token),
                "Workers": config.concurrent_requests,
                "Part Size": human_size(config.part_size),
                "Cancel On Failure": "yes" if config.cancel_on_failure else "no",
                "Env File": str(env_file) if env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_run_upload(source, config, show_progress=show_progress))
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
