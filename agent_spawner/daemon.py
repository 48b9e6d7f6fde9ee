#!/usr/bin/env python3
"""Daemon entry point - wires config, API client, matcher, scheduler and webhook."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from . import __version__
from .buildkite import BuildkiteClient
from .config import Settings, get_config_path, load_settings
from .exceptions import ConfigError, FetchError
from .lock_utils import locked_or_skip, read_lock_owner
from .matcher import Matcher
from .scheduler import PollScheduler
from .webhook import build_server, create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Configure root logging: stderr always, plus a file when requested."""
    level = logging.DEBUG if debug else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def make_client(settings: Settings) -> BuildkiteClient:
    bk = settings.buildkite
    return BuildkiteClient(
        org=bk.org,
        api_token=bk.api_token,
        api_url=bk.api_url,
        timeout=bk.timeout_seconds,
    )


def run_once(settings: Settings) -> None:
    """Fetch one snapshot and run one matching cycle, synchronously."""
    with make_client(settings) as client:
        try:
            jobs = client.fetch_jobs()
        except FetchError as e:
            logger.warning("Fetch failed, skipping cycle: %s", e)
            return
        Matcher(settings.registry).run_cycle(jobs)


async def run_daemon(settings: Settings, enable_webhook: bool = True) -> None:
    """Run the poll scheduler (and webhook listener) until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    client = make_client(settings)

    async def fetch_jobs():
        # requests is blocking; keep the loop free while the fetch is outstanding
        return await loop.run_in_executor(None, client.fetch_jobs)

    scheduler = PollScheduler(
        fetch_jobs,
        Matcher(settings.registry),
        interval=settings.poll.interval_seconds,
        debounce=settings.poll.debounce_seconds,
    )

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    server = None
    server_task = None
    if enable_webhook and settings.webhook.enabled:
        app = create_app(scheduler.request_poll_soon, token=settings.webhook.token)
        server = build_server(app, settings.webhook.host, settings.webhook.port)
        server_task = asyncio.create_task(server.serve())
        # The listener handles its own signals; when it exits, so do we.
        server_task.add_done_callback(lambda _task: stop_event.set())
        logger.info("Webhook listener on %s:%d", settings.webhook.host, settings.webhook.port)
        if not settings.webhook.token:
            logger.warning("Webhook token not configured, accepting unauthenticated notifications")

    scheduler.start()
    try:
        await stop_event.wait()
        logger.info("Shutting down")
    finally:
        if server is not None:
            server.should_exit = True
            await server_task
        await scheduler.stop()
        client.close()


def _run(settings: Settings, args: argparse.Namespace) -> None:
    if args.once:
        run_once(settings)
    else:
        asyncio.run(run_daemon(settings, enable_webhook=not args.no_webhook))


def main() -> None:
    """Entry point for agent-spawner."""
    parser = argparse.ArgumentParser(
        description="Launch local agents for outstanding Buildkite jobs",
    )
    parser.add_argument("--config", help="Path to spawner.yaml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit",
    )
    parser.add_argument(
        "--no-webhook",
        action="store_true",
        help="Do not start the webhook listener even if configured",
    )
    parser.add_argument(
        "--lock-file",
        type=Path,
        help="Refuse to start if another instance holds this lock",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    setup_logging(debug=args.debug, log_file=args.log_file)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Loaded %d agent(s) from %s", len(settings.registry), get_config_path(args.config))

    if args.lock_file is None:
        _run(settings, args)
        return

    with locked_or_skip(args.lock_file) as acquired:
        if not acquired:
            owner = read_lock_owner(args.lock_file)
            print(f"Another agent-spawner instance is running (pid {owner}), exiting")
            sys.exit(0)
        _run(settings, args)


if __name__ == "__main__":
    main()
