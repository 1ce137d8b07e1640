"""Thought processing daemon entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

from config import settings
from services.database import get_sync_session, init_db
from thoughts.activity_log import ActivityLog
from thoughts.approval import ApprovalService
from thoughts.candidates import load_processing_candidates
from thoughts.daemon import ThoughtProcessorDaemon
from thoughts.executor import ActionExecutor
from thoughts.gateway import build_gateway
from thoughts.processor import ThoughtProcessor
from thoughts.queue_repository import ProcessQueueRepository
from thoughts.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    """Wired collaborators for the daemon and manual runs."""

    settings_store: SettingsStore
    processor: ThoughtProcessor
    daemon: ThoughtProcessorDaemon


def build_services(session_factory=get_sync_session) -> Services:
    """Wire repositories, gateway, executor, processor and daemon."""
    activity_log = ActivityLog(session_factory)
    settings_store = SettingsStore(session_factory)
    executor = ActionExecutor(session_factory, log_hook=activity_log.record_event)
    processor = ThoughtProcessor(
        session_factory,
        queue=ProcessQueueRepository(session_factory),
        gateway=build_gateway(),
        settings_store=settings_store,
        activity_log=activity_log,
        approval=ApprovalService(session_factory, executor),
    )
    daemon = ThoughtProcessorDaemon(
        processor,
        lambda: load_processing_candidates(session_factory),
        enabled=settings_store.get().allow_background_processing,
        settings_store=settings_store,
    )
    return Services(settings_store=settings_store, processor=processor, daemon=daemon)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Thought processing daemon")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit",
    )
    parser.add_argument(
        "--manual",
        metavar="THOUGHT_ID",
        help="Process one thought in manual mode and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = _parse_args(argv)
    _configure_logging(args.log_level or settings.log_level)

    await init_db()
    services = await asyncio.to_thread(build_services)

    if args.manual:
        outcome = await services.processor.process_thought(args.manual, mode="manual")
        if outcome.success:
            logger.info("Queue item %s is %s", outcome.queue_id, outcome.status)
            return 0
        logger.error("Processing failed: %s", outcome.error)
        return 1

    if args.once:
        outcome = await services.daemon.tick()
        if outcome is None:
            logger.info("Nothing to process")
            return 0
        return 0 if outcome.success else 1

    if not settings.thought_processing.enabled:
        logger.info("Thought processing is disabled in configuration")
        return 0

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")
    await services.daemon.run(stop_event)
    return 0


def cli() -> None:
    """Console script wrapper."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
