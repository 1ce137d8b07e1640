"""Periodic driver that processes one candidate thought per tick."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from config import settings
from models import Thought
from thoughts.processor import ProcessingOutcome, ThoughtProcessor
from thoughts.settings_store import SettingsStore, UserPreferences

logger = logging.getLogger(__name__)


class ThoughtProcessorDaemon:
    """Runs a tick shortly after start and then on a fixed interval.

    A tick is a no-op while another tick is in flight or while background
    processing is disabled. Ticks are scheduled on the running event loop and
    are not awaited by the timer, so a slow attempt turns later ticks into
    no-ops instead of delaying the schedule.
    """

    def __init__(
        self,
        processor: ThoughtProcessor,
        candidate_loader: Callable[[], Sequence[Thought]],
        *,
        enabled: bool,
        settings_store: SettingsStore | None = None,
        interval_seconds: float | None = None,
        initial_delay_seconds: float | None = None,
    ) -> None:
        """Initialize the daemon with its initial feature flag and change channel."""
        config = settings.thought_processing
        self._processor = processor
        self._candidate_loader = candidate_loader
        self._enabled = enabled
        self._settings_store = settings_store
        self.interval_seconds = (
            config.interval_seconds if interval_seconds is None else interval_seconds
        )
        self.initial_delay_seconds = (
            config.initial_delay_seconds if initial_delay_seconds is None else initial_delay_seconds
        )
        self._in_flight = False
        self._tasks: set[asyncio.Task] = set()
        self._stop_event: asyncio.Event | None = None

    @property
    def enabled(self) -> bool:
        """Return whether background processing is currently allowed."""
        return self._enabled

    @property
    def in_flight(self) -> bool:
        """Return whether a processing attempt is running."""
        return self._in_flight

    async def tick(self) -> ProcessingOutcome | None:
        """Process the first candidate, if allowed and any exist.

        With a settings store the stored flag is re-read on every tick, so
        changes written by another process take effect on the next tick.
        """
        if self._in_flight:
            return None
        self._in_flight = True
        try:
            if self._settings_store is not None:
                preferences = await asyncio.to_thread(self._settings_store.get)
                self._on_settings_changed(preferences)
            if not self._enabled:
                return None
            candidates = await asyncio.to_thread(self._candidate_loader)
            if not candidates:
                return None
            logger.info("Found %s thought(s) to process", len(candidates))
            return await self._processor.process_thought(candidates[0].id, mode="auto")
        except Exception:
            logger.exception("Daemon tick failed")
            return None
        finally:
            self._in_flight = False

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Run until ``stop_event`` is set or :meth:`stop` is called."""
        stop_event = stop_event or asyncio.Event()
        self._stop_event = stop_event
        unsubscribe = (
            self._settings_store.subscribe(self._on_settings_changed)
            if self._settings_store is not None
            else None
        )
        loop = asyncio.get_running_loop()
        started = loop.time()
        logger.info(
            "Thought processor daemon started (interval=%ss, enabled=%s)",
            self.interval_seconds,
            self._enabled,
        )
        try:
            if await _wait(stop_event, self.initial_delay_seconds):
                return
            self._spawn_tick()
            next_run = started + self.interval_seconds
            while not await _wait(stop_event, max(0.0, next_run - loop.time())):
                self._spawn_tick()
                next_run += self.interval_seconds
        finally:
            if unsubscribe is not None:
                unsubscribe()
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Thought processor daemon stopped")

    def stop(self) -> None:
        """Ask a running daemon to exit after in-flight work finishes."""
        if self._stop_event is not None:
            self._stop_event.set()

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_settings_changed(self, preferences: UserPreferences) -> None:
        enabled = preferences.allow_background_processing
        if enabled != self._enabled:
            logger.info("Background processing %s", "enabled" if enabled else "disabled")
        self._enabled = enabled


async def _wait(stop_event: asyncio.Event, seconds: float) -> bool:
    """Sleep up to ``seconds``; return True if the stop event was set."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
