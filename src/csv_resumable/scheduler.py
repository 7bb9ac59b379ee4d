"""Drives repeated upload cycles with adaptive intervals."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

from .cycle import run_cycle
from .index import CsvSource
from .layout import FieldLayout
from .models import CycleOutcome, Failed, Uploaded
from .remote import RemoteStore

logger = logging.getLogger(__name__)

CycleRunner = Callable[[CsvSource, FieldLayout, RemoteStore, int], Awaitable[CycleOutcome]]


@dataclass(frozen=True)
class ScheduleSettings:
    """Upload loop knobs.

    Attributes:
        max_batch_size: Rows read and uploaded per cycle
        loop: Keep running cycles; if False run exactly one
        record_count_threshold: Uploads of at least this many rows use the
            fast interval
        fast_interval_millis: Delay after a large upload (backlog catch-up)
        normal_interval_millis: Delay after a small upload or no data
        error_interval_millis: Delay after a failed cycle
    """

    max_batch_size: int = 5000
    loop: bool = True
    record_count_threshold: int = 2
    fast_interval_millis: int = 1
    normal_interval_millis: int = 1000
    error_interval_millis: int = 5 * 60 * 1000

    def next_delay_millis(self, outcome: CycleOutcome) -> int:
        """Pick the delay before the next cycle from the last outcome."""
        if isinstance(outcome, Failed):
            return self.error_interval_millis
        if isinstance(outcome, Uploaded) and outcome.count >= self.record_count_threshold:
            return self.fast_interval_millis
        return self.normal_interval_millis


class Scheduler:
    """Runs upload cycles one at a time.

    A stop request is honoured between cycles; an in-flight cycle always
    finishes. Any exception a cycle raises is reported as ``Failed``
    and retried after the error interval.

    Example:
        >>> scheduler = Scheduler(source, layout, store, ScheduleSettings())
        >>> loop.add_signal_handler(signal.SIGTERM, scheduler.request_stop)
        >>> await scheduler.run()
    """

    def __init__(
        self,
        source: CsvSource,
        layout: FieldLayout,
        store: RemoteStore,
        settings: ScheduleSettings,
        *,
        cycle: CycleRunner = run_cycle,
    ) -> None:
        self._source = source
        self._layout = layout
        self._store = store
        self._settings = settings
        self._cycle = cycle

        self._stop = asyncio.Event()
        self._state: Literal["idle", "running", "stopped"] = "idle"
        self._cycles_run = 0
        self._last_outcome: CycleOutcome | None = None

    @property
    def state(self) -> Literal["idle", "running", "stopped"]:
        return self._state

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def last_outcome(self) -> CycleOutcome | None:
        return self._last_outcome

    def request_stop(self) -> None:
        """Ask the scheduler to stop before starting another cycle."""
        logger.info("Stop requested")
        self._stop.set()

    async def run(self) -> CycleOutcome | None:
        """Run cycles until stopped (or once, in single-shot mode).

        Returns:
            The outcome of the last completed cycle, or None if stopped
            before any cycle ran
        """
        mode = "continuous" if self._settings.loop else "single-shot"
        logger.info("Starting uploader for %s (%s mode)", self._source.file_path, mode)

        while not self._stop.is_set():
            self._state = "running"
            try:
                outcome = await self._cycle(
                    self._source, self._layout, self._store, self._settings.max_batch_size
                )
            except Exception as e:
                logger.exception("Unexpected error during upload cycle")
                outcome = Failed(e)
            self._cycles_run += 1
            self._last_outcome = outcome

            if not self._settings.loop:
                break

            delay = self._settings.next_delay_millis(outcome)
            if isinstance(outcome, Failed):
                logger.error("Upload cycle failed, retrying in %d ms: %s", delay, outcome.error)
            self._state = "idle"
            await self._sleep(delay / 1000.0)

        self._state = "stopped"
        logger.info("Uploader stopped after %d cycle(s)", self._cycles_run)
        return self._last_outcome

    async def _sleep(self, seconds: float) -> None:
        """Wait for the next cycle, waking early on a stop request."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
