"""
Scheduler module for the IP detector.

Runs detection cycles once (one-shot mode) or repeatedly at a fixed
interval until a shutdown event is set (daemon mode).
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .enums import CyclePhase, LogLevel
from .exceptions import IPDetectorError
from .orchestrator import CycleResult, DetectionCycle


class Scheduler:
    """
    Interval scheduler for detection cycles.

    In daemon mode the first cycle runs immediately. A ticker task then
    feeds a queue of size one every interval; ticks arriving while the
    queue is full are dropped, so a slow cycle is followed by at most one
    catch-up cycle. Between cycles the scheduler waits for either the next
    tick or the shutdown event, and shutdown wins when both are ready.
    A running cycle is never interrupted.
    """

    def __init__(
        self,
        cycle: DetectionCycle,
        interval_seconds: float = 300.0,
        logger: Optional[AuditLogger] = None,
        on_result: Optional[Callable[[CycleResult], None]] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            cycle: Detection cycle to run
            interval_seconds: Seconds between cycles in daemon mode
            logger: Optional audit logger
            on_result: Optional callback receiving every completed CycleResult

        Raises:
            ValueError: If the interval is not positive
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self._cycle = cycle
        self._interval = interval_seconds
        self._logger = logger
        self._on_result = on_result
        self._stop_event = asyncio.Event()
        self._running = False
        self._stopped = False
        self._cycles_run = 0
        self._dropped_ticks = 0
        self._last_result: Optional[CycleResult] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def phase(self) -> CyclePhase:
        """Current phase; STOPPED once the daemon loop has exited."""
        if self._stopped:
            return CyclePhase.STOPPED
        return self._cycle.phase

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def dropped_ticks(self) -> int:
        return self._dropped_ticks

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    def is_running(self) -> bool:
        """Check if the daemon loop is running."""
        return self._running

    def stop(self) -> None:
        """Signal the daemon loop to stop after the current cycle."""
        self._stop_event.set()

    async def run_once(self, hostname: str) -> CycleResult:
        """
        Run a single detection cycle.

        Errors from loading the state propagate to the caller.

        Args:
            hostname: Host name shown in notifications

        Returns:
            The CycleResult of the cycle
        """
        result = await self._cycle.run(hostname)
        self._record(result)
        return result

    async def run(
        self,
        hostname: str,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Run detection cycles until the stop event is set.

        Failures inside a cycle are logged and never end the loop.

        Args:
            hostname: Host name shown in notifications
            stop_event: Optional shutdown event (defaults to the one set by stop())
        """
        if stop_event is not None:
            self._stop_event = stop_event

        self._running = True
        self._stopped = False
        ticks: asyncio.Queue = asyncio.Queue(maxsize=1)
        ticker = asyncio.create_task(self._tick(ticks))

        self._log(LogLevel.INFO, "Daemon started", {"interval_seconds": self._interval})

        try:
            while not self._stop_event.is_set():
                await self._run_guarded(hostname)
                if not await self._wait_for_tick(ticks):
                    break
        finally:
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)
            self._running = False
            self._stopped = True
            self._log(LogLevel.INFO, "Daemon stopped", {
                "cycles_run": self._cycles_run,
                "dropped_ticks": self._dropped_ticks,
            })

    async def _tick(self, ticks: asyncio.Queue) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                ticks.put_nowait(datetime.now(timezone.utc))
            except asyncio.QueueFull:
                self._dropped_ticks += 1
                self._log(LogLevel.DEBUG, "Cycle still pending, tick dropped", {
                    "dropped_ticks": self._dropped_ticks,
                })

    async def _wait_for_tick(self, ticks: asyncio.Queue) -> bool:
        """Wait for the next tick; False if shutdown was requested."""
        if self._stop_event.is_set():
            return False

        tick_waiter = asyncio.ensure_future(ticks.get())
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        done, pending = await asyncio.wait(
            {tick_waiter, stop_waiter},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        return not self._stop_event.is_set()

    async def _run_guarded(self, hostname: str) -> None:
        try:
            result = await self._cycle.run(hostname)
        except IPDetectorError as e:
            self._cycles_run += 1
            if self._logger:
                self._logger.log_error(
                    "Scheduler",
                    f"Detection cycle failed: {e.message}",
                    error=e,
                )
            return
        except Exception as e:
            self._cycles_run += 1
            if self._logger:
                self._logger.log_error(
                    "Scheduler",
                    "Unexpected error in detection cycle",
                    error=e,
                )
            return
        self._record(result)

    def _record(self, result: CycleResult) -> None:
        self._cycles_run += 1
        self._last_result = result
        if self._on_result:
            self._on_result(result)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "Scheduler", message, data)
