"""
Detection cycle for the IP detector.

One cycle loads the persisted state, resolves both address families,
compares them with the recorded values and, when something changed,
persists the new addresses, appends history and sends one notification.

Stage order within a changed cycle:
1. Save state (a failure aborts the remaining stages)
2. Append one history entry per changed family (failures are logged)
3. Notify (failures are logged, state is not rolled back)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .change_detector import ChangeDetector, ChangeVerdict
from .enums import AddressFamily, CyclePhase, LogLevel
from .exceptions import (
    AllServicesFailed,
    CorruptHistory,
    DispatchFailed,
    IPDetectorError,
    PersistError,
    VaultError,
)
from .history_log import HistoryLog, utc_now
from .models import HistoryEntry, PersistedState
from .notifications import NotificationDispatcher
from .resolver import ResolutionResult, Resolver
from .state_store import StateStore


@dataclass
class CycleResult:
    """Outcome of one detection cycle."""

    verdict: Optional[ChangeVerdict] = None
    resolution: Optional[ResolutionResult] = None
    ipv4_error: Optional[AllServicesFailed] = None
    state_saved: bool = False
    history_written: list[HistoryEntry] = field(default_factory=list)
    notification_sent: bool = False
    errors: list[IPDetectorError] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.verdict is not None and self.verdict.any_changed


class DetectionCycle:
    """
    Runs detection cycles against injected collaborators.

    The cycle never keeps state between runs: the persisted record is
    reloaded from disk at the start of every run. Errors from the state
    load propagate (setup problems); every later failure is captured in
    the CycleResult.
    """

    def __init__(
        self,
        state_store: StateStore,
        history_log: HistoryLog,
        resolver: Resolver,
        dispatcher: NotificationDispatcher,
        detector: Optional[ChangeDetector] = None,
        logger: Optional[AuditLogger] = None,
        phase_listener: Optional[Callable[[CyclePhase], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the detection cycle.

        Args:
            state_store: Store for the persisted state
            history_log: Log receiving one entry per changed family
            resolver: Address resolver
            dispatcher: Notification dispatcher
            detector: Change detector (defaults to ChangeDetector())
            logger: Optional audit logger
            phase_listener: Optional callback invoked on every phase change
            clock: Optional time source (defaults to UTC now)
        """
        self._state_store = state_store
        self._history_log = history_log
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._detector = detector or ChangeDetector()
        self._logger = logger
        self._phase_listener = phase_listener
        self._clock = clock or utc_now
        self._phase = CyclePhase.IDLE

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    def _enter(self, phase: CyclePhase) -> None:
        self._phase = phase
        if self._phase_listener:
            self._phase_listener(phase)

    async def run(self, hostname: str) -> CycleResult:
        """
        Run one complete detection cycle.

        Args:
            hostname: Host name shown in notifications

        Returns:
            CycleResult describing what the cycle did

        Raises:
            NotFound: If no state has been saved yet
            CorruptState: If the state file cannot be parsed
        """
        result = CycleResult()
        try:
            state = self._state_store.load()

            self._enter(CyclePhase.RESOLVING)
            resolution = await self._resolver.resolve_all(state.selected_service)
            result.resolution = resolution
            if resolution.ipv4_error is not None:
                result.ipv4_error = resolution.ipv4_error
                result.errors.append(resolution.ipv4_error)
                self._log_error(
                    "IPv4 detection failed on every service",
                    resolution.ipv4_error,
                )

            self._enter(CyclePhase.EVALUATING)
            verdict = self._detector.evaluate(
                resolution.ipv4_address, resolution.ipv6_address, state
            )
            result.verdict = verdict

            if not verdict.any_changed:
                self._log(LogLevel.DEBUG, "No address change", {
                    "ipv4": verdict.ipv4.current,
                    "ipv6": verdict.ipv6.current,
                })
                return result

            self._enter(CyclePhase.PERSISTING)
            now = self._clock()
            if verdict.ipv4.changed:
                state.last_known_ipv4 = verdict.ipv4.current
            if verdict.ipv6.changed:
                state.last_known_ipv6 = verdict.ipv6.current
            state.last_checked = now.isoformat()

            try:
                self._state_store.save(state)
            except PersistError as e:
                result.errors.append(e)
                self._log_error("Failed to save state, skipping history and notification", e)
                return result
            result.state_saved = True

            for family in verdict.changed_families():
                status = verdict.for_family(family)
                self._log(LogLevel.INFO, f"{family.value} changed", {
                    "family": family.value,
                    "old_ip": status.previous,
                    "new_ip": status.current,
                })
                entry = self._append_history(family, status.previous, status.current, result)
                if entry is not None:
                    result.history_written.append(entry)

            self._enter(CyclePhase.NOTIFYING)
            await self._notify(hostname, verdict, now, state, result)
            return result
        finally:
            self._enter(CyclePhase.IDLE)

    def _append_history(
        self,
        family: AddressFamily,
        old_ip: str,
        new_ip: str,
        result: CycleResult,
    ) -> Optional[HistoryEntry]:
        try:
            return self._history_log.append(family, old_ip, new_ip)
        except (PersistError, CorruptHistory) as e:
            result.errors.append(e)
            self._log(LogLevel.WARN, f"Failed to record {family.value} history: {e.message}", {
                "error_code": e.code,
            })
            return None

    async def _notify(
        self,
        hostname: str,
        verdict: ChangeVerdict,
        timestamp: datetime,
        state: PersistedState,
        result: CycleResult,
    ) -> None:
        try:
            result.notification_sent = await self._dispatcher.send(
                hostname, verdict, timestamp, state
            )
        except (DispatchFailed, VaultError) as e:
            result.errors.append(e)
            self._log_error("Failed to send notification", e)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "DetectionCycle", message, data)

    def _log_error(self, message: str, error: IPDetectorError) -> None:
        if self._logger:
            self._logger.log_error(
                "DetectionCycle",
                message,
                error=error,
                additional_data=error.details,
            )
