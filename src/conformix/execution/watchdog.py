"""Idle watchdog for the execution engine.

The watchdog is re-armed on every completion event. When the window elapses
without an event it runs the recovery command once, logs its exit code, and
re-arms. It never cancels or retries the stuck interaction: lack of progress
is reported, not healed.
"""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Sequence

from conformix.observability import get_logger, get_metrics

logger = get_logger(__name__)


class IdleWatchdog:
    """Runs a recovery command after ``window_seconds`` without progress.

    Example:
        >>> watchdog = IdleWatchdog(20.0, ["systemctl", "restart", "target"])
        >>> watchdog.start()
        >>> watchdog.notify()  # on every completed interaction
        >>> watchdog.stop()
    """

    def __init__(
        self,
        window_seconds: float,
        recovery_command: Sequence[str] | None = None,
        recovery_timeout: float | None = None,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")
        self.window_seconds = window_seconds
        self.recovery_command = list(recovery_command or [])
        self.recovery_timeout = recovery_timeout
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._fired = 0

    @property
    def fired(self) -> int:
        """Number of recovery actions taken so far."""
        with self._lock:
            return self._fired

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def _arm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self.window_seconds, self._fire)
        self._timer.daemon = True
        self._timer.start()

    def start(self) -> None:
        with self._lock:
            self._running = True
            self._arm_locked()

    def notify(self) -> None:
        """Record a completion event and restart the idle window."""
        with self._lock:
            if self._running:
                self._arm_locked()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._fired += 1

        get_metrics().increment_counter("conformix_watchdog_fired_total")
        logger.warning(
            "conformix.watchdog.fired",
            window_seconds=self.window_seconds,
            command=self.recovery_command,
        )
        self._run_recovery()

        with self._lock:
            if self._running:
                self._arm_locked()

    def _run_recovery(self) -> None:
        if not self.recovery_command:
            return
        try:
            completed = subprocess.run(
                self.recovery_command,
                check=False,
                capture_output=True,
                timeout=self.recovery_timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error(
                "conformix.watchdog.recovery_failed",
                command=self.recovery_command,
                error=str(exc),
            )
            return
        logger.info(
            "conformix.watchdog.recovery_finished",
            command=self.recovery_command,
            exit_code=completed.returncode,
        )
