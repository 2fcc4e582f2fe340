"""Synchronization with the implementation under test before probing.

Clients are made to connect by re-running a trigger command until the
listener accepts a connection. Servers are polled until they accept TCP
connections.
"""

from __future__ import annotations

import socket
import subprocess
import threading
import time
from collections.abc import Sequence

from conformix.errors import UnsupportedTargetError
from conformix.observability import get_logger
from conformix.protocol.driver import ConnectionListener

logger = get_logger(__name__)

DEFAULT_TRIGGER_INTERVAL_SECONDS = 1.0
DEFAULT_SERVER_WAIT_ATTEMPTS = 30
DEFAULT_SERVER_WAIT_INTERVAL_SECONDS = 1.0


class ClientSynchronizer:
    """Wait for a client under test to connect.

    While :meth:`wait` blocks on the listener, a background thread runs the
    trigger command every ``interval`` seconds. Trigger failures are logged
    and ignored.

    Args:
        listener: Listener that accepts the client connection
        trigger_command: Command (argv) that makes the client connect
        interval: Seconds between trigger invocations
    """

    def __init__(
        self,
        listener: ConnectionListener,
        trigger_command: Sequence[str] | None = None,
        interval: float = DEFAULT_TRIGGER_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.listener = listener
        self.trigger_command = list(trigger_command) if trigger_command else None
        self.interval = interval
        self._connected = threading.Event()
        self._invocations = 0

    @property
    def invocations(self) -> int:
        return self._invocations

    def _trigger(self) -> None:
        if self.trigger_command is None:
            return
        self._invocations += 1
        try:
            completed = subprocess.run(
                self.trigger_command,
                check=False,
                capture_output=True,
                timeout=self.interval * 10,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug(
                "conformix.sync.trigger_failed",
                command=self.trigger_command,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return
        logger.debug(
            "conformix.sync.triggered",
            command=self.trigger_command,
            exit_code=completed.returncode,
        )

    def _trigger_loop(self) -> None:
        while not self._connected.is_set():
            self._trigger()
            self._connected.wait(self.interval)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the client connected; return False if ``timeout`` elapsed."""
        self._connected.clear()
        thread = threading.Thread(target=self._trigger_loop, name="conformix-trigger", daemon=True)
        thread.start()
        logger.info("conformix.sync.waiting_for_client", trigger=self.trigger_command is not None)
        try:
            accepted = self.listener.accept(timeout)
        finally:
            self._connected.set()
            thread.join(timeout=self.interval * 2)
        if accepted:
            logger.info("conformix.sync.client_connected", triggers=self._invocations)
        else:
            logger.warning("conformix.sync.client_timeout", timeout=timeout)
        return accepted


def wait_for_server(
    host: str,
    port: int,
    attempts: int = DEFAULT_SERVER_WAIT_ATTEMPTS,
    interval: float = DEFAULT_SERVER_WAIT_INTERVAL_SECONDS,
    connect_timeout: float = 1.0,
) -> int:
    """Poll ``host:port`` until it accepts a TCP connection.

    Returns:
        Number of attempts it took

    Raises:
        UnsupportedTargetError: If the server never accepted a connection
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")
    for attempt in range(1, attempts + 1):
        try:
            with socket.create_connection((host, port), timeout=connect_timeout):
                logger.info("conformix.sync.server_ready", host=host, port=port, attempt=attempt)
                return attempt
        except OSError as exc:
            logger.debug(
                "conformix.sync.server_not_ready",
                host=host,
                port=port,
                attempt=attempt,
                error=str(exc),
            )
        if attempt < attempts:
            time.sleep(interval)
    raise UnsupportedTargetError(
        identity=f"{host}:{port}",
        reason=f"server did not accept connections after {attempts} attempts",
    )
