"""Capability Prober facade.

Produces the FeatureReport of the target once per run: from the on-disk
cache when an entry exists, otherwise by probing the client or server under
test and caching the result.
"""

from __future__ import annotations

from collections.abc import Sequence

from conformix.errors import UnsupportedTargetError
from conformix.execution.engine import ExecutionEngine
from conformix.models.enums import EndpointDirection
from conformix.models.features import FeatureReport
from conformix.observability import get_logger
from conformix.probing.cache import FeatureCache
from conformix.probing.client import ClientFeatureExtractor
from conformix.probing.server import ServerFeatureExtractor
from conformix.probing.sync import DEFAULT_SERVER_WAIT_ATTEMPTS, ClientSynchronizer, wait_for_server
from conformix.protocol.catalog import ProtocolVersion
from conformix.protocol.driver import CapabilityScanner, ProtocolDriver

logger = get_logger(__name__)


def validate_report(
    report: FeatureReport, supported_versions: Sequence[ProtocolVersion] | None = None
) -> FeatureReport:
    """Refuse targets the run cannot test.

    Raises:
        UnsupportedTargetError: If the report lists no versions, no cipher
            suites, or none of ``supported_versions``
    """
    if not report.versions:
        raise UnsupportedTargetError(report.identity, "no protocol version is supported")
    if not report.all_suites:
        raise UnsupportedTargetError(report.identity, "no cipher suite is supported")
    if supported_versions and not set(report.versions) & set(supported_versions):
        wanted = ", ".join(version.value for version in supported_versions)
        raise UnsupportedTargetError(
            report.identity, f"none of the configured versions ({wanted}) is supported"
        )
    return report


class CapabilityProber:
    """Discover and cache what the implementation under test supports.

    Args:
        engine: Execution Engine used for client probing
        driver: Protocol Driver
        cache: Feature Report cache
        scanner: Capability Scanner, required to probe servers
        synchronizer: Waits for the client under test to connect
        ignore_cache: Probe even when a cache entry exists
        server_address: (host, port) polled before probing a server
        server_wait_attempts: Connection attempts before giving up on a server
        sync_timeout: Seconds to wait for a client to connect, None to wait forever

    Example:
        >>> prober = CapabilityProber(engine, driver, FeatureCache(tmp_path), scanner=scanner)
        >>> report = prober.probe("localhost:4433", EndpointDirection.SERVER)
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        driver: ProtocolDriver,
        cache: FeatureCache,
        scanner: CapabilityScanner | None = None,
        synchronizer: ClientSynchronizer | None = None,
        ignore_cache: bool = False,
        server_address: tuple[str, int] | None = None,
        server_wait_attempts: int = DEFAULT_SERVER_WAIT_ATTEMPTS,
        sync_timeout: float | None = None,
    ) -> None:
        self.engine = engine
        self.driver = driver
        self.cache = cache
        self.scanner = scanner
        self.synchronizer = synchronizer
        self.ignore_cache = ignore_cache
        self.server_address = server_address
        self.server_wait_attempts = server_wait_attempts
        self.sync_timeout = sync_timeout

    def _probe_client(self, identity: str) -> FeatureReport:
        if self.synchronizer is not None and not self.synchronizer.wait(self.sync_timeout):
            raise UnsupportedTargetError(identity, "client never connected")
        return ClientFeatureExtractor(self.engine, self.driver).extract(identity)

    def _probe_server(self, identity: str) -> FeatureReport:
        if self.scanner is None:
            raise UnsupportedTargetError(identity, "no capability scanner configured")
        if self.server_address is not None:
            host, port = self.server_address
            wait_for_server(host, port, attempts=self.server_wait_attempts)
        return ServerFeatureExtractor(self.scanner, self.driver).extract(identity)

    def probe(self, identity: str, direction: EndpointDirection) -> FeatureReport:
        """Return the FeatureReport of ``identity``.

        Raises:
            ProbingExhaustionError: If client probing negotiated nothing
            UnsupportedTargetError: If the target could not be reached
        """
        if not self.ignore_cache:
            cached = self.cache.load(identity)
            if cached is not None and cached.direction is direction:
                return cached
            if cached is not None:
                logger.warning(
                    "conformix.cache.direction_mismatch",
                    identity=identity,
                    cached=cached.direction.value,
                    requested=direction.value,
                )

        if direction is EndpointDirection.CLIENT:
            report = self._probe_client(identity)
        else:
            report = self._probe_server(identity)
        self.cache.store(report)
        return report
