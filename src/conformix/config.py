"""Run configuration.

Every option can be passed explicitly or read from ``CONFORMIX_*``
environment variables with :meth:`RunConfig.from_env`:

    CONFORMIX_DIRECTION=client
    CONFORMIX_IDENTITY=4433
    CONFORMIX_INTERACTION_WORKERS=8
    CONFORMIX_RECOVERY_COMMAND="systemctl restart sut"
    CONFORMIX_SUPPORTED_VERSIONS=TLS12,TLS13
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator

from conformix.derivation.model import DEFAULT_STRENGTH
from conformix.execution.pools import available_parallelism, case_worker_count
from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection
from conformix.probing.cache import DEFAULT_CACHE_DIR
from conformix.probing.sync import DEFAULT_SERVER_WAIT_ATTEMPTS, DEFAULT_TRIGGER_INTERVAL_SECONDS
from conformix.protocol.catalog import ProtocolVersion

ENV_PREFIX = "CONFORMIX_"

DEFAULT_INTERACTION_WORKERS = 5
DEFAULT_IDLE_WINDOW_SECONDS = 20.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_READ_TIMEOUT_SECONDS = 10.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_COMMAND_FIELDS = frozenset({"recovery_command", "trigger_command"})
_LIST_FIELDS = frozenset({"supported_versions", "tags"})
_BOOL_FIELDS = frozenset({"ignore_cache"})


class RunConfig(ConformixBaseModel):
    """Options of one conformance run.

    Attributes:
        direction: Role of the implementation under test
        identity: Cache key of the target (client port or server host)
        server_host: Host polled before probing a server
        server_port: Port polled before probing a server
        interaction_workers: Tier-1 pool size, capped at the cpu count
        test_case_workers: Tier-2 pool size, None for ceil(1.5 * tier-1 size)
        strength: Default covering strength
        seed: Seed of the covering array generator
        connect_timeout_seconds: Connect timeout of every driver interaction
        read_timeout_seconds: Read timeout of every driver interaction
        idle_window_seconds: Quiet period after which the recovery command runs
        recovery_command: Command (argv) run by the idle watchdog
        trigger_command: Command (argv) that makes a client under test connect
        trigger_interval_seconds: Seconds between trigger invocations
        cache_dir: Directory of the Feature Report cache
        ignore_cache: Probe even when a cache entry exists
        supported_versions: Versions the run is allowed to test
        tags: Only run tests carrying one of these tags, empty for all
        server_wait_attempts: Connection attempts before giving up on a server
    """

    direction: EndpointDirection = EndpointDirection.SERVER
    identity: str | None = Field(default=None, min_length=1)
    server_host: str = "localhost"
    server_port: int | None = Field(default=None, ge=1, le=65535)
    interaction_workers: int = Field(default=DEFAULT_INTERACTION_WORKERS, ge=1)
    test_case_workers: int | None = Field(default=None, ge=1)
    strength: int = Field(default=DEFAULT_STRENGTH, ge=1)
    seed: int = 0
    connect_timeout_seconds: float = Field(default=DEFAULT_CONNECT_TIMEOUT_SECONDS, gt=0)
    read_timeout_seconds: float = Field(default=DEFAULT_READ_TIMEOUT_SECONDS, gt=0)
    idle_window_seconds: float = Field(default=DEFAULT_IDLE_WINDOW_SECONDS, gt=0)
    recovery_command: list[str] | None = None
    trigger_command: list[str] | None = None
    trigger_interval_seconds: float = Field(default=DEFAULT_TRIGGER_INTERVAL_SECONDS, gt=0)
    cache_dir: Path = DEFAULT_CACHE_DIR
    ignore_cache: bool = False
    supported_versions: list[ProtocolVersion] = Field(
        default_factory=lambda: list(ProtocolVersion)
    )
    tags: list[str] = Field(default_factory=list)
    server_wait_attempts: int = Field(default=DEFAULT_SERVER_WAIT_ATTEMPTS, ge=1)

    @field_validator("interaction_workers")
    @classmethod
    def cap_interaction_workers(cls, value: int) -> int:
        """Never run more concurrent interactions than there are cpus."""
        return min(value, available_parallelism())

    @field_validator("recovery_command", "trigger_command")
    @classmethod
    def reject_empty_command(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            return None
        return value

    @property
    def resolved_test_case_workers(self) -> int:
        if self.test_case_workers is not None:
            return self.test_case_workers
        return case_worker_count(self.interaction_workers)

    @property
    def target_identity(self) -> str:
        """Identity used as cache key, falling back to the server address."""
        if self.identity:
            return self.identity
        if self.server_port is not None:
            return f"{self.server_host}:{self.server_port}"
        return self.server_host

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> RunConfig:
        """Build a config from ``CONFORMIX_*`` variables; ``overrides`` win.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            raw = raw.strip()
            if name in _COMMAND_FIELDS:
                values[name] = shlex.split(raw)
            elif name in _LIST_FIELDS:
                values[name] = [item.strip() for item in raw.split(",") if item.strip()]
            elif name in _BOOL_FIELDS:
                values[name] = raw.lower() in _TRUE_VALUES
            else:
                values[name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)
