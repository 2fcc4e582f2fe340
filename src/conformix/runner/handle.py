"""Handle given to a test body for one combination."""

from __future__ import annotations

import dataclasses
import threading
from typing import Any

from conformix.derivation.container import DerivationContainer
from conformix.derivation.parameter import SideChannel
from conformix.derivation.types import DerivationType
from conformix.execution.engine import ExecutionEngine
from conformix.models.enums import EndpointDirection, Epoch, MessageKind
from conformix.models.features import FeatureReport
from conformix.models.outcome import RunOutcome
from conformix.protocol.config import DraftConfig
from conformix.protocol.driver import Interaction, InteractionKind, ProtocolDriver


class TestCaseHandle:
    """Everything a test body needs for one combination.

    The body edits ``config`` if needed (for manual derivation types), plans
    interactions and runs them with :meth:`execute`. Every outcome is kept;
    the last one is recorded in the test's result.

    Example:
        >>> def body(handle: TestCaseHandle) -> None:
        ...     handle.config.mac_modification = handle.build_bitmask(DerivationType.MAC_BITMASK)
        ...     outcome = handle.execute()
        ...     assert_message_received(outcome, MessageKind.ALERT)
    """

    __test__ = False

    def __init__(
        self,
        test_id: str,
        engine: ExecutionEngine,
        driver: ProtocolDriver,
        config: DraftConfig,
        container: DerivationContainer,
        side_channel: SideChannel,
    ) -> None:
        self.test_id = test_id
        self.engine = engine
        self.driver = driver
        self.config = config
        self.container = container
        self.side_channel = side_channel
        self._lock = threading.Lock()
        self._outcomes: list[RunOutcome] = []

    @property
    def features(self) -> FeatureReport:
        return self.container.features

    @property
    def epoch(self) -> Epoch:
        return self.config.epoch

    @property
    def direction(self) -> EndpointDirection:
        return self.config.direction

    @property
    def outcomes(self) -> list[RunOutcome]:
        with self._lock:
            return list(self._outcomes)

    @property
    def last_outcome(self) -> RunOutcome | None:
        with self._lock:
            return self._outcomes[-1] if self._outcomes else None

    def value(self, derivation_type: DerivationType, parent: DerivationType | None = None) -> Any:
        return self.container.value(derivation_type, parent)

    def build_bitmask(self, bitmask_type: DerivationType) -> bytes:
        return self.container.build_bitmask(bitmask_type)

    def interaction(
        self,
        kind: InteractionKind = InteractionKind.HANDSHAKE,
        config: DraftConfig | None = None,
        optional_trailing: frozenset[MessageKind] = frozenset(),
    ) -> Interaction:
        """Plan an interaction labelled with the combination."""
        interaction = self.driver.build_interaction(kind, config or self.config)
        return dataclasses.replace(
            interaction,
            label=f"{self.test_id} [{self.container.describe()}]",
            optional_trailing=interaction.optional_trailing | optional_trailing,
        )

    def execute(self, interaction: Interaction | None = None) -> RunOutcome:
        """Run ``interaction`` (a handshake by default) on the interaction pool."""
        outcome = self.engine.execute(interaction or self.interaction())
        with self._lock:
            self._outcomes.append(outcome)
        return outcome
