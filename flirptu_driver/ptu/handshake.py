"""
Session handshake.

After the port opens, the controller prints a banner ending in
'Initializing...*'. The driver then switches on terse feedback, user
limits and continuous pan, and zeroes the pan axis. Each step is one
exchange; the first failure stops the sequence in FAILED and records the
state it failed from.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from flirptu_driver.protocol.commands import lookup
from flirptu_driver.protocol.outcome import ResponseOutcome
from flirptu_driver.protocol.transport import CommandTransport


logger = logging.getLogger(__name__)


class HandshakeState(Enum):
    AWAITING_BANNER = "awaiting_banner"
    TERSE_FEEDBACK_ENABLED = "terse_feedback_enabled"
    USER_LIMITS_ENABLED = "user_limits_enabled"
    CONTINUOUS_PAN_ENABLED = "continuous_pan_enabled"
    PAN_ZEROED = "pan_zeroed"
    READY = "ready"
    FAILED = "failed"


# (command, state reached when the command succeeds)
HANDSHAKE_STEPS: List[Tuple[str, HandshakeState]] = [
    ("FT", HandshakeState.TERSE_FEEDBACK_ENABLED),
    ("LU", HandshakeState.USER_LIMITS_ENABLED),
    ("PCE", HandshakeState.CONTINUOUS_PAN_ENABLED),
    ("PP0", HandshakeState.PAN_ZEROED),
]


class HandshakeSequence:
    """
    One handshake attempt over an open transport.

    Attributes:
        state: Current state; READY or FAILED once run() returns.
        failed_at: State the sequence was in when a step failed.
        failure: Outcome of the failing step.
    """

    def __init__(self, transport: CommandTransport):
        self._transport = transport
        self.state = HandshakeState.AWAITING_BANNER
        self.failed_at: Optional[HandshakeState] = None
        self.failure: Optional[ResponseOutcome] = None

    @property
    def ready(self) -> bool:
        return self.state is HandshakeState.READY

    def _fail(self, outcome: ResponseOutcome) -> bool:
        self.failed_at = self.state
        self.failure = outcome
        self.state = HandshakeState.FAILED
        logger.error(
            f"Handshake failed in state {self.failed_at.name}: {outcome.kind.value} {outcome.detail}"
        )
        return False

    def run(self) -> bool:
        """
        Run every step in order.

        Returns:
            True if the sequence reached READY.
        """
        if self.state is not HandshakeState.AWAITING_BANNER:
            raise RuntimeError(f"Handshake already run (state {self.state.name})")

        logger.info("Waiting for controller banner")
        outcome = self._transport.read_banner()
        if not outcome.ok:
            return self._fail(outcome)
        self._transport.drain_for_debug()

        for command, reached in HANDSHAKE_STEPS:
            spec = lookup(command)
            outcome = self._transport.execute(spec)
            if not outcome.ok:
                logger.error(f"Failed to {spec.description.lower()}")
                return self._fail(outcome)
            self._transport.drain_for_debug()
            self.state = reached
            logger.debug(f"Handshake: {spec.description} -> {reached.name}")

        self.state = HandshakeState.READY
        logger.info("Handshake completed")
        return True
