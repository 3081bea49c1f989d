"""
PTU driver (device layer).

Owns the transport and the driver state. Every public operation runs under
one lock, so concurrent HTTP requests never interleave exchanges on the
channel. Failures of individual reads are reflected in the state's
PropertyState flags; only lifecycle and caller errors raise.
"""

import functools
import logging
import threading
from typing import Any, Callable, Dict, Optional

from flirptu_driver.config.models import ProtocolConfig
from flirptu_driver.protocol.commands import (
    AXIS_NAMES,
    KIND_NAMES,
    POWER_REFRESH,
    REPORTED_POWER_LEVELS,
    Axis,
    ControlMode,
    PowerKind,
    PowerLevel,
    ResetTarget,
    control_mode_set,
    lookup,
    power_query,
    power_set,
    reset_command,
)
from flirptu_driver.protocol.logger import ProtocolLogger
from flirptu_driver.protocol.outcome import OutcomeKind, ResponseOutcome
from flirptu_driver.protocol.parsers import (
    INT_SENTINEL,
    PanTiltPosition,
    VdctReading,
    is_valid_float,
    is_valid_int,
    parse_float,
    parse_int,
    parse_position,
    parse_step,
    parse_vdct,
    steps_to_degrees,
)
from flirptu_driver.protocol.port import BytePort
from flirptu_driver.protocol.transport import CommandTransport
from flirptu_driver.ptu.handshake import HandshakeSequence
from flirptu_driver.ptu.state import (
    Corrections,
    Limits,
    PropertyState,
    PTUState,
    Resolution,
)
from flirptu_driver.utils.exceptions import HandshakeError, NotConnectedError


logger = logging.getLogger(__name__)

# Power query token -> (axis, kind)
_POWER_TOKENS = {
    axis.value + kind.value: (axis, kind)
    for axis in Axis
    for kind in PowerKind
}


def requires_connection(method: Callable) -> Callable:
    """Run a driver method under the driver lock, connected only."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            if not self.connected:
                raise NotConnectedError("PTU is not connected")
            return method(self, *args, **kwargs)

    return wrapper


class PTUDriver:
    """
    Typed operations on a FLIR pan-tilt controller.

    Args:
        port: Byte stream to the controller (serial, TCP or simulator).
        config: Protocol timeouts and limits.
        protocol_logger: Traffic recorder (defaults to the global one).
    """

    def __init__(
        self,
        port: BytePort,
        config: Optional[ProtocolConfig] = None,
        protocol_logger: Optional[ProtocolLogger] = None,
    ):
        self.port = port
        self.config = config or ProtocolConfig()
        self.transport = CommandTransport(port, self.config, protocol_logger)
        self.state = PTUState()
        self._lock = threading.RLock()
        self._connected = False

        logger.info(f"PTUDriver initialized on {port.name}")

    @property
    def connected(self) -> bool:
        return self._connected and self.port.is_open

    def snapshot(self) -> Dict[str, Any]:
        """JSON friendly copy of the cached state, taken under the driver lock."""
        with self._lock:
            return self.state.to_dict()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open the port, run the handshake and read the current settings.

        Raises:
            PortNotFoundError, PortInUseError: If the port cannot be opened.
            HandshakeError: If any handshake step fails. The port is closed.
        """
        with self._lock:
            if self._connected:
                logger.warning("Already connected")
                return

            self.port.open()
            handshake = HandshakeSequence(self.transport)
            ok = handshake.run()
            self.state.handshake = handshake.state.name

            if not ok:
                self.port.close()
                raise HandshakeError(
                    f"Handshake failed in state {handshake.failed_at.name}: "
                    f"{handshake.failure.kind.value} {handshake.failure.detail}".rstrip()
                )

            self._connected = True
            logger.info(f"Connected to PTU on {self.port.name}")
            self.refresh_settings()

    def disconnect(self) -> None:
        with self._lock:
            if not self._connected and not self.port.is_open:
                logger.warning("Not connected")
                return
            self.port.close()
            self._connected = False
            self.state = PTUState()
            logger.info("Disconnected from PTU")

    @requires_connection
    def refresh_settings(self) -> None:
        """Read power, resolution, limits, voltage/temperature and control mode."""
        self.refresh_power()
        self.get_resolution()
        self.get_limits()
        self.get_vdct()
        self.get_control_mode()

    # ------------------------------------------------------------------
    # Power
    # ------------------------------------------------------------------

    def _power_level(self, text: str, kind: PowerKind, context: str) -> Optional[PowerLevel]:
        level = PowerLevel.from_reply(text)
        if level is None or level not in REPORTED_POWER_LEVELS[kind]:
            logger.error(f"{context}: Unknown power setting '{text}'")
            return None
        return level

    @requires_connection
    def get_power(self, axis: Axis, kind: PowerKind) -> Optional[PowerLevel]:
        """Query one power setting; None (and ALERT) on failure."""
        spec = power_query(axis, kind)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            self.state.power.state = PropertyState.ALERT
            return None

        level = self._power_level(outcome.value, kind, spec.description)
        if level is None:
            self.state.power.state = PropertyState.ALERT
            return None

        self.state.power.set(axis, kind, level)
        self.state.power.state = PropertyState.OK
        return level

    @requires_connection
    def refresh_power(self) -> bool:
        """Read all four power settings in one multi-field exchange."""
        spec = lookup(POWER_REFRESH)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            logger.error(f"Failed to update power settings: {outcome.kind.value}")
            self.state.power.state = PropertyState.ALERT
            return False

        all_ok = True
        for token, text in outcome.value.items():
            axis, kind = _POWER_TOKENS[token]
            level = self._power_level(text, kind, f"get{AXIS_NAMES[axis]}{KIND_NAMES[kind]}Power")
            if level is None:
                all_ok = False
                continue
            self.state.power.set(axis, kind, level)

        self.state.power.state = PropertyState.OK if all_ok else PropertyState.ALERT
        return all_ok

    @requires_connection
    def set_power(self, axis: Axis, kind: PowerKind, level: PowerLevel) -> bool:
        """
        Set a power level.

        On failure the previous selection is kept and the power group goes
        to ALERT.

        Raises:
            InvalidValueError: If the axis does not accept the level.
        """
        spec = power_set(axis, kind, level)
        previous = self.state.power.get(axis, kind)

        outcome = self.transport.execute(spec)
        if not outcome.ok:
            logger.error(
                f"Failed to set {spec.description}: {outcome.kind.value}. "
                f"Keeping {previous.name if previous else 'unknown'}"
            )
            self.state.power.set(axis, kind, previous)
            self.state.power.state = PropertyState.ALERT
            return False

        self.state.power.set(axis, kind, level)
        self.state.power.state = PropertyState.OK
        logger.info(f"{spec.description} set")
        return True

    # ------------------------------------------------------------------
    # Control mode
    # ------------------------------------------------------------------

    @requires_connection
    def get_control_mode(self) -> Optional[ControlMode]:
        outcome = self.transport.execute(lookup("CT"))
        if not outcome.ok:
            self.state.control_mode.state = PropertyState.ALERT
            return None

        mode = ControlMode.from_reply(outcome.value)
        if mode is None:
            logger.error(f"getControlMode: Unknown control mode '{outcome.value}'")
            self.state.control_mode.state = PropertyState.ALERT
            return None

        self.state.control_mode.mode = mode
        self.state.control_mode.state = PropertyState.OK
        return mode

    @requires_connection
    def set_control_mode(self, mode: ControlMode) -> bool:
        spec = control_mode_set(mode)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            logger.error(f"Failed to {spec.description.lower()}: {outcome.kind.value}")
            self.state.control_mode.state = PropertyState.ALERT
            return False

        self.state.control_mode.mode = mode
        self.state.control_mode.state = PropertyState.OK
        return True

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------

    def _read_float(self, command: str) -> float:
        spec = lookup(command)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            return float("nan")
        return parse_float(outcome.value, spec.description)

    def _read_int(self, command: str) -> int:
        spec = lookup(command)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            return INT_SENTINEL
        return parse_int(outcome.value, spec.description)

    def _read_step(self, command: str) -> Optional[int]:
        """Signed step values, where INT_SENTINEL would be ambiguous."""
        spec = lookup(command)
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            return None
        return parse_step(outcome.value, spec.description)

    @requires_connection
    def get_resolution(self) -> Resolution:
        resolution = self.state.resolution
        resolution.pan = self._read_float("PR")
        resolution.tilt = self._read_float("TR")
        valid = is_valid_float(resolution.pan) and is_valid_float(resolution.tilt)
        resolution.state = PropertyState.OK if valid else PropertyState.ALERT
        return resolution

    @requires_connection
    def get_limits(self) -> Limits:
        """Read the user position limits and convert them to degrees."""
        limits = self.state.limits
        values = {command: self._read_step(command) for command in ("PN", "PX", "TN", "TX")}

        if any(v is None for v in values.values()):
            limits.state = PropertyState.ALERT
            return limits

        limits.pan_min, limits.pan_max = values["PN"], values["PX"]
        limits.tilt_min, limits.tilt_max = values["TN"], values["TX"]

        pan_res, tilt_res = self.state.resolution.pan, self.state.resolution.tilt
        limits.pan_min_deg = steps_to_degrees(limits.pan_min, pan_res)
        limits.pan_max_deg = steps_to_degrees(limits.pan_max, pan_res)
        limits.tilt_min_deg = steps_to_degrees(limits.tilt_min, tilt_res)
        limits.tilt_max_deg = steps_to_degrees(limits.tilt_max, tilt_res)

        valid = is_valid_float(pan_res) and is_valid_float(tilt_res)
        limits.state = PropertyState.OK if valid else PropertyState.ALERT
        return limits

    @requires_connection
    def get_vdct(self) -> Optional[VdctReading]:
        """Read input voltage and the three temperatures."""
        spec = lookup("O")
        outcome = self.transport.execute(spec)
        if not outcome.ok:
            self.state.vdct.state = PropertyState.ALERT
            return None

        reading = parse_vdct(outcome.value)
        if reading is None:
            self.state.vdct.state = PropertyState.ALERT
            return None

        vdct = self.state.vdct
        vdct.voltage = reading.voltage
        vdct.temperature = reading.temperature
        vdct.pan_motor_temperature = reading.pan_motor_temperature
        vdct.tilt_motor_temperature = reading.tilt_motor_temperature
        vdct.state = PropertyState.OK
        return reading

    @requires_connection
    def get_control_mode_corrections(self) -> Corrections:
        """
        Read the encoder correction counters.

        Any positive counter puts the group in ALERT. A change since the
        previous read is logged as a warning with its delta.
        """
        corrections = self.state.corrections
        pan = self._read_int("CPEC")
        tilt = self._read_int("CTEC")

        if not (is_valid_int(pan) and is_valid_int(tilt)):
            corrections.state = PropertyState.ALERT
            return corrections

        if pan != corrections.last_pan:
            logger.warning(f"Pan encoder corrections changed by {pan - corrections.last_pan} (now {pan})")
        if tilt != corrections.last_tilt:
            logger.warning(f"Tilt encoder corrections changed by {tilt - corrections.last_tilt} (now {tilt})")

        corrections.pan, corrections.tilt = pan, tilt
        corrections.last_pan, corrections.last_tilt = pan, tilt
        corrections.state = PropertyState.ALERT if pan > 0 or tilt > 0 else PropertyState.OK
        return corrections

    # ------------------------------------------------------------------
    # Position and motion
    # ------------------------------------------------------------------

    @requires_connection
    def get_position(self) -> ResponseOutcome:
        """
        Read both axis positions with one 'PP TP' exchange.

        Returns:
            OK with a PanTiltPosition, PARSE_ERROR if the reply does not
            match the position pattern, or the exchange failure.
        """
        spec = lookup("PP TP")
        outcome = self.transport.send_and_read_composite(spec.command)
        position = self.state.position

        if not outcome.ok:
            logger.error(f"{spec.description}: {outcome.kind.value} {outcome.detail}")
            position.state = PropertyState.ALERT
            return outcome

        parsed: Optional[PanTiltPosition] = parse_position(outcome.value)
        if parsed is None:
            logger.error(f"{spec.description}: reply does not match the position pattern")
            position.state = PropertyState.ALERT
            return ResponseOutcome.failure(
                OutcomeKind.PARSE_ERROR, "position pattern did not match", raw=outcome.raw
            )

        position.pan, position.tilt = parsed.pan, parsed.tilt
        position.pan_deg = steps_to_degrees(parsed.pan, self.state.resolution.pan)
        position.tilt_deg = steps_to_degrees(parsed.tilt, self.state.resolution.tilt)
        position.state = PropertyState.OK
        return ResponseOutcome.success(value=parsed, raw=outcome.raw)

    @requires_connection
    def reset_axis(self, target: ResetTarget) -> bool:
        """Recalibrate one or both axes. Blocks up to the reset timeout."""
        spec = reset_command(target)
        self.state.reset.last_target = target.name
        self.state.reset.state = PropertyState.BUSY
        logger.info(f"Resetting {spec.description}")

        outcome = self.transport.execute(spec, timeout=self.config.reset_timeout_seconds)
        if not outcome.ok:
            logger.error(f"Failed to reset {spec.description}: {outcome.kind.value} {outcome.detail}")
            self.state.reset.state = PropertyState.ALERT
            return False

        self.state.reset.state = PropertyState.OK
        logger.info(f"{spec.description} reset")
        return True

    @requires_connection
    def halt(self) -> bool:
        """Stop all motion. The acknowledgement is drained, not parsed."""
        ok = self.transport.execute(lookup("H")).ok
        self.transport.drain(reason="Halt acknowledgement", level=logging.DEBUG)
        if not ok:
            logger.error("Failed to send halt command")
        return ok

    @requires_connection
    def poll(self) -> bool:
        """
        One polling cycle: voltage/temperature, corrections, position.

        Returns:
            Whether the position read succeeded.
        """
        self.get_vdct()
        self.get_control_mode_corrections()
        return self.get_position().ok
