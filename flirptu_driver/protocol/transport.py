"""
Command transport for the PTU ASCII dialect.

Reply framing reference (terse feedback enabled):

    PP            -> 'PP<CR><LF>* 100<CR><LF>'
    PO100 TO100   -> 'PO100 *<CR><LF>TO100<CR><LF>*<CR><LF>'
    PP TP         -> 'PP * 100<CR><LF>TP<CR><LF>* 600<CR><LF>'
    PP TP PH TH PM TM
                  -> 'PP * 100<CR><LF>TP * 700<CR><LF>PH * OFF<CR><LF>TH * OFF<CR><LF>'
                     'PM * REG<CR><LF>TM<CR><LF>* HIGH<CR><LF>'

There is one '*' per sub-command, and the last item has its <CR><LF>
before the '*' instead of after the label's value. Errors come back as a
'!'-prefixed line with no '*' at all.

Every exchange is single-shot: the transport drains residual input, writes
the command, reads the reply with a bounded timeout and returns a
ResponseOutcome. Retrying and resynchronizing are the caller's decisions.
The transport is not thread-safe; callers serialize access.
"""

import logging
from typing import Dict, List, Optional, Tuple

from flirptu_driver.config.models import ProtocolConfig
from flirptu_driver.protocol.commands import CommandSpec
from flirptu_driver.protocol.encoder import (
    encode_command,
    make_visible,
    strip_line_ending,
    trim_field,
    trim_value,
    value_bounds,
)
from flirptu_driver.protocol.framing import BufferSynchronizer, FrameReader, LF, STAR
from flirptu_driver.protocol.logger import ProtocolLogger, get_protocol_logger
from flirptu_driver.protocol.outcome import ExchangeMode, OutcomeKind, ReadStatus, ResponseOutcome
from flirptu_driver.protocol.port import BytePort
from flirptu_driver.utils.exceptions import PortIOError


logger = logging.getLogger(__name__)

SUCCESS_MARKER = b"\r\n"


def _text(data: bytes) -> str:
    return data.decode("ascii", errors="replace")


class CommandTransport:
    """
    One operation per reply framing.

    Args:
        port: Open byte stream.
        config: Timeouts and limits.
        protocol_logger: Traffic recorder (defaults to the global one).
    """

    def __init__(
        self,
        port: BytePort,
        config: Optional[ProtocolConfig] = None,
        protocol_logger: Optional[ProtocolLogger] = None,
    ):
        self._port = port
        self._config = config or ProtocolConfig()
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._reader = FrameReader(port, self._protocol_logger)
        self._sync = BufferSynchronizer(
            port,
            drain_timeout=self._config.drain_timeout_seconds,
            max_bytes=self._config.max_drain_bytes,
            protocol_logger=self._protocol_logger,
        )
        self._handlers = {
            ExchangeMode.MARKER_ONLY: self._execute_marker_only,
            ExchangeMode.RAW_UNTIL_STOP_CHAR: self._execute_check_response,
            ExchangeMode.ECHO_THEN_VALUE: self._execute_read_value,
            ExchangeMode.MULTI_FIELD: self._execute_multi_field,
            ExchangeMode.FIRE_AND_FORGET: self._execute_fire_and_forget,
        }

    @property
    def config(self) -> ProtocolConfig:
        return self._config

    def _timeout(self, timeout: Optional[float]) -> float:
        return self._config.timeout_seconds if timeout is None else timeout

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def drain(
        self,
        timeout: Optional[float] = None,
        prefix: bytes = b"",
        reason: str = "Residual buffer data",
        level: int = logging.WARNING,
    ) -> bytes:
        """
        Discard pending input (see BufferSynchronizer.drain).

        Channel errors are logged and reported as an empty residue.
        """
        try:
            return self._sync.drain(timeout, prefix=prefix, reason=reason, level=level)
        except PortIOError as e:
            logger.error(f"Error reading buffer while clearing: {e}")
            self._protocol_logger.log_error(f"Drain failed: {e}")
            return bytes(prefix)

    def drain_for_debug(self) -> bytes:
        """Slow drain used between handshake steps; residue is logged at INFO."""
        return self.drain(
            timeout=self._config.debug_drain_timeout_seconds,
            reason="Accumulated buffer data for debug",
            level=logging.INFO,
        )

    def _write_command(self, command: str) -> Optional[ResponseOutcome]:
        """
        Drain, then write `command<CR><LF>`.

        Returns:
            None on success, or an IO_ERROR outcome.

        Raises:
            CommandTooLongError, InvalidValueError: If the command cannot be encoded.
        """
        packet = encode_command(command, self._config.max_command_length)

        try:
            self._sync.drain()
        except PortIOError as e:
            logger.error(f"Error clearing buffer before {command}: {e}")
            return ResponseOutcome.failure(OutcomeKind.IO_ERROR, f"drain before {command} failed: {e}")

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"TX: {make_visible(packet)}")
        self._protocol_logger.log_tx(packet, command)

        try:
            written = self._port.write(packet)
        except PortIOError as e:
            logger.error(f"Error writing {command} command: {e}")
            self._protocol_logger.log_error(f"Write failed: {e}", packet)
            return ResponseOutcome.failure(OutcomeKind.IO_ERROR, f"write {command} failed: {e}")

        if written != len(packet):
            logger.error(f"Short write for {command}: {written}/{len(packet)} bytes")
            return ResponseOutcome.failure(
                OutcomeKind.IO_ERROR, f"short write for {command}: {written}/{len(packet)} bytes"
            )

        return None

    # ------------------------------------------------------------------
    # Markers and banner
    # ------------------------------------------------------------------

    def verify_marker(
        self, expected: bytes = SUCCESS_MARKER, timeout: Optional[float] = None
    ) -> ResponseOutcome:
        """
        Read exactly len(expected) bytes and compare them byte for byte.

        On mismatch the remaining input is drained and logged.
        """
        result = self._reader.read_exact(len(expected), self._timeout(timeout))

        if not result.ok:
            logger.error(
                f"Error reading success marker. Status: {result.status.value}  "
                f"Size: {len(expected)}  Bytes read: {len(result.data)}"
            )
            if result.status is ReadStatus.SHORT_READ:
                logger.error(f"Error message: '{make_visible(result.data)}'")
                self.drain(prefix=result.data)
            return ResponseOutcome.from_read(result, "reading success marker")

        if result.data == expected:
            return ResponseOutcome.success(raw=result.data)

        logger.error(
            f"PTU command error: got '{make_visible(result.data)}', "
            f"expected '{make_visible(expected)}'"
        )
        residue = self.drain(prefix=result.data)
        return ResponseOutcome.failure(
            OutcomeKind.MARKER_MISMATCH,
            f"expected marker '{make_visible(expected)}'",
            raw=residue,
        )

    def read_banner(self, banner: Optional[str] = None, timeout: Optional[float] = None) -> ResponseOutcome:
        """
        Wait for the controller's session banner, then its success marker.

        The banner text must appear somewhere in the bytes read up to its '*'.
        """
        banner = banner or self._config.banner
        result = self._reader.read_until(STAR, self._timeout(timeout))

        if not result.ok:
            logger.error("Handshake failed. No response from FLIR PTU.")
            return ResponseOutcome.from_read(result, "waiting for banner")

        text = _text(result.data)
        if banner not in text:
            logger.error(f"Handshake failed. Invalid response: '{make_visible(text)}'")
            residue = self.drain(prefix=result.data)
            return ResponseOutcome.failure(
                OutcomeKind.MARKER_MISMATCH, f"banner '{banner}' not found", raw=residue
            )

        marker = self.verify_marker(timeout=timeout)
        if not marker.ok:
            logger.error("Handshake failed. Failed to verify success and clear buffer.")
            return marker

        return ResponseOutcome.success(value=text, raw=result.data)

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------

    def send_marker_checked(
        self,
        command: str,
        expected_marker: bytes = SUCCESS_MARKER,
        timeout: Optional[float] = None,
    ) -> ResponseOutcome:
        """Send a command whose whole reply is a fixed marker."""
        failure = self._write_command(command)
        if failure is not None:
            return failure
        return self.verify_marker(expected_marker, timeout)

    def check_response(
        self,
        command: str,
        expected_response: str,
        timeout: Optional[float] = None,
        stop: bytes = STAR,
    ) -> ResponseOutcome:
        """
        Send a command, read its reply up to `stop`, check the success marker,
        then compare the reply's first len(expected_response) characters.

        A prefix mismatch is MARKER_MISMATCH: the controller answered, just
        not with the expected acknowledgement.
        """
        failure = self._write_command(command)
        if failure is not None:
            return failure

        result = self._reader.read_until(stop, self._timeout(timeout))
        if not result.ok:
            logger.error(
                f"Error reading response for {command}. Status: {result.status.value} ({result.detail})"
            )
            return ResponseOutcome.from_read(result, f"reading response to {command}")

        marker = self.verify_marker(timeout=timeout)
        if not marker.ok:
            logger.debug(f"check_response {command} failed: {marker.detail}")
            return marker

        text = _text(result.data)
        head = text[:len(expected_response)]
        if head == expected_response:
            return ResponseOutcome.success(value=text, raw=result.data)

        logger.debug(
            f"check_response {command} failed. Response: '{make_visible(head)}' "
            f"Expected: '{expected_response}'"
        )
        return ResponseOutcome.failure(
            OutcomeKind.MARKER_MISMATCH,
            f"expected '{expected_response}', got '{make_visible(head)}'",
            raw=result.data,
        )

    def send_and_check_response(
        self,
        command: str,
        expected_response: str,
        timeout: Optional[float] = None,
        stop: bytes = STAR,
    ) -> bool:
        """Boolean form of check_response()."""
        return self.check_response(command, expected_response, timeout, stop).ok

    def send_and_read_value(self, command: str, timeout: Optional[float] = None) -> ResponseOutcome:
        """
        Send a query whose reply is the echoed command then a value line.

        Returns:
            OK with the trimmed value string, ECHO_MISMATCH if the first line
            is not the command, IO_ERROR if the value line holds no value, or
            the read failure.
        """
        timeout = self._timeout(timeout)

        failure = self._write_command(command)
        if failure is not None:
            return failure

        echo = self._reader.read_until(LF, timeout)
        if not echo.ok:
            logger.error(f"Error reading echoed command for {command}. Status: {echo.status.value}")
            return ResponseOutcome.from_read(echo, f"reading echo of {command}")

        echoed = strip_line_ending(_text(echo.data))
        if echoed != command:
            logger.error(
                f"Echoed command does not match sent command. "
                f"Echoed: '{make_visible(echoed)}', Sent: '{command}'"
            )
            self.drain()
            return ResponseOutcome.failure(
                OutcomeKind.ECHO_MISMATCH,
                f"echo '{make_visible(echoed)}' != '{command}'",
                raw=echo.data,
            )

        line = self._reader.read_until(LF, timeout)
        if not line.ok:
            logger.error(f"Error reading response value for {command}. Status: {line.status.value}")
            return ResponseOutcome.from_read(line, f"reading value of {command}")

        raw_value = _text(line.data)
        value = trim_value(raw_value)
        if value is None:
            start, end = value_bounds(raw_value)
            logger.error(
                f"Invalid response format for {command}: '{make_visible(raw_value)}'. "
                f"Start: {start}, End: {end}"
            )
            return ResponseOutcome.failure(
                OutcomeKind.IO_ERROR,
                f"no value in '{make_visible(raw_value)}' (start {start}, end {end})",
                raw=line.data,
            )

        return ResponseOutcome.success(value=value, raw=echo.data + line.data)

    def _read_groups(
        self, command: str, timeout: Optional[float]
    ) -> Tuple[List[str], List[str], Optional[ResponseOutcome]]:
        """
        Write a space-separated command and read one line per sub-command
        plus the trailing value line of the last one.

        Returns:
            (tokens, lines, failure)
        """
        timeout = self._timeout(timeout)
        tokens = command.split()

        failure = self._write_command(command)
        if failure is not None:
            return tokens, [], failure

        lines = []
        for index in range(len(tokens) + 1):
            result = self._reader.read_until(LF, timeout)
            if not result.ok:
                logger.error(
                    f"Error reading response line {index + 1}/{len(tokens) + 1} "
                    f"for {command}. Status: {result.status.value}"
                )
                return tokens, lines, ResponseOutcome.from_read(
                    result, f"reading line {index + 1} of {command}"
                )
            lines.append(_text(result.data))

        return tokens, lines, None

    def send_and_read_composite(self, command: str, timeout: Optional[float] = None) -> ResponseOutcome:
        """
        Send a multi-field command and return its reply verbatim.

        Used where the whole reply is matched against a pattern.
        """
        _, lines, failure = self._read_groups(command, timeout)
        if failure is not None:
            return failure
        text = "".join(lines)
        return ResponseOutcome.success(value=text, raw=text.encode("ascii", errors="replace"))

    def send_multi_field(self, command: str, timeout: Optional[float] = None) -> ResponseOutcome:
        """
        Send space-separated sub-commands and map each to its value.

        The last sub-command's label comes back on its own line and its
        value on the trailing line; that value is attached to the label
        unless the label already carried one.

        Returns:
            OK with a dict of sub-command -> value string (in command order).
        """
        tokens, lines, failure = self._read_groups(command, timeout)
        if failure is not None:
            return failure

        fields: Dict[str, Optional[str]] = {}
        for token, line in zip(tokens, lines):
            text, has_value = trim_field(line)
            fields[token] = text if has_value else None

        last_value, _ = trim_field(lines[-1])
        last_token = tokens[-1]
        if fields[last_token] is None:
            fields[last_token] = last_value
        else:
            logger.debug(f"{last_token} already has a value; trailing '{last_value}' not merged")

        for token, value in fields.items():
            if value is None:
                logger.warning(f"No value found for {token} in reply to '{command}'")
                fields[token] = ""

        raw = "".join(lines).encode("ascii", errors="replace")
        return ResponseOutcome.success(value=fields, raw=raw)

    def send_fire_and_forget(self, command: str) -> bool:
        """Drain and write; no reply is read."""
        return self._write_command(command) is None

    # ------------------------------------------------------------------
    # Registry dispatch
    # ------------------------------------------------------------------

    def execute(self, spec: CommandSpec, timeout: Optional[float] = None) -> ResponseOutcome:
        """Run one registered command according to its ExchangeMode."""
        logger.debug(f"{spec.description}: {spec.command} ({spec.mode.value})")
        return self._handlers[spec.mode](spec, timeout)

    def _execute_marker_only(self, spec: CommandSpec, timeout: Optional[float]) -> ResponseOutcome:
        marker = spec.expected.encode("ascii") if spec.expected else SUCCESS_MARKER
        return self.send_marker_checked(spec.command, marker, timeout)

    def _execute_check_response(self, spec: CommandSpec, timeout: Optional[float]) -> ResponseOutcome:
        return self.check_response(spec.command, spec.expected or spec.command, timeout)

    def _execute_read_value(self, spec: CommandSpec, timeout: Optional[float]) -> ResponseOutcome:
        outcome = self.send_and_read_value(spec.command, timeout)
        if outcome.ok and spec.expected is not None and outcome.value != spec.expected:
            logger.error(
                f"{spec.description}: unexpected reply '{make_visible(outcome.value)}', "
                f"expected '{spec.expected}'"
            )
            return ResponseOutcome.failure(
                OutcomeKind.MARKER_MISMATCH,
                f"expected '{spec.expected}', got '{make_visible(outcome.value)}'",
                raw=outcome.raw,
            )
        return outcome

    def _execute_multi_field(self, spec: CommandSpec, timeout: Optional[float]) -> ResponseOutcome:
        return self.send_multi_field(spec.command, timeout)

    def _execute_fire_and_forget(self, spec: CommandSpec, timeout: Optional[float]) -> ResponseOutcome:
        if self.send_fire_and_forget(spec.command):
            return ResponseOutcome.success()
        return ResponseOutcome.failure(OutcomeKind.IO_ERROR, f"write {spec.command} failed")
