"""
Frame reader and buffer synchronizer.

The controller frames replies with '*' and <CR><LF> irregularly, so every
read is bounded by a stop byte (or a fixed length) and a timeout, and any
bytes left over from a previous exchange are drained before the next
command goes out.
"""

import logging
from typing import Optional

from flirptu_driver.protocol.encoder import make_visible
from flirptu_driver.protocol.outcome import ReadResult, ReadStatus
from flirptu_driver.protocol.port import BytePort
from flirptu_driver.protocol.logger import ProtocolLogger, get_protocol_logger
from flirptu_driver.utils.exceptions import PortIOError


logger = logging.getLogger(__name__)

STAR = b"*"
LF = b"\n"
CRLF = b"\r\n"


class FrameReader:
    """Bounded reads that report how they ended."""

    def __init__(self, port: BytePort, protocol_logger: Optional[ProtocolLogger] = None):
        self._port = port
        self._protocol_logger = protocol_logger or get_protocol_logger()

    def read_until(self, stop: bytes, timeout: float) -> ReadResult:
        """
        Read up to and including `stop`.

        A read that ends without the stop byte is a TIMEOUT; the partial
        bytes are kept on the result for diagnostics only.
        """
        try:
            data = self._port.read_until(stop, timeout)
        except PortIOError as e:
            self._protocol_logger.log_error(f"Read error: {e}")
            return ReadResult(b"", ReadStatus.IO_ERROR, str(e))

        if data:
            self._protocol_logger.log_rx(data)

        if data.endswith(stop):
            return ReadResult(data, ReadStatus.OK)

        detail = (
            f"no {make_visible(stop)} within {timeout:g}s "
            f"(got {len(data)} byte(s): '{make_visible(data)}')"
        )
        self._protocol_logger.log_error(f"Timeout: {detail}", data)
        return ReadResult(data, ReadStatus.TIMEOUT, detail)

    def read_exact(self, size: int, timeout: float) -> ReadResult:
        """Read exactly `size` bytes; fewer is SHORT_READ, none is TIMEOUT."""
        try:
            data = self._port.read_exact(size, timeout)
        except PortIOError as e:
            self._protocol_logger.log_error(f"Read error: {e}")
            return ReadResult(b"", ReadStatus.IO_ERROR, str(e))

        if data:
            self._protocol_logger.log_rx(data)

        if len(data) == size:
            return ReadResult(data, ReadStatus.OK)

        if not data:
            detail = f"no data within {timeout:g}s (expected {size} byte(s))"
            self._protocol_logger.log_error(f"Timeout: {detail}")
            return ReadResult(data, ReadStatus.TIMEOUT, detail)

        detail = f"insufficient data: {len(data)}/{size} byte(s) '{make_visible(data)}'"
        self._protocol_logger.log_error(detail, data)
        return ReadResult(data, ReadStatus.SHORT_READ, detail)


class BufferSynchronizer:
    """
    Drains unread input so stale bytes cannot corrupt the next parse.

    A drain polls one byte at a time with a short timeout and returns once
    a poll times out. It stops early after `max_bytes` so a chattering line
    cannot hold it forever.
    """

    def __init__(
        self,
        port: BytePort,
        drain_timeout: float = 0.1,
        max_bytes: int = 4096,
        protocol_logger: Optional[ProtocolLogger] = None,
    ):
        self._port = port
        self._drain_timeout = drain_timeout
        self._max_bytes = max_bytes
        self._protocol_logger = protocol_logger or get_protocol_logger()

    def drain(
        self,
        timeout: Optional[float] = None,
        prefix: bytes = b"",
        reason: str = "Residual buffer data",
        level: int = logging.WARNING,
    ) -> bytes:
        """
        Consume and discard everything currently arriving on the port.

        Args:
            timeout: Per-byte idle timeout (defaults to the configured drain timeout).
            prefix: Bytes already read by the caller that belong to the residue.
            reason: Log message prefix.
            level: Log level used when residue was found.

        Returns:
            The residue (prefix included); empty if nothing was pending.

        Raises:
            PortIOError: If the channel fails while draining.
        """
        poll_timeout = self._drain_timeout if timeout is None else timeout
        residue = bytearray(prefix)
        drained = bytearray()

        while True:
            chunk = self._port.read_exact(1, poll_timeout)
            if not chunk:
                break
            drained += chunk
            if len(drained) >= self._max_bytes:
                logger.warning(
                    f"Drain stopped after {len(drained)} bytes; input still arriving"
                )
                break

        residue += drained

        if drained:
            self._protocol_logger.log_rx(bytes(drained), note=reason)

        if residue:
            logger.log(level, f"{reason}: '{make_visible(bytes(residue))}'")

        return bytes(residue)
