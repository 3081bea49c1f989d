"""
Protocol message logger for debugging serial communication.

Captures TX/RX/ERR traffic with timestamps in a bounded ring buffer, so the
exact bytes of a misframed exchange can be inspected after the fact.
"""

import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional

from flirptu_driver.protocol.encoder import make_visible


@dataclass
class ProtocolMessage:
    """A single protocol message (TX, RX or ERR)."""
    timestamp: str
    direction: str  # "TX", "RX" or "ERR"
    raw_hex: str
    text: str
    command: Optional[str] = None
    note: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class ProtocolLogger:
    """
    Thread-safe logger for protocol messages.

    Maintains a circular buffer of messages with configurable max size.
    """

    DEFAULT_MAX_MESSAGES = 500

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        self._messages: deque = deque(maxlen=max_messages)
        self._lock = threading.Lock()
        self._enabled = True
        self._tx_count = 0
        self._rx_count = 0
        self._error_count = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def _append(self, direction: str, data: bytes, **fields) -> None:
        msg = ProtocolMessage(
            timestamp=datetime.now().isoformat(timespec="milliseconds"),
            direction=direction,
            raw_hex=data.hex().upper() if data else "",
            text=make_visible(data) if data else "",
            **fields
        )
        self._messages.append(msg)

    def log_tx(self, data: bytes, command: Optional[str] = None) -> None:
        """
        Log a transmitted command frame.

        Args:
            data: Raw bytes sent.
            command: Command text without terminator.
        """
        if not self._enabled:
            return

        with self._lock:
            self._tx_count += 1
            self._append("TX", data, command=command)

    def log_rx(self, data: bytes, note: Optional[str] = None) -> None:
        """
        Log received bytes.

        Args:
            data: Raw bytes received.
            note: Optional annotation (e.g. "Residual buffer data").
        """
        if not self._enabled:
            return

        with self._lock:
            self._rx_count += 1
            self._append("RX", data, note=note)

    def log_error(self, error_msg: str, data: bytes = b"") -> None:
        """
        Log an error.

        Args:
            error_msg: Error description.
            data: Optional raw bytes associated with the error.
        """
        if not self._enabled:
            return

        with self._lock:
            self._error_count += 1
            self._append("ERR", data, error=error_msg)

    def get_messages(self, limit: int = 100) -> List[dict]:
        """
        Get recent messages, oldest first.

        Args:
            limit: Maximum number of messages to return (most recent kept).
        """
        with self._lock:
            messages = list(self._messages)
            if len(messages) > limit:
                messages = messages[-limit:]
            return [m.to_dict() for m in messages]

    def get_stats(self) -> dict:
        """Get logging statistics."""
        with self._lock:
            return {
                "total_messages": len(self._messages),
                "tx_count": self._tx_count,
                "rx_count": self._rx_count,
                "error_count": self._error_count,
                "max_messages": self._messages.maxlen,
                "enabled": self._enabled,
            }

    def clear(self) -> None:
        """Clear all logged messages."""
        with self._lock:
            self._messages.clear()
            self._tx_count = 0
            self._rx_count = 0
            self._error_count = 0


# Global instance
_logger: Optional[ProtocolLogger] = None


def get_protocol_logger() -> ProtocolLogger:
    """Get or create the global protocol logger."""
    global _logger
    if _logger is None:
        _logger = ProtocolLogger()
    return _logger
