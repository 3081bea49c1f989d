"""
Result types shared by the frame reader, the transport and the driver.

A read or an exchange reports exactly one status; callers branch on the
status and never on raw byte content.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ReadStatus(Enum):
    """Outcome of a single bounded read."""
    OK = "ok"
    TIMEOUT = "timeout"
    SHORT_READ = "short_read"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class ReadResult:
    """Bytes returned by one read call plus how the read ended."""
    data: bytes
    status: ReadStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK


class ExchangeMode(Enum):
    """Framing contract expected for a command's reply."""
    MARKER_ONLY = "marker_only"              # fixed two-byte success marker
    ECHO_THEN_VALUE = "echo_then_value"      # "<cmd>\r\n" then "* <value>\r\n"
    MULTI_FIELD = "multi_field"              # one group per space-separated sub-command
    RAW_UNTIL_STOP_CHAR = "raw_until_stop"   # read up to a stop byte, compare prefix
    FIRE_AND_FORGET = "fire_and_forget"      # write only


class OutcomeKind(Enum):
    """Tagged result of one command exchange."""
    OK = "ok"
    TIMEOUT = "timeout"
    SHORT_READ = "short_read"
    ECHO_MISMATCH = "echo_mismatch"
    MARKER_MISMATCH = "marker_mismatch"
    IO_ERROR = "io_error"
    PARSE_ERROR = "parse_error"


# Kinds that mean the channel itself misbehaved and should be resynchronized.
CHANNEL_FAULTS = frozenset({
    OutcomeKind.TIMEOUT,
    OutcomeKind.SHORT_READ,
    OutcomeKind.ECHO_MISMATCH,
    OutcomeKind.IO_ERROR,
})


_READ_TO_OUTCOME = {
    ReadStatus.TIMEOUT: OutcomeKind.TIMEOUT,
    ReadStatus.SHORT_READ: OutcomeKind.SHORT_READ,
    ReadStatus.IO_ERROR: OutcomeKind.IO_ERROR,
}


@dataclass(frozen=True)
class ResponseOutcome:
    """
    Result of one exchange.

    Attributes:
        kind: Which variant holds.
        value: Parsed value for OK outcomes (str, dict, dataclass...).
        raw: Bytes that produced the outcome, for diagnostics.
        detail: Human-readable explanation for failures.
    """
    kind: OutcomeKind
    value: Any = None
    raw: bytes = b""
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    @property
    def is_channel_fault(self) -> bool:
        """True for timeouts, short reads, echo mismatches and I/O errors."""
        return self.kind in CHANNEL_FAULTS

    @classmethod
    def success(cls, value: Any = None, raw: bytes = b"") -> "ResponseOutcome":
        return cls(OutcomeKind.OK, value=value, raw=raw)

    @classmethod
    def failure(cls, kind: OutcomeKind, detail: str = "", raw: bytes = b"") -> "ResponseOutcome":
        if kind is OutcomeKind.OK:
            raise ValueError("failure() needs a non-OK kind")
        return cls(kind, raw=raw, detail=detail)

    @classmethod
    def from_read(cls, result: ReadResult, context: str) -> "ResponseOutcome":
        """Convert a failed ReadResult into the matching failure outcome."""
        kind = _READ_TO_OUTCOME[result.status]
        detail = f"{context}: {result.detail}" if result.detail else context
        return cls(kind, raw=result.data, detail=detail)
