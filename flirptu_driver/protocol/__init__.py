"""
Protocol package for the PTU ASCII command dialect.
"""

from flirptu_driver.protocol.port import BytePort, SerialBytePort
from flirptu_driver.protocol.outcome import (
    ExchangeMode,
    OutcomeKind,
    ReadResult,
    ReadStatus,
    ResponseOutcome,
)
from flirptu_driver.protocol.framing import BufferSynchronizer, FrameReader
from flirptu_driver.protocol.encoder import encode_command, make_visible, trim_value
from flirptu_driver.protocol.transport import CommandTransport
from flirptu_driver.protocol.logger import ProtocolLogger, get_protocol_logger

__all__ = [
    "BytePort",
    "SerialBytePort",
    "ExchangeMode",
    "OutcomeKind",
    "ReadResult",
    "ReadStatus",
    "ResponseOutcome",
    "BufferSynchronizer",
    "FrameReader",
    "encode_command",
    "make_visible",
    "trim_value",
    "CommandTransport",
    "ProtocolLogger",
    "get_protocol_logger",
]
