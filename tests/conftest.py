"""
Shared fixtures: a scripted byte port for byte-exact transport tests and
the simulated controller for driver-level tests.
"""

from typing import Callable, Dict, List, Optional, Union

import pytest

from flirptu_driver.config.models import ProtocolConfig, SimulatorConfig
from flirptu_driver.protocol.logger import ProtocolLogger
from flirptu_driver.protocol.port import BytePort
from flirptu_driver.protocol.transport import CommandTransport
from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.simulator.mock_port import MockPTUPort
from flirptu_driver.utils.exceptions import PortIOError


Replies = Union[Dict[str, bytes], Callable[[str], bytes]]


class ScriptedPort(BytePort):
    """
    Fake BytePort with a byte buffer and canned replies.

    Every written line is looked up in `replies` (command text without
    <CR><LF>) and the reply bytes are appended to the read buffer. Reads
    never wait: a read that cannot be satisfied returns what is buffered,
    which is what a timed-out serial read does.
    """

    def __init__(self, replies: Optional[Replies] = None, initial: bytes = b""):
        self.replies = replies or {}
        self.buffer = bytearray(initial)
        self.written: List[bytes] = []
        self.reads: List[tuple] = []
        self.opened = True
        self.fail_reads = False
        self.fail_writes = False
        self.short_write = False

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def is_open(self) -> bool:
        return self.opened

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.opened = False

    def feed(self, data: bytes) -> None:
        self.buffer += data

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise PortIOError("scripted write failure")
        self.written.append(data)

        command = data.decode("ascii").rstrip("\r\n")
        if callable(self.replies):
            reply = self.replies(command)
        else:
            reply = self.replies.get(command, b"")
        self.buffer += reply

        return len(data) - 1 if self.short_write else len(data)

    def read_until(self, stop: bytes, timeout: float) -> bytes:
        if self.fail_reads:
            raise PortIOError("scripted read failure")
        index = self.buffer.find(stop)
        end = index + len(stop) if index >= 0 else len(self.buffer)
        data = bytes(self.buffer[:end])
        del self.buffer[:end]
        self.reads.append(("until", stop, timeout, data))
        return data

    def read_exact(self, size: int, timeout: float) -> bytes:
        if self.fail_reads:
            raise PortIOError("scripted read failure")
        data = bytes(self.buffer[:size])
        del self.buffer[:size]
        self.reads.append(("exact", size, timeout, data))
        return data


@pytest.fixture
def protocol_logger():
    return ProtocolLogger()


@pytest.fixture
def protocol_config():
    return ProtocolConfig()


@pytest.fixture
def make_transport(protocol_logger, protocol_config):
    """Build a transport over a ScriptedPort with the given replies."""

    def _make(replies: Optional[Replies] = None, initial: bytes = b""):
        port = ScriptedPort(replies, initial)
        return CommandTransport(port, protocol_config, protocol_logger), port

    return _make


@pytest.fixture
def simulator():
    return MockPTUPort(SimulatorConfig(enabled=True))


@pytest.fixture
def driver(simulator, protocol_config, protocol_logger):
    return PTUDriver(simulator, protocol_config, protocol_logger)


@pytest.fixture
def connected_driver(driver):
    driver.connect()
    yield driver
    if driver.connected:
        driver.disconnect()
