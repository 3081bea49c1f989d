"""
Simulated PTU controller.

Implements BytePort on top of an in-memory output buffer and answers
commands in the controller's terse-feedback framing, so the transport can be
exercised without hardware. Reads never block: a read that finds no stop
byte returns what is buffered, exactly like a timed-out read.
"""

import logging
import re
import threading
import time
from typing import Dict, Optional, Tuple

from flirptu_driver.config.models import SimulatorConfig
from flirptu_driver.protocol.port import BytePort
from flirptu_driver.utils.exceptions import PortIOError


logger = logging.getLogger(__name__)

BANNER = (
    "\r\n\r\n### PAN-TILT CONTROLLER\r\n"
    "### v3.3.0, (C)2010-2011 FLIR Commercial Systems, Inc., All Rights Reserved\r\n"
    "Initializing...*\r\n"
)

RESET_MARKERS = {"RP": "!P!P*", "RT": "!T!T*", "RE": "!T!T!P!P*"}

_POSITION_SET = re.compile(r"([PT])([PO])(-?\d+)")
_POWER_SET = re.compile(r"([PT])([HM])([LROH])")
_POWER_TOKENS = {"L": "LOW", "R": "REG", "O": "OFF", "H": "HIGH"}
_SETTABLE = {
    ("P", "H"): "LRO",
    ("T", "H"): "LRO",
    ("P", "M"): "LRH",
    ("T", "M"): "LRHO",
}

# Reply kinds
_QUERY = "query"
_SET = "set"
_RESET = "reset"
_ERROR = "error"


class MockPTUPort(BytePort):
    """
    In-process PTU controller speaking the ASCII dialect.
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._lock = threading.Lock()
        self._open = False
        self._broken = False
        self._rx = bytearray()   # bytes written by the driver, not yet a full line
        self._tx = bytearray()   # bytes waiting to be read by the driver

        # Virtual hardware state
        self.pan = self.config.pan_position
        self.tilt = self.config.tilt_position
        self.hold_power: Dict[str, str] = {"P": self.config.hold_power, "T": self.config.hold_power}
        self.move_power: Dict[str, str] = {"P": self.config.move_power, "T": self.config.move_power}
        self.control_mode = self.config.control_mode
        self.pan_corrections = 0
        self.tilt_corrections = 0
        self.terse = False
        self.user_limits = False
        self.continuous_pan = False
        self.error_commands = set(self.config.error_commands)
        self.commands_received = []

    # ------------------------------------------------------------------
    # BytePort
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "simulator"

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        with self._lock:
            if self._open:
                logger.warning("Simulator already open")
                return
            self._open = True
            self._broken = False
            self._tx += BANNER.encode("ascii")
        logger.info("Simulator opened")

    def close(self) -> None:
        with self._lock:
            self._open = False
            self._rx.clear()
            self._tx.clear()
        logger.info("Simulator closed")

    def _check(self) -> None:
        if not self._open:
            raise PortIOError("Simulator port is not open")
        if self._broken:
            raise PortIOError("Simulated connection lost")

    def write(self, data: bytes) -> int:
        with self._lock:
            self._check()
            self._rx += data
            while b"\r\n" in self._rx:
                line, _, rest = bytes(self._rx).partition(b"\r\n")
                self._rx = bytearray(rest)
                command = line.decode("ascii", errors="replace")
                self.commands_received.append(command)
                self._tx += self._respond(command).encode("ascii")

        if self.config.response_latency_ms > 0:
            time.sleep(self.config.response_latency_ms / 1000.0)
        return len(data)

    def read_until(self, stop: bytes, timeout: float) -> bytes:
        with self._lock:
            self._check()
            index = self._tx.find(stop)
            end = index + len(stop) if index >= 0 else len(self._tx)
            data = bytes(self._tx[:end])
            del self._tx[:end]
            return data

    def read_exact(self, size: int, timeout: float) -> bytes:
        with self._lock:
            self._check()
            data = bytes(self._tx[:size])
            del self._tx[:size]
            return data

    # ------------------------------------------------------------------
    # Fault injection helpers
    # ------------------------------------------------------------------

    def inject(self, data: bytes) -> None:
        """Queue unsolicited bytes (stale output, error text...)."""
        with self._lock:
            self._tx += data

    def break_connection(self) -> None:
        """Make every subsequent read and write fail with PortIOError."""
        self._broken = True

    def add_corrections(self, pan: int = 0, tilt: int = 0) -> None:
        self.pan_corrections += pan
        self.tilt_corrections += tilt

    @property
    def pending_output(self) -> bytes:
        return bytes(self._tx)

    # ------------------------------------------------------------------
    # Command handling
    # ------------------------------------------------------------------

    def _respond(self, command: str) -> str:
        tokens = command.split()
        if not tokens:
            return ""

        if command in self.error_commands:
            logger.info(f"[SIMULATOR] Injected error for {command}")
            return f"{command}\r\n! Axis Error\r\n"

        if len(tokens) == 1:
            kind, value = self._execute(tokens[0])
            if kind == _ERROR:
                return f"{command}\r\n! {value}\r\n"
            if kind == _RESET:
                return f"{command}\r\n{value}\r\n"
            if kind == _QUERY:
                return f"{command}\r\n* {value}\r\n"
            return f"{command}\r\n*\r\n"

        parts = []
        for index, token in enumerate(tokens):
            kind, value = self._execute(token)
            if kind == _ERROR:
                parts.append(f"{token}\r\n! {value}\r\n")
                break
            item = f"* {value}" if kind == _QUERY else "*"
            if index < len(tokens) - 1:
                parts.append(f"{token} {item}\r\n")
            else:
                parts.append(f"{token}\r\n{item}\r\n")
        return "".join(parts)

    def _execute(self, token: str) -> Tuple[str, str]:
        queries = {
            "PP": lambda: str(self.pan),
            "TP": lambda: str(self.tilt),
            "PR": lambda: f"{self.config.pan_resolution:.4f}",
            "TR": lambda: f"{self.config.tilt_resolution:.4f}",
            "PN": lambda: str(self.config.pan_min),
            "PX": lambda: str(self.config.pan_max),
            "TN": lambda: str(self.config.tilt_min),
            "TX": lambda: str(self.config.tilt_max),
            "PH": lambda: self.hold_power["P"],
            "TH": lambda: self.hold_power["T"],
            "PM": lambda: self.move_power["P"],
            "TM": lambda: self.move_power["T"],
            "CT": lambda: self.control_mode,
            "CPEC": lambda: str(self.pan_corrections),
            "CTEC": lambda: str(self.tilt_corrections),
            "O": self._vdct,
        }
        if token in queries:
            return _QUERY, queries[token]()

        if token in RESET_MARKERS:
            if token in ("RP", "RE"):
                self.pan = 0
            if token in ("RT", "RE"):
                self.tilt = 0
            return _RESET, RESET_MARKERS[token]

        flags = {"FT": "terse", "LU": "user_limits", "PCE": "continuous_pan"}
        if token in flags:
            setattr(self, flags[token], True)
            return _SET, ""

        if token in ("COL", "CEC"):
            self.control_mode = token
            return _SET, ""

        if token == "H":
            return _SET, ""

        match = _POSITION_SET.fullmatch(token)
        if match:
            return self._move(*match.groups())

        match = _POWER_SET.fullmatch(token)
        if match:
            axis, kind, level = match.groups()
            if level not in _SETTABLE[(axis, kind)]:
                return _ERROR, "Illegal argument"
            target = self.hold_power if kind == "H" else self.move_power
            target[axis] = _POWER_TOKENS[level]
            return _SET, ""

        return _ERROR, "Illegal Command"

    def _move(self, axis: str, how: str, amount: str) -> Tuple[str, str]:
        steps = int(amount)
        current = self.pan if axis == "P" else self.tilt
        target = steps if how == "P" else current + steps

        if axis == "P":
            low, high = self.config.pan_min, self.config.pan_max
        else:
            low, high = self.config.tilt_min, self.config.tilt_max
        unlimited = axis == "P" and self.continuous_pan
        if not unlimited and not (low <= target <= high):
            return _ERROR, "Illegal position"

        if axis == "P":
            self.pan = target
        else:
            self.tilt = target
        return _SET, ""

    def _vdct(self) -> str:
        temps = ",".join(str(t) for t in self.config.temperatures_f)
        return f"{self.config.voltage:.1f},{temps}"
