"""
Driver state owned by PTUDriver.

Every group of related fields carries a PropertyState so that the HTTP
layer can show whether the last read or write of that group succeeded.
"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from flirptu_driver.protocol.commands import Axis, ControlMode, PowerKind, PowerLevel
from flirptu_driver.protocol.parsers import INT_SENTINEL


class PropertyState(Enum):
    IDLE = "idle"
    OK = "ok"
    BUSY = "busy"
    ALERT = "alert"


@dataclass
class PowerSettings:
    """Hold and move current selection for both axes."""
    levels: Dict[str, Optional[PowerLevel]] = field(default_factory=lambda: {
        "pan_hold": None,
        "tilt_hold": None,
        "pan_move": None,
        "tilt_move": None,
    })
    state: PropertyState = PropertyState.IDLE

    @staticmethod
    def key(axis: Axis, kind: PowerKind) -> str:
        return f"{axis.name.lower()}_{kind.name.lower()}"

    def get(self, axis: Axis, kind: PowerKind) -> Optional[PowerLevel]:
        return self.levels[self.key(axis, kind)]

    def set(self, axis: Axis, kind: PowerKind, level: Optional[PowerLevel]) -> None:
        self.levels[self.key(axis, kind)] = level


@dataclass
class Resolution:
    """Arc-seconds per step."""
    pan: float = math.nan
    tilt: float = math.nan
    state: PropertyState = PropertyState.IDLE


@dataclass
class Limits:
    """User position limits in steps and degrees."""
    pan_min: int = INT_SENTINEL
    pan_max: int = INT_SENTINEL
    tilt_min: int = INT_SENTINEL
    tilt_max: int = INT_SENTINEL
    pan_min_deg: float = math.nan
    pan_max_deg: float = math.nan
    tilt_min_deg: float = math.nan
    tilt_max_deg: float = math.nan
    state: PropertyState = PropertyState.IDLE


@dataclass
class Vdct:
    voltage: float = math.nan
    temperature: float = math.nan
    pan_motor_temperature: float = math.nan
    tilt_motor_temperature: float = math.nan
    state: PropertyState = PropertyState.IDLE


@dataclass
class Corrections:
    """
    Encoder correction counters.

    last_pan/last_tilt hold the previous poll's counters so that a change
    can be reported as a delta.
    """
    pan: int = INT_SENTINEL
    tilt: int = INT_SENTINEL
    last_pan: int = 0
    last_tilt: int = 0
    state: PropertyState = PropertyState.IDLE


@dataclass
class Position:
    pan: int = INT_SENTINEL
    tilt: int = INT_SENTINEL
    pan_deg: float = math.nan
    tilt_deg: float = math.nan
    state: PropertyState = PropertyState.IDLE


@dataclass
class ControlModeSetting:
    mode: Optional[ControlMode] = None
    state: PropertyState = PropertyState.IDLE


@dataclass
class ResetStatus:
    last_target: Optional[str] = None
    state: PropertyState = PropertyState.IDLE


def _plain(value: Any) -> Any:
    """Make a value JSON friendly: enums by name, NaN and infinities as None."""
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


@dataclass
class PTUState:
    """Everything the driver knows about the controller."""
    handshake: str = "NOT_STARTED"
    power: PowerSettings = field(default_factory=PowerSettings)
    control_mode: ControlModeSetting = field(default_factory=ControlModeSetting)
    resolution: Resolution = field(default_factory=Resolution)
    limits: Limits = field(default_factory=Limits)
    vdct: Vdct = field(default_factory=Vdct)
    corrections: Corrections = field(default_factory=Corrections)
    position: Position = field(default_factory=Position)
    reset: ResetStatus = field(default_factory=ResetStatus)

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))
