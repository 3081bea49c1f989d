"""
Command registry for the PTU dialect.

Every command the driver issues is described once by a CommandSpec that
names its reply framing (ExchangeMode) and what a successful reply looks
like. The transport dispatches on the spec's mode.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from flirptu_driver.protocol.outcome import ExchangeMode
from flirptu_driver.utils.exceptions import InvalidValueError


class Axis(Enum):
    """Axis selector. The value is the command prefix."""
    PAN = "P"
    TILT = "T"


class ResetTarget(Enum):
    """Axis reset selector."""
    PAN = "RP"
    TILT = "RT"
    BOTH = "RE"


class PowerKind(Enum):
    """Which motor current is configured."""
    HOLD = "H"
    MOVE = "M"


class PowerLevel(Enum):
    """Motor current level: (reply token, set-command suffix)."""
    OFF = ("OFF", "O")
    LOW = ("LOW", "L")
    REGULAR = ("REG", "R")
    HIGH = ("HIGH", "H")

    @property
    def token(self) -> str:
        return self.value[0]

    @property
    def suffix(self) -> str:
        return self.value[1]

    @classmethod
    def from_reply(cls, text: str) -> Optional["PowerLevel"]:
        for level in cls:
            if level.token == text:
                return level
        return None


class ControlMode(Enum):
    """Position control mode. The value is both the set command and the 'CT' reply."""
    OPEN_LOOP = "COL"
    ENCODER = "CEC"

    @classmethod
    def from_reply(cls, text: str) -> Optional["ControlMode"]:
        for mode in cls:
            if mode.value == text:
                return mode
        return None


@dataclass(frozen=True)
class CommandSpec:
    """
    One command and its reply contract.

    Attributes:
        command: Command text as written on the wire (without <CR><LF>).
        mode: Reply framing.
        description: Used in log messages.
        expected: For RAW_UNTIL_STOP_CHAR, the reply prefix that means success;
            for ECHO_THEN_VALUE, an exact value that means success (None
            accepts any value).
    """
    command: str
    mode: ExchangeMode
    description: str
    expected: Optional[str] = None


def _acknowledged(command: str, description: str) -> CommandSpec:
    return CommandSpec(command, ExchangeMode.RAW_UNTIL_STOP_CHAR, description, expected=command)


def _query(command: str, description: str) -> CommandSpec:
    return CommandSpec(command, ExchangeMode.ECHO_THEN_VALUE, description)


# Which power levels each axis/kind accepts on the set side.
SETTABLE_POWER_LEVELS = {
    (Axis.PAN, PowerKind.HOLD): (PowerLevel.LOW, PowerLevel.REGULAR, PowerLevel.OFF),
    (Axis.TILT, PowerKind.HOLD): (PowerLevel.LOW, PowerLevel.REGULAR, PowerLevel.OFF),
    (Axis.PAN, PowerKind.MOVE): (PowerLevel.LOW, PowerLevel.REGULAR, PowerLevel.HIGH),
    (Axis.TILT, PowerKind.MOVE): (PowerLevel.LOW, PowerLevel.REGULAR, PowerLevel.HIGH, PowerLevel.OFF),
}

# Levels the controller may report for each kind.
REPORTED_POWER_LEVELS = {
    PowerKind.HOLD: (PowerLevel.OFF, PowerLevel.LOW, PowerLevel.REGULAR),
    PowerKind.MOVE: (PowerLevel.OFF, PowerLevel.LOW, PowerLevel.REGULAR, PowerLevel.HIGH),
}

AXIS_NAMES = {Axis.PAN: "Pan", Axis.TILT: "Tilt"}
KIND_NAMES = {PowerKind.HOLD: "Hold", PowerKind.MOVE: "Move"}
LEVEL_NAMES = {
    PowerLevel.OFF: "Off",
    PowerLevel.LOW: "Low",
    PowerLevel.REGULAR: "Regular",
    PowerLevel.HIGH: "High",
}

# Bulk query of all four power settings.
POWER_REFRESH = "PH TH PM TM"

RESET_EXPECTED = {
    ResetTarget.PAN: ("!P!P*", "Pan Axis"),
    ResetTarget.TILT: ("!T!T*", "Tilt Axis"),
    ResetTarget.BOTH: ("!T!T!P!P*", "Both Axes"),
}


def _build_registry() -> Dict[str, CommandSpec]:
    specs = [
        _acknowledged("FT", "Enable Terse Feedback"),
        _acknowledged("LU", "Enable User Limits"),
        _acknowledged("PCE", "Enable Continuous Pan Rotation"),
        _acknowledged("PP0", "Reset Pan Position"),
        _query("CT", "getControlMode"),
        _query("PR", "updatePanResolution"),
        _query("TR", "updateTiltResolution"),
        _query("PN", "updatePanMin"),
        _query("PX", "updatePanMax"),
        _query("TN", "updateTiltMin"),
        _query("TX", "updateTiltMax"),
        _query("CPEC", "updatePanCorrects"),
        _query("CTEC", "updateTiltCorrects"),
        _query("O", "getVdct"),
        CommandSpec("PP TP", ExchangeMode.MULTI_FIELD, "getPTUPosition"),
        CommandSpec(POWER_REFRESH, ExchangeMode.MULTI_FIELD, "updatePowerSettings"),
        CommandSpec("H", ExchangeMode.FIRE_AND_FORGET, "Halt"),
    ]

    for mode in ControlMode:
        name = "open loop" if mode is ControlMode.OPEN_LOOP else "encoder correction"
        specs.append(_acknowledged(mode.value, f"Set {name} control mode"))

    for (axis, kind), levels in SETTABLE_POWER_LEVELS.items():
        prefix = axis.value + kind.value
        specs.append(_query(prefix, f"get{AXIS_NAMES[axis]}{KIND_NAMES[kind]}Power"))
        for level in levels:
            specs.append(_acknowledged(
                prefix + level.suffix,
                f"{AXIS_NAMES[axis]} {KIND_NAMES[kind]} Power {LEVEL_NAMES[level]}",
            ))

    for target, (expected, context) in RESET_EXPECTED.items():
        specs.append(CommandSpec(target.value, ExchangeMode.ECHO_THEN_VALUE, context, expected=expected))

    return {spec.command: spec for spec in specs}


REGISTRY: Dict[str, CommandSpec] = _build_registry()


def lookup(command: str) -> CommandSpec:
    """
    Find the spec for a known command.

    Raises:
        InvalidValueError: If the command is not in the registry.
    """
    try:
        return REGISTRY[command]
    except KeyError:
        raise InvalidValueError(f"Unknown command: {command}") from None


def power_query(axis: Axis, kind: PowerKind) -> CommandSpec:
    return lookup(axis.value + kind.value)


def power_set(axis: Axis, kind: PowerKind, level: PowerLevel) -> CommandSpec:
    """
    Spec for setting a motor power level.

    Raises:
        InvalidValueError: If the axis does not accept that level.
    """
    if level not in SETTABLE_POWER_LEVELS[(axis, kind)]:
        raise InvalidValueError(
            f"{AXIS_NAMES[axis]} {KIND_NAMES[kind].lower()} power cannot be set to {LEVEL_NAMES[level]}"
        )
    return lookup(axis.value + kind.value + level.suffix)


def control_mode_set(mode: ControlMode) -> CommandSpec:
    return lookup(mode.value)


def reset_command(target: ResetTarget) -> CommandSpec:
    return lookup(target.value)
