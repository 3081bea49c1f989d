"""
Tests for the command registry.
"""

import pytest

from flirptu_driver.protocol.commands import (
    REGISTRY,
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
from flirptu_driver.protocol.outcome import ExchangeMode
from flirptu_driver.utils.exceptions import InvalidValueError


def test_handshake_commands_are_acknowledged():
    for command in ("FT", "LU", "PCE", "PP0"):
        spec = lookup(command)
        assert spec.mode is ExchangeMode.RAW_UNTIL_STOP_CHAR
        assert spec.expected == command


def test_queries_echo_then_value():
    for command in ("CT", "PR", "TR", "PN", "PX", "TN", "TX", "CPEC", "CTEC", "O", "PH", "TM"):
        assert lookup(command).mode is ExchangeMode.ECHO_THEN_VALUE


def test_position_query_is_multi_field():
    assert lookup("PP TP").mode is ExchangeMode.MULTI_FIELD


def test_halt_is_fire_and_forget():
    assert lookup("H").mode is ExchangeMode.FIRE_AND_FORGET


def test_unknown_command():
    with pytest.raises(InvalidValueError):
        lookup("XYZ")


class TestPower:

    def test_query(self):
        assert power_query(Axis.TILT, PowerKind.MOVE).command == "TM"

    @pytest.mark.parametrize("axis, kind, level, command", [
        (Axis.PAN, PowerKind.HOLD, PowerLevel.REGULAR, "PHR"),
        (Axis.TILT, PowerKind.HOLD, PowerLevel.OFF, "THO"),
        (Axis.PAN, PowerKind.MOVE, PowerLevel.HIGH, "PMH"),
        (Axis.TILT, PowerKind.MOVE, PowerLevel.OFF, "TMO"),
    ])
    def test_set(self, axis, kind, level, command):
        assert power_set(axis, kind, level).command == command

    @pytest.mark.parametrize("axis, kind, level", [
        (Axis.PAN, PowerKind.MOVE, PowerLevel.OFF),
        (Axis.PAN, PowerKind.HOLD, PowerLevel.HIGH),
        (Axis.TILT, PowerKind.HOLD, PowerLevel.HIGH),
    ])
    def test_set_rejects_level(self, axis, kind, level):
        with pytest.raises(InvalidValueError):
            power_set(axis, kind, level)

    def test_reply_mapping(self):
        assert PowerLevel.from_reply("REG") is PowerLevel.REGULAR
        assert PowerLevel.from_reply("HIGH") is PowerLevel.HIGH
        assert PowerLevel.from_reply("MAX") is None

    def test_all_set_commands_registered(self):
        expected = {"PHL", "PHR", "PHO", "THL", "THR", "THO",
                    "PML", "PMR", "PMH", "TML", "TMR", "TMH", "TMO"}
        assert expected <= set(REGISTRY)


def test_control_mode():
    assert control_mode_set(ControlMode.ENCODER).command == "CEC"
    assert ControlMode.from_reply("COL") is ControlMode.OPEN_LOOP
    assert ControlMode.from_reply("CXX") is None


@pytest.mark.parametrize("target, marker", [
    (ResetTarget.PAN, "!P!P*"),
    (ResetTarget.TILT, "!T!T*"),
    (ResetTarget.BOTH, "!T!T!P!P*"),
])
def test_reset_expected_markers(target, marker):
    spec = reset_command(target)
    assert spec.mode is ExchangeMode.ECHO_THEN_VALUE
    assert spec.expected == marker
