"""
Byte-exact tests of the command transport against a scripted port.
"""

import logging

import pytest

from flirptu_driver.protocol.commands import (
    Axis,
    PowerKind,
    PowerLevel,
    ResetTarget,
    lookup,
    power_query,
    power_set,
    reset_command,
)
from flirptu_driver.protocol.outcome import OutcomeKind
from flirptu_driver.utils.exceptions import CommandTooLongError


class TestMarkerChecked:

    def test_exact_marker(self, make_transport):
        transport, port = make_transport({"XX": b"\r\n"})
        outcome = transport.send_marker_checked("XX")

        assert outcome.ok
        assert port.written == [b"XX\r\n"]

    def test_wrong_marker_drains(self, make_transport, caplog):
        transport, port = make_transport({"XX": b"! Illegal Command\r\n"})

        with caplog.at_level(logging.WARNING):
            outcome = transport.send_marker_checked("XX")

        assert outcome.kind is OutcomeKind.MARKER_MISMATCH
        assert not outcome.is_channel_fault
        assert outcome.raw == b"! Illegal Command\r\n"
        assert port.buffer == bytearray()
        assert "Illegal Command" in caplog.text

    def test_prefix_is_not_enough(self, make_transport):
        transport, _ = make_transport({"XX": b"\r*"})
        assert transport.send_marker_checked("XX").kind is OutcomeKind.MARKER_MISMATCH

    def test_short_read_drains(self, make_transport):
        transport, port = make_transport({"XX": b"\r"})
        outcome = transport.send_marker_checked("XX")

        assert outcome.kind is OutcomeKind.SHORT_READ
        assert outcome.is_channel_fault
        assert port.buffer == bytearray()

    def test_no_reply(self, make_transport):
        transport, _ = make_transport()
        assert transport.send_marker_checked("XX").kind is OutcomeKind.TIMEOUT


class TestCheckResponse:

    def test_acknowledged(self, make_transport):
        transport, port = make_transport({"FT": b"FT\r\n*\r\n"})
        outcome = transport.check_response("FT", "FT")

        assert outcome.ok
        assert port.buffer == bytearray()

    def test_boolean_form(self, make_transport):
        transport, _ = make_transport({"FT": b"FT\r\n*\r\n"})
        assert transport.send_and_check_response("FT", "FT") is True

    def test_other_answer_is_not_a_channel_fault(self, make_transport):
        transport, _ = make_transport({"FT": b"FV\r\n*\r\n"})
        outcome = transport.check_response("FT", "FT")

        assert outcome.kind is OutcomeKind.MARKER_MISMATCH
        assert not outcome.is_channel_fault

    def test_missing_stop_char_is_timeout(self, make_transport):
        transport, _ = make_transport({"FT": b"FT\r\n"})
        outcome = transport.check_response("FT", "FT")

        assert outcome.kind is OutcomeKind.TIMEOUT
        assert outcome.value is None

    def test_error_line_without_star(self, make_transport):
        transport, _ = make_transport({"PP0": b"PP0\r\n! Axis Error\r\n"})
        assert transport.send_and_check_response("PP0", "PP0") is False

    def test_bad_marker_after_star(self, make_transport):
        transport, _ = make_transport({"FT": b"FT\r\n*!!"})
        assert transport.check_response("FT", "FT").kind is OutcomeKind.MARKER_MISMATCH


class TestReadValue:

    def test_echo_then_value(self, make_transport):
        transport, _ = make_transport({"PH": b"PH\r\n* REG\r\n"})
        outcome = transport.send_and_read_value("PH")

        assert outcome.ok
        assert outcome.value == "REG"

    def test_query_maps_to_level_and_set_is_separate(self, make_transport):
        transport, _ = make_transport({"PH": b"PH\r\n* REG\r\n"})
        outcome = transport.execute(power_query(Axis.PAN, PowerKind.HOLD))

        level = PowerLevel.from_reply(outcome.value)
        assert level is PowerLevel.REGULAR
        assert power_set(Axis.PAN, PowerKind.HOLD, level).command == "PHR"

    def test_echo_mismatch(self, make_transport):
        transport, port = make_transport({"PP": b"PX\r\n* 100\r\n"})
        outcome = transport.send_and_read_value("PP")

        assert outcome.kind is OutcomeKind.ECHO_MISMATCH
        assert outcome.is_channel_fault
        assert port.buffer == bytearray()

    def test_echo_mismatch_ignores_second_line(self, make_transport):
        transport, _ = make_transport({"PP": b"PPX\r\n* 100\r\n"})
        assert transport.send_and_read_value("PP").kind is OutcomeKind.ECHO_MISMATCH

    def test_stale_bytes_drained_before_write(self, make_transport, caplog):
        transport, port = make_transport({"PR": b"PR\r\n* 46.2857\r\n"}, initial=b"TP\r\n* 0\r\n")

        with caplog.at_level(logging.WARNING):
            outcome = transport.send_and_read_value("PR")

        assert outcome.ok
        assert outcome.value == "46.2857"
        assert "TP<CR><LF>* 0<CR><LF>" in caplog.text
        first_reply_read = next(i for i, r in enumerate(port.reads) if r[0] == "until")
        assert port.reads[first_reply_read - 1][3] == b""

    def test_missing_value_line(self, make_transport):
        transport, _ = make_transport({"PR": b"PR\r\n"})
        assert transport.send_and_read_value("PR").kind is OutcomeKind.TIMEOUT

    def test_timeout_forwarded(self, make_transport):
        transport, port = make_transport({"PR": b"PR\r\n* 1\r\n"})
        transport.send_and_read_value("PR", timeout=0.25)
        assert [r[2] for r in port.reads if r[0] == "until"] == [0.25, 0.25]

    def test_reset_expected_value(self, make_transport):
        transport, _ = make_transport({"RP": b"RP\r\n!P!P*\r\n"})
        assert transport.execute(reset_command(ResetTarget.PAN)).ok

    def test_reset_unexpected_value(self, make_transport):
        transport, _ = make_transport({"RE": b"RE\r\n!T!T*\r\n"})
        outcome = transport.execute(reset_command(ResetTarget.BOTH))
        assert outcome.kind is OutcomeKind.MARKER_MISMATCH


class TestMultiField:

    def test_position(self, make_transport):
        transport, _ = make_transport({"PP TP": b"PP * 100\r\nTP\r\n* 600\r\n"})
        outcome = transport.send_multi_field("PP TP")

        assert outcome.ok
        assert outcome.value == {"PP": "100", "TP": "600"}

    def test_six_fields(self, make_transport):
        reply = (
            b"PP * 100\r\nTP * 700\r\nPH * OFF\r\nTH * OFF\r\n"
            b"PM * REG\r\nTM\r\n* HIGH\r\n"
        )
        transport, _ = make_transport({"PP TP PH TH PM TM": reply})
        outcome = transport.send_multi_field("PP TP PH TH PM TM")

        assert outcome.value == {
            "PP": "100", "TP": "700", "PH": "OFF", "TH": "OFF", "PM": "REG", "TM": "HIGH",
        }

    def test_acknowledged_sets(self, make_transport):
        transport, _ = make_transport({"PO100 TO100": b"PO100 *\r\nTO100\r\n*\r\n"})
        outcome = transport.send_multi_field("PO100 TO100")
        assert outcome.value == {"PO100": "", "TO100": ""}

    def test_truncated_reply(self, make_transport):
        transport, _ = make_transport({"PP TP": b"PP * 100\r\nTP\r\n"})
        assert transport.send_multi_field("PP TP").kind is OutcomeKind.TIMEOUT

    def test_composite_verbatim(self, make_transport):
        transport, _ = make_transport({"PP TP": b"PP * 700\r\nTP\r\n* -50\r\n"})
        outcome = transport.send_and_read_composite("PP TP")
        assert outcome.value == "PP * 700\r\nTP\r\n* -50\r\n"

    def test_registry_dispatch(self, make_transport):
        transport, _ = make_transport({"PP TP": b"PP * 1\r\nTP\r\n* 2\r\n"})
        assert transport.execute(lookup("PP TP")).value == {"PP": "1", "TP": "2"}


class TestChannelFailures:

    def test_write_failure(self, make_transport):
        transport, port = make_transport()
        port.fail_writes = True
        assert transport.send_and_read_value("PP").kind is OutcomeKind.IO_ERROR

    def test_short_write(self, make_transport):
        transport, port = make_transport()
        port.short_write = True
        assert transport.send_marker_checked("XX").kind is OutcomeKind.IO_ERROR

    def test_read_failure(self, make_transport):
        transport, port = make_transport()
        port.fail_reads = True
        assert transport.check_response("FT", "FT").kind is OutcomeKind.IO_ERROR

    def test_fire_and_forget(self, make_transport):
        transport, port = make_transport({"H": b"H\r\n*\r\n"})
        assert transport.send_fire_and_forget("H") is True
        assert port.written == [b"H\r\n"]
        assert port.buffer == bytearray(b"H\r\n*\r\n")

    def test_fire_and_forget_failure(self, make_transport):
        transport, port = make_transport()
        port.fail_writes = True
        assert transport.execute(lookup("H")).kind is OutcomeKind.IO_ERROR

    def test_command_too_long_raises(self, make_transport):
        transport, port = make_transport()
        with pytest.raises(CommandTooLongError):
            transport.send_fire_and_forget("P" * 100)
        assert port.written == []


class TestBanner:

    def test_banner(self, make_transport):
        transport, _ = make_transport(initial=b"\r\n### PAN-TILT CONTROLLER\r\nInitializing...*\r\n")
        outcome = transport.read_banner()
        assert outcome.ok

    def test_wrong_banner(self, make_transport):
        transport, port = make_transport(initial=b"Hello*\r\n")
        outcome = transport.read_banner()

        assert outcome.kind is OutcomeKind.MARKER_MISMATCH
        assert port.buffer == bytearray()

    def test_no_banner(self, make_transport):
        transport, _ = make_transport()
        assert transport.read_banner().kind is OutcomeKind.TIMEOUT
