"""
Tests for the protocol message ring buffer and outcome helpers.
"""

import pytest

from flirptu_driver.protocol.logger import ProtocolLogger
from flirptu_driver.protocol.outcome import OutcomeKind, ReadResult, ReadStatus, ResponseOutcome


class TestProtocolLogger:

    def test_directions_and_counts(self):
        plog = ProtocolLogger()
        plog.log_tx(b"PP\r\n", "PP")
        plog.log_rx(b"PP\r\n* 0\r\n")
        plog.log_error("Timeout", b"PP")

        messages = plog.get_messages()
        assert [m["direction"] for m in messages] == ["TX", "RX", "ERR"]
        assert messages[0]["command"] == "PP"
        assert messages[0]["raw_hex"] == "50500D0A"
        assert messages[1]["text"] == "PP<CR><LF>* 0<CR><LF>"

        stats = plog.get_stats()
        assert (stats["tx_count"], stats["rx_count"], stats["error_count"]) == (1, 1, 1)

    def test_bounded(self):
        plog = ProtocolLogger(max_messages=3)
        for i in range(10):
            plog.log_tx(f"PP{i}".encode())

        messages = plog.get_messages()
        assert len(messages) == 3
        assert messages[-1]["text"] == "PP9"
        assert plog.get_stats()["tx_count"] == 10

    def test_limit_keeps_most_recent(self):
        plog = ProtocolLogger()
        for i in range(5):
            plog.log_rx(str(i).encode())
        assert [m["text"] for m in plog.get_messages(limit=2)] == ["3", "4"]

    def test_disabled(self):
        plog = ProtocolLogger()
        plog.enabled = False
        plog.log_tx(b"FT\r\n")
        assert plog.get_messages() == []

    def test_clear(self):
        plog = ProtocolLogger()
        plog.log_tx(b"FT\r\n")
        plog.clear()
        assert plog.get_stats()["total_messages"] == 0
        assert plog.get_stats()["tx_count"] == 0


class TestResponseOutcome:

    def test_success(self):
        outcome = ResponseOutcome.success("REG", b"PH\r\n* REG\r\n")
        assert outcome.ok
        assert not outcome.is_channel_fault

    def test_failure_needs_failure_kind(self):
        with pytest.raises(ValueError):
            ResponseOutcome.failure(OutcomeKind.OK)

    @pytest.mark.parametrize("status, kind", [
        (ReadStatus.TIMEOUT, OutcomeKind.TIMEOUT),
        (ReadStatus.SHORT_READ, OutcomeKind.SHORT_READ),
        (ReadStatus.IO_ERROR, OutcomeKind.IO_ERROR),
    ])
    def test_from_read(self, status, kind):
        outcome = ResponseOutcome.from_read(ReadResult(b"P", status, "detail"), "reading echo")
        assert outcome.kind is kind
        assert outcome.is_channel_fault
        assert outcome.detail == "reading echo: detail"
        assert outcome.raw == b"P"

    def test_parse_error_is_not_channel_fault(self):
        assert not ResponseOutcome.failure(OutcomeKind.PARSE_ERROR).is_channel_fault
