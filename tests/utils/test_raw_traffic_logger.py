"""Tests for ts7/utils/raw_traffic_logger.py ."""

from typing import Any
from unittest.mock import patch

from ts7.utils.raw_traffic_logger import _format_bytes, _format_frame, log_raw_traffic


class _DummyLogger:
    def __init__(self) -> None:
        self.records: list[tuple[Any, dict[str, Any]]] = []

    def debug(self, *args: Any, **kwargs: Any) -> None:
        self.records.append((args, kwargs))


def test_format_bytes() -> None:
    """Test formatting of bytes to hex string."""
    assert _format_bytes(b"\x03\x00\x00\x16") == "03 00 00 16"
    assert _format_bytes(b"") == ""
    assert _format_bytes(b"\x32\xff") == "32 FF"


def test_log_raw_traffic_sent() -> None:
    """Test logging of sent traffic."""
    dummy = _DummyLogger()
    with patch("ts7.utils.raw_traffic_logger.raw_traffic_logger", dummy):
        log_raw_traffic("ISO", "sent", b"\x03\x00")

    args, _kwargs = dummy.records[-1]
    assert args[0] == "%6s %s: %s %s"
    assert args[1:] == ("ISO", "sent", "03 00", "")


def test_log_raw_traffic_recv_error() -> None:
    """Test logging of received error traffic."""
    dummy = _DummyLogger()
    with patch("ts7.utils.raw_traffic_logger.raw_traffic_logger", dummy):
        log_raw_traffic("ISO", "recv", b"\xff", is_error=True)

    args, _kwargs = dummy.records[-1]
    assert args[1:] == ("ISO", "recv", "FF", "[!]")


def test_format_frame() -> None:
    """Test that frames are split in TPKT header, tagged COTP header and payload."""
    assert _format_frame(bytes.fromhex("03 00 00 09 02 F0 80 32 01")) == "03 00 00 09 | DT 02 F0 80 | 32 01"
    assert (
        _format_frame(bytes.fromhex("03 00 00 0B 06 D0 0001 0001 00"))
        == "03 00 00 0B | CC 06 D0 00 01 00 01 00"
    )
    assert _format_frame(bytes.fromhex("03 00 00 07 02 80 00")) == "03 00 00 07 | DR 02 80 00"
    assert _format_frame(bytes.fromhex("03 00 00 07 02 70 00")) == "03 00 00 07 | ?? 02 70 00"


def test_format_frame_not_a_tpkt_frame() -> None:
    """Test that bytes without a TPKT header are formatted as plain bytes."""
    assert _format_frame(b"\x32\x01\x00") == "32 01 00"
    assert _format_frame(bytes.fromhex("04 00 00 09 02 F0 80 32 01")) == "04 00 00 09 02 F0 80 32 01"


def test_log_raw_traffic_frame() -> None:
    """Test that a complete frame is logged split in its parts."""
    dummy = _DummyLogger()
    with patch("ts7.utils.raw_traffic_logger.raw_traffic_logger", dummy):
        log_raw_traffic("ISO", "sent", bytes.fromhex("03 00 00 09 02 F0 80 32 01"))

    args, _kwargs = dummy.records[-1]
    assert args[1:] == ("ISO", "sent", "03 00 00 09 | DT 02 F0 80 | 32 01", "")


def test_log_raw_traffic_discarded_bytes_not_split() -> None:
    """Test that discarded bytes are logged as they are, even when they look like a frame."""
    dummy = _DummyLogger()
    with patch("ts7.utils.raw_traffic_logger.raw_traffic_logger", dummy):
        log_raw_traffic("ISO", "recv", bytes.fromhex("03 00 00 04 00 00"), is_error=True)

    args, _kwargs = dummy.records[-1]
    assert args[1:] == ("ISO", "recv", "03 00 00 04 00 00", "[!]")
