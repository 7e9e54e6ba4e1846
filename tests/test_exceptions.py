"""Tests for ts7/exceptions.py ."""

import pytest
from ts7.exceptions import (
    DataExchangeTimedOutError,
    DataItemError,
    ISORequestError,
    ISOResponseError,
    IsoError,
    RequestedBitOutOfRangeError,
    RequestNotAcknowledgedError,
    ResponseDoesNotBelongToCurrentPDUError,
    S7DataItemResponseError,
    S7Error,
    S7IOError,
    S7ProtocolError,
    TryFromError,
)


def test_iso_error_messages() -> None:
    """Test that the ISO error message names the direction and the sub-kind."""
    error = ISORequestError(IsoError.INVALID_PDU)
    assert str(error) == "ISO Request Error: ISO : Bad PDU format"
    assert error.iso_error is IsoError.INVALID_PDU

    error = ISOResponseError(IsoError.SHORT_PACKET, "3 bytes")
    assert str(error) == "ISO Response Error: ISO : A short packet received (3 bytes)"
    assert isinstance(error, S7Error)


def test_iso_error_unknown_code() -> None:
    """Test that unknown ISO codes map to UNKNOWN."""
    assert IsoError(0x00123456) is IsoError.UNKNOWN
    assert IsoError(0x00060000) is IsoError.SHORT_PACKET


@pytest.mark.parametrize(
    ("error_class", "error_code", "message"),
    [
        (0x00, 0x01, "S7 Protocol error: No error - error code: 1"),
        (0x81, 0x04, "S7 Protocol error: Application relationship error - error code: 4"),
        (0x82, 0x02, "S7 Protocol error: Object definition error - error code: 2"),
        (0x83, 0x03, "S7 Protocol error: No resources available error - error code: 3"),
        (0x84, 0x05, "S7 Protocol error: Error on service processing - error code: 5"),
        (0x85, 0x06, "S7 Protocol error: Error on supplies - error code: 6"),
        (0x87, 0x01, "S7 Protocol error: Access error - error code: 1"),
        (0x99, 0x01, "S7 Protocol error: Unknown error class - error code: 1"),
        (None, 0x04, "S7 Protocol error: No error class given - error code: 4"),
    ],
)
def test_s7_protocol_error(error_class: int | None, error_code: int, message: str) -> None:
    """Test protocol error class descriptions."""
    error = S7ProtocolError.from_codes(error_class, error_code)
    assert str(error) == message
    assert error.error_class == error_class
    assert error.error_code == error_code


@pytest.mark.parametrize(
    ("return_code", "expected", "description"),
    [
        (0x00, S7DataItemResponseError.RESERVED, "Reserved"),
        (0x01, S7DataItemResponseError.HARDWARE_FAULT, "Hardware fault"),
        (0x03, S7DataItemResponseError.ACCESS_NOT_ALLOWED, "Accessing the object not allowed"),
        (0x05, S7DataItemResponseError.ADDRESS_OUT_OF_RANGE, "Address out of range"),
        (0x06, S7DataItemResponseError.DATA_TYPE_NOT_SUPPORTED, "Data type not supported"),
        (0x07, S7DataItemResponseError.DATA_TYPE_INCONSISTENT, "Data type inconsistent"),
        (0x0A, S7DataItemResponseError.OBJECT_DOES_NOT_EXIST, "Object does not exist"),
        (0x02, S7DataItemResponseError.UNKNOWN, "Unknown error"),
        (0x42, S7DataItemResponseError.UNKNOWN, "Unknown error"),
    ],
)
def test_data_item_error(return_code: int, expected: S7DataItemResponseError, description: str) -> None:
    """Test data item return code classification."""
    error = DataItemError(return_code)
    assert error.error is expected
    assert error.return_code == return_code
    assert str(error) == f"S7 Data Item response error: {description}"


def test_io_error_from_os_error() -> None:
    """Test conversion of socket errors."""
    error = S7IOError.from_os_error(ConnectionResetError(104, "Connection reset by peer"))
    assert error.kind == "ConnectionResetError"
    assert error.errno == 104
    assert str(error).startswith("IO Error: ConnectionResetError")


def test_timeout_is_timeout_error() -> None:
    """Test that exchange timeouts can be caught as TimeoutError."""
    with pytest.raises(TimeoutError):
        raise DataExchangeTimedOutError


def test_misc_errors() -> None:
    """Test the remaining error types keep their context."""
    assert RequestedBitOutOfRangeError(9).bit == 9
    assert "0x02" in str(RequestNotAcknowledgedError(0x02))

    mismatch = ResponseDoesNotBelongToCurrentPDUError(1, 2)
    assert (mismatch.expected, mismatch.received) == (1, 2)

    error = TryFromError(bytearray(b"\x01"), "too short")
    assert error.data == b"\x01"
    assert str(error) == "too short"
