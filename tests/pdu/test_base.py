"""Tests for ts7/pdu/base.py ."""

import pytest
from ts7.exceptions import S7ProtocolError
from ts7.pdu import PduReference
from ts7.pdu.base import BaseClientPDU


class _DummyPDU(BaseClientPDU[bytes]):
    function_code = 0x42

    def encode_parameters(self) -> bytes:
        return b"\x42\x00"

    def decode_response(self, response: bytes, pdu_reference: int) -> bytes:
        header = self.check_response_header(response, pdu_reference)
        return response[header.size + header.parameter_length :]


class TestBaseClientPDU:
    """Tests for BaseClientPDU."""

    def test_encode_request_without_data(self) -> None:
        """Test that the data section is empty by default."""
        reference = PduReference(3)
        assert _DummyPDU().encode_request(reference) == bytes.fromhex("32 01 0000 0003 0002 0000 42 00")
        assert reference.consumed

    def test_check_response_header(self) -> None:
        """Test that a valid response passes the header checks."""
        response = bytes.fromhex("32 03 0000 0003 0002 0001 00 00 42 00 AA")
        assert _DummyPDU().decode_response(response, 3) == b"\xaa"

    def test_protocol_error_before_length_check(self) -> None:
        """Test that an error header without body raises the protocol error."""
        response = bytes.fromhex("32 02 0000 0003 0000 0000 85 00")
        with pytest.raises(S7ProtocolError, match="Error on supplies"):
            _DummyPDU().decode_response(response, 3)
