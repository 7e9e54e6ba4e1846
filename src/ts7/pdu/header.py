"""S7 protocol header."""

import struct
from dataclasses import dataclass
from typing import Self

from ts7.const import MAX_PDU_REFERENCE, REQUEST_HEADER_SIZE, RESPONSE_HEADER_SIZE, S7_PROTOCOL_ID, PduType
from ts7.exceptions import (
    ISOResponseError,
    IsoError,
    RequestNotAcknowledgedError,
    ResponseDoesNotBelongToCurrentPDUError,
    S7ProtocolError,
)

_HEADER_STRUCT = struct.Struct(">BBHHHH")
_ERROR_STRUCT = struct.Struct(">BB")

_ACKNOWLEDGE_TYPES = (PduType.ACK, PduType.ACK_DATA)


class PduReference:
    """Connection-scoped PDU reference counter.

    The counter is owned by the caller (one per connection) and handed to every operation.
    All fragments of one logical operation share the same reference; the owner advances
    the counter between logical operations.
    """

    def __init__(self, value: int = 1) -> None:
        """Initialize the counter.

        Args:
            value: first reference to hand out (0-65535)

        """
        if not (0 <= value <= MAX_PDU_REFERENCE):
            msg = "PDU reference must be between 0 and 65535."
            raise ValueError(msg)
        self.value = value
        self.consumed = False

    def consume(self) -> int:
        """Return the current reference and mark it as used in a request."""
        self.consumed = True
        return self.value

    def advance(self) -> int:
        """Move on to the next reference (16-bit wraparound)."""
        self.value = (self.value + 1) % (MAX_PDU_REFERENCE + 1)
        self.consumed = False
        return self.value

    def __repr__(self) -> str:
        return f"PduReference(value={self.value}, consumed={self.consumed})"


@dataclass(frozen=True)
class S7Header:
    """Fixed-size S7 frame envelope.

    Request (job) headers are 10 bytes. Acknowledgement headers append an error class and
    error code byte (12 bytes).
    """

    pdu_type: int
    pdu_reference: int
    parameter_length: int
    data_length: int
    error_class: int | None = None
    error_code: int | None = None
    protocol_id: int = S7_PROTOCOL_ID
    reserved: int = 0x0000

    @classmethod
    def build_request(cls, pdu_reference: PduReference, parameter_length: int, data_length: int) -> Self:
        """Build a job header for an outgoing request.

        Args:
            pdu_reference: the caller-owned reference counter; it is marked consumed
            parameter_length: length of the serialized parameter section
            data_length: length of the serialized data section

        """
        return cls(
            pdu_type=PduType.JOB,
            pdu_reference=pdu_reference.consume(),
            parameter_length=parameter_length,
            data_length=data_length,
        )

    @property
    def is_acknowledge_type(self) -> bool:
        """Whether this header has the acknowledgement layout (with error fields)."""
        return self.pdu_type in _ACKNOWLEDGE_TYPES

    @property
    def size(self) -> int:
        """Encoded size of this header."""
        return RESPONSE_HEADER_SIZE if self.is_acknowledge_type else REQUEST_HEADER_SIZE

    def encode(self) -> bytes:
        """Convert header to bytes."""
        header = _HEADER_STRUCT.pack(
            self.protocol_id,
            self.pdu_type,
            self.reserved,
            self.pdu_reference,
            self.parameter_length,
            self.data_length,
        )
        if self.is_acknowledge_type:
            header += _ERROR_STRUCT.pack(self.error_class or 0, self.error_code or 0)
        return header

    @classmethod
    def decode(cls, data: bytes) -> Self:
        """Decode the leading header of a frame.

        Args:
            data: frame bytes, at least the fixed header

        Raises:
            ISOResponseError: SHORT_PACKET if the data is shorter than the header,
                              INVALID_PDU if the header is malformed

        """
        if len(data) < REQUEST_HEADER_SIZE:
            msg = f"expected at least {REQUEST_HEADER_SIZE} header bytes, got {len(data)}"
            raise ISOResponseError(IsoError.SHORT_PACKET, msg)

        protocol_id, pdu_type, reserved, pdu_reference, parameter_length, data_length = _HEADER_STRUCT.unpack_from(
            data
        )

        if protocol_id != S7_PROTOCOL_ID:
            msg = f"invalid protocol id {protocol_id:#04x}"
            raise ISOResponseError(IsoError.INVALID_PDU, msg)

        if pdu_type not in PduType:
            msg = f"unknown PDU type {pdu_type:#04x}"
            raise ISOResponseError(IsoError.INVALID_PDU, msg)

        error_class: int | None = None
        error_code: int | None = None
        if pdu_type in _ACKNOWLEDGE_TYPES:
            if len(data) < RESPONSE_HEADER_SIZE:
                msg = f"expected {RESPONSE_HEADER_SIZE} header bytes, got {len(data)}"
                raise ISOResponseError(IsoError.SHORT_PACKET, msg)
            error_class, error_code = _ERROR_STRUCT.unpack_from(data, REQUEST_HEADER_SIZE)

        return cls(
            pdu_type=pdu_type,
            pdu_reference=pdu_reference,
            parameter_length=parameter_length,
            data_length=data_length,
            error_class=error_class,
            error_code=error_code,
            protocol_id=protocol_id,
            reserved=reserved,
        )

    def is_ack(self) -> Self:
        """Check that the header carries a positive acknowledgement.

        Raises:
            RequestNotAcknowledgedError: if the PDU type is not an acknowledgement

        """
        if not self.is_acknowledge_type:
            raise RequestNotAcknowledgedError(self.pdu_type)
        return self

    def is_current_pdu_response(self, pdu_reference: int) -> Self:
        """Check that the header answers the outstanding request.

        Raises:
            ResponseDoesNotBelongToCurrentPDUError: if the references do not match

        """
        if self.pdu_reference != pdu_reference:
            raise ResponseDoesNotBelongToCurrentPDUError(pdu_reference, self.pdu_reference)
        return self

    def has_error(self) -> bool:
        """Whether the header carries a protocol error."""
        return bool(self.error_class) or bool(self.error_code)

    def get_errors(self) -> tuple[int | None, int | None]:
        """Return the (error class, error code) pair."""
        return self.error_class, self.error_code

    def raise_for_error(self) -> Self:
        """Raise the protocol error carried by the header, if any.

        Raises:
            S7ProtocolError: if the header has a non-zero error class or code

        """
        if self.has_error():
            raise S7ProtocolError.from_codes(*self.get_errors())
        return self
