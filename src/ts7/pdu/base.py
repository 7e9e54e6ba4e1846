"""Base class for S7 PDU (Protocol Data Unit) handling."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from ts7.exceptions import ISOResponseError, IsoError

from .header import PduReference, S7Header

RT = TypeVar("RT")


class BaseClientPDU(ABC, Generic[RT]):
    """Base class that defines the functions needed to handle S7 job PDUs on the client-side.

    A PDU is serialized as the S7 header, followed by the parameter section and the data
    section. Subclasses only provide the two sections and the response decoding.
    """

    function_code: int

    @abstractmethod
    def encode_parameters(self) -> bytes:
        """Convert the parameter section to bytes."""

    def encode_data(self) -> bytes:
        """Convert the data section to bytes.

        Most requests carry no data section.
        """
        return b""

    def encode_request(self, pdu_reference: PduReference) -> bytes:
        """Convert PDU to bytes.

        Args:
            pdu_reference: caller-owned reference counter used in the header

        Returns:
            Header, parameter section and data section

        """
        parameters = self.encode_parameters()
        data = self.encode_data()
        header = S7Header.build_request(pdu_reference, len(parameters), len(data))
        return header.encode() + parameters + data

    @abstractmethod
    def decode_response(self, response: bytes, pdu_reference: int) -> RT:
        """Decode the response PDU.

        Args:
            response: Response PDU bytes
            pdu_reference: the reference used for the outstanding request

        Returns:
            Decoded response data, type depends on the specific PDU implementation

        """

    def check_response_header(self, response: bytes, pdu_reference: int) -> S7Header:
        """Decode and validate the header of a response.

        Checks, in order: acknowledgement, PDU reference, protocol error and that the
        announced parameter and data sections are present.

        Raises:
            ISOResponseError: when the header is malformed or the frame is truncated
            RequestNotAcknowledgedError: when the response is not an acknowledgement
            ResponseDoesNotBelongToCurrentPDUError: when the reference does not match
            S7ProtocolError: when the header carries an error class

        """
        header = S7Header.decode(response).is_ack().is_current_pdu_response(pdu_reference).raise_for_error()

        expected_length = header.size + header.parameter_length + header.data_length
        if len(response) < expected_length:
            msg = f"expected {expected_length} bytes, got {len(response)}"
            raise ISOResponseError(IsoError.SHORT_PACKET, msg)

        if header.parameter_length and response[header.size] != self.function_code:
            msg = f"expected function code {self.function_code:#04x}, received {response[header.size]:#04x}"
            raise ISOResponseError(IsoError.INVALID_PDU, msg)

        return header
