"""Setup Communication PDU Module (PDU length negotiation)."""

import struct
from dataclasses import dataclass

from ts7.const import DEFAULT_MAX_AMQ, DEFAULT_PDU_LENGTH, FunctionCode
from ts7.exceptions import TryFromError

from .base import BaseClientPDU

_SETUP_STRUCT = struct.Struct(">BBHHH")


@dataclass(frozen=True)
class NegotiatedParameters:
    """Communication parameters granted by the PLC."""

    max_amq_calling: int
    max_amq_called: int
    pdu_length: int


class SetupCommunicationPDU(BaseClientPDU[NegotiatedParameters]):
    """Setup Communication PDU."""

    function_code = FunctionCode.SETUP_COMMUNICATION

    def __init__(
        self,
        pdu_length: int = DEFAULT_PDU_LENGTH,
        max_amq_calling: int = DEFAULT_MAX_AMQ,
        max_amq_called: int = DEFAULT_MAX_AMQ,
    ) -> None:
        """Initialize Setup Communication PDU.

        Args:
            pdu_length: requested maximum PDU length
            max_amq_calling: requested number of parallel jobs (calling side)
            max_amq_called: requested number of parallel jobs (called side)

        """
        if not (1 <= pdu_length <= 0xFFFF):
            msg = "PDU length must be between 1 and 65535."
            raise ValueError(msg)
        self.pdu_length = pdu_length
        self.max_amq_calling = max_amq_calling
        self.max_amq_called = max_amq_called

    def encode_parameters(self) -> bytes:
        """Convert the parameter section to bytes."""
        return _SETUP_STRUCT.pack(
            self.function_code,
            0x00,  # reserved
            self.max_amq_calling,
            self.max_amq_called,
            self.pdu_length,
        )

    def decode_response(self, response: bytes, pdu_reference: int) -> NegotiatedParameters:
        """Decode the response PDU.

        Returns:
            The parameters granted by the PLC

        Raises:
            TryFromError: If the parameter section is truncated

        """
        header = self.check_response_header(response, pdu_reference)
        parameters = response[header.size : header.size + header.parameter_length]

        try:
            _function_code, _reserved, max_amq_calling, max_amq_called, pdu_length = _SETUP_STRUCT.unpack_from(
                parameters
            )
        except struct.error as e:
            msg = f"Expected {_SETUP_STRUCT.size} bytes of setup communication parameters, got {len(parameters)}"
            raise TryFromError(parameters, msg) from e

        return NegotiatedParameters(
            max_amq_calling=max_amq_calling,
            max_amq_called=max_amq_called,
            pdu_length=pdu_length,
        )
