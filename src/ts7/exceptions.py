"""Exceptions."""

from enum import Enum
from typing import Self


class S7Error(Exception):
    """Base exception class for the tS7 library."""


class S7IOError(S7Error):
    """Transport I/O error.

    Raised when the underlying socket operation failed. The transport failure category is
    kept in `kind` (the name of the underlying `OSError` subclass).
    """

    kind: str
    errno: int | None

    def __init__(self, kind: str, detail: str | None = None, *, errno: int | None = None) -> None:
        """Initialize S7IOError."""
        msg = f"IO Error: {kind}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.kind = kind
        self.errno = errno

    @classmethod
    def from_os_error(cls, exc: OSError) -> Self:
        """Create an S7IOError from an `OSError`."""
        return cls(type(exc).__name__, str(exc), errno=exc.errno)


class S7PoolError(S7Error):
    """No usable connection could be checked out.

    Raised when re-establishing the connection failed after exhausting all attempts.
    """


class S7ConnectionError(S7Error):
    """Connection error exception.

    Raised when unable to establish or maintain connection with the PLC.
    """


class DataExchangeTimedOutError(S7Error, TimeoutError):
    """A request/response exchange exceeded its deadline."""


class TryFromError(S7Error):
    """Conversion of a byte sequence to a structured value failed."""

    data: bytes

    def __init__(self, data: bytes, message: str) -> None:
        """Initialize TryFromError.

        Args:
            data: the offending bytes
            message: description of the failure

        """
        super().__init__(message)
        self.data = bytes(data)


class IsoError(Enum):
    """ISO transport sub-kinds."""

    CONNECT = 0x00010000
    DISCONNECT = 0x00020000
    INVALID_PDU = 0x00030000
    INVALID_DATA_SIZE = 0x00040000
    SHORT_PACKET = 0x00060000
    TOO_MANY_FRAGMENTS = 0x00070000
    PDU_OVERFLOW = 0x00080000
    SEND_PACKET = 0x00090000
    RECV_PACKET = 0x000A0000
    INVALID_PARAMS = 0x000B0000
    UNKNOWN = 0x00000000

    @classmethod
    def _missing_(cls, value: object) -> "IsoError":
        return cls.UNKNOWN

    @property
    def description(self) -> str:
        """Human readable description."""
        return _ISO_ERROR_DESCRIPTIONS[self]


_ISO_ERROR_DESCRIPTIONS: dict[IsoError, str] = {
    IsoError.CONNECT: "ISO : Connection error",
    IsoError.DISCONNECT: "ISO : Disconnect error",
    IsoError.INVALID_PDU: "ISO : Bad PDU format",
    IsoError.INVALID_DATA_SIZE: "ISO : Data size passed to send/recv buffer is invalid",
    IsoError.SHORT_PACKET: "ISO : A short packet received",
    IsoError.TOO_MANY_FRAGMENTS: "ISO : Too many packets without EoT flag",
    IsoError.PDU_OVERFLOW: "ISO : The sum of fragments data exceeded maximum packet size",
    IsoError.SEND_PACKET: "ISO : An error occurred during send",
    IsoError.RECV_PACKET: "ISO : An error occurred during recv",
    IsoError.INVALID_PARAMS: "ISO : Invalid connection params (wrong TSAPs)",
    IsoError.UNKNOWN: "ISO : Unknown error",
}


class ISOError(S7Error):
    """Base class for ISO transport framing errors."""

    direction: str = "Transport"
    iso_error: IsoError

    def __init__(self, iso_error: IsoError, detail: str | None = None) -> None:
        """Initialize ISOError.

        Args:
            iso_error: the ISO error sub-kind
            detail: optional extra information about the failure

        """
        msg = f"ISO {self.direction} Error: {iso_error.description}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.iso_error = iso_error


class ISORequestError(ISOError):
    """Framing problem while building a request.

    This signals a programming or configuration error, it should not be retried.
    """

    direction = "Request"


class ISOResponseError(ISOError):
    """Framing problem while interpreting a response."""

    direction = "Response"


class RequestedBitOutOfRangeError(S7Error):
    """The requested bit index is outside [0..7]."""

    def __init__(self, bit: int) -> None:
        """Initialize RequestedBitOutOfRangeError."""
        super().__init__(f"The request bit is out of range [0..7]: {bit}")
        self.bit = bit


class RequestNotAcknowledgedError(S7Error):
    """The response header does not carry a positive acknowledgement."""

    def __init__(self, pdu_type: int) -> None:
        """Initialize RequestNotAcknowledgedError."""
        super().__init__(f"The PLC did not respond successful (PDU type {pdu_type:#04x})")
        self.pdu_type = pdu_type


class S7ProtocolError(S7Error):
    """The response header carries a protocol-level error class/code."""

    error_class: int | None
    error_code: int | None
    class_description: str

    def __init__(self, error_class: int | None, error_code: int | None) -> None:
        """Initialize S7ProtocolError.

        Args:
            error_class: error class byte from the response header, if present
            error_code: error code byte from the response header, if present

        """
        self.error_class = error_class
        self.error_code = error_code
        if error_class is None:
            self.class_description = "No error class given"
        else:
            self.class_description = _ERROR_CLASS_DESCRIPTIONS.get(error_class, "Unknown error class")

        parts = [f"S7 Protocol error: {self.class_description}"]
        if error_code is not None:
            parts.append(f"error code: {error_code}")
        super().__init__(" - ".join(parts))

    @classmethod
    def from_codes(cls, error_class: int | None, error_code: int | None) -> Self:
        """Create the error from the raw class and code bytes."""
        return cls(error_class, error_code)


_ERROR_CLASS_DESCRIPTIONS: dict[int, str] = {
    0x00: "No error",
    0x81: "Application relationship error",
    0x82: "Object definition error",
    0x83: "No resources available error",
    0x84: "Error on service processing",
    0x85: "Error on supplies",
    0x87: "Access error",
}


class S7DataItemResponseError(Enum):
    """Errors reported by the PLC for a single data item."""

    RESERVED = 0x00
    HARDWARE_FAULT = 0x01
    ACCESS_NOT_ALLOWED = 0x03
    ADDRESS_OUT_OF_RANGE = 0x05
    DATA_TYPE_NOT_SUPPORTED = 0x06
    DATA_TYPE_INCONSISTENT = 0x07
    OBJECT_DOES_NOT_EXIST = 0x0A
    UNKNOWN = -1

    @classmethod
    def _missing_(cls, value: object) -> "S7DataItemResponseError":
        return cls.UNKNOWN

    @property
    def description(self) -> str:
        """Human readable description."""
        return _DATA_ITEM_ERROR_DESCRIPTIONS[self]


_DATA_ITEM_ERROR_DESCRIPTIONS: dict[S7DataItemResponseError, str] = {
    S7DataItemResponseError.RESERVED: "Reserved",
    S7DataItemResponseError.HARDWARE_FAULT: "Hardware fault",
    S7DataItemResponseError.ACCESS_NOT_ALLOWED: "Accessing the object not allowed",
    S7DataItemResponseError.ADDRESS_OUT_OF_RANGE: "Address out of range",
    S7DataItemResponseError.DATA_TYPE_NOT_SUPPORTED: "Data type not supported",
    S7DataItemResponseError.DATA_TYPE_INCONSISTENT: "Data type inconsistent",
    S7DataItemResponseError.OBJECT_DOES_NOT_EXIST: "Object does not exist",
    S7DataItemResponseError.UNKNOWN: "Unknown error",
}


class DataItemError(S7Error):
    """The PLC rejected a data item of the request."""

    error: S7DataItemResponseError
    return_code: int

    def __init__(self, return_code: int) -> None:
        """Initialize DataItemError.

        Args:
            return_code: the return code byte of the data item in the response

        """
        self.return_code = return_code
        self.error = S7DataItemResponseError(return_code)
        super().__init__(f"S7 Data Item response error: {self.error.description}")


class ResponseDoesNotBelongToCurrentPDUError(S7Error):
    """The PDU reference of the response does not match the outstanding request."""

    def __init__(self, expected: int, received: int) -> None:
        """Initialize ResponseDoesNotBelongToCurrentPDUError."""
        super().__init__(f"Mismatch in response and request ID: expected {expected:#06x}, received {received:#06x}")
        self.expected = expected
        self.received = received


__all__ = [
    "DataExchangeTimedOutError",
    "DataItemError",
    "ISOError",
    "ISORequestError",
    "ISOResponseError",
    "IsoError",
    "RequestNotAcknowledgedError",
    "RequestedBitOutOfRangeError",
    "ResponseDoesNotBelongToCurrentPDUError",
    "S7ConnectionError",
    "S7DataItemResponseError",
    "S7Error",
    "S7IOError",
    "S7PoolError",
    "S7ProtocolError",
    "TryFromError",
]
