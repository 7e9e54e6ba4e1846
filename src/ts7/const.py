"""S7 protocol constants."""

from enum import IntEnum

# ISO-on-TCP framing
TPKT_VERSION = 0x03
TPKT_HEADER_SIZE = 4
COTP_DATA_HEADER_SIZE = 3
ISO_HEADER_SIZE = TPKT_HEADER_SIZE + COTP_DATA_HEADER_SIZE
ISO_TCP_PORT = 102

# S7 header
S7_PROTOCOL_ID = 0x32
REQUEST_HEADER_SIZE = 10
RESPONSE_HEADER_SIZE = 12

# Parameter and data sections
PARAMETER_FIXED_SIZE = 2  # function code + item count
REQUEST_ITEM_SIZE = 12
DATA_ITEM_HEADER_SIZE = 4  # return code + transport size + length

# Offset of the return code of the first data item in an ACK_DATA response
DATA_ITEM_RETURN_CODE_OFFSET = RESPONSE_HEADER_SIZE + PARAMETER_FIXED_SIZE

WRITE_OVERHEAD = (
    ISO_HEADER_SIZE + REQUEST_HEADER_SIZE + PARAMETER_FIXED_SIZE + REQUEST_ITEM_SIZE + DATA_ITEM_HEADER_SIZE
)  # 4 + 3 + 10 + 2 + 12 + 4
READ_OVERHEAD = RESPONSE_HEADER_SIZE + PARAMETER_FIXED_SIZE + DATA_ITEM_HEADER_SIZE  # 12 + 2 + 4

DEFAULT_PDU_LENGTH = 480
DEFAULT_MAX_AMQ = 1

MAX_PDU_REFERENCE = 0xFFFF


class PduType(IntEnum):
    """S7 PDU type (ROSCTR)."""

    JOB = 0x01
    ACK = 0x02
    ACK_DATA = 0x03
    USERDATA = 0x07


class FunctionCode(IntEnum):
    """S7 job function codes."""

    READ_VAR = 0x04
    WRITE_VAR = 0x05
    SETUP_COMMUNICATION = 0xF0


class Area(IntEnum):
    """PLC memory area."""

    PERIPHERY = 0x80
    INPUTS = 0x81
    OUTPUTS = 0x82
    MERKERS = 0x83
    DATA_BLOCK = 0x84
    COUNTERS = 0x1C
    TIMERS = 0x1D


class DataItemTransportSize(IntEnum):
    """Transport size used inside a data item."""

    NULL = 0x00
    BIT = 0x03
    BYTE_WORD_DWORD = 0x04
    INTEGER = 0x05
    REAL = 0x07
    OCTET_STRING = 0x09

    @property
    def multiplier(self) -> int:
        """Factor between the number of payload bytes and the declared length."""
        # these sizes declare their length in bits
        if self in (DataItemTransportSize.BYTE_WORD_DWORD, DataItemTransportSize.INTEGER):
            return 8
        return 1

    def byte_length(self, declared_length: int) -> int:
        """Convert a declared data item length back to a number of bytes."""
        if self is DataItemTransportSize.BIT:
            return (declared_length + 7) // 8
        return declared_length // self.multiplier


class DataType(IntEnum):
    """Element type of a transfer (S7 word length)."""

    BIT = 0x01
    BYTE = 0x02
    CHAR = 0x03
    WORD = 0x04
    INT = 0x05
    DWORD = 0x06
    DINT = 0x07
    REAL = 0x08
    COUNTER = 0x1C
    TIMER = 0x1D

    @property
    def size(self) -> int:
        """Number of bytes per element."""
        return _DATA_TYPE_SIZE[self]

    @property
    def is_bit(self) -> bool:
        """Whether the element is addressed with bit granularity."""
        return self is DataType.BIT

    @property
    def addresses_elements(self) -> bool:
        """Whether the start address is an element index instead of a bit address."""
        return self in (DataType.COUNTER, DataType.TIMER)

    @property
    def data_transport_size(self) -> DataItemTransportSize:
        """Transport size to use in the data item of a write request."""
        if self is DataType.BIT:
            return DataItemTransportSize.BIT
        if self.addresses_elements:
            return DataItemTransportSize.OCTET_STRING
        return DataItemTransportSize.BYTE_WORD_DWORD


_DATA_TYPE_SIZE: dict[DataType, int] = {
    DataType.BIT: 1,
    DataType.BYTE: 1,
    DataType.CHAR: 1,
    DataType.WORD: 2,
    DataType.INT: 2,
    DataType.DWORD: 4,
    DataType.DINT: 4,
    DataType.REAL: 4,
    DataType.COUNTER: 2,
    DataType.TIMER: 2,
}


class ReturnCode(IntEnum):
    """Return code of a data item in a response."""

    RESERVED = 0x00
    SUCCESS = 0xFF


class ConnectionType(IntEnum):
    """Connection resource type, used to compute the remote TSAP."""

    PG = 0x01
    OP = 0x02
    S7_BASIC = 0x03


class CotpPduType(IntEnum):
    """COTP TPDU codes."""

    CONNECTION_REQUEST = 0xE0
    CONNECTION_CONFIRM = 0xD0
    DISCONNECT_REQUEST = 0x80
    DATA = 0xF0


COTP_EOT = 0x80
COTP_PARAM_TPDU_SIZE = 0xC0
COTP_PARAM_CALLING_TSAP = 0xC1
COTP_PARAM_CALLED_TSAP = 0xC2
COTP_TPDU_SIZE_1024 = 0x0A
LOCAL_TSAP = 0x0100
