"""Read Var / Write Var PDU Module.

Each PDU covers a single fragment: one request item and, for writes, one data item.
"""

from ts7.const import (
    DATA_ITEM_RETURN_CODE_OFFSET,
    Area,
    DataType,
    FunctionCode,
    ReturnCode,
)
from ts7.exceptions import DataItemError, ISOResponseError, IsoError

from .base import BaseClientPDU
from .items import DataItem, ReadWriteParams, RequestItem


class ReadAreaPDU(BaseClientPDU[bytes]):
    """Read Var PDU for a single area item."""

    function_code = FunctionCode.READ_VAR

    def __init__(
        self,
        area: Area,
        db_number: int,
        start: int,
        data_type: DataType,
        count: int,
        *,
        bit: int = 0,
    ) -> None:
        """Initialize Read Area PDU.

        Args:
            area: memory area to read from
            db_number: data block number (only used for data blocks)
            start: byte offset of the first element
            data_type: element type
            count: number of elements to read
            bit: bit index for bit reads

        Raises:
            ValueError: If count is invalid
            RequestedBitOutOfRangeError: If bit is out of range

        """
        if not (1 <= count <= 0xFFFF):
            msg = "Count must be between 1 and 65535."
            raise ValueError(msg)

        self.item = RequestItem.build(area, db_number, start, data_type, count, bit=bit)
        self.params = ReadWriteParams.build_read([self.item])

    @property
    def expected_byte_count(self) -> int:
        """Number of payload bytes the response must carry."""
        return self.item.count * self.item.transport_size.size

    def encode_parameters(self) -> bytes:
        """Convert the parameter section to bytes."""
        return self.params.encode()

    def decode_response(self, response: bytes, pdu_reference: int) -> bytes:
        """Decode the response PDU.

        Returns:
            The bytes read

        Raises:
            DataItemError: If the PLC rejected the item
            ISOResponseError: If the response payload does not have the requested size

        """
        self.check_response_header(response, pdu_reference)

        item = DataItem.from_bytes(response[DATA_ITEM_RETURN_CODE_OFFSET:])
        if item.return_code != ReturnCode.SUCCESS:
            raise DataItemError(item.return_code)

        if len(item.data) != self.expected_byte_count:
            msg = f"expected {self.expected_byte_count} bytes, received {len(item.data)}"
            raise ISOResponseError(IsoError.INVALID_DATA_SIZE, msg)

        return item.data


class WriteAreaPDU(BaseClientPDU[None]):
    """Write Var PDU for a single area item."""

    function_code = FunctionCode.WRITE_VAR

    def __init__(
        self,
        area: Area,
        db_number: int,
        start: int,
        data_type: DataType,
        data: bytes | None,
        *,
        bit: int = 0,
    ) -> None:
        """Initialize Write Area PDU.

        Args:
            area: memory area to write to
            db_number: data block number (only used for data blocks)
            start: byte offset of the first element
            data_type: element type
            data: raw bytes of the elements, `None` if the caller could not slice them
            bit: bit index for bit writes

        Raises:
            ISORequestError: INVALID_DATA_SIZE if no data is given
            RequestedBitOutOfRangeError: If bit is out of range

        """
        self.data_item = DataItem.build_write(data_type.data_transport_size, data)
        count = len(self.data_item.data) // data_type.size
        self.item = RequestItem.build(area, db_number, start, data_type, count, bit=bit)
        self.params = ReadWriteParams.build_write([self.item])

    def encode_parameters(self) -> bytes:
        """Convert the parameter section to bytes."""
        return self.params.encode()

    def encode_data(self) -> bytes:
        """Convert the data section to bytes."""
        return self.data_item.encode()

    def decode_response(self, response: bytes, pdu_reference: int) -> None:
        """Decode the response PDU.

        Raises:
            DataItemError: If the PLC rejected the item
            ISOResponseError: If the item return code is missing

        """
        self.check_response_header(response, pdu_reference)

        try:
            return_code = response[DATA_ITEM_RETURN_CODE_OFFSET]
        except IndexError as e:
            msg = "missing data item return code"
            raise ISOResponseError(IsoError.SHORT_PACKET, msg) from e

        if return_code != ReturnCode.SUCCESS:
            raise DataItemError(return_code)
