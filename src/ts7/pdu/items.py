"""Request items, data items and the read/write parameter block."""

import struct
from dataclasses import dataclass, field
from typing import Self

from ts7.const import (
    DATA_ITEM_HEADER_SIZE,
    Area,
    DataItemTransportSize,
    DataType,
    FunctionCode,
)
from ts7.exceptions import ISORequestError, IsoError, RequestedBitOutOfRangeError, TryFromError

VARIABLE_SPECIFICATION = 0x12
ADDRESS_SPECIFICATION_LENGTH = 0x0A
SYNTAX_ID_S7ANY = 0x10

_REQUEST_ITEM_STRUCT = struct.Struct(">BBBBHHB")  # + 3 address bytes
_DATA_ITEM_HEADER_STRUCT = struct.Struct(">BBH")


@dataclass(frozen=True)
class RequestItem:
    """Addressing descriptor: `count` elements of `transport_size` starting at `address`."""

    area: Area
    db_number: int
    address: int
    transport_size: DataType
    count: int

    @classmethod
    def build(
        cls,
        area: Area,
        db_number: int,
        start: int,
        data_type: DataType,
        count: int,
        *,
        bit: int = 0,
    ) -> Self:
        """Build an addressing item.

        Args:
            area: memory area
            db_number: data block number, only used for `Area.DATA_BLOCK`
            start: byte offset (element index for counters and timers)
            data_type: element type
            count: number of elements
            bit: bit index inside the start byte, for bit-granular types

        Raises:
            RequestedBitOutOfRangeError: if `bit` is outside [0..7] for a bit type

        """
        if data_type.is_bit:
            if not (0 <= bit <= 7):
                raise RequestedBitOutOfRangeError(bit)
            address = (start << 3) + bit
        elif data_type.addresses_elements:
            address = start
        else:
            address = start << 3

        if not (0 <= address <= 0xFFFFFF):
            msg = f"Address {address:#x} does not fit in 3 bytes."
            raise ValueError(msg)

        return cls(
            area=area,
            db_number=db_number if area == Area.DATA_BLOCK else 0,
            address=address,
            transport_size=data_type,
            count=count,
        )

    @property
    def byte_address(self) -> int:
        """Byte part of the address."""
        if self.transport_size.addresses_elements:
            return self.address
        return self.address >> 3

    @property
    def bit_address(self) -> int:
        """Bit part of the address."""
        if self.transport_size.addresses_elements:
            return 0
        return self.address & 0x07

    def encode(self) -> bytes:
        """Convert item to bytes."""
        return _REQUEST_ITEM_STRUCT.pack(
            VARIABLE_SPECIFICATION,
            ADDRESS_SPECIFICATION_LENGTH,
            SYNTAX_ID_S7ANY,
            self.transport_size,
            self.count,
            self.db_number,
            self.area,
        ) + self.address.to_bytes(3, "big")


@dataclass
class DataItem:
    """Payload envelope of one item.

    `count` is the declared length: number of payload bytes times the multiplier of the
    transport size (bit lengths for byte/word/integer transport sizes).
    """

    transport_size: DataItemTransportSize
    count: int
    data: bytes
    return_code: int = 0

    @classmethod
    def build_write(cls, transport_size: DataItemTransportSize, data: bytes | None) -> Self:
        """Build the data item of a write request.

        Args:
            transport_size: transport size of the payload
            data: payload bytes, `None` when the payload could not be sliced

        Raises:
            ISORequestError: INVALID_DATA_SIZE if no payload is given

        """
        if data is None:
            raise ISORequestError(IsoError.INVALID_DATA_SIZE)

        return cls(
            transport_size=transport_size,
            count=len(data) * transport_size.multiplier,
            data=bytes(data),
        )

    @property
    def byte_length(self) -> int:
        """Number of payload bytes announced by `count`."""
        return DataItemTransportSize(self.transport_size).byte_length(self.count)

    def encode(self) -> bytes:
        """Convert item to bytes."""
        return _DATA_ITEM_HEADER_STRUCT.pack(self.return_code, self.transport_size, self.count) + self.data

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Decode a data item from a response.

        Raises:
            TryFromError: if the data is too short for the announced payload

        """
        try:
            return_code, transport_size, count = _DATA_ITEM_HEADER_STRUCT.unpack_from(data)
        except struct.error as e:
            msg = f"Expected at least {DATA_ITEM_HEADER_SIZE} bytes for a data item, got {len(data)}"
            raise TryFromError(data, msg) from e

        try:
            size = DataItemTransportSize(transport_size)
        except ValueError as e:
            msg = f"Unknown data item transport size {transport_size:#04x}"
            raise TryFromError(data, msg) from e

        payload_length = size.byte_length(count)
        payload = data[DATA_ITEM_HEADER_SIZE : DATA_ITEM_HEADER_SIZE + payload_length]
        if len(payload) != payload_length:
            msg = f"Data item announces {payload_length} bytes, only {len(payload)} available"
            raise TryFromError(data, msg)

        return cls(transport_size=size, count=count, data=payload, return_code=return_code)


@dataclass
class ReadWriteParams:
    """Parameter section of a read or write request."""

    function_code: FunctionCode
    items: list[RequestItem] = field(default_factory=list)

    @classmethod
    def build_read(cls, items: list[RequestItem]) -> Self:
        """Build the parameter block of a read request."""
        return cls(function_code=FunctionCode.READ_VAR, items=items)

    @classmethod
    def build_write(cls, items: list[RequestItem]) -> Self:
        """Build the parameter block of a write request."""
        return cls(function_code=FunctionCode.WRITE_VAR, items=items)

    @property
    def item_count(self) -> int:
        """Number of items."""
        return len(self.items)

    def encode(self) -> bytes:
        """Convert parameter block to bytes."""
        if self.item_count > 0xFF:
            msg = "A parameter block can hold at most 255 items."
            raise ValueError(msg)
        return struct.pack(">BB", self.function_code, self.item_count) + b"".join(item.encode() for item in self.items)


__all__ = ["DataItem", "ReadWriteParams", "RequestItem"]
