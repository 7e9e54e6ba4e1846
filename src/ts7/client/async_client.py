"""tS7 Asynchronous Client Implementation.

Provides user-friendly asynchronous S7 client API.
"""

import asyncio
import logging
from types import TracebackType
from typing import Self

from ts7 import fragmentation
from ts7.const import Area, DataType
from ts7.pdu import PduReference
from ts7.transport.async_base import AsyncBaseTransport

logger = logging.getLogger(__name__)


class AsyncS7Client:
    """Asynchronous S7 Client.

    Provides an user-friendly asynchronous interface to the memory areas of a single PLC.
    Reads and writes of any length are split into fragments that fit in the PDU length
    negotiated by the transport. A lost connection is re-established before the fragments
    are sized, so they always fit the length granted on the connection that carries them.

    The client owns the PDU reference counter of the connection: all fragments of one
    read or write carry the same reference, the next operation uses the next one.

    This class is agnostic to the transport layer: just pass the desired transport instance.

    Example:
        >>> import asyncio
        >>> from ts7 import AsyncS7Client, AsyncTcpTransport
        >>> async def main():
        ...     transport = AsyncTcpTransport('192.168.0.1', rack=0, slot=1)
        ...     client = AsyncS7Client(transport)
        ...     async with client:
        ...         print("Contents of DB1.DBB0-3:", await client.db_read(1, 0, 4))
        ...
        >>> asyncio.run(main())

    """

    def __init__(self, transport: AsyncBaseTransport, *, pdu_reference: int = 1) -> None:
        """Initialize Async S7 Client.

        Args:
            transport: Async transport layer instance (AsyncTcpTransport, etc.)
            pdu_reference: First PDU reference to use (0-65535)

        """
        self.transport = transport
        self.pdu_reference = PduReference(pdu_reference)
        self._operation_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Connect to the PLC."""
        await self.transport.open()

    @property
    def connected(self) -> bool:
        """Report if the client is connected to the PLC."""
        return self.transport.is_open()

    async def disconnect(self) -> None:
        """Close the PLC connection."""
        await self.transport.close()

    @property
    def pdu_length(self) -> int:
        """PDU length negotiated with the PLC."""
        return self.transport.pdu_length

    async def read_area(  # noqa: PLR0913
        self,
        area: Area,
        db_number: int,
        start: int,
        data_type: DataType,
        amount: int,
        *,
        bit: int = 0,
    ) -> bytes:
        """Read `amount` elements of `data_type` from a memory area.

        Args:
            area: Memory area
            db_number: Data block number, ignored for other areas
            start: Byte offset of the first element (element index for counters and timers)
            data_type: Element type
            amount: Number of elements to read
            bit: Bit index of the first element for bit reads (0-7)

        Returns:
            The raw bytes read, big-endian as stored in the PLC

        Raises:
            S7Error: When any fragment fails

        Example:
            >>> await client.read_area(Area.DATA_BLOCK, 1, 0, DataType.WORD, 2)
            b'\\x00\\x01\\x00\\x02'

        """
        async with self._operation_lock:
            try:
                await self.transport.ensure_open()
                return await fragmentation.read_area(
                    self.transport,
                    self.transport.pdu_length,
                    self.pdu_reference,
                    area,
                    db_number,
                    start,
                    data_type,
                    amount,
                    bit=bit,
                )
            finally:
                self._next_pdu_reference()

    async def write_area(  # noqa: PLR0913
        self,
        area: Area,
        db_number: int,
        start: int,
        data_type: DataType,
        data: bytes,
        *,
        bit: int = 0,
    ) -> None:
        """Write raw bytes to a memory area.

        A failure part way through leaves the fragments already acknowledged written.

        Args:
            area: Memory area
            db_number: Data block number, ignored for other areas
            start: Byte offset of the first element (element index for counters and timers)
            data_type: Element type
            data: Raw bytes, a whole number of `data_type` elements
            bit: Bit index of the first element for bit writes (0-7)

        Raises:
            S7Error: When any fragment fails

        """
        async with self._operation_lock:
            try:
                await self.transport.ensure_open()
                await fragmentation.write_area(
                    self.transport,
                    self.transport.pdu_length,
                    self.pdu_reference,
                    area,
                    db_number,
                    start,
                    data_type,
                    data,
                    bit=bit,
                )
            finally:
                self._next_pdu_reference()

    def _next_pdu_reference(self) -> None:
        if self.pdu_reference.consumed:
            self.pdu_reference.advance()

    async def db_read(self, db_number: int, start: int, size: int) -> bytes:
        """Read `size` bytes from a data block.

        Example:
            >>> await client.db_read(1, 0, 4)
            b'\\x00\\x00\\x00\\x2a'

        """
        return await self.read_area(Area.DATA_BLOCK, db_number, start, DataType.BYTE, size)

    async def db_write(self, db_number: int, start: int, data: bytes) -> None:
        """Write bytes to a data block."""
        await self.write_area(Area.DATA_BLOCK, db_number, start, DataType.BYTE, data)

    async def read_merkers(self, start: int, size: int) -> bytes:
        """Read `size` bytes from the merker (flag) area."""
        return await self.read_area(Area.MERKERS, 0, start, DataType.BYTE, size)

    async def write_merkers(self, start: int, data: bytes) -> None:
        """Write bytes to the merker (flag) area."""
        await self.write_area(Area.MERKERS, 0, start, DataType.BYTE, data)

    async def read_inputs(self, start: int, size: int) -> bytes:
        """Read `size` bytes from the process input image."""
        return await self.read_area(Area.INPUTS, 0, start, DataType.BYTE, size)

    async def write_inputs(self, start: int, data: bytes) -> None:
        """Write bytes to the process input image."""
        await self.write_area(Area.INPUTS, 0, start, DataType.BYTE, data)

    async def read_outputs(self, start: int, size: int) -> bytes:
        """Read `size` bytes from the process output image."""
        return await self.read_area(Area.OUTPUTS, 0, start, DataType.BYTE, size)

    async def write_outputs(self, start: int, data: bytes) -> None:
        """Write bytes to the process output image."""
        await self.write_area(Area.OUTPUTS, 0, start, DataType.BYTE, data)

    async def read_counters(self, start: int, amount: int) -> bytes:
        """Read `amount` counters (2 bytes each)."""
        return await self.read_area(Area.COUNTERS, 0, start, DataType.COUNTER, amount)

    async def write_counters(self, start: int, data: bytes) -> None:
        """Write counters (2 bytes each)."""
        await self.write_area(Area.COUNTERS, 0, start, DataType.COUNTER, data)

    async def read_timers(self, start: int, amount: int) -> bytes:
        """Read `amount` timers (2 bytes each)."""
        return await self.read_area(Area.TIMERS, 0, start, DataType.TIMER, amount)

    async def write_timers(self, start: int, data: bytes) -> None:
        """Write timers (2 bytes each)."""
        await self.write_area(Area.TIMERS, 0, start, DataType.TIMER, data)

    async def read_bit(self, area: Area, start: int, bit: int, *, db_number: int = 0) -> bool:
        """Read a single bit.

        Args:
            area: Memory area
            start: Byte offset
            bit: Bit index in the byte (0-7)
            db_number: Data block number when reading from a data block

        Returns:
            The bit value

        Example:
            >>> await client.read_bit(Area.MERKERS, 10, 3)  # M10.3
            True

        """
        data = await self.read_area(area, db_number, start, DataType.BIT, 1, bit=bit)
        return bool(data[0] & 0x01)

    async def write_bit(self, area: Area, start: int, bit: int, value: bool, *, db_number: int = 0) -> None:  # noqa: FBT001
        """Write a single bit.

        Args:
            area: Memory area
            start: Byte offset
            bit: Bit index in the byte (0-7)
            value: The value to write
            db_number: Data block number when writing to a data block

        """
        await self.write_area(area, db_number, start, DataType.BIT, b"\x01" if value else b"\x00", bit=bit)

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.transport.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.transport.close()
