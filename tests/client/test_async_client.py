"""Tests for ts7/client/async_client.py ."""

import asyncio
from typing import Any

import pytest
from tenacity import AsyncRetrying, stop_after_attempt
from ts7.client.async_client import AsyncS7Client
from ts7.const import Area, DataType
from ts7.exceptions import DataItemError, ISORequestError
from ts7.transport.async_base import AsyncBaseTransport
from ts7.transport.async_smart import AsyncSmartTransport


def _ack_data(reference: int, parameters: bytes, data: bytes) -> bytes:
    return (
        bytes.fromhex("32 03 0000")
        + reference.to_bytes(2, "big")
        + len(parameters).to_bytes(2, "big")
        + len(data).to_bytes(2, "big")
        + b"\x00\x00"
        + parameters
        + data
    )


class DummyAsyncTransport(AsyncBaseTransport):
    """A dummy async transport answering like a PLC whose memory is all 0x01 bytes."""

    def __init__(self, pdu_length: int = 480) -> None:
        """Initialize the dummy transport."""
        self.performed_actions: list[Any] = []
        self.requests: list[bytes] = []
        self.opened = False
        self.item_return_code = 0xFF
        self._pdu_length = pdu_length

    async def open(self) -> None:
        """Open the transport connection."""
        self.performed_actions.append("open")
        self.opened = True

    async def close(self) -> None:
        """Close the transport connection."""
        self.performed_actions.append("close")
        self.opened = False

    def is_open(self) -> bool:
        """Check if the transport connection is open."""
        return self.opened

    @property
    def pdu_length(self) -> int:
        """Return the configured PDU length."""
        return self._pdu_length

    async def exchange(self, request: bytes) -> bytes:
        """Answer read and write requests."""
        self.requests.append(request)
        await asyncio.sleep(0)

        reference = int.from_bytes(request[4:6], "big")
        if request[10] == 0x05:
            return _ack_data(reference, b"\x05\x01", bytes([self.item_return_code]))

        transport_size = request[15]
        count = int.from_bytes(request[16:18], "big")
        if transport_size == DataType.BIT:
            return _ack_data(reference, b"\x04\x01", bytes.fromhex("FF 03 0001 01"))
        size = DataType(transport_size).size
        if transport_size in (DataType.COUNTER, DataType.TIMER):
            header = b"\xff\x09" + (count * size).to_bytes(2, "big")
        else:
            header = b"\xff\x04" + (count * size * 8).to_bytes(2, "big")
        return _ack_data(reference, b"\x04\x01", header + b"\x01" * (count * size))


def _reference(request: bytes) -> int:
    return int.from_bytes(request[4:6], "big")


@pytest.fixture
def transport() -> DummyAsyncTransport:
    """Create a dummy transport."""
    return DummyAsyncTransport()


@pytest.fixture
def dummy_client(transport: DummyAsyncTransport) -> AsyncS7Client:
    """Create a dummy async S7 client."""
    return AsyncS7Client(transport)


async def test_async_s7_client_open_close(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test opening and closing the transport connection."""
    assert not dummy_client.connected

    await dummy_client.connect()
    assert dummy_client.connected

    await dummy_client.disconnect()
    assert not dummy_client.connected
    assert transport.performed_actions == ["open", "close"]


async def test_async_s7_client_context_manager(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test using the client as an async context manager."""
    async with dummy_client as client:
        assert client is dummy_client
        assert client.connected
    assert transport.performed_actions == ["open", "close"]


def test_pdu_length(dummy_client: AsyncS7Client) -> None:
    """Test that the PDU length comes from the transport."""
    assert dummy_client.pdu_length == 480


async def test_db_read(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test reading bytes from a data block."""
    assert await dummy_client.db_read(3, 10, 4) == b"\x01" * 4

    request = transport.requests[0]
    assert request[10] == 0x04
    assert int.from_bytes(request[18:20], "big") == 3
    assert request[20] == Area.DATA_BLOCK
    assert int.from_bytes(request[21:24], "big") == 80


async def test_db_write(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test writing bytes to a data block."""
    await dummy_client.db_write(3, 0, b"\x0a\x0b")

    request = transport.requests[0]
    assert request[10] == 0x05
    assert request[20] == Area.DATA_BLOCK
    assert request[-6:] == bytes.fromhex("00 04 0010 0A 0B")


@pytest.mark.parametrize(
    ("method", "args", "area", "data_type"),
    [
        ("read_merkers", (0, 2), Area.MERKERS, DataType.BYTE),
        ("write_merkers", (0, b"\x01"), Area.MERKERS, DataType.BYTE),
        ("read_inputs", (0, 2), Area.INPUTS, DataType.BYTE),
        ("write_inputs", (0, b"\x01"), Area.INPUTS, DataType.BYTE),
        ("read_outputs", (0, 2), Area.OUTPUTS, DataType.BYTE),
        ("write_outputs", (0, b"\x01"), Area.OUTPUTS, DataType.BYTE),
        ("read_counters", (0, 2), Area.COUNTERS, DataType.COUNTER),
        ("write_counters", (0, b"\x00\x01"), Area.COUNTERS, DataType.COUNTER),
        ("read_timers", (0, 2), Area.TIMERS, DataType.TIMER),
        ("write_timers", (0, b"\x00\x01"), Area.TIMERS, DataType.TIMER),
    ],
)
async def test_area_helpers(
    dummy_client: AsyncS7Client,
    transport: DummyAsyncTransport,
    method: str,
    args: tuple[Any, ...],
    area: Area,
    data_type: DataType,
) -> None:
    """Test that the helpers address the right area with the right element type."""
    await getattr(dummy_client, method)(*args)

    request = transport.requests[0]
    assert request[15] == data_type
    assert int.from_bytes(request[18:20], "big") == 0
    assert request[20] == area


async def test_read_counters_returns_two_bytes_each(dummy_client: AsyncS7Client) -> None:
    """Test that counters are read as octet strings."""
    assert await dummy_client.read_counters(0, 3) == b"\x01" * 6


async def test_read_bit(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test reading a single bit."""
    assert await dummy_client.read_bit(Area.MERKERS, 10, 3) is True
    assert int.from_bytes(transport.requests[0][21:24], "big") == 83


async def test_write_bit(dummy_client: AsyncS7Client, transport: DummyAsyncTransport) -> None:
    """Test writing a single bit."""
    await dummy_client.write_bit(Area.DATA_BLOCK, 2, 7, True, db_number=5)

    request = transport.requests[0]
    assert int.from_bytes(request[18:20], "big") == 5
    assert int.from_bytes(request[21:24], "big") == 23
    assert request[-5:] == bytes.fromhex("00 03 0001 01")


async def test_pdu_reference_advances_between_operations(
    dummy_client: AsyncS7Client, transport: DummyAsyncTransport
) -> None:
    """Test that fragments share a reference and the next operation uses the next one."""
    transport._pdu_length = 235
    await dummy_client.db_write(1, 0, bytes(500))
    await dummy_client.db_read(1, 0, 1)

    assert [_reference(r) for r in transport.requests] == [1, 1, 1, 2]
    assert dummy_client.pdu_reference.value == 3


async def test_pdu_reference_advances_after_failure(
    dummy_client: AsyncS7Client, transport: DummyAsyncTransport
) -> None:
    """Test that a failed operation still moves on to the next reference."""
    transport.item_return_code = 0x05
    with pytest.raises(DataItemError):
        await dummy_client.db_write(1, 0, b"\x01")

    assert dummy_client.pdu_reference.value == 2


async def test_pdu_reference_kept_when_nothing_sent(
    dummy_client: AsyncS7Client, transport: DummyAsyncTransport
) -> None:
    """Test that the reference is not used up by a request refused before sending."""
    with pytest.raises(ISORequestError):
        await dummy_client.write_area(Area.DATA_BLOCK, 1, 0, DataType.WORD, b"\x01")

    assert transport.requests == []
    assert dummy_client.pdu_reference.value == 1


async def test_concurrent_operations_are_serialized(
    dummy_client: AsyncS7Client, transport: DummyAsyncTransport
) -> None:
    """Test that concurrent operations do not interleave their fragments."""
    transport._pdu_length = 235
    await asyncio.gather(
        dummy_client.db_write(1, 0, bytes(500)),
        dummy_client.db_write(2, 0, bytes(500)),
    )

    assert [_reference(r) for r in transport.requests] == [1, 1, 1, 2, 2, 2]
    assert [int.from_bytes(r[18:20], "big") for r in transport.requests] == [1, 1, 1, 2, 2, 2]


class RenegotiatingTransport(DummyAsyncTransport):
    """A dummy transport whose PLC grants a different PDU length on every connection."""

    def __init__(self, granted: list[int]) -> None:
        """Initialize the dummy transport with the PDU lengths granted on each open."""
        super().__init__()
        self.granted = granted

    async def open(self) -> None:
        """Open the connection and negotiate the next PDU length."""
        await super().open()
        self._pdu_length = self.granted.pop(0)


async def test_fragments_fit_pdu_length_granted_on_reconnect() -> None:
    """Test that fragments are sized on the PDU length granted by the reconnection they travel on."""
    base = RenegotiatingTransport([480, 240])
    client = AsyncS7Client(
        AsyncSmartTransport(base, auto_reconnect=AsyncRetrying(stop=stop_after_attempt(1), reraise=True))
    )
    await client.connect()
    assert client.pdu_length == 480

    # the PLC drops the connection
    base.opened = False

    await client.db_write(1, 0, bytes(400))

    assert base.performed_actions == ["open", "open"]
    assert client.pdu_length == 240
    assert len(base.requests) == 2
    # S7 PDU plus TPKT and COTP headers
    assert max(len(r) + 7 for r in base.requests) <= 240
    assert [int.from_bytes(r[21:24], "big") for r in base.requests] == [0, 205 * 8]
