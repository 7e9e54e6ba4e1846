"""Tests for ts7/transport/async_base.py ."""

from ts7.transport.async_base import AsyncBaseTransport

DUMMY_RESPONSE = b"dummy_response"


class DummyAsyncTransport(AsyncBaseTransport):
    """A dummy async transport for testing purposes."""

    performed_actions: list[str | list[str | bytes]]  # Actions performed by the transport
    opened: bool  # Indicates if the transport is open

    def __init__(self) -> None:
        """Initialize the dummy transport."""
        self.performed_actions = []
        self.opened = False

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
        self.performed_actions.append("is_open")
        return self.opened

    @property
    def pdu_length(self) -> int:
        """Return a fixed PDU length."""
        return 240

    async def exchange(self, request: bytes) -> bytes:
        """Send a PDU and receive a response."""
        self.performed_actions.append(["exchange", request])
        return DUMMY_RESPONSE


async def test_async_base_transport_context_manager() -> None:
    """Test that AsyncBaseTransport can be used as a context manager."""
    transport = DummyAsyncTransport()

    async with transport:
        assert transport.is_open()
        assert "open" in transport.performed_actions
        assert await transport.exchange(b"\x32") == DUMMY_RESPONSE

    assert not transport.is_open()
    assert "close" in transport.performed_actions
    assert ["exchange", b"\x32"] in transport.performed_actions


async def test_async_base_transport_ensure_open_does_nothing() -> None:
    """Test that a plain transport neither opens nor reconnects in ensure_open."""
    transport = DummyAsyncTransport()

    await transport.ensure_open()

    assert transport.performed_actions == []
    assert not transport.opened
