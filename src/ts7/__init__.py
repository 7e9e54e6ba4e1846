"""tS7 library."""

from collections.abc import Awaitable, Callable
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

from .client.async_client import AsyncS7Client
from .const import Area, ConnectionType, DataType
from .transport import AsyncSmartTransport, AsyncTcpTransport

if TYPE_CHECKING:
    from tenacity import AsyncRetrying

try:
    __version__ = version("ts7")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"


def create_async_tcp_client(  # noqa: PLR0913
    host: str,
    port: int = 102,
    *,
    rack: int = 0,
    slot: int = 1,
    connection_type: ConnectionType = ConnectionType.PG,
    pdu_length: int = 480,
    timeout: float = 10.0,
    connect_timeout: float = 10.0,
    wait_between_requests: float = 0.0,
    wait_after_connect: float = 0.0,
    auto_reconnect: "bool | AsyncRetrying" = True,
    on_reconnected: Callable[[], Awaitable[None] | None] | None = None,
    **connection_kwargs: Any,
) -> AsyncS7Client:
    """Create an asynchronous ISO-on-TCP S7 client with automatic reconnect functionality.

    Args:
        host: The IP address or hostname of the PLC.
        port: The ISO-on-TCP port of the PLC (default is 102).
        rack: Rack of the CPU (default is 0).
        slot: Slot of the CPU (default is 1).
        connection_type: Connection resource type (default is PG).
        pdu_length: PDU length requested during negotiation (default is 480).
        timeout: Timeout in seconds, default 10.0s
        connect_timeout: Timeout for establishing connection, default 10.0s
        wait_between_requests: Wait time between requests in seconds (default: 0.0s)
        wait_after_connect: Wait time after connection establishment in seconds (default: 0.0s)
        auto_reconnect: Whether to automatically reconnect on connection loss (default: True).
                        Can be a custom AsyncRetrying instance when more control is needed.
        on_reconnected: Callback to be called after a successful reconnection.
        connection_kwargs: Additional connection parameters passed to `asyncio.create_connection`

    Returns:
        An instance of AsyncS7Client configured for ISO-on-TCP transport.

    """
    smart_transport = AsyncSmartTransport(
        AsyncTcpTransport(
            host,
            port,
            rack=rack,
            slot=slot,
            connection_type=connection_type,
            pdu_length=pdu_length,
            timeout=timeout,
            connect_timeout=connect_timeout,
            **connection_kwargs,
        ),
        wait_between_requests=wait_between_requests,
        wait_after_connect=wait_after_connect,
        auto_reconnect=auto_reconnect,
        on_reconnected=on_reconnected,
    )
    return AsyncS7Client(smart_transport)


__all__ = [
    "Area",
    "AsyncS7Client",
    "AsyncSmartTransport",
    "AsyncTcpTransport",
    "ConnectionType",
    "DataType",
    "create_async_tcp_client",
]
