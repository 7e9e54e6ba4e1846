"""Async Transport layer base class.

Defines the unified interface that all transport layer implementations must follow.
"""

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Self


class AsyncBaseTransport(ABC):
    """Transport Layer Base Class.

    All transport layer implementations must inherit from this class and implement all
    abstract methods. The transport completely encapsulates the ISO-on-TCP framing
    (TPKT and COTP headers, connection handshake, PDU negotiation), offering the S7 layer
    a plain request/response exchange of S7 PDUs.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open Transport Connection.

        Establishes the connection with the PLC and negotiates the PDU length.

        Raises:
            S7ConnectionError: When connection cannot be established

        """

    @abstractmethod
    async def close(self) -> None:
        """Close Transport Connection.

        Closes connection with the PLC and releases related resources.
        """

    @abstractmethod
    def is_open(self) -> bool:
        """Check Connection Status.

        Returns:
            True if connection is established and available, False otherwise

        """

    async def ensure_open(self) -> None:
        """Make the connection usable before a request is built.

        Transports able to re-establish a lost connection do it here, so that
        `pdu_length` is the one granted on the connection the next requests use.
        Plain transports have nothing to do.
        """

    @property
    @abstractmethod
    def pdu_length(self) -> int:
        """PDU length negotiated with the PLC."""

    @abstractmethod
    async def exchange(self, request: bytes) -> bytes:
        """Send an S7 PDU and Receive the Response PDU.

        This is the core method of the transport layer. It receives a complete S7 PDU
        (header, parameters and data), adds the transport layer framing, sends the request,
        waits for the response and returns the S7 PDU part of the response.

        Args:
            request: S7 PDU bytes

        Returns:
            S7 PDU bytes of the response with transport layer information removed

        Raises:
            S7ConnectionError: Connection error
            S7IOError: Socket error
            DataExchangeTimedOutError: Operation timeout
            ISOResponseError: Invalid response framing

        """

    async def __aenter__(self) -> Self:
        """Async Context Manager Entry."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async Context Manager Exit."""
        await self.close()
