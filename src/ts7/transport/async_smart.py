"""Async Smart Transport Layer.

This transport layer lives on top of the ISO-on-TCP transport layer
and implements the following smart features:

- Serialized access to the connection, one exchange at a time
- Wait time between requests to avoid overwhelming the PLC
- Wait time after connection establishment to allow the PLC to be ready
- Automatic reconnection on connection loss

Requests are never sent twice: a failed exchange is reported to the caller and
the connection is re-established before the next exchange.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from ts7.exceptions import (
    DataExchangeTimedOutError,
    ISOResponseError,
    IsoError,
    S7ConnectionError,
    S7IOError,
    S7PoolError,
)

from .async_base import AsyncBaseTransport

logger = logging.getLogger(__name__)


DEFAULT_RECONNECT_RETRY_STRATEGY = AsyncRetrying(
    stop=stop_after_delay(60),
    wait=wait_exponential(min=0.1, max=10),
)

# Errors after which the connection state is unknown and must be re-established
CONNECTION_BREAKING_ERRORS: tuple[type[Exception], ...] = (
    S7ConnectionError,
    S7IOError,
    DataExchangeTimedOutError,
)


class AsyncSmartTransport(AsyncBaseTransport):
    """Smart Transport Layer.

    This transport layer is built on top of the ISO-on-TCP transport layer,
    adding features such as wait time between requests, wait time after connection,
    and automatic reconnection on connection loss.
    """

    _should_be_connected: bool = False
    _must_reconnect: bool = False

    auto_reconnect: AsyncRetrying | None = None

    def __init__(
        self,
        base_transport: "AsyncBaseTransport",
        *,
        wait_between_requests: float = 0.0,
        wait_after_connect: float = 0.0,
        auto_reconnect: bool | AsyncRetrying = True,
        on_reconnected: Callable[[], Awaitable[None] | None] | None = None,
    ) -> None:
        """Initialize Smart Transport Layer.

        Args:
            base_transport: Underlying transport layer instance (AsyncTcpTransport)
            wait_between_requests: Wait time between requests in seconds (default: 0.0s)
            wait_after_connect: Wait time after connection establishment in seconds (default: 0.0s)
            auto_reconnect: Whether to automatically reconnect on connection loss (default: True).
                            Can be a custom AsyncRetrying instance when more control is needed.
            on_reconnected: Callback to be called after a successful reconnection.

        """
        self.base_transport = base_transport
        if wait_between_requests < 0:
            msg = "wait_between_requests must be a positive value"
            raise ValueError(msg)
        self.wait_between_requests = wait_between_requests

        if wait_after_connect < 0:
            msg = "wait_after_connect must be a positive value"
            raise ValueError(msg)
        self.wait_after_connect = wait_after_connect

        if isinstance(auto_reconnect, bool) and auto_reconnect:
            auto_reconnect = DEFAULT_RECONNECT_RETRY_STRATEGY
        if auto_reconnect:
            self.auto_reconnect = auto_reconnect.copy(
                retry=retry_if_exception_type((S7ConnectionError, S7IOError, TimeoutError))
            )

        if not auto_reconnect and on_reconnected:
            msg = "on_reconnected callback provided but auto_reconnect is disabled"
            raise ValueError(msg)
        self.on_reconnected = on_reconnected

        self._communication_lock = asyncio.Lock()
        self._last_request_finished_at: float | None = None

    @property
    def pdu_length(self) -> int:
        """PDU length negotiated by the underlying transport."""
        return self.base_transport.pdu_length

    async def open(self) -> None:
        """Open Transport Connection.

        Establishes connection with the PLC and waits for the specified time
        to allow the PLC to be ready.

        Raises:
            S7ConnectionError: When connection cannot be established

        """
        async with self._communication_lock:
            await self._open()

    async def _open(self) -> None:
        """Open Transport Connection without Lock.

        This method is used internally when the lock is already held.
        """
        await self.base_transport.open()
        if self.wait_after_connect > 0:
            logger.debug("Waiting %.2f seconds after connecting before sending data", self.wait_after_connect)
            await asyncio.sleep(self.wait_after_connect)

        self._should_be_connected = True

    async def close(self) -> None:
        """Close Transport Connection.

        Closes connection with the PLC and releases related resources.
        """
        async with self._communication_lock:
            try:
                await self.base_transport.close()
            finally:
                self._should_be_connected = False
                self._must_reconnect = False

    def is_open(self) -> bool:
        """Check Connection Status.

        Returns:
            True if connection was established and should still be available.
            False otherwise.

        """
        return bool(self.auto_reconnect and self._should_be_connected) or self.base_transport.is_open()

    async def _do_auto_reconnect(self) -> None:
        """Reconnect to the PLC.

        Raises:
            S7PoolError: When no connection could be established within the retry strategy

        """
        assert isinstance(self.auto_reconnect, AsyncRetrying)
        if self.base_transport.is_open():
            logger.debug("Closing existing connection before reconnecting.")
            await self.base_transport.close()
        else:
            logger.debug("No existing connection to close before reconnecting.")

        try:
            async for attempt in self.auto_reconnect:
                with attempt:
                    logger.info("Attempting to reconnect.")
                    await self._open()
        except RetryError as e:
            msg = (
                f"Failed to reconnect after {attempt.retry_state.attempt_number} attempts "
                f"over {attempt.retry_state.seconds_since_start} seconds"
            )
            raise S7PoolError(msg) from e

        if self.on_reconnected:
            result = self.on_reconnected()
            if asyncio.iscoroutine(result):
                await result

    async def _wait_before_request(self) -> None:
        if self.wait_between_requests > 0 and self._last_request_finished_at is not None:
            wait_needed = self.wait_between_requests - (time.monotonic() - self._last_request_finished_at)
            if wait_needed > 0:
                logger.debug(
                    "Waiting %.2fs before sending next request to respect %.2fs wait between requests",
                    wait_needed,
                    self.wait_between_requests,
                )
                await asyncio.sleep(wait_needed)

    async def _reconnect_if_needed(self) -> None:
        if not self.auto_reconnect:
            return
        if self._must_reconnect:
            logger.info("Forcing reconnection due to previous connection error.")
            await self._do_auto_reconnect()
            self._must_reconnect = False
        elif not self.base_transport.is_open():
            logger.info("Connection lost. Attempting to reconnect...")
            await self._do_auto_reconnect()

    async def ensure_open(self) -> None:
        """Reconnect now if the connection was lost or broken by a previous exchange.

        Callers sizing their requests on `pdu_length` call this first, so the length is
        the one granted on the new connection.

        Raises:
            S7PoolError: When no connection could be established within the retry strategy

        """
        async with self._communication_lock:
            await self._reconnect_if_needed()

    async def exchange(self, request: bytes) -> bytes:
        """Send an S7 PDU and Receive the Response PDU.

        Reconnects first when the previous exchange broke the connection.
        """
        # Ensure that only one request is processed at a time
        async with self._communication_lock:
            await self._reconnect_if_needed()
            await self._wait_before_request()

            try:
                return await self.base_transport.exchange(request)
            except CONNECTION_BREAKING_ERRORS as e:
                self._mark_for_reconnect(e)
                raise
            except ISOResponseError as e:
                if e.iso_error is IsoError.DISCONNECT:
                    self._mark_for_reconnect(e)
                raise
            finally:
                self._last_request_finished_at = time.monotonic()

    def _mark_for_reconnect(self, exception: Exception) -> None:
        if self.auto_reconnect:
            logger.warning(
                "Received an %s error. Closing the connection to force a reconnect.", type(exception).__name__
            )
            self._must_reconnect = True


__all__ = ["AsyncSmartTransport"]
