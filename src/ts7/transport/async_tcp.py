"""Async ISO-on-TCP Transport Layer Implementation.

Implements the async ISO-on-TCP (RFC 1006) transport based on asyncio: TPKT and COTP
framing, the COTP connection handshake and the S7 PDU length negotiation.
"""

import asyncio
import logging
import struct
from collections.abc import Callable
from functools import partial
from typing import Any

from ts7.const import (
    COTP_DATA_HEADER_SIZE,
    COTP_EOT,
    COTP_PARAM_CALLED_TSAP,
    COTP_PARAM_CALLING_TSAP,
    COTP_PARAM_TPDU_SIZE,
    COTP_TPDU_SIZE_1024,
    DEFAULT_PDU_LENGTH,
    ISO_TCP_PORT,
    LOCAL_TSAP,
    TPKT_HEADER_SIZE,
    TPKT_VERSION,
    ConnectionType,
    CotpPduType,
)
from ts7.exceptions import (
    DataExchangeTimedOutError,
    ISORequestError,
    ISOResponseError,
    IsoError,
    S7ConnectionError,
    S7IOError,
)
from ts7.pdu import NegotiatedParameters, PduReference, SetupCommunicationPDU
from ts7.utils.raw_traffic_logger import log_raw_traffic as base_log_raw_traffic

from .async_base import AsyncBaseTransport

logger = logging.getLogger(__name__)
log_raw_traffic = partial(base_log_raw_traffic, "ISO")

MAX_ISO_FRAGMENTS = 64
MAX_ISO_PAYLOAD_SIZE = 4096

_TPKT_STRUCT = struct.Struct(">BBH")
_COTP_DATA_HEADER = bytes([COTP_DATA_HEADER_SIZE - 1, CotpPduType.DATA, COTP_EOT])

COTP_DISCONNECT_REASONS: dict[int, str] = {
    0x00: "Reason not specified",
    0x01: "Congestion at the destination transport endpoint",
    0x02: "Session entity congestion",
    0x03: "Address unknown",
    0x05: "Connection refused by remote transport endpoint",
    0x06: "Connection rejected due to remote transport endpoint being unavailable",
    0x07: "Connection rejected due to protocol error",
    0x09: "User initiated disconnect",
    0x0A: "Protocol error detected by the peer",
    0x0B: "Duplicate source reference",
}


def remote_tsap_for(rack: int, slot: int, connection_type: ConnectionType = ConnectionType.PG) -> int:
    """Compute the TSAP of the CPU in `rack` / `slot`."""
    return (connection_type << 8) | (rack * 0x20 + slot)


def encode_tpkt(payload: bytes) -> bytes:
    """Prepend the TPKT header to a COTP frame."""
    return _TPKT_STRUCT.pack(TPKT_VERSION, 0x00, TPKT_HEADER_SIZE + len(payload)) + payload


def encode_connection_request(local_tsap: int, remote_tsap: int, source_reference: int = 0x0001) -> bytes:
    """Build a COTP Connection Request frame (including TPKT header)."""
    parameters = (
        bytes([COTP_PARAM_TPDU_SIZE, 1, COTP_TPDU_SIZE_1024])
        + struct.pack(">BBH", COTP_PARAM_CALLING_TSAP, 2, local_tsap)
        + struct.pack(">BBH", COTP_PARAM_CALLED_TSAP, 2, remote_tsap)
    )
    fixed_part = struct.pack(">BHHB", CotpPduType.CONNECTION_REQUEST, 0x0000, source_reference, 0x00)
    cotp = bytes([len(fixed_part) + len(parameters)]) + fixed_part + parameters
    return encode_tpkt(cotp)


def encode_data_frame(payload: bytes) -> bytes:
    """Wrap an S7 PDU in a single COTP Data TPDU (including TPKT header)."""
    return encode_tpkt(_COTP_DATA_HEADER + payload)


class AsyncTcpTransport(AsyncBaseTransport):
    """Async ISO-on-TCP Transport Layer Implementation.

    Handles async S7 communication based on asyncio, including:
    - Async TCP socket connection management
    - COTP connection request with local and remote TSAP
    - S7 PDU length negotiation
    - TPKT/COTP framing and reassembly of fragmented responses
    - Async error handling and timeout management
    """

    _transport: asyncio.Transport | None = None
    _protocol: "IsoTcpProtocol | None" = None
    negotiated: NegotiatedParameters | None = None

    def __init__(  # noqa: PLR0913
        self,
        host: str,
        port: int = ISO_TCP_PORT,
        *,
        rack: int = 0,
        slot: int = 1,
        connection_type: ConnectionType = ConnectionType.PG,
        local_tsap: int = LOCAL_TSAP,
        remote_tsap: int | None = None,
        pdu_length: int = DEFAULT_PDU_LENGTH,
        timeout: float = 10.0,
        connect_timeout: float = 10.0,
        **connection_kwargs: Any,
    ) -> None:
        """Initialize async ISO-on-TCP transport layer.

        Args:
            host: Target host IP address or domain name
            port: Target port, default 102 (ISO-on-TCP standard port)
            rack: Rack of the CPU, used to compute the remote TSAP
            slot: Slot of the CPU, used to compute the remote TSAP
            connection_type: Connection resource type, used to compute the remote TSAP
            local_tsap: Local TSAP, default 0x0100
            remote_tsap: Remote TSAP, overrides rack/slot/connection_type when given
            pdu_length: PDU length requested during negotiation
            timeout: Timeout in seconds for every exchange, default 10.0s
            connect_timeout: Timeout for establishing connection, default 10.0s
            connection_kwargs: Additional connection parameters passed to `asyncio.create_connection`

        Raises:
            ValueError: When parameters are invalid

        """
        if not 0 < port < 65535:
            msg = "Port must be an integer between 1-65535."
            raise ValueError(msg)
        if timeout <= 0:
            msg = "Timeout must be a positive number."
            raise ValueError(msg)
        if connect_timeout <= 0:
            msg = "Connect timeout must be a positive number."
            raise ValueError(msg)
        if not 0 <= rack <= 7:
            msg = "Rack must be between 0 and 7."
            raise ValueError(msg)
        if not 0 <= slot <= 31:
            msg = "Slot must be between 0 and 31."
            raise ValueError(msg)
        if not 0 < pdu_length <= 0xFFFF:
            msg = "PDU length must be between 1 and 65535."
            raise ValueError(msg)

        self.host = host
        self.port = port
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.local_tsap = local_tsap
        self.remote_tsap = remote_tsap if remote_tsap is not None else remote_tsap_for(rack, slot, connection_type)
        self.requested_pdu_length = pdu_length
        self.connection_kwargs = connection_kwargs

    @property
    def pdu_length(self) -> int:
        """PDU length granted by the PLC during the last negotiation.

        Raises:
            S7ConnectionError: When no negotiation took place yet

        """
        if self.negotiated is None:
            msg = "PDU length not negotiated yet, open the connection first."
            raise S7ConnectionError(msg)
        return self.negotiated.pdu_length

    async def open(self) -> None:
        """Async establish the ISO-on-TCP connection and negotiate the PDU length."""
        loop = asyncio.get_running_loop()
        if self.is_open():
            logger.debug("Async ISO-on-TCP connection already open: %s:%d", self.host, self.port)
            return

        try:
            self._transport, self._protocol = await asyncio.wait_for(
                loop.create_connection(
                    lambda: IsoTcpProtocol(on_connection_lost=self._on_connection_lost, timeout=self.timeout),
                    host=self.host,
                    port=self.port,
                    **self.connection_kwargs,
                ),
                timeout=self.connect_timeout,
            )
            logger.info("Async TCP connection established: %s:%d", self.host, self.port)
        except TimeoutError as e:
            logger.warning("Async TCP connection timeout: %s:%d", self.host, self.port, exc_info=True)
            msg = f"Connection timeout after {self.connect_timeout} seconds"
            raise S7ConnectionError(msg) from e
        except Exception as e:
            logger.exception("Async TCP connection error: %s:%d", self.host, self.port)
            raise S7ConnectionError from e

        try:
            await self._protocol.connect_iso(self.local_tsap, self.remote_tsap)
            self.negotiated = await self._negotiate(self._protocol)
        except BaseException:
            await self.close()
            raise

        logger.info(
            "S7 connection established: %s:%d, PDU length %d", self.host, self.port, self.negotiated.pdu_length
        )

    async def _negotiate(self, protocol: "IsoTcpProtocol") -> NegotiatedParameters:
        """Negotiate the PDU length with the PLC."""
        pdu = SetupCommunicationPDU(self.requested_pdu_length)
        pdu_reference = PduReference(0)
        response = await protocol.exchange(pdu.encode_request(pdu_reference))
        negotiated = pdu.decode_response(response, pdu_reference.value)

        if negotiated.pdu_length != self.requested_pdu_length:
            logger.debug(
                "PLC granted a PDU length of %d instead of the requested %d",
                negotiated.pdu_length,
                self.requested_pdu_length,
            )
        return negotiated

    async def close(self) -> None:
        """Close TCP connection."""
        if not self._transport or self._transport.is_closing():
            logger.debug("Async ISO-on-TCP connection already closed: %s:%d", self.host, self.port)
            return

        try:
            self._transport.close()
            logger.info("Async ISO-on-TCP connection closed: %s:%d", self.host, self.port)
        except Exception as e:  # noqa: BLE001
            logger.debug("Error during async connection close: %s", e)

    def is_open(self) -> bool:
        """Check if the connection is open."""
        return self._transport is not None and not self._transport.is_closing()

    def _on_connection_lost(self, exc: Exception | None) -> None:
        if exc:
            logger.error("Async ISO-on-TCP connection lost due to error: %s", exc)
        else:
            logger.info("Async ISO-on-TCP connection closed by remote host.")

        # negotiated parameters are kept until the next negotiation replaces them
        self._transport = None
        self._protocol = None

    async def exchange(self, request: bytes) -> bytes:
        """Async send an S7 PDU and receive the response PDU.

        Args:
            request: S7 PDU bytes

        """
        if not self.is_open() or self._protocol is None:
            msg = "Transport is not connected."
            raise S7ConnectionError(msg)

        return await self._protocol.exchange(request)


class IsoTcpProtocol(asyncio.Protocol):
    """Asyncio Protocol implementation for ISO-on-TCP with TPKT and COTP headers.

    Only one request can be outstanding at a time.
    """

    transport: "asyncio.WriteTransport | None" = None

    on_connection_lost: Callable[[Exception | None], None]
    timeout: float

    _buffer: bytearray
    _fragments: bytearray
    _fragment_count: int
    _pending: "asyncio.Future[bytes] | None"
    _iso_connected: bool

    def __init__(
        self,
        *,
        on_connection_lost: Callable[[Exception | None], None],
        timeout: float = 10.0,
    ) -> None:
        """Initialize ISO-on-TCP Protocol."""
        super().__init__()

        self.on_connection_lost = on_connection_lost
        self.timeout = timeout

        self._buffer = bytearray()
        self._fragments = bytearray()
        self._fragment_count = 0
        self._pending = None
        self._iso_connected = False

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        """Handle connection made event."""
        if not isinstance(transport, asyncio.WriteTransport):
            msg = "Expected a WriteTransport"
            raise TypeError(msg)

        self.transport = transport
        logger.info("ISO-on-TCP protocol connection established.")

    async def _send_and_wait(self, frame: bytes) -> bytes:
        """Send a complete frame and wait until the response is resolved by `data_received`."""
        if self.transport is None or self.transport.is_closing():
            msg = "Not connected."
            raise S7ConnectionError(msg)
        if self._pending is not None:
            msg = "Another exchange is already in progress on this connection."
            raise S7ConnectionError(msg)

        future: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self._pending = future

        try:
            try:
                self.transport.write(frame)
            except (OSError, RuntimeError) as e:
                raise ISORequestError(IsoError.SEND_PACKET, str(e)) from e
            log_raw_traffic("sent", frame)

            try:
                return await asyncio.wait_for(future, timeout=self.timeout)
            except TimeoutError as e:
                msg = f"Response timeout after {self.timeout} seconds"
                raise DataExchangeTimedOutError(msg) from e
        finally:
            self._pending = None

    async def connect_iso(self, local_tsap: int, remote_tsap: int) -> None:
        """Perform the COTP connection handshake.

        Raises:
            ISOResponseError: INVALID_PARAMS if the PLC refused the TSAPs, CONNECT for any
                              other unexpected answer

        """
        cotp = await self._send_and_wait(encode_connection_request(local_tsap, remote_tsap))

        if len(cotp) < 7:  # noqa: PLR2004
            msg = f"COTP answer of {len(cotp)} bytes"
            raise ISOResponseError(IsoError.CONNECT, msg)

        tpdu_code = cotp[1] & 0xF0
        if tpdu_code == CotpPduType.DISCONNECT_REQUEST:
            reason = cotp[6]
            msg = COTP_DISCONNECT_REASONS.get(reason, f"reason {reason:#04x}")
            raise ISOResponseError(IsoError.INVALID_PARAMS, msg)
        if tpdu_code != CotpPduType.CONNECTION_CONFIRM:
            msg = f"unexpected TPDU {tpdu_code:#04x}"
            raise ISOResponseError(IsoError.CONNECT, msg)

        self._iso_connected = True
        logger.debug("COTP connection confirmed (local TSAP %#06x, remote TSAP %#06x)", local_tsap, remote_tsap)

    async def exchange(self, request: bytes) -> bytes:
        """Send an S7 PDU in a COTP Data TPDU and return the reassembled response PDU."""
        if not self._iso_connected:
            msg = "COTP connection not established."
            raise S7ConnectionError(msg)
        if len(request) > MAX_ISO_PAYLOAD_SIZE:
            msg = f"request of {len(request)} bytes"
            raise ISORequestError(IsoError.PDU_OVERFLOW, msg)

        return await self._send_and_wait(encode_data_frame(request))

    def _resolve(self, result: bytes) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(result)
        else:
            logger.warning("Received unexpected response. Discarding bytes: %s", result.hex(" ").upper())

    def _fail(self, exc: Exception) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.set_exception(exc)
        else:
            logger.warning("Unexpected error without outstanding request: %s", exc)

    def _reset_fragments(self) -> None:
        self._fragments = bytearray()
        self._fragment_count = 0

    def data_received(self, data: bytes) -> None:
        """Handle data received event."""
        self._buffer.extend(data)

        while len(self._buffer) >= TPKT_HEADER_SIZE:
            version, _reserved, length = _TPKT_STRUCT.unpack_from(self._buffer)

            if version != TPKT_VERSION:
                # Unexpected contents: discard up to the next possible TPKT header
                next_header_pos = self._buffer.find(bytes([TPKT_VERSION]), 1)
                if next_header_pos == -1:
                    log_raw_traffic("recv", bytes(self._buffer), is_error=True)
                    self._buffer.clear()
                    return
                log_raw_traffic("recv", bytes(self._buffer[:next_header_pos]), is_error=True)
                del self._buffer[:next_header_pos]
                continue

            if length < TPKT_HEADER_SIZE + 2:
                log_raw_traffic("recv", bytes(self._buffer), is_error=True)
                self._buffer.clear()
                self._fail(ISOResponseError(IsoError.SHORT_PACKET, f"TPKT length {length}"))
                return

            if len(self._buffer) < length:
                return  # wait for the rest of the frame

            frame = bytes(self._buffer[:length])
            del self._buffer[:length]
            log_raw_traffic("recv", frame)
            self._handle_frame(frame)

    def _handle_frame(self, frame: bytes) -> None:
        cotp = frame[TPKT_HEADER_SIZE:]
        header_length = cotp[0] + 1
        if header_length > len(cotp):
            self._fail(ISOResponseError(IsoError.INVALID_PDU, f"COTP length indicator {cotp[0]}"))
            return

        if not self._iso_connected:
            # handshake phase: let connect_iso interpret the TPDU
            self._resolve(cotp)
            return

        tpdu_code = cotp[1] & 0xF0
        if tpdu_code == CotpPduType.DISCONNECT_REQUEST:
            self._iso_connected = False
            self._fail(ISOResponseError(IsoError.DISCONNECT, "disconnect request received"))
            return
        if tpdu_code != CotpPduType.DATA or header_length < COTP_DATA_HEADER_SIZE:
            self._fail(ISOResponseError(IsoError.RECV_PACKET, f"unexpected TPDU {cotp[1]:#04x}"))
            return

        self._fragments.extend(cotp[header_length:])
        self._fragment_count += 1
        end_of_transmission = cotp[2] & COTP_EOT

        if len(self._fragments) > MAX_ISO_PAYLOAD_SIZE:
            self._reset_fragments()
            self._fail(ISOResponseError(IsoError.PDU_OVERFLOW))
        elif end_of_transmission:
            message = bytes(self._fragments)
            self._reset_fragments()
            self._resolve(message)
        elif self._fragment_count >= MAX_ISO_FRAGMENTS:
            self._reset_fragments()
            self._fail(ISOResponseError(IsoError.TOO_MANY_FRAGMENTS))

    def connection_lost(self, exc: Exception | None) -> None:
        """Handle connection lost event."""
        self._iso_connected = False
        if self._pending is not None and not self._pending.done():
            if isinstance(exc, OSError):
                self._pending.set_exception(S7IOError.from_os_error(exc))
            else:
                self._pending.set_exception(S7ConnectionError("Connection lost before response was received."))

        self.on_connection_lost(exc)


__all__ = ["AsyncTcpTransport", "IsoTcpProtocol"]
