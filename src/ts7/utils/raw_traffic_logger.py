"""Raw traffic logger.

Every ISO-on-TCP frame is logged split in its TPKT header, its COTP header (tagged with
the TPDU kind) and the S7 payload it carries, e.g.::

    ISO sent: 03 00 00 1F | DT 02 F0 80 | 32 01 00 00 00 01 ...
"""

from logging import getLogger
from typing import Literal

from ts7.const import TPKT_HEADER_SIZE, TPKT_VERSION, CotpPduType

raw_traffic_logger = getLogger("ts7.raw_traffic")

_TPDU_TAGS: dict[int, str] = {
    CotpPduType.CONNECTION_REQUEST: "CR",
    CotpPduType.CONNECTION_CONFIRM: "CC",
    CotpPduType.DISCONNECT_REQUEST: "DR",
    CotpPduType.DATA: "DT",
}


def log_raw_traffic(
    transport_name: str,
    direction: Literal["sent", "recv"],
    data: bytes,
    *,
    is_error: bool = False,
) -> None:
    """Log a raw ISO-on-TCP frame, or bytes discarded by the parser when `is_error` is set."""
    raw_traffic_logger.debug(
        "%6s %s: %s %s",
        transport_name,
        direction,
        _format_bytes(data) if is_error else _format_frame(data),
        "[!]" if is_error else "",
    )


def _format_frame(data: bytes) -> str:
    """Format a TPKT frame as `TPKT | COTP | payload`.

    Anything that does not start with a TPKT header is formatted as plain bytes.
    """
    if len(data) < TPKT_HEADER_SIZE + 2 or data[0] != TPKT_VERSION:
        return _format_bytes(data)

    cotp_end = TPKT_HEADER_SIZE + 1 + data[TPKT_HEADER_SIZE]
    tag = _TPDU_TAGS.get(data[TPKT_HEADER_SIZE + 1] & 0xF0, "??")
    parts = [
        _format_bytes(data[:TPKT_HEADER_SIZE]),
        f"{tag} {_format_bytes(data[TPKT_HEADER_SIZE:cotp_end])}",
    ]
    payload = data[cotp_end:]
    if payload:
        parts.append(_format_bytes(payload))
    return " | ".join(parts)


def _format_bytes(data: bytes) -> str:
    """Format bytes for logging."""
    return data.hex(" ").upper()
