"""Fragmentation engine.

Splits an area read or write of arbitrary length into request/response exchanges that each
fit in the negotiated PDU length. Fragments are sent strictly one after the other; a
failure aborts the remaining fragments, fragments already acknowledged by the PLC are
not rolled back.
"""

import logging

from ts7.const import READ_OVERHEAD, WRITE_OVERHEAD, Area, DataType
from ts7.exceptions import ISORequestError, IsoError
from ts7.pdu import PduReference, ReadAreaPDU, WriteAreaPDU
from ts7.transport.async_base import AsyncBaseTransport

logger = logging.getLogger(__name__)


def max_elements_per_fragment(pdu_length: int, data_type: DataType, overhead: int) -> int:
    """Compute how many elements of `data_type` fit in one fragment.

    Args:
        pdu_length: negotiated PDU length
        data_type: element type
        overhead: fixed per-fragment overhead (`WRITE_OVERHEAD` or `READ_OVERHEAD`)

    Raises:
        ISORequestError: INVALID_PDU if not even one element fits

    """
    max_elements = (pdu_length - overhead) // data_type.size
    if max_elements < 1:
        msg = f"PDU length {pdu_length} cannot carry a single {data_type.name} element"
        raise ISORequestError(IsoError.INVALID_PDU, msg)

    # only one bit can be transferred per item
    if data_type.is_bit:
        return 1
    return max_elements


def _slice(buffer: bytes, start: int, end: int) -> bytes | None:
    """Bounds-checked slice: `None` if [start, end) is not fully inside the buffer."""
    if not (0 <= start <= end <= len(buffer)):
        return None
    return buffer[start:end]


def _fragment_address(start: int, bit: int, data_type: DataType, offset: int) -> tuple[int, int]:
    """Return the (start, bit) address of the element `offset` elements after (start, bit)."""
    if data_type.is_bit:
        position = (start << 3) + bit + offset
        return position >> 3, position & 0x07
    if data_type.addresses_elements:
        return start + offset, bit
    return start + offset * data_type.size, bit


async def write_area(  # noqa: PLR0913
    connection: AsyncBaseTransport,
    pdu_length: int,
    pdu_reference: PduReference,
    area: Area,
    db_number: int,
    start: int,
    data_type: DataType,
    buffer: bytes,
    *,
    bit: int = 0,
) -> None:
    """Write the whole buffer to the PLC.

    Args:
        connection: transport used to exchange the frames
        pdu_length: negotiated PDU length
        pdu_reference: caller-owned reference counter, shared by all fragments
        area: memory area to write to
        db_number: data block number (only used for data blocks)
        start: byte offset of the first element (element index for counters and timers)
        data_type: element type
        buffer: raw bytes to write, a whole number of elements
        bit: bit index of the first element for bit writes

    Raises:
        ISORequestError: INVALID_PDU if the PDU is too small, INVALID_DATA_SIZE for a bad buffer
        S7Error: any error raised while exchanging or validating a fragment

    """
    max_elements = max_elements_per_fragment(pdu_length, data_type, WRITE_OVERHEAD)

    element_size = data_type.size
    if not buffer or len(buffer) % element_size:
        msg = f"buffer of {len(buffer)} bytes is not a whole number of {data_type.name} elements"
        raise ISORequestError(IsoError.INVALID_DATA_SIZE, msg)
    total_elements = len(buffer) // element_size

    offset = 0
    while offset < total_elements:
        elements = min(total_elements - offset, max_elements)
        fragment_start, fragment_bit = _fragment_address(start, bit, data_type, offset)
        data = _slice(buffer, offset * element_size, (offset + elements) * element_size)

        pdu = WriteAreaPDU(area, db_number, fragment_start, data_type, data, bit=fragment_bit)
        logger.debug(
            "Writing %d %s element(s) to %s at %d.%d (%d/%d)",
            elements,
            data_type.name,
            area.name,
            fragment_start,
            fragment_bit,
            offset + elements,
            total_elements,
        )

        response = await connection.exchange(pdu.encode_request(pdu_reference))
        pdu.decode_response(response, pdu_reference.value)

        offset += elements


async def read_area(  # noqa: PLR0913
    connection: AsyncBaseTransport,
    pdu_length: int,
    pdu_reference: PduReference,
    area: Area,
    db_number: int,
    start: int,
    data_type: DataType,
    amount: int,
    *,
    bit: int = 0,
) -> bytes:
    """Read `amount` elements from the PLC.

    Args:
        connection: transport used to exchange the frames
        pdu_length: negotiated PDU length
        pdu_reference: caller-owned reference counter, shared by all fragments
        area: memory area to read from
        db_number: data block number (only used for data blocks)
        start: byte offset of the first element (element index for counters and timers)
        data_type: element type
        amount: number of elements to read
        bit: bit index of the first element for bit reads

    Returns:
        The raw bytes read, `amount * data_type.size` bytes

    Raises:
        ISORequestError: INVALID_PDU if the PDU is too small, INVALID_DATA_SIZE for a bad amount
        S7Error: any error raised while exchanging or validating a fragment

    """
    max_elements = max_elements_per_fragment(pdu_length, data_type, READ_OVERHEAD)

    if amount < 1:
        msg = f"cannot read {amount} elements"
        raise ISORequestError(IsoError.INVALID_DATA_SIZE, msg)

    result = bytearray()
    offset = 0
    while offset < amount:
        elements = min(amount - offset, max_elements)
        fragment_start, fragment_bit = _fragment_address(start, bit, data_type, offset)

        pdu = ReadAreaPDU(area, db_number, fragment_start, data_type, elements, bit=fragment_bit)
        logger.debug(
            "Reading %d %s element(s) from %s at %d.%d (%d/%d)",
            elements,
            data_type.name,
            area.name,
            fragment_start,
            fragment_bit,
            offset + elements,
            amount,
        )

        response = await connection.exchange(pdu.encode_request(pdu_reference))
        result.extend(pdu.decode_response(response, pdu_reference.value))

        offset += elements

    return bytes(result)


__all__ = ["max_elements_per_fragment", "read_area", "write_area"]
