"""Example of an asynchronous ISO-on-TCP S7 client using ts7."""

import asyncio
import logging
import struct

from ts7 import Area, DataType, create_async_tcp_client
from ts7.exceptions import DataItemError, ISOError, S7ConnectionError, S7ProtocolError


async def example_tcp_client() -> None:
    """Asynchronous S7 client example."""
    # Replace with your PLC's IP address, rack and slot
    host = "192.168.0.1"
    rack = 0
    slot = 1

    # The create_async_tcp_client function returns an instance of AsyncS7Client
    client = create_async_tcp_client(host, rack=rack, slot=slot)

    try:
        await client.connect()
        print("Negotiated PDU length: ", client.pdu_length)

        # Read 4 bytes from DB1 starting at byte 0, as a REAL
        (value,) = struct.unpack(">f", await client.db_read(db_number=1, start=0, size=4))
        print("DB1.DBD0 as REAL: ", value)

        # Write 1000 bytes to DB2: split in several requests by the client
        await client.db_write(db_number=2, start=0, data=bytes(1000))
        print("Cleared DB2.DBB0-999")

        # Read 10 words from the merker area
        words = await client.read_area(Area.MERKERS, 0, 100, DataType.WORD, 10)
        print("MW100-MW118: ", struct.unpack(">10H", words))

        # Set output Q0.3
        await client.write_bit(Area.OUTPUTS, start=0, bit=3, value=True)
        print("Q0.3 is now", await client.read_bit(Area.OUTPUTS, start=0, bit=3))

    except DataItemError as e:
        print(f"The PLC refused the item: {e.error.description}")
    except S7ProtocolError as e:
        print(f"The PLC responded with error class {e.error_class} and code {e.error_code}")
    except ISOError as e:
        print(f"Invalid ISO-on-TCP traffic: {e}")
    except S7ConnectionError as e:
        print(f"A connection error occurred: {e}")
    finally:
        await client.disconnect()

    # Alternatively, you can use the client as an async context manager
    # which automatically handles connection and disconnection
    async with create_async_tcp_client(host, rack=rack, slot=slot) as client2:
        print("Input bytes IB0-IB3: ", (await client2.read_inputs(start=0, size=4)).hex(" "))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(example_tcp_client())
