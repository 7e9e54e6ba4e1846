"""Transport layer."""

from .async_base import AsyncBaseTransport
from .async_smart import AsyncSmartTransport
from .async_tcp import AsyncTcpTransport

__all__ = [
    "AsyncBaseTransport",
    "AsyncSmartTransport",
    "AsyncTcpTransport",
]
