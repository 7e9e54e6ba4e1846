"""S7 Protocol Data Unit (PDU)."""

from .base import BaseClientPDU
from .header import PduReference, S7Header
from .items import DataItem, ReadWriteParams, RequestItem
from .read_write import ReadAreaPDU, WriteAreaPDU
from .setup_communication import NegotiatedParameters, SetupCommunicationPDU

__all__ = [
    "BaseClientPDU",
    "DataItem",
    "NegotiatedParameters",
    "PduReference",
    "ReadAreaPDU",
    "ReadWriteParams",
    "RequestItem",
    "S7Header",
    "SetupCommunicationPDU",
    "WriteAreaPDU",
]
