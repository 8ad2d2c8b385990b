"""TFTP upload client.

The package keeps the wire codec, the transport and the transfer state
machine apart:
- ``packet`` encodes and decodes the RFC 1350 packet kinds
- ``net`` wraps the UDP socket with deadline-bounded receives
- ``sender`` runs the write-request handshake and the lock-step block loop
"""

from .config import TransferConfig
from .errors import (
    PeerError,
    RequestError,
    SendTimeout,
    SetupError,
    SourceError,
    StreamContractError,
    TransferError,
    TransportError,
)
from .sender import Metrics, TransferSession

__all__ = [
    "Metrics",
    "PeerError",
    "RequestError",
    "SendTimeout",
    "SetupError",
    "SourceError",
    "StreamContractError",
    "TransferConfig",
    "TransferError",
    "TransferSession",
    "TransportError",
]
