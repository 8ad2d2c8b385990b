from __future__ import annotations

import enum

BLOCK_SIZE = 512
MAX_DATAGRAM_SIZE = 65535
MAX_BLOCK_NUMBER = 0xFFFF

DEFAULT_PORT = 69
DEFAULT_MODE = "octet"
DEFAULT_TIMEOUT_S = 5.0
DEFAULT_RETRY_COUNT = 5

MODES = ("netascii", "octet", "mail")


class Opcode(enum.IntEnum):
    RRQ = 1
    WRQ = 2
    DATA = 3
    ACK = 4
    ERROR = 5


class ErrorCode(enum.IntEnum):
    NOT_DEFINED = 0
    FILE_NOT_FOUND = 1
    ACCESS_VIOLATION = 2
    DISK_FULL = 3
    ILLEGAL_OPERATION = 4
    UNKNOWN_TRANSFER_ID = 5
    FILE_EXISTS = 6
    NO_SUCH_USER = 7


# code sent to the peer when the local data source fails mid-transfer
SOURCE_ERROR_CODE = ErrorCode.FILE_NOT_FOUND
