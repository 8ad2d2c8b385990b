from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Union

from .constants import BLOCK_SIZE, MAX_BLOCK_NUMBER, MODES, Opcode

_OPCODE = struct.Struct("!H")
_OPCODE_BLOCK = struct.Struct("!HH")


class PacketError(ValueError):
    """Raised when a datagram is not a well-formed packet."""


def _check_u16(value: int, what: str) -> None:
    if not 0 <= value <= MAX_BLOCK_NUMBER:
        raise PacketError(f"{what} out of range: {value}")


def _split_strings(body: bytes, count: int) -> list[str]:
    parts = body.split(b"\x00")
    # a well-formed body ends with a NUL, so split() leaves one empty tail
    if len(parts) != count + 1 or parts[-1] != b"":
        raise PacketError("malformed null-terminated fields")
    try:
        return [p.decode("ascii") for p in parts[:-1]]
    except UnicodeDecodeError as exc:
        raise PacketError("non-ascii string field") from exc


@dataclass(frozen=True, slots=True)
class Request:
    kind: Opcode
    filename: str
    mode: str

    def to_bytes(self) -> bytes:
        if self.kind not in (Opcode.RRQ, Opcode.WRQ):
            raise PacketError(f"not a request opcode: {self.kind}")
        if self.mode.lower() not in MODES:
            raise PacketError(f"unsupported mode: {self.mode}")
        if "\x00" in self.filename:
            raise PacketError("filename contains a NUL byte")
        try:
            filename = self.filename.encode("ascii")
        except UnicodeEncodeError as exc:
            raise PacketError(f"filename is not ascii: {self.filename!r}") from exc
        return _OPCODE.pack(int(self.kind)) + filename + b"\x00" + self.mode.lower().encode("ascii") + b"\x00"

    @staticmethod
    def write(filename: str, mode: str) -> "Request":
        return Request(kind=Opcode.WRQ, filename=filename, mode=mode)


@dataclass(frozen=True, slots=True)
class Data:
    block: int
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        _check_u16(self.block, "block number")
        if len(self.payload) > BLOCK_SIZE:
            raise PacketError(f"payload too large: {len(self.payload)}")
        return _OPCODE_BLOCK.pack(int(Opcode.DATA), self.block) + self.payload


@dataclass(frozen=True, slots=True)
class Ack:
    block: int

    def to_bytes(self) -> bytes:
        _check_u16(self.block, "block number")
        return _OPCODE_BLOCK.pack(int(Opcode.ACK), self.block)


@dataclass(frozen=True, slots=True)
class Error:
    code: int
    message: str = ""

    def to_bytes(self) -> bytes:
        _check_u16(self.code, "error code")
        return (
            _OPCODE_BLOCK.pack(int(Opcode.ERROR), self.code)
            + self.message.replace("\x00", " ").encode("ascii", errors="replace")
            + b"\x00"
        )


Packet = Union[Request, Data, Ack, Error]


def parse_packet(raw: bytes) -> Packet:
    if len(raw) < _OPCODE.size:
        raise PacketError("datagram too small to hold an opcode")

    (opcode,) = _OPCODE.unpack_from(raw)
    body = raw[_OPCODE.size :]

    if opcode in (Opcode.RRQ, Opcode.WRQ):
        filename, mode = _split_strings(body, 2)
        if mode.lower() not in MODES:
            raise PacketError(f"unsupported mode: {mode}")
        return Request(kind=Opcode(opcode), filename=filename, mode=mode.lower())

    if opcode in (Opcode.DATA, Opcode.ACK, Opcode.ERROR):
        if len(raw) < _OPCODE_BLOCK.size:
            raise PacketError("datagram too small to hold a block number")
        _, number = _OPCODE_BLOCK.unpack_from(raw)
        rest = raw[_OPCODE_BLOCK.size :]

        if opcode == Opcode.DATA:
            if len(rest) > BLOCK_SIZE:
                raise PacketError(f"payload too large: {len(rest)}")
            return Data(block=number, payload=rest)
        if opcode == Opcode.ACK:
            if rest:
                raise PacketError("trailing bytes after ack")
            return Ack(block=number)
        if not rest.endswith(b"\x00"):
            raise PacketError("unterminated error message")
        message = rest[:-1].decode("ascii", errors="replace")
        return Error(code=number, message=message)

    raise PacketError(f"unknown opcode: {opcode}")
