from __future__ import annotations

import pytest

from tftpsend.constants import Opcode
from tftpsend.packet import Ack, Data, Error, PacketError, Request, parse_packet


def test_write_request_wire_format():
    raw = Request.write("notes.txt", "octet").to_bytes()
    assert raw == b"\x00\x02notes.txt\x00octet\x00"


def test_parse_request_lowercases_mode():
    p = parse_packet(b"\x00\x01a.bin\x00OCTET\x00")
    assert p == Request(kind=Opcode.RRQ, filename="a.bin", mode="octet")


def test_data_and_ack_wire_format():
    assert Data(258, b"hi").to_bytes() == b"\x00\x03\x01\x02hi"
    assert Ack(65535).to_bytes() == b"\x00\x04\xff\xff"
    assert parse_packet(b"\x00\x03\x00\x01") == Data(1, b"")


def test_error_wire_format():
    raw = Error(1, "File not found").to_bytes()
    assert raw == b"\x00\x05\x00\x01File not found\x00"
    assert parse_packet(raw) == Error(1, "File not found")


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"\x00",
        b"\x00\x06blksize\x00512\x00",
        b"\x00\x04\x00",
        b"\x00\x04\x00\x01extra",
        b"\x00\x05\x00\x01no terminator",
        b"\x00\x02name-only\x00",
        b"\x00\x02a\x00binary\x00",
        b"\x00\x03\x00\x01" + b"x" * 513,
    ],
)
def test_malformed_datagrams(raw):
    with pytest.raises(PacketError):
        parse_packet(raw)


def test_encode_rejects_out_of_range_fields():
    with pytest.raises(PacketError):
        Data(65536, b"").to_bytes()
    with pytest.raises(PacketError):
        Data(1, b"x" * 513).to_bytes()
    with pytest.raises(PacketError):
        Request.write("f", "binary").to_bytes()


def test_error_message_nul_does_not_split_the_field():
    raw = Error(1, "a\x00b").to_bytes()
    assert raw == b"\x00\x05\x00\x01a b\x00"


@pytest.mark.parametrize("filename", ["résumé.txt", "a\x00b"])
def test_request_rejects_unencodable_filenames(filename):
    with pytest.raises(PacketError):
        Request.write(filename, "octet").to_bytes()
