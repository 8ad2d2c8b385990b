from __future__ import annotations

import socket
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import pytest

from tftpsend.constants import BLOCK_SIZE
from tftpsend.packet import Ack, Data, Packet, Request, parse_packet

SERVER = ("127.0.0.1", 69)
TID = ("127.0.0.1", 40000)

# queue this in a reply list to make the next receive time out
TIMEOUT = object()

Responder = Callable[[Packet, tuple], Optional[Iterable]]


def well_behaved(packet: Packet, addr: tuple):
    if isinstance(packet, Request):
        return [(Ack(0), TID)]
    if isinstance(packet, Data):
        return [(Ack(packet.block), TID)]
    return []


class ScriptedEndpoint:
    """In-memory stand-in for UdpEndpoint.

    Each sent datagram is decoded, recorded and handed to ``respond``, whose
    replies are queued for the following receives. An empty queue behaves
    like an expired deadline.
    """

    def __init__(self, respond: Responder = well_behaved):
        self.respond = respond
        self.sent: list[tuple[Packet, tuple]] = []
        self.inbox: deque = deque()

    def sendto(self, data: bytes, addr: tuple) -> None:
        packet = parse_packet(data)
        self.sent.append((packet, addr))
        self.inbox.extend(self.respond(packet, addr) or [])

    def recv_until(self, deadline: float, bufsize: int = 65535):
        if not self.inbox:
            raise TimeoutError("no reply scripted")
        item = self.inbox.popleft()
        if item is TIMEOUT:
            raise TimeoutError("scripted timeout")
        if isinstance(item, BaseException):
            raise item
        raw, addr = item
        if not isinstance(raw, bytes):
            raw = raw.to_bytes()
        return raw, addr

    def close(self) -> None:
        pass

    def sent_of(self, kind: type) -> list:
        return [p for p, _ in self.sent if isinstance(p, kind)]


@dataclass
class LoopbackServer:
    """Minimal TFTP write-request receiver running in a thread."""

    address: tuple = ("127.0.0.1", 0)
    filename: Optional[str] = None
    mode: Optional[str] = None
    received: bytearray = field(default_factory=bytearray)
    blocks: list = field(default_factory=list)
    done: threading.Event = field(default_factory=threading.Event)

    def start(self) -> "LoopbackServer":
        self._listen = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._listen.bind(("127.0.0.1", 0))
        self._listen.settimeout(5.0)
        self.address = self._listen.getsockname()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def _serve(self) -> None:
        try:
            raw, client = self._listen.recvfrom(65535)
        except OSError:
            return
        request = parse_packet(raw)
        assert isinstance(request, Request)
        self.filename = request.filename
        self.mode = request.mode

        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as tid:
            tid.bind(("127.0.0.1", 0))
            tid.settimeout(5.0)
            tid.sendto(Ack(0).to_bytes(), client)
            expected = 1
            while True:
                try:
                    raw, addr = tid.recvfrom(65535)
                except OSError:
                    return
                packet = parse_packet(raw)
                if not isinstance(packet, Data):
                    continue
                if packet.block == expected:
                    self.received += packet.payload
                    self.blocks.append(len(packet.payload))
                    expected += 1
                tid.sendto(Ack(packet.block).to_bytes(), addr)
                if packet.block == expected - 1 and len(packet.payload) < BLOCK_SIZE:
                    break
        self.done.set()

    def stop(self) -> None:
        self._listen.close()
        self._thread.join(timeout=5.0)


@pytest.fixture
def endpoint() -> ScriptedEndpoint:
    return ScriptedEndpoint()


@pytest.fixture
def loopback_server():
    server = LoopbackServer().start()
    yield server
    server.stop()
