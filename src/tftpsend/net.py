from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass
from typing import Tuple

from .constants import MAX_DATAGRAM_SIZE
from .errors import SetupError

log = logging.getLogger(__name__)

Address = Tuple[str, int]


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


def resolve(host: str, port: int) -> Address:
    """Resolve ``host`` to the IPv4 address datagrams will be sent to."""
    infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM)
    addr = infos[0][4]
    return addr[0], addr[1]


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def sending(
        cls,
        bind_host: str = "0.0.0.0",
        bind_port: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if bind_port:
            sock.bind((bind_host, bind_port))
        return cls(sock, impairment)

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            log.debug("dropped outbound %d bytes to %s", len(data), addr)
            return
        self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def recv_until(self, deadline: float, bufsize: int = MAX_DATAGRAM_SIZE) -> Tuple[bytes, Address]:
        """Receive one datagram before the monotonic ``deadline``.

        Raises ``TimeoutError`` once the deadline has passed and
        :class:`SetupError` if the socket refuses the timeout.
        """
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("receive deadline expired")
            try:
                self.sock.settimeout(remaining)
            except (OSError, ValueError) as exc:
                raise SetupError(f"could not set UDP timeout: {exc}") from exc
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                log.debug("dropped inbound %d bytes from %s", len(data), addr)
                continue
            self.impairment.sleep_if_needed()
            return data, (addr[0], addr[1])

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "UdpEndpoint":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
