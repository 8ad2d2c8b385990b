from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import TransferConfig
from .constants import BLOCK_SIZE, DEFAULT_MODE, MAX_BLOCK_NUMBER, SOURCE_ERROR_CODE
from .errors import (
    PeerError,
    RequestError,
    SendTimeout,
    SourceError,
    StreamContractError,
    TransferError,
    TransportError,
)
from .net import Address, UdpEndpoint
from .packet import Ack, Data, Error, Packet, PacketError, Request, parse_packet
from .retry import RetryBudget
from .source import DataSource


@dataclass(slots=True)
class Metrics:
    blocks_sent: int = 0
    bytes_sent: int = 0
    packets_sent: int = 0
    timeouts: int = 0
    retransmits: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_sent * 8 / 1_000_000) / self.duration_s


def next_block(block: int) -> int:
    return (block + 1) % (MAX_BLOCK_NUMBER + 1)


@dataclass(slots=True)
class TransferSession:
    """One write transfer: WRQ handshake, then lock-step DATA/ACK until EOF.

    The session owns ``udp`` for its lifetime. ``peer`` stays ``None`` until
    the server answers the request with ACK #0 and is pinned to that address
    afterwards; datagrams from anywhere else are ignored.
    """

    udp: UdpEndpoint
    dest: Address
    source: DataSource
    filename: str
    mode: str = DEFAULT_MODE
    config: TransferConfig = field(default_factory=TransferConfig)
    peer: Optional[Address] = None
    metrics: Metrics = field(default_factory=Metrics)
    stage: str = field(default="idle", init=False)

    @property
    def log(self) -> logging.Logger:
        return self.config.logger

    def run(self) -> Metrics:
        try:
            self.stage = "starting transmission"
            self.send_request()
            self._send_stream()
        except TransferError as exc:
            self.metrics.end_ts = time.monotonic()
            exc.stage = self.stage
            self.log.error("error %s of %s: %s", self.stage, self.filename, exc)
            self.source.close(exc)
            raise
        self.metrics.end_ts = time.monotonic()
        self.source.close()
        self.log.info(
            "done; %d blocks, %d bytes, %d retransmits",
            self.metrics.blocks_sent,
            self.metrics.bytes_sent,
            self.metrics.retransmits,
        )
        return self.metrics

    def send_request(self) -> Address:
        try:
            raw = Request.write(self.filename, self.mode).to_bytes()
        except PacketError as exc:
            raise RequestError(f"invalid write request: {exc}") from exc

        def accept(packet: Packet, addr: Address) -> bool:
            if isinstance(packet, Ack) and packet.block == 0:
                self.log.info("got ACK #0")
                return True
            return False

        self.peer = self._exchange(
            raw,
            self.dest,
            "WRQ",
            f"sent WRQ (filename={self.filename}, mode={self.mode})",
            accept,
        )
        self.log.debug("peer pinned to %s:%d", *self.peer)
        return self.peer

    def send_block(self, block: int, payload: bytes) -> None:
        if self.peer is None:
            raise RuntimeError("cannot send data before the request is acknowledged")
        raw = Data(block, payload).to_bytes()

        def accept(packet: Packet, addr: Address) -> bool:
            if not isinstance(packet, Ack):
                return False
            self.log.info("got ACK #%d", packet.block)
            return packet.block == block

        self._exchange(raw, self.peer, f"DATA #{block}", f"sent DATA #{block} ({len(payload)} bytes)", accept)
        self.metrics.blocks_sent += 1
        self.metrics.bytes_sent += len(payload)

    def _send_stream(self) -> None:
        block = 1
        last_size: Optional[int] = None
        while True:
            self.stage = "reading source"
            result = self.source.read(BLOCK_SIZE)
            if result.error is not None:
                self._notify_source_error(result.error)
                raise SourceError(result.error) from result.error
            if result.eof:
                if result.data:
                    raise StreamContractError(len(result.data))
                # a full (or missing) last block leaves the end ambiguous
                if last_size is None or last_size == BLOCK_SIZE:
                    self.stage = "sending last block"
                    self.send_block(block, b"")
                return
            if not result.data:
                continue
            self.stage = f"sending block {block}"
            self.send_block(block, result.data)
            block = next_block(block)
            last_size = len(result.data)

    def _exchange(
        self,
        raw: bytes,
        dest: Address,
        what: str,
        trace: str,
        accept: Callable[[Packet, Address], bool],
    ) -> Address:
        budget = RetryBudget(self.config.retry_count)
        for attempt in budget:
            if attempt:
                self.metrics.retransmits += 1
            self._send(raw, dest)
            self.log.info(trace)
            deadline = time.monotonic() + self.config.timeout

            while True:
                try:
                    datagram, addr = self.udp.recv_until(deadline)
                except TimeoutError:
                    self.metrics.timeouts += 1
                    self.log.debug("timeout waiting for reply to %s; attempt=%d", what, attempt + 1)
                    break
                except OSError as exc:
                    raise TransportError(f"error reading UDP packet: {exc}") from exc

                if self.peer is not None and addr != self.peer:
                    self.log.debug("ignoring datagram from unexpected address %s:%d", *addr)
                    continue
                try:
                    packet = parse_packet(datagram)
                except PacketError as exc:
                    self.log.debug("ignoring malformed datagram from %s:%d: %s", addr[0], addr[1], exc)
                    continue

                if isinstance(packet, Error):
                    raise PeerError(packet.code, packet.message)
                if accept(packet, addr):
                    return addr

        raise SendTimeout(what, budget.attempts)

    def _send(self, raw: bytes, dest: Address) -> None:
        try:
            self.udp.sendto(raw, dest)
        except OSError as exc:
            raise TransportError(f"error sending UDP packet: {exc}") from exc
        self.metrics.packets_sent += 1

    def _notify_source_error(self, error: BaseException) -> None:
        message = str(error) or type(error).__name__
        dest = self.peer or self.dest
        try:
            self.udp.sendto(Error(int(SOURCE_ERROR_CODE), message).to_bytes(), dest)
        except OSError as exc:
            self.log.warning("could not notify peer of source error: %s", exc)
            return
        self.metrics.packets_sent += 1
        self.log.info("sent ERROR (code=%d): %s", int(SOURCE_ERROR_CODE), message)
