from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
from typing import BinaryIO

from .config import TransferConfig
from .constants import (
    BLOCK_SIZE,
    DEFAULT_MODE,
    DEFAULT_PORT,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_S,
    MODES,
)
from .errors import TransferError
from .net import Impairment, UdpEndpoint, resolve
from .sender import Metrics, TransferSession
from .source import DataSource, FileSource, Pipe


def _pump(stream: BinaryIO, pipe: Pipe) -> None:
    try:
        for chunk in iter(lambda: stream.read(BLOCK_SIZE * 8), b""):
            pipe.write(chunk)
    except BrokenPipeError:
        return
    except OSError as exc:
        pipe.close_writer(exc)
        return
    pipe.close_writer()


def _upload(args: argparse.Namespace, source: DataSource, remote_name: str) -> Metrics:
    impair = Impairment(args.loss_rate, args.delay_ms)
    with UdpEndpoint.sending(bind_port=args.bind_port, impairment=impair) as udp:
        session = TransferSession(
            udp,
            resolve(args.host, args.port),
            source,
            remote_name,
            mode=args.mode,
            config=args.config,
        )
        return session.run()


def cmd_put(args: argparse.Namespace) -> int:
    if args.file == "-":
        remote_name = args.remote_name or "stdin"
        pipe = Pipe()
        producer = threading.Thread(target=_pump, args=(sys.stdin.buffer, pipe), daemon=True)
        producer.start()
        metrics = _upload(args, pipe, remote_name)
    else:
        remote_name = args.remote_name or os.path.basename(args.file)
        with open(args.file, "rb") as f:
            metrics = _upload(args, FileSource(f), remote_name)

    payload = {
        "role": "sender",
        "file": remote_name,
        "blocks": metrics.blocks_sent,
        "bytes": metrics.bytes_sent,
        "seconds": metrics.duration_s,
        "mbps": metrics.throughput_mbps,
        "timeouts": metrics.timeouts,
        "retransmits": metrics.retransmits,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tftpsend", description="Upload files to a TFTP server.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    put = sub.add_parser("put", help="send a file (or stdin) with a write request")
    put.add_argument("--host", required=True)
    put.add_argument("--port", type=int, default=DEFAULT_PORT)
    put.add_argument("--file", required=True, help="path to upload, or - for stdin")
    put.add_argument("--remote-name", default=None, help="name to request on the server")
    put.add_argument("--mode", choices=list(MODES), default=DEFAULT_MODE)
    put.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S, help="seconds per attempt")
    put.add_argument("--retries", type=int, default=DEFAULT_RETRY_COUNT, help="attempts per block")
    put.add_argument("--bind-port", type=int, default=0)
    put.add_argument("--loss-rate", type=float, default=0.0, help="simulate datagram loss")
    put.add_argument("--delay-ms", type=int, default=0, help="simulate per-datagram delay")
    put.add_argument("--json", action="store_true")
    put.set_defaults(func=cmd_put)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        args.config = TransferConfig(
            timeout=args.timeout,
            retry_count=args.retries,
            logger=logging.getLogger("tftpsend.transfer"),
        )
    except ValueError as exc:
        parser.error(str(exc))
    try:
        return int(args.func(args))
    except (TransferError, OSError) as exc:
        print(f"tftpsend: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
