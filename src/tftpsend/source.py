"""Byte producers feeding an upload.

A data source hands out the stream in chunks of at most ``max_bytes``. A
chunk shorter than ``max_bytes`` may only be followed by end-of-stream, since
the receiver takes a short block to mean the transfer is over. End-of-stream
and failures are reported as values, never mixed with data.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol


@dataclass(frozen=True, slots=True)
class ReadResult:
    data: bytes = b""
    eof: bool = False
    error: Optional[BaseException] = None

    @staticmethod
    def chunk(data: bytes) -> "ReadResult":
        return ReadResult(data=data)

    @staticmethod
    def end() -> "ReadResult":
        return ReadResult(eof=True)

    @staticmethod
    def failed(error: BaseException) -> "ReadResult":
        return ReadResult(error=error)


class DataSource(Protocol):
    def read(self, max_bytes: int) -> ReadResult:
        """Block until data, end-of-stream or an error is available."""

    def close(self, error: Optional[BaseException] = None) -> None:
        """Stop consuming; ``error`` tells the producer why, if anything failed."""


class BytesSource:
    """In-memory source over a bytes object."""

    def __init__(self, data: bytes):
        self._data = memoryview(bytes(data))
        self._pos = 0
        self.closed = False
        self.close_error: Optional[BaseException] = None

    def read(self, max_bytes: int) -> ReadResult:
        if self._pos >= len(self._data):
            return ReadResult.end()
        chunk = bytes(self._data[self._pos : self._pos + max_bytes])
        self._pos += len(chunk)
        return ReadResult.chunk(chunk)

    def close(self, error: Optional[BaseException] = None) -> None:
        self.closed = True
        self.close_error = error


class FileSource:
    """Reads from a binary file object owned by the caller."""

    def __init__(self, f: BinaryIO):
        self.f = f

    def read(self, max_bytes: int) -> ReadResult:
        try:
            chunk = self.f.read(max_bytes)
        except OSError as exc:
            return ReadResult.failed(exc)
        if chunk is None:
            # non-blocking stream with nothing ready yet
            return ReadResult.chunk(b"")
        if chunk == b"":
            return ReadResult.end()
        return ReadResult.chunk(chunk)

    def close(self, error: Optional[BaseException] = None) -> None:
        pass


class Pipe:
    """Bounded in-process byte channel between one producer and one consumer.

    The producer calls :meth:`write` and finally :meth:`close_writer`; the
    upload consumes through :meth:`read` and calls :meth:`close` when it stops.
    Reads only come back short at the end of the stream.
    """

    def __init__(self, capacity: int = 64 * 1024):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._buf = bytearray()
        self._cond = threading.Condition()
        self._writer_closed = False
        self._writer_error: Optional[BaseException] = None
        self._reader_closed = False
        self._reader_error: Optional[BaseException] = None

    def write(self, data: bytes) -> int:
        view = memoryview(bytes(data))
        with self._cond:
            if self._writer_closed:
                raise ValueError("write to a closed pipe")
            while view:
                while len(self._buf) >= self.capacity and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed:
                    raise BrokenPipeError(f"reader closed: {self._reader_error or 'no error'}")
                room = self.capacity - len(self._buf)
                self._buf += view[:room]
                view = view[room:]
                self._cond.notify_all()
        return len(data)

    def close_writer(self, error: Optional[BaseException] = None) -> None:
        with self._cond:
            self._writer_closed = True
            self._writer_error = error
            self._cond.notify_all()

    def read(self, max_bytes: int) -> ReadResult:
        chunk = bytearray()
        with self._cond:
            # drain repeatedly so a buffer smaller than max_bytes never yields a short chunk
            while len(chunk) < max_bytes:
                if self._buf:
                    take = max_bytes - len(chunk)
                    chunk += self._buf[:take]
                    del self._buf[:take]
                    self._cond.notify_all()
                elif self._writer_closed:
                    break
                else:
                    self._cond.wait()
            if chunk:
                return ReadResult.chunk(bytes(chunk))
            if self._writer_error is not None:
                return ReadResult.failed(self._writer_error)
            return ReadResult.end()

    def close(self, error: Optional[BaseException] = None) -> None:
        with self._cond:
            self._reader_closed = True
            self._reader_error = error
            self._buf.clear()
            self._cond.notify_all()
