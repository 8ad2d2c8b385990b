"""Failure modes of an upload.

Every fatal condition of a transfer is a :class:`TransferError`. Timeouts and
malformed datagrams never surface here; they are absorbed by the retry loop.
"""
from __future__ import annotations


class TransferError(Exception):
    """Base class for anything that aborts a transfer.

    ``stage`` names the step that failed (``"starting transmission"``,
    ``"sending block 3"``, ``"sending last block"``, ``"reading source"``)
    once the session has seen the error.
    """

    stage: str | None = None


class RequestError(TransferError):
    """The write request could not be encoded (bad filename or mode)."""


class SetupError(TransferError):
    """The receive deadline could not be armed on the socket."""


class TransportError(TransferError):
    """The socket failed with something other than a timeout."""


class SendTimeout(TransferError):
    """A stage used up its retry budget without a conclusive reply."""

    def __init__(self, what: str, attempts: int):
        super().__init__(f"send timeout: {what} ({attempts} attempts)")
        self.what = what
        self.attempts = attempts


class PeerError(TransferError):
    """The peer answered with an ERROR packet."""

    def __init__(self, code: int, message: str):
        super().__init__(f"transmission error {code}: {message}")
        self.code = code
        self.message = message


class SourceError(TransferError):
    """The data source failed while being read."""

    def __init__(self, cause: BaseException):
        super().__init__(f"data source error: {cause}")
        self.cause = cause


class StreamContractError(TransferError):
    """The data source reported end-of-stream together with data."""

    def __init__(self, leftover: int):
        super().__init__(f"end of stream delivered with {leftover} bytes of data")
        self.leftover = leftover
