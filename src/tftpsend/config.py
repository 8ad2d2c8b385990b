from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import DEFAULT_RETRY_COUNT, DEFAULT_TIMEOUT_S


@dataclass(frozen=True, slots=True)
class TransferConfig:
    """Knobs shared by every stage of one upload.

    ``timeout`` is the per-attempt wait in seconds, ``retry_count`` the total
    number of attempts per stage, ``logger`` the sink for trace lines.
    """

    timeout: float = DEFAULT_TIMEOUT_S
    retry_count: int = DEFAULT_RETRY_COUNT
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("tftpsend.transfer"))

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.retry_count < 1:
            raise ValueError(f"retry_count must be at least 1, got {self.retry_count}")
