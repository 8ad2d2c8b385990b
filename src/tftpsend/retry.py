from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(slots=True)
class RetryBudget:
    """Attempt counter for one logical step (the handshake, or one block).

    Iterating yields attempt numbers starting at 0 and stops once ``attempts``
    sends have been made.
    """

    attempts: int
    used: int = 0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"a retry budget needs at least one attempt, got {self.attempts}")

    @property
    def exhausted(self) -> bool:
        return self.used >= self.attempts

    def __iter__(self) -> Iterator[int]:
        while not self.exhausted:
            attempt = self.used
            self.used += 1
            yield attempt
