from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock in whole UNIX seconds, UTC."""

    def now(self) -> int:
        return int(datetime.now(timezone.utc).timestamp())


class FixedClock:
    def __init__(self, timestamp: int) -> None:
        self.timestamp = timestamp

    def now(self) -> int:
        return self.timestamp

    def advance(self, seconds: int) -> int:
        self.timestamp += seconds
        return self.timestamp
