from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol


SECONDS_PER_DAY = 86_400


def day_number(epoch_seconds: float) -> int:
    return int(epoch_seconds) // SECONDS_PER_DAY


class Clock(Protocol):
    def now(self) -> float: ...


class SystemClock:
    def now(self) -> float:
        return time.time()


@dataclass
class FixedClock:
    """A clock pinned to a given epoch second; tests move it with ``set_day``."""

    epoch_seconds: float = 0.0

    @classmethod
    def at_day(cls, day: int, *, second_of_day: int = 3_600) -> FixedClock:
        return cls(epoch_seconds=float(int(day) * SECONDS_PER_DAY + int(second_of_day)))

    def now(self) -> float:
        return float(self.epoch_seconds)

    def set_day(self, day: int, *, second_of_day: int = 3_600) -> None:
        self.epoch_seconds = float(int(day) * SECONDS_PER_DAY + int(second_of_day))


def current_day(clock: Clock) -> int:
    return day_number(clock.now())


def clock_datetime(clock: Clock) -> datetime:
    return datetime.fromtimestamp(clock.now(), tz=UTC)
