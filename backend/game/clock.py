"""
Clock and chain-height sources.
"""
import itertools
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChainTime:
    """A point in time: monotonic height plus unix timestamp (seconds)."""
    height: int
    timestamp: int


class Clock(ABC):
    @abstractmethod
    def now(self) -> ChainTime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock with a counter as height.

    The counter lives in this process only. Pass the highest height already
    persisted as start_height so heights keep increasing across restarts.
    """

    def __init__(self, start_height: int = 0):
        self._heights = itertools.count(start_height + 1)

    def now(self) -> ChainTime:
        return ChainTime(height=next(self._heights), timestamp=int(time.time()))


class ManualClock(Clock):
    """Clock driven explicitly, for tests and simulations."""

    def __init__(self, timestamp: int = 1_700_000_000, height: int = 1):
        self.timestamp = timestamp
        self.height = height

    def now(self) -> ChainTime:
        return ChainTime(height=self.height, timestamp=self.timestamp)

    def advance(self, seconds: int = 0, blocks: int = 1):
        self.timestamp += seconds
        self.height += blocks
