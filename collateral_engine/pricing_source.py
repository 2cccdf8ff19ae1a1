"""
pricing_source.py - Raw price feeds consumed by the oracle adapters

Provides the external price-source side of the oracle boundary.

Classes:
- PriceFeed: Protocol defining the feed interface (decimals + latest_answer)
- StaticPriceFeed: A single settable answer, the usual test double
- TimeSeriesPriceFeed: Answer history read at the clock's current time
- LogicalClock: Monotonic clock shared by feeds and adapters

Feeds report answers in their own native decimals. Normalization to 18
decimals and staleness checks happen in oracle.PriceOracleAdapter, never here.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable
from bisect import bisect_right

from .core import RoundData


Clock = Callable[[], datetime]


class LogicalClock:
    """
    Monotonic logical clock.

    Time can only move forward, never backward. Instances are callable so they
    can be passed anywhere a ``Clock`` is expected.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    def __call__(self) -> datetime:
        return self._current_time

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by delta and return the new time."""
        self.advance_time(self._current_time + delta)
        return self._current_time

    def __repr__(self):
        return f"LogicalClock({self._current_time.isoformat()})"


@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for raw price feeds.

    A feed reports the latest USD answer for one asset in ``decimals`` native
    decimals, along with the time of that answer. The answer is signed: feeds
    can and do report zero or negative values, which adapters must reject.
    """
    decimals: int

    def latest_answer(self) -> RoundData:
        """Return the most recent answer and its update time."""
        ...


class StaticPriceFeed:
    """
    Feed with a single settable answer.

    The answer keeps its timestamp until it is updated, so advancing a shared
    clock past the staleness window makes it stale.
    """

    def __init__(self, answer: int, decimals: int = 8, updated_at: Optional[datetime] = None,
                 clock: Optional[Clock] = None):
        """
        Initialize with a starting answer.

        Args:
            answer: Price in native decimals (e.g. 2000_00000000 for $2000 at 8 decimals)
            decimals: Native decimal count of the feed
            updated_at: Timestamp of the answer (defaults to the clock's time)
            clock: Used to timestamp updates when no explicit time is given
        """
        self.decimals = decimals
        self._clock = clock
        self.answer = answer
        self.updated_at = updated_at or self._now()
        self.reads = 0

    def _now(self) -> datetime:
        return self._clock() if self._clock is not None else datetime.now()

    def latest_answer(self) -> RoundData:
        self.reads += 1
        return RoundData(answer=self.answer, updated_at=self.updated_at)

    def update_answer(self, answer: int, updated_at: Optional[datetime] = None) -> None:
        """Set a new answer, timestamped now unless updated_at is given."""
        self.answer = answer
        self.updated_at = updated_at or self._now()

    def __repr__(self):
        return f"StaticPriceFeed({self.answer}, decimals={self.decimals})"


class TimeSeriesPriceFeed:
    """
    Feed backed by a history of (timestamp, answer) observations.

    latest_answer() returns the most recent observation at or before the
    clock's current time, with that observation's own timestamp as updated_at.
    """

    def __init__(
        self,
        clock: Clock,
        decimals: int = 8,
        history: Optional[List[Tuple[datetime, int]]] = None,
    ):
        """
        Initialize feed.

        Args:
            clock: Source of the current time
            decimals: Native decimal count of the feed
            history: Optional list of (timestamp, answer) tuples, any order

        Examples:
            feed = TimeSeriesPriceFeed(clock, 8, [
                (t0, 2000_00000000),
                (t1, 1800_00000000),
            ])
        """
        self.decimals = decimals
        self._clock = clock
        self.history: List[Tuple[datetime, int]] = sorted(history or [], key=lambda x: x[0])

    def add_answer(self, timestamp: datetime, answer: int) -> None:
        """Record an observation, keeping the history in time order."""
        self.history.append((timestamp, answer))
        self.history.sort(key=lambda x: x[0])

    def latest_answer(self) -> RoundData:
        """
        Return the observation in force at the clock's current time.

        Raises:
            LookupError: If no observation exists at or before the current time
        """
        now = self._clock()
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, now)
        if idx == 0:
            raise LookupError(f"No price observation at or before {now}")
        ts, answer = self.history[idx - 1]
        return RoundData(answer=answer, updated_at=ts)

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, decimals={self.decimals})"
