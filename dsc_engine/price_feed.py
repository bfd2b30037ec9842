"""
price_feed.py - Reference USD price feeds

Provides price sources that satisfy the PriceFeed protocol (round-based,
answers in the feed's native precision).

Classes:
- MockPriceFeed: answer set explicitly, one new round per update
- TimeSeriesPriceFeed: historical answers, point-in-time lookup against a clock

Feeds report raw values only. Validation (non-positive answers, staleness)
belongs to PriceOracleAdapter.
"""

from bisect import bisect_right
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .core import RoundData


Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1)


class MockPriceFeed:
    """
    Feed whose answer is set explicitly.

    Every update_answer() opens a new round. Timestamps default to the clock
    (if given) or the epoch.

    Example:
        feed = MockPriceFeed(decimals=8, initial_answer=2000 * 10**8)
        feed.update_answer(1800 * 10**8)
    """

    def __init__(
        self,
        decimals: int,
        initial_answer: int,
        clock: Optional[Clock] = None,
        description: str = "",
    ):
        self.decimals = decimals
        self.description = description
        self._clock = clock
        self._rounds: Dict[int, RoundData] = {}
        self.latest_round = 0
        self.update_answer(initial_answer)

    def _now(self) -> datetime:
        return self._clock() if self._clock else EPOCH

    def update_answer(self, answer: int, timestamp: Optional[datetime] = None) -> RoundData:
        """Publish a new answer as the next round."""
        ts = timestamp or self._now()
        return self.update_round_data(self.latest_round + 1, answer, ts, ts)

    def update_round_data(
        self,
        round_id: int,
        answer: int,
        updated_at: Optional[datetime],
        started_at: Optional[datetime],
        answered_in_round: Optional[int] = None,
    ) -> RoundData:
        """Write a round verbatim; lets tests publish incomplete or lagging rounds."""
        data = RoundData(
            round_id=round_id,
            answer=answer,
            started_at=started_at,
            updated_at=updated_at,
            answered_in_round=round_id if answered_in_round is None else answered_in_round,
        )
        self._rounds[round_id] = data
        self.latest_round = round_id
        return data

    @property
    def latest_answer(self) -> int:
        return self._rounds[self.latest_round].answer

    def get_round_data(self, round_id: int) -> RoundData:
        if round_id not in self._rounds:
            raise LookupError(f"No data for round {round_id}")
        return self._rounds[round_id]

    def latest_round_data(self) -> RoundData:
        return self._rounds[self.latest_round]

    def __repr__(self):
        return f"MockPriceFeed(answer={self.latest_answer}, decimals={self.decimals}, round={self.latest_round})"


class TimeSeriesPriceFeed:
    """
    Feed with time-varying answers.

    Stores a price history and reports the most recent answer at or before
    the clock's current time. Round ids are 1-based positions in the sorted
    history.

    Supports two initialization patterns:
    - Empty initialization for incremental addition via add_price()
    - Batch initialization with a complete price path for simulations
    """

    def __init__(
        self,
        clock: Clock,
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = 8,
    ):
        """
        Args:
            clock: Returns the current time (e.g. lambda: ledger.current_time)
            price_path: Optional list of (timestamp, answer) tuples
            decimals: Native precision of the answers

        Example:
            feed = TimeSeriesPriceFeed(lambda: chain.current_time, [
                (t0, 2000 * 10**8), (t1, 1900 * 10**8),
            ])
        """
        self.decimals = decimals
        self._clock = clock
        self.price_history: List[Tuple[datetime, int]] = sorted(price_path or [], key=lambda x: x[0])

    def add_price(self, timestamp: datetime, answer: int) -> None:
        """Add an observation, keeping the history sorted by timestamp."""
        self.price_history.append((timestamp, answer))
        self.price_history.sort(key=lambda x: x[0])

    def get_price(self, timestamp: datetime) -> Optional[int]:
        """
        Answer at or before timestamp, or None if the history starts later.

        Uses binary search for O(log n) lookup.
        """
        idx = self._index_at(timestamp)
        if idx == 0:
            return None
        return self.price_history[idx - 1][1]

    def latest_round_data(self) -> RoundData:
        """
        Round in effect at the clock's current time.

        Raises:
            LookupError: If no observation exists at or before now
        """
        now = self._clock()
        idx = self._index_at(now)
        if idx == 0:
            raise LookupError(f"No price at or before {now}")
        ts, answer = self.price_history[idx - 1]
        return RoundData(
            round_id=idx,
            answer=answer,
            started_at=ts,
            updated_at=ts,
            answered_in_round=idx,
        )

    def get_all_timestamps(self) -> List[datetime]:
        return [ts for ts, _ in self.price_history]

    def _index_at(self, timestamp: datetime) -> int:
        timestamps = [ts for ts, _ in self.price_history]
        return bisect_right(timestamps, timestamp)

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.price_history)} observations, decimals={self.decimals})"
