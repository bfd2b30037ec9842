"""
oracle.py - Price oracle adapter

PriceOracleAdapter wraps one PriceFeed and turns its rounds into validated
PriceSamples:

- the answer must be strictly positive
- a feed that raises is reported as OracleError (the original error chained)
- with a StalenessPolicy enabled, rounds that were never updated, that
  lag their own round id, or that are older than max_age raise StalePrice

Normalization to 18 fractional digits multiplies by the additional precision
derived from the feed's decimals (1e10 for 8-digit feeds).
"""

from __future__ import annotations
from datetime import datetime
from typing import Callable, Optional

from .core import (
    PriceFeed, PriceSample, RoundData, StalenessPolicy, Wad,
    OracleError, StalePrice,
)
from .fixed_point import additional_precision_for, mul


class PriceOracleAdapter:
    """
    Validating reader for one price feed.

    Args:
        feed: Underlying price source
        policy: Staleness policy (default: age check disabled)
        clock: Returns the current time; required when the policy is enabled
        asset_id: Asset the feed prices, used in error messages
    """

    def __init__(
        self,
        feed: PriceFeed,
        policy: Optional[StalenessPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        asset_id: str = "",
    ):
        self.feed = feed
        self.policy = policy or StalenessPolicy()
        self.asset_id = asset_id
        self._clock = clock
        if self.policy.enabled and clock is None:
            raise ValueError("a clock is required when staleness checks are enabled")
        self.precision = feed.decimals
        self.additional_precision = additional_precision_for(feed.decimals)

    def latest_round(self) -> RoundData:
        """
        Read and validate the feed's latest round.

        Raises:
            OracleError: If the feed raises or reports a non-positive answer
            StalePrice: If the staleness policy rejects the round
        """
        try:
            data = self.feed.latest_round_data()
        except Exception as e:
            raise OracleError(f"price feed for {self.asset_id or 'asset'} failed: {e}") from e

        if data.answer <= 0:
            raise OracleError(
                f"price feed for {self.asset_id or 'asset'} returned non-positive answer {data.answer}"
            )

        if self.policy.enabled:
            self._check_fresh(data)
        return data

    def _check_fresh(self, data: RoundData) -> None:
        if data.updated_at is None:
            raise StalePrice(f"round {data.round_id} for {self.asset_id} was never updated")
        if data.answered_in_round < data.round_id:
            raise StalePrice(
                f"round {data.round_id} for {self.asset_id} answered in earlier round {data.answered_in_round}"
            )
        age = self._clock() - data.updated_at
        if age > self.policy.max_age:
            raise StalePrice(
                f"price for {self.asset_id} is {age} old, max {self.policy.max_age}"
            )

    def price(self) -> PriceSample:
        """Validated sample in the feed's native precision."""
        data = self.latest_round()
        return PriceSample(
            price=data.answer,
            precision=self.precision,
            timestamp=data.updated_at,
            round_id=data.round_id,
        )

    def normalized_price(self) -> Wad:
        """Validated price with 18 fractional digits."""
        return mul(self.price().price, self.additional_precision)

    def __repr__(self):
        return f"PriceOracleAdapter({self.asset_id}, decimals={self.precision}, policy={self.policy})"
