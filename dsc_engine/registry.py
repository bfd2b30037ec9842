"""
registry.py - Supported collateral

CollateralRegistry is built once from parallel sequences of collateral tokens
and price feeds and never changes afterwards. Each token's symbol is its
asset id. Iteration follows registration order, which keeps every
collateral sum deterministic.
"""

from __future__ import annotations
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Iterator, Mapping, Optional, Sequence, Tuple

from .core import (
    CollateralToken, PriceFeed, StalenessPolicy, SupportedCollateral,
    LengthMismatch, UnsupportedAsset,
)
from .oracle import PriceOracleAdapter


class CollateralRegistry:
    """
    Immutable mapping from collateral asset id to its token, feed and oracle adapter.

    Raises:
        LengthMismatch: If tokens and feeds differ in length
        ValueError: If an asset id is registered twice
    """

    def __init__(
        self,
        tokens: Sequence[CollateralToken],
        feeds: Sequence[PriceFeed],
        staleness: Optional[StalenessPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if len(tokens) != len(feeds):
            raise LengthMismatch(len(tokens), len(feeds))

        collateral = {}
        oracles = {}
        for token, feed in zip(tokens, feeds):
            asset_id = token.symbol
            if asset_id in collateral:
                raise ValueError(f"collateral asset {asset_id!r} registered twice")
            adapter = PriceOracleAdapter(feed, staleness, clock, asset_id=asset_id)
            collateral[asset_id] = SupportedCollateral(
                asset_id=asset_id,
                token=token,
                feed=feed,
                additional_precision=adapter.additional_precision,
            )
            oracles[asset_id] = adapter

        self._collateral: Mapping[str, SupportedCollateral] = MappingProxyType(collateral)
        self._oracles: Mapping[str, PriceOracleAdapter] = MappingProxyType(oracles)
        self._asset_ids: Tuple[str, ...] = tuple(collateral)

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        """Registered asset ids in registration order."""
        return self._asset_ids

    def is_supported(self, asset_id: str) -> bool:
        return asset_id in self._collateral

    def get(self, asset_id: str) -> SupportedCollateral:
        try:
            return self._collateral[asset_id]
        except KeyError:
            raise UnsupportedAsset(asset_id) from None

    def oracle_for(self, asset_id: str) -> PriceOracleAdapter:
        try:
            return self._oracles[asset_id]
        except KeyError:
            raise UnsupportedAsset(asset_id) from None

    def feed_for(self, asset_id: str) -> PriceFeed:
        return self.get(asset_id).feed

    def token_for(self, asset_id: str) -> CollateralToken:
        return self.get(asset_id).token

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._collateral

    def __iter__(self) -> Iterator[SupportedCollateral]:
        return iter(self._collateral.values())

    def __len__(self) -> int:
        return len(self._asset_ids)

    def __repr__(self):
        return f"CollateralRegistry({', '.join(self._asset_ids)})"
