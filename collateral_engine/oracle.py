"""
oracle.py - Price oracle adapter

Wraps one raw PriceFeed per collateral asset and turns its answer into a
validated 18-decimal USD Price.

Rules enforced on every read:
    answer <= 0                         -> InvalidPrice
    now - updated_at > staleness_window -> StalePrice
    value = answer * 10 ** (18 - feed.decimals)

There are no retries and no caching: a bad read aborts the calling operation,
and every call reads the feed again.
"""

from __future__ import annotations
from datetime import datetime, timedelta
import logging
from typing import Optional

from .core import (
    AssetId, Price, PRICE_DECIMALS, STALENESS_WINDOW,
    ConfigMismatch, InvalidPrice, StalePrice,
)
from .pricing_source import Clock, PriceFeed


logger = logging.getLogger(__name__)


class PriceOracleAdapter:
    """
    Staleness-checked, decimal-normalizing view of a single price feed.

    The feed's decimal count is validated once, at construction, and the
    scaling factor is fixed from then on.
    """

    def __init__(
        self,
        feed: PriceFeed,
        staleness_window: timedelta = STALENESS_WINDOW,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            feed: Raw price source
            staleness_window: Maximum tolerated age of an answer
            clock: Source of "now" (defaults to datetime.now)

        Raises:
            ConfigMismatch: If the feed's decimals are not an int in [0, 18]
            ValueError: If staleness_window is not positive
        """
        decimals = getattr(feed, "decimals", None)
        if isinstance(decimals, bool) or not isinstance(decimals, int):
            raise ConfigMismatch(f"Feed decimals must be int, got {decimals!r}")
        if not 0 <= decimals <= PRICE_DECIMALS:
            raise ConfigMismatch(
                f"Feed decimals must be between 0 and {PRICE_DECIMALS}, got {decimals}"
            )
        if staleness_window <= timedelta(0):
            raise ValueError(f"staleness_window must be positive, got {staleness_window}")

        self.feed = feed
        self.feed_decimals = decimals
        self.scale = 10 ** (PRICE_DECIMALS - decimals)
        self.staleness_window = staleness_window
        self._clock: Clock = clock or datetime.now

    def price(self, asset: AssetId) -> Price:
        """
        Read, validate and normalize the feed's latest answer.

        Raises:
            InvalidPrice: If the answer is zero, negative, or unavailable
            StalePrice: If the answer is older than the staleness window
        """
        try:
            round_data = self.feed.latest_answer()
        except LookupError as e:
            raise InvalidPrice(f"No price available for {asset}: {e}") from e

        if round_data.answer <= 0:
            raise InvalidPrice(f"Invalid price for {asset}: {round_data.answer}")

        now = self._clock()
        age = now - round_data.updated_at
        if age > self.staleness_window:
            raise StalePrice(
                f"Stale price for {asset}: updated {round_data.updated_at}, "
                f"age {age} exceeds {self.staleness_window}"
            )

        value = round_data.answer * self.scale
        logger.debug("price %s = %d (raw %d, age %s)", asset, value, round_data.answer, age)
        return Price(asset=asset, value=value, updated_at=round_data.updated_at)

    def __repr__(self):
        return (
            f"PriceOracleAdapter({self.feed!r}, scale=1e{PRICE_DECIMALS - self.feed_decimals}, "
            f"window={self.staleness_window})"
        )
