"""Simulated venue for running without an RPC endpoint"""
import logging
import random
import threading
from typing import Optional

from .base import TokenPair, Venue, VenuePriceSource

logger = logging.getLogger(__name__)


class SimulatedPriceSource(VenuePriceSource):
    """
    Random-walk price around a base price.

    Args:
        venue: Venue being simulated
        base_price: Starting price of 1 base token in quote units
        jitter: Uniform noise added per fetch, in quote units (0 to jitter)
        price_offset_percent: Constant offset so venues drift apart,
                              e.g. 0.05 means 0.05% above the shared walk
        rng: Random generator, injectable for deterministic tests
    """

    def __init__(
        self,
        venue: Venue,
        base_price: float = 3500.0,
        jitter: float = 10.0,
        price_offset_percent: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(venue)
        self.base_price = base_price
        self.jitter = jitter
        self.price_offset = price_offset_percent / 100
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._current = base_price

    def fetch_price(self, pair: TokenPair):
        with self._lock:
            # Small random movement (-0.05% to +0.05%)
            self._current *= 1 + self._rng.uniform(-0.0005, 0.0005)
            price = self._current * (1 + self.price_offset) + self._rng.random() * self.jitter
        return self._quote(pair, price)
