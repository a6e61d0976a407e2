"""
Pytest configuration and fixtures for spread monitor tests.
"""

import threading
import time
from datetime import datetime

import pytest

from engine import TradeParameters
from venues.base import PriceQuote, PriceSourceError, TokenPair, Venue, VenuePriceSource


class StubPriceSource(VenuePriceSource):
    """Price source returning a fixed price, optionally after a delay or with an error"""

    def __init__(self, name: str, price=3500.0, delay: float = 0.0, error: Exception = None):
        super().__init__(Venue(name=name, kind="stub"))
        self.price = price
        self.delay = delay
        self.error = error
        self.calls = 0
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def fetch_price(self, pair: TokenPair) -> PriceQuote:
        with self._lock:
            self.calls += 1
            self.threads.add(threading.current_thread().name)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return PriceQuote(self.venue, pair, self.price, datetime.now())


@pytest.fixture
def pair() -> TokenPair:
    return TokenPair("WETH", "USDC")


@pytest.fixture
def params() -> TradeParameters:
    """Trade 1 WETH, $2 fee, $5 threshold"""
    return TradeParameters(amount=1.0, fee_estimate_usd=2.0, min_profit_threshold_usd=5.0)


@pytest.fixture
def stub_source():
    """Factory for StubPriceSource"""
    return StubPriceSource


@pytest.fixture
def quote(pair):
    """Factory for a successful quote on a named venue"""
    def _quote(name: str, price: float) -> PriceQuote:
        return PriceQuote(Venue(name=name), pair, price, datetime.now())
    return _quote


@pytest.fixture
def venue_error():
    return PriceSourceError("execution reverted")


@pytest.fixture
def sample_config() -> dict:
    """Raw config.json content with one router venue and one simulated venue"""
    return {
        "rpc_url": "https://polygon-rpc.example",
        "venues": [
            {"name": "QuickSwap", "kind": "router", "router_address": "0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff"},
            {"name": "Sim", "kind": "simulated", "base_price": 3500.0},
        ],
        "tokens": {
            "base": {"symbol": "WETH", "address": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", "decimals": 18},
            "quote": {"symbol": "USDC", "address": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", "decimals": 6},
        },
        "trade_amount": 1.0,
        "fee_estimate_usd": 2.0,
        "min_profit_threshold_usd": 5.0,
        "poll_interval_s": 15.0,
        "fetch_timeout_s": 5.0,
    }
