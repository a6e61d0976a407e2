"""Base venue price source and the price data it produces"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Ordered (base, quote) pair of venue-agnostic token identifiers"""
    base: str
    quote: str

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"


@dataclass(frozen=True)
class Venue:
    """A named price venue. Connection parameters are opaque to the core."""
    name: str
    kind: str = "router"
    params: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PriceQuote:
    """Price of 1 base token in quote token units, from one venue at one instant"""
    venue: Venue
    pair: TokenPair
    price: float
    timestamp: datetime

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "venue": self.venue.name,
            "pair": str(self.pair),
            "ok": True,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
        }


class FailureKind(Enum):
    TIMEOUT = "timeout"
    VENUE_ERROR = "venue_error"
    INVALID_PRICE = "invalid_price"


@dataclass(frozen=True)
class FetchFailure:
    """A fetch that produced no usable quote"""
    venue: Venue
    pair: TokenPair
    kind: FailureKind
    reason: str = ""

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {
            "venue": self.venue.name,
            "pair": str(self.pair),
            "ok": False,
            "error": self.kind.value,
            "reason": self.reason,
        }


PriceResult = Union[PriceQuote, FetchFailure]


class PriceSourceError(Exception):
    """Raised by a price source when a venue cannot produce a quote"""


def is_valid_price(price) -> bool:
    """Finite and strictly positive"""
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return False
    return math.isfinite(price) and price > 0


class VenuePriceSource(ABC):
    """
    Fetches the current price for a pair on one venue.

    Implementations must be safe to call from several threads at once and
    should bound their own I/O; the sampler applies its own deadline regardless.
    """

    def __init__(self, venue: Venue):
        self.venue = venue

    @property
    def name(self) -> str:
        return self.venue.name

    @abstractmethod
    def fetch_price(self, pair: TokenPair) -> PriceQuote:
        """Return a quote, or raise PriceSourceError (or any exception) on failure"""
        pass

    def close(self):
        """Release connections held by the source"""
        pass

    def _quote(self, pair: TokenPair, price: float) -> PriceQuote:
        return PriceQuote(
            venue=self.venue,
            pair=pair,
            price=price,
            timestamp=datetime.now(),
        )
