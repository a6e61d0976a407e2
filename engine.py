"""Opportunity evaluation for one tick of price results"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from venues.base import PriceQuote, PriceResult, TokenPair, Venue

logger = logging.getLogger(__name__)

INSUFFICIENT_QUOTES = "insufficient quotes"

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Decimal from the shortest string form of a float, so 3505.1 stays 3505.1"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_usd(value) -> Decimal:
    """Round a currency amount to the cent, half up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TradeParameters:
    """Hypothetical trade size and costs, fixed for a run"""
    amount: float
    fee_estimate_usd: float
    min_profit_threshold_usd: float

    def __post_init__(self):
        if not self.amount > 0:
            raise ValueError(f"Trade amount must be positive, got {self.amount}")
        if not self.fee_estimate_usd >= 0:
            raise ValueError(f"Fee estimate must be non-negative, got {self.fee_estimate_usd}")


@dataclass(frozen=True)
class Opportunity:
    buy_venue: Venue
    sell_venue: Venue
    buy_price: float
    sell_price: float
    gross_profit: Decimal
    net_profit: Decimal

    @property
    def price_difference(self) -> float:
        return self.sell_price - self.buy_price

    def to_dict(self) -> dict:
        return {
            "type": "opportunity",
            "buy_venue": self.buy_venue.name,
            "sell_venue": self.sell_venue.name,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "gross_profit": float(self.gross_profit),
            "net_profit": float(self.net_profit),
        }


@dataclass(frozen=True)
class NoOpportunity:
    net_profit: Decimal

    def to_dict(self) -> dict:
        return {
            "type": "no_opportunity",
            "net_profit": float(self.net_profit),
        }


@dataclass(frozen=True)
class Indeterminate:
    reason: str

    def to_dict(self) -> dict:
        return {
            "type": "indeterminate",
            "reason": self.reason,
        }


Decision = Union[Opportunity, NoOpportunity, Indeterminate]


def evaluate(results: Iterable[PriceResult], pair: TokenPair, params: TradeParameters) -> Decision:
    """
    Decide whether the spread between the best venues is worth trading.

    Buy on the cheapest venue, sell on the most expensive one:

        gross = (sell_price - buy_price) * amount
        net   = gross - fee

    Profits are rounded to the cent (half up) before comparing, and the
    threshold is exclusive: net == threshold is not an opportunity.
    """
    quotes = [
        r for r in results
        if isinstance(r, PriceQuote) and r.pair == pair
    ]
    if len(quotes) < 2:
        return Indeterminate(INSUFFICIENT_QUOTES)

    # First occurrence wins ties, so the pick is stable for a given result order
    sell = max(quotes, key=lambda q: q.price)
    buy = min(quotes, key=lambda q: q.price)

    fee = to_decimal(params.fee_estimate_usd)
    if sell.price == buy.price:
        return NoOpportunity(net_profit=round_usd(-fee))

    gross = (to_decimal(sell.price) - to_decimal(buy.price)) * to_decimal(params.amount)
    net_profit = round_usd(gross - fee)

    if net_profit > round_usd(params.min_profit_threshold_usd):
        return Opportunity(
            buy_venue=buy.venue,
            sell_venue=sell.venue,
            buy_price=buy.price,
            sell_price=sell.price,
            gross_profit=round_usd(gross),
            net_profit=net_profit,
        )
    return NoOpportunity(net_profit=net_profit)
