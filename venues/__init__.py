"""Venue price sources"""
from typing import Optional

import httpx

from .base import (
    FailureKind,
    FetchFailure,
    PriceQuote,
    PriceResult,
    PriceSourceError,
    TokenPair,
    Venue,
    VenuePriceSource,
    is_valid_price,
)
from .router import RouterPriceSource
from .simulator import SimulatedPriceSource
from config import BotConfig, VenueConfig

__all__ = [
    "FailureKind",
    "FetchFailure",
    "PriceQuote",
    "PriceResult",
    "PriceSourceError",
    "TokenPair",
    "Venue",
    "VenuePriceSource",
    "is_valid_price",
    "RouterPriceSource",
    "SimulatedPriceSource",
    "create_price_source",
    "create_price_sources",
    "token_pair",
]


def token_pair(config: BotConfig) -> TokenPair:
    return TokenPair(config.tokens.base.symbol, config.tokens.quote.symbol)


def create_price_source(
    venue_config: VenueConfig,
    config: BotConfig,
    client: Optional[httpx.Client] = None,
) -> VenuePriceSource:
    """Build the source for one venue, chosen by its configured kind"""
    params = venue_config.model_dump(exclude={"name", "kind"}, exclude_none=True)
    venue = Venue(name=venue_config.name, kind=venue_config.kind, params=params)

    if venue_config.kind == "simulated":
        return SimulatedPriceSource(
            venue,
            base_price=venue_config.base_price,
            jitter=venue_config.jitter,
            price_offset_percent=venue_config.price_offset_percent,
        )

    base, quote = config.tokens.base, config.tokens.quote
    return RouterPriceSource(
        venue,
        rpc_url=venue_config.rpc_url or config.rpc_url,
        router_address=venue_config.router_address,
        tokens={
            base.symbol: (base.address, base.decimals),
            quote.symbol: (quote.address, quote.decimals),
        },
        client=client,
    )


def create_price_sources(config: BotConfig, client: Optional[httpx.Client] = None) -> list[VenuePriceSource]:
    return [create_price_source(v, config, client=client) for v in config.venues]
