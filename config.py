"""Configuration for the cross-venue spread monitor"""
import json
import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

# ============================================================
# DEFAULTS
# ============================================================
CONFIG_PATH = "config.json"

POLL_INTERVAL_S = 15.0
FETCH_TIMEOUT_S = 5.0

# Grace period for an in-flight tick on shutdown
SHUTDOWN_GRACE_S = 10.0

# Simulated gas cost (e.g. $2 worth of MATIC)
DEFAULT_FEE_ESTIMATE_USD = 2.0

# HTTP timeout for JSON-RPC calls, kept below the tick deadline
RPC_TIMEOUT_S = 4.0

# Web server settings
WEB_HOST = "0.0.0.0"
WEB_PORT = 8000

# Number of ticks kept for the dashboard
DASHBOARD_HISTORY = 20


class ConfigurationError(ValueError):
    """Invalid or missing configuration. Fatal at startup."""


class TokenConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    address: Optional[str] = None
    decimals: int = Field(18, ge=0, le=36)

    @field_validator('address')
    @classmethod
    def address_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError('Token address must be a 0x-prefixed 20 byte hex string')
        int(v[2:], 16)
        return v


class TokensConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base: TokenConfig
    quote: TokenConfig

    @model_validator(mode='before')
    @classmethod
    def legacy_addresses(cls, data):
        # {"weth": "0x..", "usdc": "0x.."} names the WETH/USDC pair by address only
        if isinstance(data, dict) and "base" not in data and {"weth", "usdc"} <= data.keys():
            return {
                "base": {"symbol": "WETH", "address": data["weth"], "decimals": 18},
                "quote": {"symbol": "USDC", "address": data["usdc"], "decimals": 6},
            }
        return data

    @model_validator(mode='after')
    def distinct_tokens(self) -> 'TokensConfig':
        if self.base.symbol == self.quote.symbol:
            raise ValueError('Base and quote tokens must differ')
        return self


class VenueConfig(BaseModel):
    """One venue. Fields beyond name/kind are connection parameters for its source."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    name: str = Field(..., min_length=1)
    kind: Literal["router", "simulated"] = "router"
    router_address: Optional[str] = None
    rpc_url: Optional[str] = None
    base_price: float = Field(3500.0, gt=0)
    jitter: float = Field(10.0, ge=0)
    price_offset_percent: float = 0.0


class GasConfig(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    units: int = Field(..., gt=0)
    price_gwei: float = Field(..., ge=0)
    native_price_usd: float = Field(..., ge=0)

    def cost_usd(self) -> float:
        return (self.units * self.price_gwei) / 1e9 * self.native_price_usd


class BotConfig(BaseModel):
    """
    Validated, immutable settings for one run.

    "venues" and "trade_amount" are the documented keys; "dexes",
    "fixed_trade_amount_weth" and a "tokens" block of {"weth", "usdc"}
    addresses are accepted for older config files.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)

    rpc_url: Optional[str] = None
    venues: list[VenueConfig] = Field(..., alias="dexes")
    tokens: TokensConfig
    trade_amount: float = Field(..., gt=0, alias="fixed_trade_amount_weth")
    fee_estimate_usd: Optional[float] = Field(None, ge=0)
    gas: Optional[GasConfig] = None
    min_profit_threshold_usd: float
    poll_interval_s: float = Field(POLL_INTERVAL_S, gt=0)
    fetch_timeout_s: float = Field(FETCH_TIMEOUT_S, gt=0)

    @model_validator(mode='after')
    def check_venues(self) -> 'BotConfig':
        if len(self.venues) < 2:
            raise ValueError('At least two venues are required')
        names = [v.name for v in self.venues]
        if len(set(names)) != len(names):
            raise ValueError('Venue names must be unique')
        for venue in self.venues:
            if venue.kind != "router":
                continue
            if not venue.router_address:
                raise ValueError(f'Venue {venue.name!r} needs a router_address')
            if not (venue.rpc_url or self.rpc_url):
                raise ValueError(f'Venue {venue.name!r} needs an rpc_url')
            if not (self.tokens.base.address and self.tokens.quote.address):
                raise ValueError('Router venues need token addresses')
        return self

    @property
    def fee_usd(self) -> float:
        """Fee estimate, derived from the gas block when no fixed fee is set"""
        if self.fee_estimate_usd is not None:
            return self.fee_estimate_usd
        if self.gas is not None:
            return self.gas.cost_usd()
        return DEFAULT_FEE_ESTIMATE_USD


def load_config(path: str | Path = CONFIG_PATH) -> BotConfig:
    """Load and validate the JSON config file, raising ConfigurationError on any problem"""
    path = Path(path)
    try:
        raw = json.loads(path.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    return parse_config(raw)


def parse_config(raw: dict) -> BotConfig:
    try:
        config = BotConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
    logger.debug(f"Loaded config with {len(config.venues)} venues")
    return config
