"""JSON-RPC price source for Uniswap-V2-style router contracts"""
import itertools
import logging
from typing import Optional

import httpx

from .base import PriceSourceError, TokenPair, Venue, VenuePriceSource
from config import RPC_TIMEOUT_S

logger = logging.getLogger(__name__)

# keccak256("getAmountsOut(uint256,address[])")[:4]
GET_AMOUNTS_OUT_SELECTOR = "d06ca61f"


def _word(value: int) -> str:
    return format(value, "064x")


def encode_get_amounts_out(amount_in: int, path: list[str]) -> str:
    """ABI-encode a getAmountsOut(uint256, address[]) call"""
    if amount_in < 0:
        raise ValueError("amount_in must be non-negative")
    data = GET_AMOUNTS_OUT_SELECTOR
    data += _word(amount_in)
    # Offset of the dynamic address[] argument: two head words
    data += _word(64)
    data += _word(len(path))
    for address in path:
        data += _word(int(address, 16))
    return "0x" + data


def decode_uint_array(result: str) -> list[int]:
    """Decode an ABI-encoded uint256[] return value"""
    raw = result[2:] if result.startswith("0x") else result
    if len(raw) < 128 or len(raw) % 64:
        raise PriceSourceError(f"Malformed eth_call result ({len(raw) // 2} bytes)")
    words = [int(raw[i:i + 64], 16) for i in range(0, len(raw), 64)]
    offset = words[0] // 32
    if offset >= len(words):
        raise PriceSourceError("Array offset out of range")
    length = words[offset]
    values = words[offset + 1:offset + 1 + length]
    if len(values) != length:
        raise PriceSourceError("Truncated uint256[] result")
    return values


class RouterPriceSource(VenuePriceSource):
    """
    Prices 1 base token by asking the router how much quote token it would
    return for it (getAmountsOut with path [base, quote]).

    tokens maps a TokenPair identifier to (address, decimals).
    """

    def __init__(
        self,
        venue: Venue,
        rpc_url: str,
        router_address: str,
        tokens: dict[str, tuple[str, int]],
        client: Optional[httpx.Client] = None,
        timeout: float = RPC_TIMEOUT_S,
    ):
        super().__init__(venue)
        self.rpc_url = rpc_url
        self.router_address = router_address
        self.tokens = tokens
        self._client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)

    def _token(self, symbol: str) -> tuple[str, int]:
        try:
            return self.tokens[symbol]
        except KeyError:
            raise PriceSourceError(f"Unknown token {symbol!r} on {self.name}") from None

    def _eth_call(self, data: str) -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": self.router_address, "data": data}, "latest"],
        }
        try:
            response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise PriceSourceError(f"RPC request failed: {e}") from e
        except ValueError as e:
            raise PriceSourceError(f"Invalid RPC response: {e}") from e

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise PriceSourceError(f"RPC error: {message}")
        result = body.get("result")
        if not isinstance(result, str):
            raise PriceSourceError("RPC response has no result")
        return result

    def fetch_price(self, pair: TokenPair):
        base_address, base_decimals = self._token(pair.base)
        quote_address, quote_decimals = self._token(pair.quote)

        amount_in = 10 ** base_decimals
        data = encode_get_amounts_out(amount_in, [base_address, quote_address])
        amounts = decode_uint_array(self._eth_call(data))
        if len(amounts) != 2:
            raise PriceSourceError(f"Expected 2 amounts, got {len(amounts)}")

        price = amounts[-1] / 10 ** quote_decimals
        logger.debug(f"[{self.name}] 1 {pair.base} = {price:.6f} {pair.quote}")
        return self._quote(pair, price)

    def close(self):
        self._client.close()
