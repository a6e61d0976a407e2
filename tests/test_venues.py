"""
Tests for venue price sources.
"""

import json
import random

import httpx
import pytest

from config import parse_config
from venues import (
    RouterPriceSource,
    SimulatedPriceSource,
    create_price_sources,
    token_pair,
)
from venues.base import PriceSourceError, TokenPair, Venue, is_valid_price
from venues.router import decode_uint_array, encode_get_amounts_out

WETH = "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619"
USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
ROUTER = "0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff"


def encode_amounts(amounts: list[int]) -> str:
    words = [32, len(amounts), *amounts]
    return "0x" + "".join(format(w, "064x") for w in words)


def make_router(handler) -> RouterPriceSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RouterPriceSource(
        Venue("QuickSwap"),
        rpc_url="https://rpc.example",
        router_address=ROUTER,
        tokens={"WETH": (WETH, 18), "USDC": (USDC, 6)},
        client=client,
    )


class TestAbiEncoding:
    def test_encode_get_amounts_out(self):
        """Test encoding the getAmountsOut call"""
        data = encode_get_amounts_out(10 ** 18, [WETH, USDC])
        body = data[2 + 8:]

        assert data.startswith("0xd06ca61f")
        assert len(body) == 64 * 5
        words = [int(body[i:i + 64], 16) for i in range(0, len(body), 64)]
        assert words == [10 ** 18, 64, 2, int(WETH, 16), int(USDC, 16)]

    def test_decode_uint_array(self):
        """Test decoding a uint256 array"""
        assert decode_uint_array(encode_amounts([10 ** 18, 3_501_230_000])) == [10 ** 18, 3_501_230_000]

    @pytest.mark.parametrize("result", ["0x", "0x1234", "0x" + "00" * 32])
    def test_decode_malformed(self, result):
        """Test decoding a malformed result"""
        with pytest.raises(PriceSourceError):
            decode_uint_array(result)

    def test_decode_truncated(self):
        """Test decoding a truncated result"""
        raw = "0x" + format(32, "064x") + format(3, "064x") + format(1, "064x")

        with pytest.raises(PriceSourceError, match="Truncated"):
            decode_uint_array(raw)


class TestRouterPriceSource:
    def test_fetch_price(self, pair):
        """Test fetching a router price"""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": encode_amounts([10 ** 18, 3_501_230_000])})

        source = make_router(handler)
        quote = source.fetch_price(pair)
        source.close()

        assert quote.price == pytest.approx(3501.23)
        assert quote.venue.name == "QuickSwap"
        assert quote.pair == pair
        call = requests[0]
        assert call["method"] == "eth_call"
        assert call["params"][0]["to"] == ROUTER
        assert call["params"][0]["data"] == encode_get_amounts_out(10 ** 18, [WETH, USDC])
        assert call["params"][1] == "latest"

    def test_rpc_error(self, pair):
        """Test a JSON-RPC error response"""
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}})

        with pytest.raises(PriceSourceError, match="execution reverted"):
            make_router(handler).fetch_price(pair)

    def test_http_error(self, pair):
        """Test an HTTP error status"""
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(PriceSourceError, match="RPC request failed"):
            make_router(handler).fetch_price(pair)

    def test_connection_error(self, pair):
        """Test an unreachable RPC endpoint"""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PriceSourceError):
            make_router(handler).fetch_price(pair)

    def test_non_json_response(self, pair):
        """Test a non-JSON RPC response"""
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(PriceSourceError, match="Invalid RPC response"):
            make_router(handler).fetch_price(pair)

    def test_unknown_token(self):
        """Test a token unknown to the router"""
        source = make_router(lambda request: httpx.Response(200, json={}))

        with pytest.raises(PriceSourceError, match="Unknown token"):
            source.fetch_price(TokenPair("WBTC", "USDC"))


class TestSimulatedPriceSource:
    def test_prices_stay_near_base(self, pair):
        """Test prices stay near base"""
        source = SimulatedPriceSource(Venue("Sim"), base_price=3500.0, jitter=10.0, rng=random.Random(7))

        prices = [source.fetch_price(pair).price for _ in range(50)]

        assert all(is_valid_price(p) for p in prices)
        assert all(3400.0 < p < 3600.0 for p in prices)

    def test_seeded_sources_are_reproducible(self, pair):
        """Test seeded sources are reproducible"""
        a = SimulatedPriceSource(Venue("A"), rng=random.Random(1))
        b = SimulatedPriceSource(Venue("B"), rng=random.Random(1))

        assert [a.fetch_price(pair).price for _ in range(5)] == [b.fetch_price(pair).price for _ in range(5)]

    def test_offset_shifts_price(self, pair):
        """Test price offset shifts the price"""
        flat = SimulatedPriceSource(Venue("A"), jitter=0.0, rng=random.Random(3))
        high = SimulatedPriceSource(Venue("B"), jitter=0.0, price_offset_percent=1.0, rng=random.Random(3))

        assert high.fetch_price(pair).price == pytest.approx(flat.fetch_price(pair).price * 1.01)


class TestFactory:
    def test_sources_follow_venue_kind(self, sample_config):
        """Test sources follow the venue kind"""
        config = parse_config(sample_config)

        sources = create_price_sources(config)

        assert isinstance(sources[0], RouterPriceSource)
        assert isinstance(sources[1], SimulatedPriceSource)
        assert sources[0].rpc_url == "https://polygon-rpc.example"
        assert sources[0].tokens["USDC"] == ("0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6)
        assert sources[0].venue.params["router_address"] == ROUTER
        for source in sources:
            source.close()

    def test_token_pair(self, sample_config):
        """Test building the token pair from config"""
        assert token_pair(parse_config(sample_config)) == TokenPair("WETH", "USDC")


@pytest.mark.parametrize("price,valid", [
    (1.0, True),
    (1, True),
    (0.0, False),
    (-3.0, False),
    (float("inf"), False),
    (float("nan"), False),
    (True, False),
    ("3500", False),
    (None, False),
])
def test_is_valid_price(price, valid):
    """Test price validity checks"""
    assert is_valid_price(price) is valid


def test_pair_str():
    """Test token pair display"""
    assert str(TokenPair("WETH", "USDC")) == "WETH/USDC"
