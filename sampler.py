"""Concurrent price sampling across venues"""
import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence

from venues.base import (
    FailureKind,
    FetchFailure,
    PriceQuote,
    PriceResult,
    TokenPair,
    VenuePriceSource,
    is_valid_price,
)

logger = logging.getLogger(__name__)


class Sampler:
    """
    Fetches one price per venue for a tick.

    Every fetch runs on its own pool thread and all of them are joined under a
    single deadline. A fetch still running at the deadline is recorded as a
    timeout and its result is ignored; the thread is left to finish on its own.
    A source whose previous fetch is still running is not fetched again until
    that fetch returns, so at most one thread per source is ever busy.
    """

    def __init__(
        self,
        sources: Sequence[VenuePriceSource],
        pair: TokenPair,
        fetch_timeout: float,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        if not sources:
            raise ValueError("Sampler needs at least one price source")
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self.sources = list(sources)
        self.pair = pair
        self.fetch_timeout = fetch_timeout
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2 * len(self.sources),
            thread_name_prefix="venue-fetch",
        )
        # Pool job per source index, kept while it outlives its tick
        self._in_flight: dict[int, Future] = {}

    def _fetch(self, source: VenuePriceSource) -> PriceResult:
        """Runs on a pool thread. Never raises."""
        try:
            quote = source.fetch_price(self.pair)
        except Exception as e:
            return FetchFailure(source.venue, self.pair, FailureKind.VENUE_ERROR, str(e) or type(e).__name__)

        if not isinstance(quote, PriceQuote) or not is_valid_price(quote.price):
            price = getattr(quote, "price", quote)
            return FetchFailure(source.venue, self.pair, FailureKind.INVALID_PRICE, f"invalid price {price!r}")
        return quote

    def _busy(self, index: int) -> bool:
        job = self._in_flight.get(index)
        if job is None:
            return False
        if job.done():
            del self._in_flight[index]
            return False
        return True

    async def sample(self) -> list[PriceResult]:
        """Return one PriceResult per source, in source order"""
        waiting: dict[int, asyncio.Future] = {}
        for index, source in enumerate(self.sources):
            if self._busy(index):
                continue
            job = self._executor.submit(self._fetch, source)
            self._in_flight[index] = job
            waiting[index] = asyncio.wrap_future(job)

        pending = set()
        if waiting:
            _, pending = await asyncio.wait(waiting.values(), timeout=self.fetch_timeout)

        results: list[PriceResult] = []
        for index, source in enumerate(self.sources):
            future = waiting.get(index)
            if future is None:
                result = FetchFailure(source.venue, self.pair, FailureKind.TIMEOUT, "previous fetch still running")
            elif future in pending:
                future.cancel()
                result = FetchFailure(
                    source.venue,
                    self.pair,
                    FailureKind.TIMEOUT,
                    f"no response within {self.fetch_timeout:g}s",
                )
            else:
                result = future.result()

            if not result.ok:
                logger.warning(f"[{source.name}] Fetch failed ({result.kind.value}): {result.reason}")
            results.append(result)
        return results

    def close(self):
        """Stop the pool without waiting for abandoned fetches"""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
