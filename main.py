"""
Cross-Venue Spread Monitor - Main Entry Point

Samples the price of one token pair on several venues every tick, compares
the cheapest and the most expensive quote, and reports whether the spread
covers the fee estimate plus the profit threshold.

No orders are placed; profits are estimates.
"""
import argparse
import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from config import CONFIG_PATH, SHUTDOWN_GRACE_S, WEB_HOST, WEB_PORT, BotConfig, ConfigurationError, load_config
from dashboard import app, manager
from engine import TradeParameters
from reporting import LogReporter
from sampler import Sampler
from scheduler import PollingLoop
from venues import VenuePriceSource, create_price_sources, token_pair

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%H:%M:%S'
    )
    # Reduce noise from libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


class SpreadBot:
    """Wires config, sources, sampler, loop and sinks together"""

    def __init__(self, config: BotConfig, sources: Optional[list[VenuePriceSource]] = None):
        self.config = config
        self.params = TradeParameters(
            amount=config.trade_amount,
            fee_estimate_usd=config.fee_usd,
            min_profit_threshold_usd=config.min_profit_threshold_usd,
        )
        self.sources = sources if sources is not None else create_price_sources(config)
        self.sampler = Sampler(self.sources, token_pair(config), config.fetch_timeout_s)
        self.loop = PollingLoop(self.sampler, self.params, config.poll_interval_s)
        self.loop.on_tick(LogReporter(self.params))
        self._task: Optional[asyncio.Task] = None

    async def run(self, max_ticks: Optional[int] = None):
        logger.info("Starting cross-venue spread monitor...")
        logger.info(f"Venues: {', '.join(s.name for s in self.sources)}")
        logger.info(
            f"Trade {self.params.amount:g} {self.sampler.pair.base}, fee ${self.params.fee_estimate_usd:.2f}, "
            f"threshold ${self.params.min_profit_threshold_usd:.2f}"
        )
        try:
            await self.loop.run(max_ticks=max_ticks)
        finally:
            self.close()

    def start(self):
        """Run the loop as a background task (dashboard mode)"""
        self._task = asyncio.create_task(self.run())

    async def stop(self, grace: float = SHUTDOWN_GRACE_S):
        logger.info("Shutting down...")
        await self.loop.shutdown(grace)
        if self._task:
            await asyncio.wait({self._task}, timeout=grace)

    def close(self):
        self.sampler.close()
        for source in self.sources:
            try:
                source.close()
            except Exception as e:
                logger.error(f"[{source.name}] Close error: {e}")
        logger.info("Bot stopped")


async def run_headless(bot: SpreadBot, once: bool = False):
    """Run without the dashboard; SIGINT/SIGTERM stop the loop gracefully"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(bot.stop()))
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass
    await bot.run(max_ticks=1 if once else None)


def run_with_dashboard(bot: SpreadBot, host: str = WEB_HOST, port: int = WEB_PORT):
    manager.set_loop(bot.loop, bot.config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bot.start()
        yield
        await bot.stop()

    app.router.lifespan_context = lifespan
    logger.info(f"Dashboard available at http://localhost:{port}/api/state")
    uvicorn.run(app, host=host, port=port, log_level="warning")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cross-venue spread monitor")
    parser.add_argument("--config", default=CONFIG_PATH, help="Path to config.json")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument("--dashboard", action="store_true", help="Serve the web dashboard")
    parser.add_argument("--port", type=int, default=WEB_PORT)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        bot = SpreadBot(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    if args.dashboard and not args.once:
        run_with_dashboard(bot, port=args.port)
    else:
        asyncio.run(run_headless(bot, once=args.once))
    return 0


if __name__ == "__main__":
    sys.exit(main())
