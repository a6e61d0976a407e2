"""Log output for each tick"""
import logging

from engine import Indeterminate, NoOpportunity, Opportunity, TradeParameters
from scheduler import TickReport

logger = logging.getLogger(__name__)


class LogReporter:
    """Reporting sink that writes quotes and the decision to the log"""

    def __init__(self, params: TradeParameters, log: logging.Logger = logger):
        self.params = params
        self.log = log

    def __call__(self, report: TickReport):
        for result in report.results:
            if result.ok:
                self.log.info(
                    f"{result.venue.name}: 1 {result.pair.base} = "
                    f"{result.price:.2f} {result.pair.quote}"
                )
            else:
                self.log.info(f"{result.venue.name}: unavailable ({result.kind.value})")

        decision = report.decision
        if isinstance(decision, Indeterminate):
            self.log.warning(f"Tick {report.tick}: no decision, {decision.reason}")
        elif isinstance(decision, Opportunity):
            self._log_opportunity(report, decision)
        elif isinstance(decision, NoOpportunity):
            self.log.info(f"Simulated Net Profit: ${decision.net_profit:.2f}")
            self.log.info("No significant opportunity found.")

    def _log_opportunity(self, report: TickReport, opp: Opportunity):
        pair = report.results[0].pair
        amount = self.params.amount
        self.log.info(f"Price Difference: {opp.price_difference:.2f} {pair.quote} per {pair.base}")
        self.log.info(f"Simulated Net Profit: ${opp.net_profit:.2f}")
        self.log.info("🚀 ARBITRAGE OPPORTUNITY DETECTED!")
        self.log.info(
            f"   Buy  {amount:g} {pair.base} on {opp.buy_venue.name} "
            f"for ${opp.buy_price * amount:.2f}"
        )
        self.log.info(
            f"   Sell {amount:g} {pair.base} on {opp.sell_venue.name} "
            f"for ${opp.sell_price * amount:.2f}"
        )
        self.log.info(f"   Estimated Profit: ${opp.net_profit:.2f}")
