# flasharb/main.py
"""
Flashloan Arbitrage Bot Main Loop (Base)

THIS IS THE ENTRY POINT - Run with: python -m flasharb.main

Each cycle: RPC check -> quotes per monitored pair -> pairwise candidates ->
sizing -> cost model -> executor calldata. Dry-run (the default) only logs the
transaction it would send.
"""

import sys
import time
import logging
import signal
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from web3 import Web3

from flasharb.arbitrage_scanner import Opportunity, OpportunityDetector
from flasharb.calldata import TransactionBuilder, format_transaction
from flasharb.config import BotConfig, CHAIN_NAME, load_config
from flasharb.exceptions import RpcUnavailableError
from flasharb.flash_loan import FlashLoanManager
from flasharb.pairs import MONITORED_PAIRS, TokenPair
from flasharb.profit_calculator import (
    CostModel, ProfitAnalysis, SizingEngine, SizingResult, format_profit_analysis,
)
from flasharb.quote_engine import PriceAggregator
from flasharb.rpc_health import RPCHealth, make_web3

LOG_DIR = Path(__file__).parent.parent / "logs"

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(level: int = logging.INFO, log_dir: Optional[Path] = LOG_DIR):
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / f"bot_{datetime.now().strftime('%Y%m%d')}.log")
        )

    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=handlers,
    )


# =============================================================================
# STATISTICS TRACKER
# =============================================================================

class StatisticsTracker:
    """Track bot performance statistics"""

    def __init__(self):
        self.start_time = datetime.now()
        self.cycles_completed = 0
        self.failed_cycles = 0
        self.opportunities_found = 0
        self.viable_opportunities = 0
        self.transactions_built = 0
        self.transactions_submitted = 0
        self.simulated_profit_usd = Decimal(0)

    def record_viable(self, analysis: ProfitAnalysis, dry_run: bool):
        self.viable_opportunities += 1
        if dry_run:
            self.simulated_profit_usd += analysis.net_profit_after_gas

    def get_summary(self) -> str:
        runtime = datetime.now() - self.start_time
        return (
            f"\n{'='*60}\n"
            f"SESSION STATISTICS\n"
            f"{'='*60}\n"
            f"Runtime: {runtime}\n"
            f"Cycles Completed: {self.cycles_completed}\n"
            f"Failed Cycles: {self.failed_cycles}\n"
            f"Opportunities Found: {self.opportunities_found}\n"
            f"Viable Opportunities: {self.viable_opportunities}\n"
            f"Transactions Built: {self.transactions_built}\n"
            f"Transactions Submitted: {self.transactions_submitted}\n"
            f"Simulated Profit: ${self.simulated_profit_usd:.4f}\n"
            f"{'='*60}\n"
        )


@dataclass
class CycleReport:
    """What one cycle saw and produced"""
    quotes: int = 0
    opportunities: int = 0
    viable: int = 0
    transactions: List[dict] = field(default_factory=list)
    failed_pairs: List[str] = field(default_factory=list)
    failed_candidates: List[str] = field(default_factory=list)


# =============================================================================
# MAIN BOT CLASS
# =============================================================================

class ArbitrageBot:
    """
    Sequential polling controller over the monitored pairs
    """

    def __init__(
        self,
        config: BotConfig,
        w3: Web3,
        aggregator: Optional[PriceAggregator] = None,
        detector: Optional[OpportunityDetector] = None,
        sizing: Optional[SizingEngine] = None,
        cost_model: Optional[CostModel] = None,
        builder: Optional[TransactionBuilder] = None,
        health: Optional[RPCHealth] = None,
        submitter: Optional[Callable[[dict], object]] = None,
        pairs: Sequence[TokenPair] = MONITORED_PAIRS,
    ):
        self.config = config
        self.w3 = w3
        self.aggregator = aggregator or PriceAggregator(w3)
        self.detector = detector or OpportunityDetector()
        self.sizing = sizing or SizingEngine.from_config(config)
        self.cost_model = cost_model or CostModel(config)
        self.builder = builder
        self.health = health or RPCHealth(w3, rpc_url=config.active_rpc_url)
        self.submitter = submitter
        self.pairs = list(pairs)
        self.running = False
        self.stats = StatisticsTracker()

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Stop after the current cycle"""
        logger.info("Shutdown signal received, finishing current cycle...")
        self.running = False

    def stop(self):
        self.running = False

    def evaluate(self, opportunity: Opportunity) -> Tuple[SizingResult, ProfitAnalysis]:
        """Size the candidate and price it"""
        if self.config.sizing_strategy == "search":
            sizing, analysis = self.sizing.search_optimal_amount(
                opportunity, self.cost_model, steps=self.config.sizing_search_steps,
            )
            if analysis is None:
                analysis = self.cost_model.analyze(opportunity, sizing.optimal_amount)
            return sizing, analysis

        sizing = self.sizing.size(opportunity)
        return sizing, self.cost_model.analyze(opportunity, sizing.optimal_amount)

    def _handle_viable(self, opportunity: Opportunity, sizing: SizingResult,
                       analysis: ProfitAnalysis, report: CycleReport):
        self.stats.record_viable(analysis, self.config.dry_run)
        report.viable += 1

        if self.builder is None:
            logger.info("Viable opportunity but no executor address configured")
            return

        tx = self.builder.build_execution_transaction(opportunity, sizing, analysis)
        self.stats.transactions_built += 1
        report.transactions.append(tx)
        logger.info(format_transaction(tx))

        if self.config.dry_run:
            logger.info("DRY-RUN: would execute this trade")
        elif self.submitter is None:
            logger.warning("Transaction prepared but no submitter configured")
        else:
            self.submitter(tx)
            self.stats.transactions_submitted += 1

    def process_pair(self, pair: TokenPair, report: CycleReport):
        quotes = self.aggregator.get_quotes(pair.token_a, pair.token_b)
        report.quotes += len(quotes)
        for quote in quotes:
            logger.debug(f"  {quote.describe()}")

        opportunities = self.detector.find_opportunities(quotes)
        report.opportunities += len(opportunities)
        self.stats.opportunities_found += len(opportunities)

        # One bad candidate must not drop the rest of the pair
        for opp in opportunities:
            try:
                sizing, analysis = self.evaluate(opp)
                logger.info(format_profit_analysis(opp, sizing, analysis))
                if analysis.is_viable:
                    self._handle_viable(opp, sizing, analysis, report)
            except Exception as e:
                logger.error(f"Skipping candidate {opp.route} on {pair.name}: {e}")
                report.failed_candidates.append(opp.route)

    def run_cycle(self) -> CycleReport:
        """
        One pass over every monitored pair
        Raises RpcUnavailableError when the endpoint is unusable at cycle start.
        """
        status = self.health.require_healthy()
        logger.debug(f"RPC healthy: {status}")

        report = CycleReport()
        for pair in self.pairs:
            try:
                self.process_pair(pair, report)
            except Exception as e:
                logger.error(f"Error monitoring {pair.name}: {e}")
                report.failed_pairs.append(pair.name)

        self.stats.cycles_completed += 1
        return report

    def run(self, max_cycles: int = 0):
        """
        Main bot loop
        max_cycles = 0 runs until stopped
        """
        logger.info("=" * 60)
        logger.info("FLASHLOAN ARBITRAGE BOT STARTING")
        logger.info(f"Network: {'Anvil fork' if self.config.use_anvil else CHAIN_NAME}")
        logger.info(f"Mode: {'DRY-RUN' if self.config.dry_run else 'LIVE'}")
        logger.info(f"Min Profit: ${self.config.min_profit_usd} / {self.config.min_profit_bps} bps")
        logger.info(f"Max Slippage: {self.config.max_slippage_bps} bps")
        logger.info("=" * 60)

        self.running = True
        cycles = 0

        try:
            while self.running:
                try:
                    self.run_cycle()
                except RpcUnavailableError as e:
                    self.stats.failed_cycles += 1
                    logger.error(f"Cycle skipped: {e}")

                cycles += 1
                if max_cycles and cycles >= max_cycles:
                    logger.info(f"Completed {max_cycles} cycles.")
                    break
                if not self.running:
                    break

                time.sleep(self.config.poll_interval_seconds)

        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")

        finally:
            self.running = False
            logger.info(self.stats.get_summary())
            logger.info("Bot stopped.")


# =============================================================================
# WIRING
# =============================================================================

def build_bot(config: BotConfig, submitter: Optional[Callable[[dict], object]] = None) -> ArbitrageBot:
    """Construct the bot and its components from configuration"""
    logger.info(f"Connecting to RPC: {config.active_rpc_url}")
    w3 = make_web3(config.active_rpc_url)

    # The cost model prices the premium the pool actually charges
    flash = FlashLoanManager(w3, default_fee_bps=config.flash_fee_bps)
    fee_bps = flash.get_flash_loan_fee_bps()
    if fee_bps != config.flash_fee_bps:
        logger.info(f"Flashloan premium from pool: {fee_bps} bps (configured {config.flash_fee_bps})")
        config = replace(config, flash_fee_bps=fee_bps)

    builder = None
    if config.executor_address:
        builder = TransactionBuilder(
            config,
            executor_address=config.executor_address,
            flashloan_provider=flash.get_pool_address(),
        )

    return ArbitrageBot(config, w3, builder=builder, submitter=submitter)


# =============================================================================
# ENTRY POINT
# =============================================================================

def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Base Flashloan Arbitrage Bot")
    parser.add_argument("--anvil", "-a", action="store_true", help="Use the local Anvil fork RPC")
    parser.add_argument("--test", "-t", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--cycles", type=int, default=0, help="Stop after N cycles (0 = run forever)")
    parser.add_argument("--live", action="store_true", help="Disable dry-run mode")
    parser.add_argument("--env", default=None, help="Path to a .env file")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    args = parser.parse_args(argv)

    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    config = load_config(args.env, use_anvil=args.anvil, dry_run=False if args.live else None)
    bot = build_bot(config)
    bot.install_signal_handlers()

    if args.test:
        logger.info("Running single test cycle...")
        bot.run(max_cycles=1)
        return

    bot.run(max_cycles=args.cycles)


if __name__ == "__main__":
    main()
