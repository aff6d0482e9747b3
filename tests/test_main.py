"""
Tests for the polling controller
"""

from unittest.mock import MagicMock

import pytest

from conftest import make_quote
from flasharb.calldata import TransactionBuilder
from flasharb.config import BotConfig
from flasharb.exceptions import RpcUnavailableError
from flasharb.main import ArbitrageBot, StatisticsTracker, build_bot, setup_logging
from flasharb.onchain import make_address
from flasharb.pairs import USDC, USDT, WETH, TokenPair

WETH_USDC = TokenPair(WETH, USDC, "WETH/USDC")
WETH_USDT = TokenPair(WETH, USDT, "WETH/USDT")


def make_bot(config, quotes_by_pair=None, submitter=None, with_builder=True, pairs=(WETH_USDC,)):
    quotes_by_pair = quotes_by_pair or {}

    aggregator = MagicMock()

    def get_quotes(token_a, token_b):
        result = quotes_by_pair.get((token_a, token_b), [])
        if isinstance(result, Exception):
            raise result
        return result

    aggregator.get_quotes.side_effect = get_quotes

    health = MagicMock()
    health.require_healthy.return_value = "OK"

    builder = None
    if with_builder:
        builder = TransactionBuilder(config, make_address("executor"), make_address("aave:pool"))

    return ArbitrageBot(
        config,
        w3=MagicMock(),
        aggregator=aggregator,
        builder=builder,
        health=health,
        submitter=submitter,
        pairs=pairs,
    )


@pytest.fixture
def spread():
    return {(WETH, USDC): [
        make_quote("3000", venue="Uniswap"),
        make_quote("3050", venue="SushiSwap"),
    ]}


class TestRunCycle:

    def test_dry_run_builds_but_does_not_submit(self, viable_config, spread):
        submitter = MagicMock()
        bot = make_bot(viable_config, spread, submitter=submitter)

        report = bot.run_cycle()

        assert report.quotes == 2
        assert report.opportunities == 1
        assert report.viable == 1
        assert len(report.transactions) == 1
        assert report.transactions[0]["params"].borrow_amount == 10**9
        submitter.assert_not_called()
        assert bot.stats.transactions_built == 1
        assert bot.stats.simulated_profit_usd > 0

    def test_live_mode_submits(self, spread):
        config = BotConfig(max_flashloan_percent=1, dry_run=False)
        submitter = MagicMock()
        bot = make_bot(config, spread, submitter=submitter)

        report = bot.run_cycle()

        submitter.assert_called_once_with(report.transactions[0])
        assert bot.stats.transactions_submitted == 1

    def test_live_mode_without_submitter(self, spread):
        config = BotConfig(max_flashloan_percent=1, dry_run=False)
        bot = make_bot(config, spread)

        report = bot.run_cycle()

        assert len(report.transactions) == 1
        assert bot.stats.transactions_submitted == 0

    def test_without_executor_only_counts(self, viable_config, spread):
        bot = make_bot(viable_config, spread, with_builder=False)

        report = bot.run_cycle()

        assert report.viable == 1
        assert report.transactions == []

    def test_default_fraction_is_skipped(self, config, spread):
        bot = make_bot(config, spread)

        report = bot.run_cycle()

        assert report.opportunities == 1
        assert report.viable == 0

    def test_search_strategy_finds_viable_size(self, spread):
        config = BotConfig(sizing_strategy="search")
        bot = make_bot(config, spread)

        report = bot.run_cycle()

        assert report.viable == 1
        assert 0 < report.transactions[0]["params"].borrow_amount <= 10**11

    def test_unhealthy_rpc_raises(self, viable_config, spread):
        bot = make_bot(viable_config, spread)
        bot.health.require_healthy.side_effect = RpcUnavailableError("down", rpc_url="http://x")

        with pytest.raises(RpcUnavailableError):
            bot.run_cycle()
        bot.aggregator.get_quotes.assert_not_called()

    def test_failing_pair_does_not_stop_cycle(self, viable_config, spread):
        quotes = dict(spread)
        quotes[(WETH, USDT)] = ConnectionError("boom")
        bot = make_bot(viable_config, quotes, pairs=(WETH_USDT, WETH_USDC))

        report = bot.run_cycle()

        assert report.failed_pairs == ["WETH/USDT"]
        assert report.viable == 1

    def test_failing_candidate_does_not_drop_the_rest(self, viable_config):
        # No router is configured for Aerodrome, so its candidates cannot be built
        quotes = {(WETH, USDC): [
            make_quote("3000", venue="Uniswap"),
            make_quote("3050", venue="SushiSwap"),
            make_quote("3100", venue="Aerodrome"),
        ]}
        bot = make_bot(viable_config, quotes)

        report = bot.run_cycle()

        assert report.failed_pairs == []
        assert len(report.transactions) == 1
        assert report.transactions[0]["meta"]["route"] == "Uniswap(500) -> SushiSwap(500)"
        assert report.failed_candidates
        assert all("Aerodrome" in route for route in report.failed_candidates)

    def test_evaluation_error_skips_only_that_candidate(self, viable_config, spread):
        bot = make_bot(viable_config, spread)
        real_analyze = bot.cost_model.analyze
        calls = []

        def flaky_analyze(opportunity, amount):
            calls.append(opportunity.route)
            if len(calls) == 1:
                raise ArithmeticError("bad quote")
            return real_analyze(opportunity, amount)

        bot.cost_model.analyze = flaky_analyze
        quotes = {(WETH, USDC): spread[(WETH, USDC)] + [make_quote("3025", venue="Uniswap", fee_tier=3000)]}
        bot.aggregator.get_quotes.side_effect = lambda a, b: quotes.get((a, b), [])

        report = bot.run_cycle()

        assert report.failed_candidates == [calls[0]]
        assert len(calls) > 1
        assert report.failed_pairs == []

    def test_no_quotes(self, viable_config):
        report = make_bot(viable_config).run_cycle()
        assert report.quotes == 0
        assert report.opportunities == 0


class TestRunLoop:

    def test_rpc_failure_skips_cycle_and_continues(self, spread):
        config = BotConfig(max_flashloan_percent=1, poll_interval_seconds=0)
        bot = make_bot(config, spread)
        bot.health.require_healthy.side_effect = [
            RpcUnavailableError("down"), "OK", "OK",
        ]

        bot.run(max_cycles=3)

        assert bot.stats.failed_cycles == 1
        assert bot.stats.cycles_completed == 2
        assert not bot.running

    def test_stop_ends_loop(self, viable_config):
        bot = make_bot(viable_config)
        bot.health.require_healthy.side_effect = lambda: bot.stop() or "OK"

        bot.run()

        assert bot.stats.cycles_completed == 1


class TestStatistics:

    def test_summary(self):
        stats = StatisticsTracker()
        stats.cycles_completed = 4
        stats.failed_cycles = 1
        summary = stats.get_summary()
        assert "Cycles Completed: 4" in summary
        assert "Failed Cycles: 1" in summary


def test_setup_logging_creates_log_dir(tmp_path):
    log_dir = tmp_path / "logs"
    setup_logging(log_dir=log_dir)
    assert log_dir.is_dir()


class TestBuildBot:

    @pytest.fixture
    def flash_manager(self, monkeypatch):
        manager = MagicMock()
        manager.get_flash_loan_fee_bps.return_value = 9
        manager.get_pool_address.return_value = make_address("aave:pool")
        monkeypatch.setattr("flasharb.main.make_web3", lambda url: MagicMock())
        monkeypatch.setattr("flasharb.main.FlashLoanManager", MagicMock(return_value=manager))
        return manager

    def test_pool_premium_reaches_cost_model(self, flash_manager):
        bot = build_bot(BotConfig(executor_address=make_address("executor")))

        assert bot.config.flash_fee_bps == 9
        assert bot.cost_model.config.flash_fee_bps == 9
        assert bot.builder.flashloan_provider == make_address("aave:pool")

    def test_premium_resolved_without_executor(self, flash_manager):
        bot = build_bot(BotConfig())

        assert bot.builder is None
        assert bot.cost_model.config.flash_fee_bps == 9
