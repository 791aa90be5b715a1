import asyncio

import pytest

from models import BotConfig, BotStatus, CloseReason
from services.bot_runner import BotRunner
from services.logger import SignalJournal
from services.market_sim import PriceSimulator
from services.signals import SignalSource
from services.storage import LocalStateStore, StateGateway

from conftest import StaticSignalSource, make_candle, make_signal


class ScriptedSimulator(PriceSimulator):
    """Emits candles closing at the given prices, in order."""

    def __init__(self, closes, base_price=100_000.0):
        super().__init__(base_price=base_price, volatility_pct=0.0, seed=0)
        self.closes = list(closes)

    def seed_window(self, size=20):
        return [make_candle(self._last_price) for _ in range(size)]

    def next(self, last_candle=None):
        if not self.closes:
            return super().next(last_candle)
        close = self.closes.pop(0)
        self._last_price = close
        return make_candle(close)


class PriceMovingSource(SignalSource):
    """Moves the market while the analysis is in flight."""

    NAME = "moving"

    def __init__(self, runner_ref, result):
        self.runner_ref = runner_ref
        self.result = result

    async def analyze(self, candles, news, config):
        await asyncio.sleep(0)
        await self.runner_ref["runner"].market_tick()
        return self.result


@pytest.fixture
def gateway(tmp_path):
    return StateGateway(LocalStateStore(tmp_path / "state.json"))


def make_runner(gateway, source, closes=(), **kwargs):
    config = kwargs.pop("config", BotConfig(stop_loss_pct=2, take_profit_pct=5, ai_interval_seconds=1))
    return BotRunner(
        config,
        ScriptedSimulator(closes),
        source,
        gateway,
        tick_seconds=kwargs.pop("tick_seconds", 0.01),
        window_size=5,
        **kwargs,
    )


async def test_analysis_opens_at_price_after_await(gateway):
    ref = {}
    runner = make_runner(gateway, PriceMovingSource(ref, make_signal("BUY", 90)), closes=[101_000])
    ref["runner"] = runner

    await runner.analysis_cycle()

    trade = runner.engine.open_trade
    assert trade.entry_price == 101_000
    assert runner.engine.logs[0].result.action.value == "BUY"


async def test_stop_loss_on_market_tick_persists(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)), closes=[100_000, 97_900])
    await runner.market_tick()
    await runner.analysis_cycle()

    await runner.market_tick()

    trade = runner.engine.trades[0]
    assert trade.close_reason == CloseReason.SL
    assert runner.engine.balance == pytest.approx(10_000 - 2.1)

    saved = await gateway.load()
    assert saved.trades[0].close_reason == CloseReason.SL
    assert saved.balance == pytest.approx(10_000 - 2.1)

    messages = [runner.messages.get_nowait().message for _ in range(runner.messages.qsize())]
    assert any("SL hit" in m for m in messages)


async def test_low_confidence_is_logged_but_not_traded(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 65)))

    await runner.analysis_cycle()

    assert runner.engine.trades == []
    assert len(runner.engine.logs) == 1


async def test_candle_window_is_bounded(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("HOLD")))

    for _ in range(12):
        await runner.market_tick()

    assert len(runner.candles) == 5


async def test_stop_keeps_market_loop_running(gateway):
    source = StaticSignalSource(make_signal("HOLD", 10))
    runner = make_runner(gateway, source)

    runner.start_market()
    runner.start_bot()
    await asyncio.sleep(0.05)
    assert runner.is_running
    assert len(source.calls) >= 1

    runner.stop_bot()
    calls = len(source.calls)
    await asyncio.sleep(0.05)

    assert runner.status == BotStatus.PAUSED
    assert len(source.calls) == calls
    assert not runner._market_task.done()

    await runner.shutdown()
    assert runner._market_task is None


async def test_stopping_does_not_close_positions(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)))
    runner.start_bot()
    await asyncio.sleep(0.02)

    runner.stop_bot()

    assert runner.engine.has_open_trade()
    await runner.shutdown()


async def test_config_locked_while_running(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("HOLD", 10)))
    new_config = BotConfig(trading_pair="ETH/USDT")

    runner.start_bot()
    assert runner.update_config(new_config) is False
    assert runner.config.trading_pair == "BTC/USDT"

    runner.stop_bot()
    assert runner.update_config(new_config) is True
    assert runner.config.trading_pair == "ETH/USDT"
    await runner.shutdown()


async def test_toggle(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("HOLD", 10)))

    runner.toggle_bot()
    assert runner.is_running
    runner.toggle_bot()
    assert runner.status == BotStatus.PAUSED
    await runner.shutdown()


async def test_manual_close(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)), closes=[100_000, 100_500])
    await runner.market_tick()
    await runner.analysis_cycle()
    await runner.market_tick()

    assert await runner.manual_close() == 1
    assert runner.engine.trades[0].close_reason == CloseReason.MANUAL
    assert runner.engine.profit == pytest.approx(0.5)
    assert await runner.manual_close() == 0


async def test_restore_and_reset(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)), closes=[100_000])
    await runner.market_tick()
    await runner.analysis_cycle()

    restored = make_runner(gateway, StaticSignalSource(make_signal("HOLD")))
    assert await restored.restore() is True
    assert restored.engine.has_open_trade()
    assert restored.engine.trades[0].entry_price == 100_000

    await restored.reset()
    assert restored.engine.trades == []
    assert restored.engine.balance == 10_000
    saved = await gateway.load()
    assert saved.trades == []


async def test_restore_without_state(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("HOLD")))

    assert await runner.restore() is False
    assert runner.engine.balance == 10_000


async def test_signal_loop_survives_errors(gateway):
    class FailingSource(SignalSource):
        calls = 0

        async def analyze(self, candles, news, config):
            FailingSource.calls += 1
            raise RuntimeError("boom")

    runner = make_runner(
        gateway,
        FailingSource(),
        config=BotConfig(ai_interval_seconds=1),
    )
    runner.start_bot()
    await asyncio.sleep(0.02)

    assert runner.is_running
    assert FailingSource.calls == 1
    assert runner.messages.get_nowait().message.startswith("Bot started")
    assert "boom" in runner.messages.get_nowait().message
    await runner.shutdown()


async def test_decisions_are_journaled(gateway, tmp_path):
    journal = SignalJournal(log_dir=tmp_path / "logs")
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)), journal=journal)

    await runner.analysis_cycle()
    await runner.analysis_cycle()

    lines = journal.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[1].split(",")[6] == "True"
    assert lines[2].split(",")[6] == "False"


async def test_restore_resumes_market_at_open_entry(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("BUY", 90)), closes=[100_000])
    await runner.market_tick()
    await runner.analysis_cycle()

    # A fresh session whose simulator starts far below the saved stop-loss
    restarted = BotRunner(
        BotConfig(),
        ScriptedSimulator([], base_price=50_000.0),
        StaticSignalSource(make_signal("HOLD")),
        gateway,
        window_size=5,
    )
    await restarted.restore()

    assert restarted.current_price == 100_000
    assert [c.close for c in restarted.candles] == [100_000] * 5

    await restarted.market_tick()
    assert restarted.engine.has_open_trade()


async def test_restore_without_open_trade_keeps_market(gateway):
    runner = make_runner(gateway, StaticSignalSource(make_signal("HOLD")))
    await runner.persist()

    restarted = BotRunner(
        BotConfig(),
        ScriptedSimulator([], base_price=50_000.0),
        StaticSignalSource(make_signal("HOLD")),
        gateway,
        window_size=5,
    )
    await restarted.restore()

    assert restarted.current_price == 50_000
