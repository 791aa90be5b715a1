import random

import pytest

from models import CloseReason, TradeSide, TradeStatus
from services.engine import MAX_ANALYSIS_LOGS, PositionEngine

from conftest import make_signal


class TestEntry:
    def test_buy_opens_long_with_sl_tp(self, engine):
        changed = engine.on_signal(make_signal("BUY", 90), 100_000)

        assert len(changed) == 1
        trade = changed[0]
        assert trade.status == TradeStatus.OPEN
        assert trade.side == TradeSide.BUY
        assert trade.entry_price == 100_000
        assert trade.amount == 100
        assert trade.sl_price == pytest.approx(98_000)
        assert trade.tp_price == pytest.approx(105_000)
        assert trade.execution_mode == "PAPER"

    def test_open_does_not_touch_ledger(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        assert engine.balance == 10_000
        assert engine.profit == 0

    def test_second_buy_is_noop(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)
        changed = engine.on_signal(make_signal("BUY", 90), 101_000)

        assert changed == []
        assert len(engine.trades) == 1
        assert engine.open_trade.entry_price == 100_000

    @pytest.mark.parametrize("action", ["BUY", "SELL", "HOLD"])
    @pytest.mark.parametrize("confidence", [0, 50, 70])
    def test_low_confidence_never_changes_state(self, engine, action, confidence):
        engine.on_signal(make_signal("BUY", 90), 100_000)
        before = [t.to_dict() for t in engine.trades]

        changed = engine.on_signal(make_signal(action, confidence), 99_000)

        assert changed == []
        assert [t.to_dict() for t in engine.trades] == before
        assert engine.balance == 10_000

    def test_hold_with_high_confidence_is_noop(self, engine):
        assert engine.on_signal(make_signal("HOLD", 99), 100_000) == []
        assert engine.trades == []


class TestExit:
    def test_stop_loss_scenario(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        closed = engine.on_price_tick(97_900)

        assert closed is not None
        assert closed.close_reason == CloseReason.SL
        assert closed.status == TradeStatus.CLOSED
        assert closed.exit_price == 97_900
        assert closed.realized_profit == pytest.approx(-2.1)
        assert engine.balance == pytest.approx(10_000 - 2.1)
        assert engine.profit == pytest.approx(-2.1)

    def test_tick_exactly_at_stop_loss(self, engine):
        trade = engine.on_signal(make_signal("BUY", 90), 100_000)[0]
        sl = trade.sl_price

        closed = engine.on_price_tick(sl)

        assert closed.close_reason == CloseReason.SL
        assert closed.realized_profit == pytest.approx((sl - 100_000) * (100 / 100_000))

    def test_tick_exactly_at_take_profit(self, engine):
        trade = engine.on_signal(make_signal("BUY", 90), 100_000)[0]
        tp = trade.tp_price

        closed = engine.on_price_tick(tp)

        assert closed.close_reason == CloseReason.TP
        assert closed.realized_profit == pytest.approx((tp - 100_000) * (100 / 100_000))
        assert engine.profit == pytest.approx(5.0)

    def test_tick_inside_band_keeps_trade_open(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        assert engine.on_price_tick(100_500) is None
        assert engine.on_price_tick(99_000) is None
        assert engine.has_open_trade()

    def test_stop_loss_wins_when_levels_cross(self, engine):
        trade = engine.on_signal(make_signal("BUY", 90), 100_000)[0]
        # Degenerate levels: SL above TP, so one price satisfies both
        trade.sl_price, trade.tp_price = 101_000, 99_000

        closed = engine.on_price_tick(100_000)

        assert closed.close_reason == CloseReason.SL

    def test_tick_without_position(self, engine):
        assert engine.on_price_tick(50_000) is None

    def test_closed_trade_is_not_reclosed(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)
        engine.on_price_tick(97_000)
        balance = engine.balance

        assert engine.on_price_tick(90_000) is None
        assert engine.balance == balance

    def test_sell_closes_with_signal_reason(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        changed = engine.on_signal(make_signal("SELL", 80), 101_000)

        assert len(changed) == 1
        assert changed[0].close_reason == CloseReason.SIGNAL
        assert changed[0].realized_profit == pytest.approx(1.0)
        assert not engine.has_open_trade()
        assert len(engine.trades) == 1

    def test_sell_without_position_never_opens_short(self, engine):
        assert engine.on_signal(make_signal("SELL", 95), 100_000) == []
        assert engine.trades == []

    def test_manual_close(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        closed = engine.manual_close(99_500)

        assert len(closed) == 1
        assert closed[0].close_reason == CloseReason.MANUAL
        assert engine.profit == pytest.approx(-0.5)

    def test_manual_close_without_position(self, engine):
        assert engine.manual_close(100_000) == []


class TestInvariants:
    def test_random_sequence_keeps_single_position_and_exact_ledger(self, config):
        rng = random.Random(7)
        engine = PositionEngine(config, balance=10_000.0)
        price = 100_000.0

        for _ in range(500):
            price *= 1 + rng.uniform(-0.01, 0.01)
            balance, profit = engine.balance, engine.profit

            if rng.random() < 0.3:
                action = rng.choice(["BUY", "SELL", "HOLD"])
                changed = engine.on_signal(make_signal(action, rng.uniform(0, 100)), price)
                closed = [t for t in changed if not t.is_open]
            else:
                trade = engine.on_price_tick(price)
                closed = [trade] if trade else []

            realized = sum(t.realized_profit for t in closed)
            assert len(engine.open_trades) <= 1
            assert engine.balance == pytest.approx(balance + realized)
            assert engine.profit == pytest.approx(profit + realized)

    def test_unrealized_pnl_is_display_only(self, engine):
        engine.on_signal(make_signal("BUY", 90), 100_000)

        assert engine.unrealized_pnl(101_000) == pytest.approx(1.0)
        assert engine.balance == 10_000

    def test_new_config_applies_to_next_trade(self, engine, config):
        from models import BotConfig

        engine.update_config(BotConfig(amount_per_trade=250, stop_loss_pct=1, take_profit_pct=3))
        trade = engine.on_signal(make_signal("BUY", 90), 200)[0]

        assert trade.amount == 250
        assert trade.sl_price == pytest.approx(198)
        assert trade.tp_price == pytest.approx(206)


class TestAnalysisLog:
    def test_newest_first(self, engine):
        engine.record_analysis(make_signal("BUY"), time="10:00:00")
        engine.record_analysis(make_signal("SELL"), time="10:00:10")

        assert [entry.time for entry in engine.logs] == ["10:00:10", "10:00:00"]

    def test_capped(self, engine):
        for i in range(MAX_ANALYSIS_LOGS + 10):
            engine.record_analysis(make_signal("HOLD"), time=str(i))

        assert len(engine.logs) == MAX_ANALYSIS_LOGS
        assert engine.logs[0].time == str(MAX_ANALYSIS_LOGS + 9)


def test_trades_dataframe(engine):
    assert engine.get_trades_df().empty

    engine.on_signal(make_signal("BUY", 90), 100_000)
    engine.on_price_tick(106_000)
    df = engine.get_trades_df()

    assert len(df) == 1
    assert df.iloc[0]["closeReason"] == "TP"
    assert df.iloc[0]["profit"] == pytest.approx(6.0)
