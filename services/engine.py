# services/engine.py - Position & risk engine.
"""
Paper-trading position engine: owns the trades, decides entry/exit and
keeps the balance/profit ledger.

Rules:
- Long-only. A BUY signal opens, a SELL signal only closes.
- At most one OPEN trade at a time; a BUY while one is open is a no-op.
- Signals act only when confidence > SIGNAL_CONFIDENCE_THRESHOLD.
- Balance and cumulative profit move only on realized PnL (on close).

The engine does no I/O. Callers persist its fields through the state gateway.
"""

import uuid

import pandas as pd

from models import (
    AnalysisLog,
    BotConfig,
    CloseReason,
    SignalAction,
    SignalResult,
    Trade,
    TradeSide,
    TradeStatus,
)
from services.exits import calculate_tp_sl_prices, check_exit, realized_pnl
from services.time_utils import get_clock, get_timestamp_ms

SIGNAL_CONFIDENCE_THRESHOLD = 70
MAX_ANALYSIS_LOGS = 50
DEFAULT_BALANCE = 10_000.0


def _new_trade_id() -> str:
    return uuid.uuid4().hex[:12]


class PositionEngine:
    """
    Single-position risk engine.

    Usage:
        engine = PositionEngine(config)
        engine.on_signal(result, price)   # may open or close
        engine.on_price_tick(price)       # TP/SL enforcement
        engine.manual_close(price)        # operator action
    """

    def __init__(
        self,
        config: BotConfig,
        balance: float = DEFAULT_BALANCE,
        profit: float = 0.0,
        trades: list[Trade] | None = None,
        logs: list[AnalysisLog] | None = None,
    ):
        self.config = config
        self.balance = float(balance)
        self.profit = float(profit)
        self.trades: list[Trade] = list(trades or [])  # oldest first
        self.logs: list[AnalysisLog] = list(logs or [])[:MAX_ANALYSIS_LOGS]  # newest first

    # === STATE QUERIES ===

    @property
    def open_trades(self) -> list[Trade]:
        return [t for t in self.trades if t.is_open]

    @property
    def open_trade(self) -> Trade | None:
        """The active position, or None."""
        for trade in self.trades:
            if trade.is_open:
                return trade
        return None

    def has_open_trade(self) -> bool:
        return self.open_trade is not None

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market PnL of the open position (display only, never booked)."""
        trade = self.open_trade
        if trade is None:
            return 0.0
        return realized_pnl(trade.entry_price, price, trade.amount)

    def update_config(self, config: BotConfig) -> None:
        """Swap in a new config. Only affects trades opened afterwards."""
        self.config = config

    # === EVENTS ===

    def on_price_tick(self, price: float) -> Trade | None:
        """
        Enforce TP/SL on the open position.

        Returns the closed trade, or None if nothing fired.
        """
        trade = self.open_trade
        if trade is None or trade.side != TradeSide.BUY:
            return None

        exit_info = check_exit(trade.sl_price, trade.tp_price, price)
        if exit_info is None:
            return None

        return self._close(trade, exit_info["price"], exit_info["reason"])

    def on_signal(self, signal: SignalResult, current_price: float) -> list[Trade]:
        """
        Apply a signal at the current price.

        Returns the trades opened or closed by this call (possibly empty).
        """
        if signal.confidence <= SIGNAL_CONFIDENCE_THRESHOLD:
            return []

        if signal.action == SignalAction.BUY:
            trade = self.open_position(current_price)
            return [trade] if trade else []

        if signal.action == SignalAction.SELL:
            return self._close_all(current_price, CloseReason.SIGNAL)

        return []

    def manual_close(self, current_price: float) -> list[Trade]:
        """Close every open trade at the current price (operator action)."""
        return self._close_all(current_price, CloseReason.MANUAL)

    def record_analysis(self, result: SignalResult, time: str | None = None) -> AnalysisLog:
        """Archive a signal result at the head of the capped decision log."""
        entry = AnalysisLog(time=time or get_clock(), result=result)
        self.logs.insert(0, entry)
        del self.logs[MAX_ANALYSIS_LOGS:]
        return entry

    # === POSITION MECHANICS ===

    def open_position(self, price: float) -> Trade | None:
        """Open a long at price with SL/TP from config. No-op if a trade is open."""
        if self.has_open_trade():
            return None

        tp_price, sl_price = calculate_tp_sl_prices(
            price, self.config.take_profit_pct, self.config.stop_loss_pct
        )
        trade = Trade(
            id=_new_trade_id(),
            symbol=self.config.trading_pair,
            side=TradeSide.BUY,
            entry_price=price,
            amount=self.config.amount_per_trade,
            opened_at=get_timestamp_ms(),
            status=TradeStatus.OPEN,
            sl_price=sl_price,
            tp_price=tp_price,
            execution_mode=self.config.trading_mode.upper(),
        )
        self.trades.append(trade)

        print(
            f"   🟢 BUY {trade.symbol} @ {price:,.2f} "
            f"(SL {sl_price:,.2f} / TP {tp_price:,.2f}, {trade.amount:g} USDT)"
        )
        return trade

    def _close(self, trade: Trade, price: float, reason: CloseReason) -> Trade:
        pnl = realized_pnl(trade.entry_price, price, trade.amount)

        trade.status = TradeStatus.CLOSED
        trade.exit_price = price
        trade.closed_at = get_timestamp_ms()
        trade.close_reason = reason
        trade.realized_profit = pnl

        self.balance += pnl
        self.profit += pnl

        icon = "✅" if pnl >= 0 else "🔻"
        print(
            f"   {icon} CLOSE {trade.symbol} @ {price:,.2f} [{reason.value}] "
            f"PnL {pnl:+,.2f} | Balance {self.balance:,.2f}"
        )
        return trade

    def _close_all(self, price: float, reason: CloseReason) -> list[Trade]:
        return [self._close(trade, price, reason) for trade in self.open_trades]

    # === EXPORT ===

    def get_trades_df(self) -> pd.DataFrame:
        """Trade history as a DataFrame (oldest first)."""
        if not self.trades:
            return pd.DataFrame()
        return pd.DataFrame([t.to_dict() for t in self.trades])

