# services/bot_runner.py - Session orchestration and timers.
"""
BotRunner is the single authoritative session object. Every timer callback
and UI handler reads and writes state through it, never through a copy.

Two asyncio tasks:
1. Market loop (always on once started): new candle every tick_seconds,
   then TP/SL check on the open position.
2. Signal loop (only while RUNNING): analysis cycle immediately on start,
   then every config.ai_interval_seconds.

Stopping the bot cancels the signal loop only. TP/SL keeps being enforced.
"""

import asyncio
import queue
from collections import deque

from models import BotConfig, BotStatus, Candle, LogMessage, MarketNews, SignalResult
from services.engine import PositionEngine
from services.logger import SignalJournal
from services.market_sim import MOCK_NEWS, PriceSimulator
from services.signals import SignalSource
from services.storage import StateGateway
from settings import CANDLE_WINDOW_SIZE, INITIAL_BALANCE, MARKET_TICK_SECONDS


class BotRunner:
    """
    Usage:
        runner = BotRunner(config, PriceSimulator(), create_signal_source(), gateway)
        await runner.restore()
        runner.start_market()
        runner.start_bot()
        ...
        await runner.shutdown()
    """

    def __init__(
        self,
        config: BotConfig,
        simulator: PriceSimulator,
        signal_source: SignalSource,
        gateway: StateGateway,
        *,
        news: list[MarketNews] | None = None,
        tick_seconds: float = MARKET_TICK_SECONDS,
        window_size: int = CANDLE_WINDOW_SIZE,
        initial_balance: float = INITIAL_BALANCE,
        journal: SignalJournal | None = None,
    ):
        self.simulator = simulator
        self.signal_source = signal_source
        self.gateway = gateway
        self.news = news if news is not None else MOCK_NEWS
        self.tick_seconds = tick_seconds
        self.initial_balance = initial_balance
        self.journal = journal

        self.engine = PositionEngine(config, balance=initial_balance)
        self.candles: deque[Candle] = deque(simulator.seed_window(window_size), maxlen=window_size)
        self.status = BotStatus.IDLE
        self.messages: queue.Queue[LogMessage] = queue.Queue()

        self._market_task: asyncio.Task | None = None
        self._signal_task: asyncio.Task | None = None

    # === PROPERTIES ===

    @property
    def config(self) -> BotConfig:
        return self.engine.config

    @property
    def is_running(self) -> bool:
        return self.status == BotStatus.RUNNING

    @property
    def current_price(self) -> float:
        return self.simulator.last_price

    def notify(self, message: str, level: str = "info") -> None:
        """Queue a notification for the dashboard."""
        self.messages.put(LogMessage(message=message, level=level))

    # === PERSISTENCE ===

    async def persist(self) -> bool:
        """Write-through save of the full engine state."""
        engine = self.engine
        return await self.gateway.save(
            engine.config, engine.trades, engine.logs, engine.balance, engine.profit
        )

    async def restore(self) -> bool:
        """Load the last snapshot. Returns False (defaults kept) when none exists."""
        snapshot = await self.gateway.load()
        if snapshot is None:
            print("   No saved state to restore")
            return False

        self.engine = PositionEngine(
            snapshot.config,
            balance=snapshot.balance,
            profit=snapshot.profit,
            trades=snapshot.trades,
            logs=snapshot.logs,
        )
        open_note = ""
        trade = self.engine.open_trade
        if trade is not None:
            # Resume the market near the saved position, not at the base price
            self.simulator.reanchor(trade.entry_price)
            self.candles = deque(self.simulator.seed_window(self.candles.maxlen), maxlen=self.candles.maxlen)
            open_note = f" (1 open position, market resumed from {trade.entry_price:,.2f})"
        print(
            f"   📂 Restored state: {len(snapshot.trades)} trade(s), "
            f"balance {snapshot.balance:,.2f}{open_note}"
        )
        return True

    # === SINGLE STEPS ===

    async def market_tick(self) -> Candle:
        """One market step: next candle, then TP/SL on the new close."""
        last = self.candles[-1] if self.candles else None
        candle = self.simulator.next(last)
        self.candles.append(candle)

        closed = self.engine.on_price_tick(candle.close)
        if closed is not None:
            pnl = closed.realized_profit or 0.0
            self.notify(
                f"{closed.close_reason.value} hit: closed {closed.symbol} @ {closed.exit_price:,.2f} ({pnl:+,.2f})",
                "trade",
            )
            await self.persist()
        return candle

    async def analysis_cycle(self) -> SignalResult:
        """
        One signal step. The signal source may suspend; price and position
        state are read from the runner after it returns.
        """
        candles = list(self.candles)
        result = await self.signal_source.analyze(candles, self.news, self.config)

        engine = self.engine
        engine.record_analysis(result)
        price = self.current_price
        changed = engine.on_signal(result, price)

        print(
            f"   🤖 Signal {result.action.value} ({result.confidence:g}%, {result.risk_level.value}) "
            f"@ {price:,.2f}: {result.reasoning}"
        )
        for trade in changed:
            if trade.is_open:
                self.notify(f"Opened BUY {trade.symbol} @ {trade.entry_price:,.2f}", "trade")
            else:
                self.notify(
                    f"Closed {trade.symbol} on signal ({trade.realized_profit:+,.2f})", "trade"
                )

        if self.journal is not None:
            self.journal.log_decision(self.config.trading_pair, price, result, acted=bool(changed))

        await self.persist()
        return result

    # === LOOPS ===

    async def _market_loop(self) -> None:
        print(f"Market loop started (tick: {self.tick_seconds:g}s)")
        while True:
            try:
                await self.market_tick()
                await asyncio.sleep(self.tick_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                print(f"Market loop error: {e}")
                self.notify(f"Market error: {e}", "error")
                await asyncio.sleep(self.tick_seconds)
        print("Market loop stopped")

    async def _signal_loop(self) -> None:
        print(f"Signal loop started (interval: {self.config.ai_interval_seconds}s)")
        while self.is_running:
            try:
                await self.analysis_cycle()
                await asyncio.sleep(self.config.ai_interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                print(f"Signal loop error: {e}")
                self.notify(f"Signal error: {e}", "error")
                await asyncio.sleep(self.config.ai_interval_seconds)
        print("Signal loop stopped")

    # === CONTROLS ===

    def start_market(self) -> None:
        """Start the market loop (idempotent). Needs a running event loop."""
        if self._market_task is None or self._market_task.done():
            self._market_task = asyncio.create_task(self._market_loop())

    def start_bot(self) -> None:
        """Start the signal loop (idempotent). Needs a running event loop."""
        if self.is_running:
            return
        self.status = BotStatus.RUNNING
        self._signal_task = asyncio.create_task(self._signal_loop())
        self.notify(f"Bot started on {self.config.trading_pair}")

    def stop_bot(self) -> None:
        """Cancel the signal loop only. Open positions stay open."""
        if not self.is_running:
            return
        self.status = BotStatus.PAUSED
        if self._signal_task and not self._signal_task.done():
            self._signal_task.cancel()
        self._signal_task = None
        self.notify("Bot stopped (open positions remain under TP/SL)")

    def toggle_bot(self) -> None:
        if self.is_running:
            self.stop_bot()
        else:
            self.start_bot()

    def update_config(self, config: BotConfig) -> bool:
        """Replace the config. Refused while the bot is running."""
        if self.is_running:
            self.notify("Stop the bot before changing settings", "warning")
            return False
        self.engine.update_config(config)
        return True

    async def manual_close(self) -> int:
        """Close every open position at the current price. Returns count closed."""
        closed = self.engine.manual_close(self.current_price)
        if closed:
            self.notify(f"Manually closed {len(closed)} position(s)", "trade")
            await self.persist()
        return len(closed)

    async def reset(self) -> None:
        """Wipe trades, logs and ledger (keeps config). Only when stopped."""
        if self.is_running:
            self.notify("Stop the bot before resetting", "warning")
            return
        self.engine = PositionEngine(self.config, balance=self.initial_balance)
        await self.gateway.clear()
        await self.persist()
        self.notify("Account reset")

    async def shutdown(self) -> None:
        """Cancel both loops, save a final snapshot and release resources."""
        tasks = [t for t in (self._signal_task, self._market_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self.is_running:
            self.status = BotStatus.PAUSED
        self._signal_task = None
        self._market_task = None

        await self.persist()
        await self.gateway.close()
