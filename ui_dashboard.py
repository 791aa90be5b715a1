#!/usr/bin/env python3
"""
AstroTrade Dashboard - NiceGUI Application

Live paper-trading terminal: simulated candles, AI decision log,
bot controls and trade history.

Usage:
    python ui_dashboard.py

Then open http://localhost:8080 in your browser.
"""

from dataclasses import dataclass, field

from nicegui import app, ui

from models import BotConfig, RISK_TOLERANCES, TRADING_MODES
from services.bot_runner import BotRunner
from services.logger import SignalJournal, terminal_logger
from services.market_sim import PriceSimulator, candles_to_df
from services.signals import create_signal_source
from services.storage import StateGateway, create_state_store
from settings import BASE_PRICE, SIGNAL_MODEL, UI_PORT, UI_TITLE, default_bot_config
from ui import TRADE_COLUMNS, candle_chart_options, format_usd, log_rows, trade_rows

# Refresh cadence of the page (seconds)
VIEW_REFRESH_SECONDS = 1.0


# ============================================================
# STATE MANAGEMENT
# ============================================================

@dataclass
class DraftConfig:
    """Editable copy of the bot settings. Applied to the runner as a whole."""

    values: dict = field(default_factory=dict)

    def load(self, config: BotConfig) -> None:
        self.values.clear()
        self.values.update(config.to_dict())

    def build(self) -> BotConfig:
        """Raises ValueError if any field is out of range."""
        return BotConfig.from_dict(self.values)


runner: BotRunner | None = None
draft = DraftConfig()


# ============================================================
# LIFECYCLE
# ============================================================

async def startup() -> None:
    global runner
    log_path = terminal_logger.start()
    print("=" * 50)
    print(UI_TITLE)
    print("=" * 50)
    print(f"Terminal log: {log_path}")

    store = create_state_store()
    print(f"State backend: {store.NAME}")

    runner = BotRunner(
        default_bot_config(),
        PriceSimulator(base_price=BASE_PRICE),
        create_signal_source(),
        StateGateway(store),
        journal=SignalJournal(),
    )
    await runner.restore()
    draft.load(runner.config)
    runner.start_market()


async def shutdown() -> None:
    if runner is not None:
        print("Cleaning up...")
        await runner.shutdown()
    print("Shutdown complete.")
    terminal_logger.stop()


app.on_startup(startup)
app.on_shutdown(shutdown)


# ============================================================
# UI COMPONENTS
# ============================================================

def create_header():
    """Create page header with balance and profit."""
    with ui.row().classes("w-full items-center justify-between mb-4"):
        with ui.column().classes("gap-0"):
            ui.label("Trading Terminal").classes("text-2xl font-bold")
            ui.label("Real-time AI analysis and simulated execution").classes("text-sm text-gray-500")

        with ui.row().classes("items-center gap-6"):
            ui.label(f"Model: {SIGNAL_MODEL}").classes("text-xs text-gray-500")
            with ui.column().classes("gap-0 items-end"):
                ui.label("ACCOUNT BALANCE").classes("text-xs text-gray-500")
                balance_label = ui.label().classes("text-2xl font-bold font-mono")
                profit_label = ui.label().classes("text-sm font-mono")

    def refresh():
        engine = runner.engine
        balance_label.set_text(format_usd(engine.balance))
        profit_label.set_text(f"{format_usd(engine.profit, signed=True)} USDT")
        profit_label.style(f"color: {'#0ecb81' if engine.profit >= 0 else '#f6465d'}")

    return refresh


def create_chart():
    """Create the candlestick chart with a CSV export of the visible window."""

    def do_export():
        df = candles_to_df(list(runner.candles))
        ui.download(df.to_csv(index=False).encode("utf-8"), "candles.csv")

    with ui.card().classes("w-full"):
        with ui.row().classes("w-full items-center justify-between"):
            pair_label = ui.label().classes("text-lg font-semibold")
            with ui.row().classes("items-center gap-4"):
                price_label = ui.label().classes("font-mono")
                ui.button("Export Candles", on_click=do_export, color="secondary").props("flat dense")
        chart = ui.echarts(candle_chart_options([])).classes("w-full h-80")

    def refresh():
        pair_label.set_text(runner.config.trading_pair)
        unrealized = runner.engine.unrealized_pnl(runner.current_price)
        suffix = f"  (open PnL {format_usd(unrealized, signed=True)})" if runner.engine.has_open_trade() else ""
        price_label.set_text(f"{format_usd(runner.current_price)}{suffix}")
        chart.options.clear()
        chart.options.update(candle_chart_options(list(runner.candles), runner.engine.open_trade))
        chart.update()

    return refresh


def create_control_panel():
    """Create bot status, start/stop and configuration inputs."""
    inputs = []

    async def do_apply():
        try:
            config = draft.build()
        except (ValueError, TypeError) as e:
            ui.notify(f"Invalid settings: {e}", type="negative")
            return
        if runner.update_config(config):
            await runner.persist()
            ui.notify("Settings saved", type="positive")

    async def do_close():
        count = await runner.manual_close()
        if not count:
            ui.notify("No open position", type="warning")

    async def do_reset():
        await runner.reset()

    with ui.card().classes("w-full"):
        with ui.row().classes("w-full items-center justify-between"):
            status_label = ui.label().classes("text-xl font-bold font-mono")
            with ui.row().classes("gap-2"):
                toggle_btn = ui.button(on_click=lambda: runner.toggle_bot())
                ui.button("Close Position", on_click=do_close, color="warning")
                reset_btn = ui.button("Reset", on_click=do_reset, color="grey")

        with ui.grid(columns=2).classes("w-full gap-4 mt-2"):
            inputs.append(ui.input("Trading Pair").bind_value(draft.values, "pair"))
            inputs.append(ui.number("Amount per Trade (USDT)", min=1, step=10).bind_value(draft.values, "amountPerTrade"))
            inputs.append(ui.number("Stop Loss (%)", min=0.1, step=0.1).bind_value(draft.values, "stopLoss"))
            inputs.append(ui.number("Take Profit (%)", min=0.1, step=0.1).bind_value(draft.values, "takeProfit"))
            inputs.append(ui.number("AI Interval (s)", min=1, step=1, format="%.0f").bind_value(draft.values, "aiInterval"))
            inputs.append(ui.select(list(RISK_TOLERANCES), label="Risk Tolerance").bind_value(draft.values, "riskTolerance"))
            inputs.append(ui.select(list(TRADING_MODES), label="Trading Mode").bind_value(draft.values, "tradingMode"))
            inputs.append(ui.input("API Key").bind_value(draft.values, "apiKey"))
            inputs.append(ui.input("API Secret", password=True).bind_value(draft.values, "apiSecret"))

        apply_btn = ui.button("Save Settings", on_click=do_apply).classes("mt-2")
        inputs.append(apply_btn)
        inputs.append(reset_btn)

    def refresh():
        running = runner.is_running
        status_label.set_text(f"Bot Status: {runner.status.value}")
        toggle_btn.set_text("STOP BOT" if running else "START BOT")
        toggle_btn.props(f"color={'negative' if running else 'positive'}")
        for element in inputs:
            element.set_enabled(not running)

    return refresh


def create_decision_log():
    """Create the AI decision log."""

    @ui.refreshable
    def entries():
        rows = log_rows(runner.engine.logs)
        if not rows:
            ui.label("Waiting for first analysis...").classes("text-gray-500 text-sm")
        for row in rows:
            with ui.card().classes("w-full p-2"):
                with ui.row().classes("w-full justify-between"):
                    ui.label(row["time"]).classes("text-xs text-gray-500")
                    ui.label(row["action"]).classes("text-xs font-bold").style(f"color: {row['color']}")
                ui.label(row["reasoning"]).classes("text-sm")
                ui.label(f"Confidence: {row['confidence']} | Risk: {row['risk']}").classes("text-xs text-gray-500")

    with ui.card().classes("w-full"):
        ui.label("AI Decision Log").classes("text-lg font-semibold")
        with ui.scroll_area().classes("w-full h-[28rem]"):
            entries()

    seen = {"count": -1, "head": None}

    def refresh():
        logs = runner.engine.logs
        head = id(logs[0]) if logs else None
        if (len(logs), head) != (seen["count"], seen["head"]):
            seen["count"], seen["head"] = len(logs), head
            entries.refresh()

    return refresh


def create_trade_history():
    """Create the trade history table with CSV export."""

    def do_export():
        df = runner.engine.get_trades_df()
        if df.empty:
            ui.notify("No trades to export", type="warning")
            return
        ui.download(df.to_csv(index=False).encode("utf-8"), "trades.csv")

    with ui.card().classes("w-full"):
        with ui.row().classes("w-full items-center justify-between"):
            ui.label("Trade History").classes("text-lg font-semibold")
            ui.button("Export CSV", on_click=do_export, color="secondary")
        table = ui.table(columns=TRADE_COLUMNS, rows=[], row_key="id").classes("w-full")

    def refresh():
        table.rows = trade_rows(runner.engine.trades)
        table.update()

    return refresh


def drain_notifications():
    """Forward runner notifications to the browser."""
    levels = {"info": "info", "warning": "warning", "error": "negative", "trade": "positive"}
    while not runner.messages.empty():
        msg = runner.messages.get_nowait()
        ui.notify(msg.message, type=levels.get(msg.level, "info"))


# ============================================================
# MAIN PAGE
# ============================================================

@ui.page("/")
def main_page():
    """Main dashboard page."""
    ui.dark_mode().enable()
    ui.colors(primary="#f0b90b")

    with ui.column().classes("w-full max-w-7xl mx-auto p-6"):
        refreshers = [create_header()]
        with ui.row().classes("w-full gap-6 no-wrap items-start"):
            with ui.column().classes("w-2/3"):
                refreshers.append(create_chart())
                refreshers.append(create_control_panel())
            with ui.column().classes("w-1/3"):
                refreshers.append(create_decision_log())
        refreshers.append(create_trade_history())

    def refresh_all():
        for refresh in refreshers:
            refresh()
        drain_notifications()

    refresh_all()
    ui.timer(VIEW_REFRESH_SECONDS, refresh_all)


# ============================================================
# RUN
# ============================================================

if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title=UI_TITLE,
        port=UI_PORT,
        reload=False,
        show=True,
    )
