# main.py - Headless entry point.
"""
Runs the paper-trading bot without the dashboard:
1. Starts terminal logging
2. Restores the last saved state (or defaults)
3. Starts the market loop and the signal loop
4. Runs until Ctrl+C, then saves a final snapshot

Run with: python main.py
For the browser dashboard: python ui_dashboard.py
"""

import asyncio
import signal

from services.bot_runner import BotRunner
from services.logger import SignalJournal, terminal_logger
from services.market_sim import PriceSimulator
from services.signals import LLMSignalSource, create_signal_source
from services.storage import StateGateway, create_state_store
from settings import BASE_PRICE, MARKET_TICK_SECONDS, SIGNAL_MODEL, default_bot_config

shutdown_event = asyncio.Event()


def handle_shutdown(signum, frame):
    """Handle shutdown signals."""
    print("\nShutting down...")
    shutdown_event.set()


def print_notifications(runner: BotRunner) -> None:
    while not runner.messages.empty():
        msg = runner.messages.get_nowait()
        print(f"   [{msg.level}] {msg.message}")


async def main():
    """Main application entry point."""
    # Start terminal logging FIRST (before any print)
    log_path = terminal_logger.start()

    print("=" * 50)
    print("AstroTrade Paper Bot (headless)")
    print("=" * 50)
    print(f"Terminal log: {log_path}")

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    store = create_state_store()
    signal_source = create_signal_source()
    if isinstance(signal_source, LLMSignalSource) and signal_source.is_configured:
        print(f"Signal source: {SIGNAL_MODEL}")
    else:
        print("Signal source: fallback heuristic (no API key)")

    runner = BotRunner(
        default_bot_config(),
        PriceSimulator(base_price=BASE_PRICE),
        signal_source,
        StateGateway(store),
        journal=SignalJournal(),
    )

    print(f"Loading state ({store.NAME})...")
    await runner.restore()

    config = runner.config
    print(
        f"Pair: {config.trading_pair} | {config.amount_per_trade:g} USDT/trade | "
        f"SL {config.stop_loss_pct:g}% / TP {config.take_profit_pct:g}% | "
        f"AI every {config.ai_interval_seconds}s"
    )

    runner.start_market()
    runner.start_bot()
    print("Bot is running! Press Ctrl+C to stop.")
    print("=" * 50)

    try:
        while not shutdown_event.is_set():
            print_notifications(runner)
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=MARKET_TICK_SECONDS)
            except asyncio.TimeoutError:
                pass
    finally:
        print("Cleaning up...")
        await runner.shutdown()
        print_notifications(runner)
        print(f"Final balance: {runner.engine.balance:,.2f} (profit {runner.engine.profit:+,.2f})")
        print("Shutdown complete.")

        # Stop terminal logging LAST
        terminal_logger.stop()


if __name__ == "__main__":
    asyncio.run(main())
