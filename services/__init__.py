"""Services package - simulation, signals, engine and persistence."""

from .time_utils import get_now, get_clock, get_timestamp_ms, format_ms, BOT_TZ
from .logger import SignalJournal, terminal_logger
from .exits import check_exit, calculate_tp_sl_prices, realized_pnl
from .market_sim import PriceSimulator, MOCK_NEWS, candles_to_df
from .engine import PositionEngine, SIGNAL_CONFIDENCE_THRESHOLD, MAX_ANALYSIS_LOGS
from .signals import SignalSource, HeuristicSignalSource, LLMSignalSource, create_signal_source
from .storage import (
    StateSnapshot,
    StateStore,
    LocalStateStore,
    CloudStateStore,
    StateGateway,
    create_state_store,
)
from .bot_runner import BotRunner

__all__ = [
    # Time
    "get_now",
    "get_clock",
    "get_timestamp_ms",
    "format_ms",
    "BOT_TZ",
    # Logging
    "SignalJournal",
    "terminal_logger",
    # Exit rules
    "check_exit",
    "calculate_tp_sl_prices",
    "realized_pnl",
    # Market simulation
    "PriceSimulator",
    "MOCK_NEWS",
    "candles_to_df",
    # Engine
    "PositionEngine",
    "SIGNAL_CONFIDENCE_THRESHOLD",
    "MAX_ANALYSIS_LOGS",
    # Signals
    "SignalSource",
    "HeuristicSignalSource",
    "LLMSignalSource",
    "create_signal_source",
    # Persistence
    "StateSnapshot",
    "StateStore",
    "LocalStateStore",
    "CloudStateStore",
    "StateGateway",
    "create_state_store",
    # Orchestration
    "BotRunner",
]
