"""UI helpers for the trading dashboard."""

from .formatters import (
    TRADE_COLUMNS,
    candle_chart_options,
    format_usd,
    log_rows,
    trade_rows,
)

__all__ = [
    "TRADE_COLUMNS",
    "candle_chart_options",
    "format_usd",
    "log_rows",
    "trade_rows",
]
