# ui/formatters.py
"""View-model helpers for the dashboard. Pure functions, no NiceGUI imports."""

from models import AnalysisLog, Candle, SignalAction, Trade
from services.time_utils import format_ms

GREEN = "#0ecb81"
RED = "#f6465d"
GREY = "#848e9c"

TRADE_COLUMNS = [
    {"name": "time", "label": "Time", "field": "time", "align": "left"},
    {"name": "pair", "label": "Pair", "field": "pair", "align": "left"},
    {"name": "side", "label": "Side", "field": "side", "align": "left"},
    {"name": "entry", "label": "Entry", "field": "entry", "align": "right"},
    {"name": "exit", "label": "Exit", "field": "exit", "align": "right"},
    {"name": "amount", "label": "Amount", "field": "amount", "align": "right"},
    {"name": "status", "label": "Status", "field": "status", "align": "left"},
    {"name": "pnl", "label": "PnL", "field": "pnl", "align": "right"},
]


def format_usd(value: float | None, signed: bool = False) -> str:
    """'$1,234.57', or '+12.30' style when signed."""
    if value is None:
        return "-"
    if signed:
        return f"{value:+,.2f}"
    return f"${value:,.2f}"


def action_color(action: SignalAction) -> str:
    if action == SignalAction.BUY:
        return GREEN
    if action == SignalAction.SELL:
        return RED
    return GREY


def trade_rows(trades: list[Trade]) -> list[dict]:
    """Table rows, newest trade first."""
    rows = []
    for trade in reversed(trades):
        status = trade.status.value
        if trade.close_reason:
            status = f"{status} ({trade.close_reason.value})"
        rows.append({
            "id": trade.id,
            "time": format_ms(trade.opened_at, "%H:%M:%S"),
            "pair": trade.symbol,
            "side": trade.side.value,
            "entry": format_usd(trade.entry_price),
            "exit": format_usd(trade.exit_price),
            "amount": f"{trade.amount:g} USDT",
            "status": status,
            "pnl": format_usd(trade.realized_profit, signed=True),
        })
    return rows


def log_rows(logs: list[AnalysisLog]) -> list[dict]:
    """Decision log entries, newest first (the engine already stores them that way)."""
    return [
        {
            "time": entry.time,
            "action": entry.result.action.value,
            "color": action_color(entry.result.action),
            "reasoning": entry.result.reasoning,
            "confidence": f"{entry.result.confidence:g}%",
            "risk": entry.result.risk_level.value,
        }
        for entry in logs
    ]


def candle_chart_options(candles: list[Candle], trade: Trade | None = None) -> dict:
    """
    ECharts candlestick options. When a position is open, its entry,
    SL and TP levels are drawn as horizontal mark lines.
    """
    mark_lines = []
    if trade is not None:
        mark_lines = [
            {"name": "Entry", "yAxis": trade.entry_price, "lineStyle": {"color": GREY}},
        ]
        if trade.sl_price is not None:
            mark_lines.append({"name": "SL", "yAxis": trade.sl_price, "lineStyle": {"color": RED}})
        if trade.tp_price is not None:
            mark_lines.append({"name": "TP", "yAxis": trade.tp_price, "lineStyle": {"color": GREEN}})

    return {
        "animation": False,
        "grid": {"left": 70, "right": 20, "top": 20, "bottom": 30},
        "xAxis": {"type": "category", "data": [c.time for c in candles]},
        "yAxis": {"type": "value", "scale": True},
        "tooltip": {"trigger": "axis"},
        "series": [{
            "type": "candlestick",
            # ECharts order: open, close, low, high
            "data": [
                [round(c.open, 2), round(c.close, 2), round(c.low, 2), round(c.high, 2)]
                for c in candles
            ],
            "itemStyle": {
                "color": GREEN,
                "color0": RED,
                "borderColor": GREEN,
                "borderColor0": RED,
            },
            "markLine": {"symbol": "none", "data": mark_lines},
        }],
    }
