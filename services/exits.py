"""
Centralized exit logic for TP/SL - Single source of truth.

Used by the position engine on every price tick. Positions are long-only,
so stop-loss sits below entry and take-profit above it.
"""

from models import CloseReason


def check_exit(
    sl_price: float | None,
    tp_price: float | None,
    price: float,
) -> dict | None:
    """
    Check if a long position should exit at the given price.

    Stop-loss is checked first, so a gap through both levels closes as SL.
    Returns {"price": exit_price, "reason": CloseReason} or None.
    """
    if sl_price is not None and price <= sl_price:
        return {"price": price, "reason": CloseReason.SL}
    if tp_price is not None and price >= tp_price:
        return {"price": price, "reason": CloseReason.TP}
    return None


def calculate_tp_sl_prices(
    entry_price: float,
    tp_pct: float,
    sl_pct: float,
) -> tuple[float, float]:
    """
    Calculate TP and SL prices from percentages (e.g. 5.0 = 5%).

    Returns (tp_price, sl_price).
    """
    tp_price = entry_price * (1 + tp_pct / 100)
    sl_price = entry_price * (1 - sl_pct / 100)
    return tp_price, sl_price


def realized_pnl(entry_price: float, exit_price: float, amount: float) -> float:
    """
    PnL of a long position sized in quote currency.

    amount / entry_price converts the quote amount into base units.
    """
    return (exit_price - entry_price) * (amount / entry_price)
