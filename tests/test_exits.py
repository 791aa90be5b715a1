import pytest

from models import CloseReason
from services.exits import calculate_tp_sl_prices, check_exit, realized_pnl


def test_levels_from_percentages():
    tp, sl = calculate_tp_sl_prices(100_000, tp_pct=5, sl_pct=2)

    assert tp == pytest.approx(105_000)
    assert sl == pytest.approx(98_000)


def test_inside_band_no_exit():
    assert check_exit(98_000, 105_000, 100_000) is None


@pytest.mark.parametrize(
    "price,reason",
    [
        (98_000, CloseReason.SL),
        (90_000, CloseReason.SL),
        (105_000, CloseReason.TP),
        (120_000, CloseReason.TP),
    ],
)
def test_exit_reasons(price, reason):
    result = check_exit(98_000, 105_000, price)

    assert result == {"price": price, "reason": reason}


def test_stop_loss_checked_first():
    assert check_exit(101, 99, 100)["reason"] == CloseReason.SL


def test_missing_levels_never_exit():
    assert check_exit(None, None, 1) is None


def test_realized_pnl_scales_with_quote_amount():
    assert realized_pnl(100_000, 97_900, 100) == pytest.approx(-2.1)
    assert realized_pnl(50, 55, 200) == pytest.approx(20.0)
