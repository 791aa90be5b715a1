# services/market_sim.py - Simulated price feed.
"""
Random-walk candle generator for paper trading.

Each simulator instance owns its own last price, so two sessions never
share a price stream. Not reproducible unless a seed is given.
"""

import numpy as np
import pandas as pd

from models import Candle, MarketNews
from services.time_utils import get_clock, get_timestamp_ms

DEFAULT_BASE_PRICE = 96_500.0
DEFAULT_VOLATILITY_PCT = 0.002  # 0.2% of price = one standard deviation

# Moves beyond this many standard deviations are clipped
MAX_SIGMA = 3.0

VOLUME_MIN = 10
VOLUME_MAX = 110  # exclusive


class PriceSimulator:
    """
    Stochastic candle source.

    Usage:
        sim = PriceSimulator(base_price=96500)
        window = sim.seed_window(20)
        candle = sim.next(window[-1])
        price = sim.last_price
    """

    def __init__(
        self,
        base_price: float = DEFAULT_BASE_PRICE,
        volatility_pct: float = DEFAULT_VOLATILITY_PCT,
        seed: int | None = None,
    ):
        if base_price <= 0:
            raise ValueError(f"base_price ({base_price}) must be > 0")
        if volatility_pct < 0:
            raise ValueError(f"volatility_pct ({volatility_pct}) must be >= 0")

        self.volatility_pct = volatility_pct
        self._last_price = float(base_price)
        self._rng = np.random.default_rng(seed)

    @property
    def last_price(self) -> float:
        """Most recent close produced by this simulator."""
        return self._last_price

    def next(self, last_candle: Candle | None = None) -> Candle:
        """Produce the next candle from the previous close (or the last price)."""
        base = last_candle.close if last_candle else self._last_price
        sigma = base * self.volatility_pct

        change = float(np.clip(self._rng.normal(0.0, sigma), -MAX_SIGMA * sigma, MAX_SIGMA * sigma))
        close = base + change
        high = max(base, close) + float(self._rng.uniform(0.0, sigma * 0.5))
        low = min(base, close) - float(self._rng.uniform(0.0, sigma * 0.5))
        volume = int(self._rng.integers(VOLUME_MIN, VOLUME_MAX))

        self._last_price = close

        return Candle(
            time=get_clock(),
            open=base,
            high=high,
            low=low,
            close=close,
            volume=volume,
        )

    def reanchor(self, price: float) -> None:
        """Continue the walk from price (e.g. the entry of a restored position)."""
        if price <= 0:
            raise ValueError(f"price ({price}) must be > 0")
        self._last_price = float(price)

    def seed_window(self, size: int = 20) -> list[Candle]:
        """Generate an initial history window (oldest first)."""
        candles: list[Candle] = []
        last = None
        for _ in range(size):
            last = self.next(last)
            candles.append(last)
        return candles


def candles_to_df(candles: list[Candle]) -> pd.DataFrame:
    """Convert candles to a DataFrame with columns: time, open, high, low, close, volume."""
    if not candles:
        return pd.DataFrame(columns=["time", "open", "high", "low", "close", "volume"])
    return pd.DataFrame([c.to_dict() for c in candles])


def _hours_ago(hours: int) -> int:
    return get_timestamp_ms() - hours * 3_600_000


MOCK_NEWS: list[MarketNews] = [
    MarketNews("1", "SEC considers new crypto regulations for DeFi protocols", "CryptoWire", _hours_ago(1)),
    MarketNews("2", "Bitcoin breaks $96k resistance level amid institutional inflows", "CoinDesk", _hours_ago(2)),
    MarketNews("3", "MEXC announces new listing of AI-themed tokens", "Exchange News", _hours_ago(3)),
    MarketNews("4", "Federal Reserve signals potential rate cut next quarter", "Bloomberg", _hours_ago(4)),
    MarketNews("5", "Whale alert: 5000 BTC moved to cold storage", "WhaleAlert", _hours_ago(5)),
]
