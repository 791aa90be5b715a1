import pytest

from models import BotConfig, Candle, RiskLevel, SignalAction, SignalResult
from services.engine import PositionEngine
from services.signals import SignalSource


def make_signal(action: str, confidence: float = 90, risk: str = "MEDIUM") -> SignalResult:
    return SignalResult(
        action=SignalAction(action),
        confidence=confidence,
        reasoning=f"test {action}",
        risk_level=RiskLevel(risk),
    )


def make_candle(close: float, high: float | None = None, low: float | None = None, time: str = "10:00:00") -> Candle:
    return Candle(
        time=time,
        open=close,
        high=high if high is not None else close,
        low=low if low is not None else close,
        close=close,
        volume=50,
    )


class StaticSignalSource(SignalSource):
    """Returns a fixed result and records the candles it was given."""

    NAME = "static"

    def __init__(self, result: SignalResult):
        self.result = result
        self.calls: list[list[Candle]] = []

    async def analyze(self, candles, news, config):
        self.calls.append(list(candles))
        return self.result


@pytest.fixture
def config() -> BotConfig:
    return BotConfig(amount_per_trade=100, stop_loss_pct=2, take_profit_pct=5)


@pytest.fixture
def engine(config) -> PositionEngine:
    return PositionEngine(config, balance=10_000.0)
