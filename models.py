# models.py - Pure data classes with NO dependencies.
"""
This module contains all shared data classes used across the application.
Having them in a separate file prevents circular imports.

All classes here should be:
- Pure dataclasses or Enums
- Have NO imports from other project modules
- Be importable by any module in the project

Serialized field names follow the JSON snapshot format (camelCase),
so a saved state file can be read back without a migration step.
"""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any


class BotStatus(str, Enum):
    """Run state of the bot (signal loop)."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    ERROR = "ERROR"


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CloseReason(str, Enum):
    """Why a trade was closed."""
    TP = "TP"
    SL = "SL"
    SIGNAL = "SIGNAL"
    MANUAL = "MANUAL"


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


RISK_TOLERANCES = ("conservative", "aggressive")
TRADING_MODES = ("paper", "live")

# Upper bounds for the percentage fields in BotConfig
MAX_STOP_LOSS_PCT = 100.0
MAX_TAKE_PROFIT_PCT = 1000.0


@dataclass(frozen=True)
class Candle:
    """A single simulated OHLCV sample."""
    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Candle":
        return cls(
            time=str(data["time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
        )


@dataclass
class BotConfig:
    """
    User-editable bot settings.

    Validated once on construction. Editing a live instance bypasses
    validation, so callers replace the whole object (see BotRunner.update_config).
    """
    trading_pair: str = "BTC/USDT"
    amount_per_trade: float = 100.0   # quote currency (USDT)
    risk_tolerance: str = "aggressive"  # "conservative" or "aggressive"
    ai_interval_seconds: int = 10
    stop_loss_pct: float = 2.0        # e.g. 2.0 for -2%
    take_profit_pct: float = 5.0      # e.g. 5.0 for +5%
    trading_mode: str = "paper"       # "paper" or "live"

    # Exchange credentials - carried for the UI, never used by the engine
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)

    def __post_init__(self):
        """Reject out-of-range values at the boundary."""
        if not self.trading_pair or not self.trading_pair.strip():
            raise ValueError("trading_pair cannot be empty")
        if not math.isfinite(self.amount_per_trade) or self.amount_per_trade <= 0:
            raise ValueError(f"amount_per_trade ({self.amount_per_trade}) must be a finite number > 0")
        if not math.isfinite(self.stop_loss_pct) or not 0 < self.stop_loss_pct < MAX_STOP_LOSS_PCT:
            raise ValueError(
                f"stop_loss_pct ({self.stop_loss_pct}) must be between 0 and {MAX_STOP_LOSS_PCT:g}"
            )
        if not math.isfinite(self.take_profit_pct) or not 0 < self.take_profit_pct <= MAX_TAKE_PROFIT_PCT:
            raise ValueError(
                f"take_profit_pct ({self.take_profit_pct}) must be between 0 and {MAX_TAKE_PROFIT_PCT:g}"
            )
        if self.ai_interval_seconds < 1:
            raise ValueError(f"ai_interval_seconds ({self.ai_interval_seconds}) must be >= 1")
        if self.risk_tolerance not in RISK_TOLERANCES:
            raise ValueError(
                f"risk_tolerance must be one of {', '.join(RISK_TOLERANCES)}, got '{self.risk_tolerance}'"
            )
        if self.trading_mode not in TRADING_MODES:
            raise ValueError(
                f"trading_mode must be one of {', '.join(TRADING_MODES)}, got '{self.trading_mode}'"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pair": self.trading_pair,
            "amountPerTrade": self.amount_per_trade,
            "riskTolerance": self.risk_tolerance,
            "aiInterval": self.ai_interval_seconds,
            "stopLoss": self.stop_loss_pct,
            "takeProfit": self.take_profit_pct,
            "tradingMode": self.trading_mode,
            "apiKey": self.api_key,
            "apiSecret": self.api_secret,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BotConfig":
        """Build from a snapshot dict; missing keys fall back to defaults."""
        defaults = cls()
        return cls(
            trading_pair=data.get("pair", defaults.trading_pair),
            amount_per_trade=float(data.get("amountPerTrade", defaults.amount_per_trade)),
            risk_tolerance=data.get("riskTolerance", defaults.risk_tolerance),
            ai_interval_seconds=int(data.get("aiInterval", defaults.ai_interval_seconds)),
            stop_loss_pct=float(data.get("stopLoss", defaults.stop_loss_pct)),
            take_profit_pct=float(data.get("takeProfit", defaults.take_profit_pct)),
            trading_mode=data.get("tradingMode", defaults.trading_mode),
            api_key=data.get("apiKey", ""),
            api_secret=data.get("apiSecret", ""),
        )


@dataclass
class Trade:
    """A simulated position. OPEN -> CLOSED is one-way."""
    id: str
    symbol: str
    side: TradeSide
    entry_price: float
    amount: float  # quote currency
    opened_at: int  # epoch ms
    status: TradeStatus = TradeStatus.OPEN
    sl_price: float | None = None
    tp_price: float | None = None
    realized_profit: float | None = None
    close_reason: CloseReason | None = None
    exit_price: float | None = None
    closed_at: int | None = None
    execution_mode: str = "PAPER"  # "PAPER" or "LIVE"

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "price": self.entry_price,
            "amount": self.amount,
            "timestamp": self.opened_at,
            "status": self.status.value,
            "slPrice": self.sl_price,
            "tpPrice": self.tp_price,
            "profit": self.realized_profit,
            "closeReason": self.close_reason.value if self.close_reason else None,
            "exitPrice": self.exit_price,
            "closedAt": self.closed_at,
            "executionMode": self.execution_mode,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Trade":
        reason = data.get("closeReason")
        return cls(
            id=str(data["id"]),
            symbol=data["symbol"],
            side=TradeSide(data["side"]),
            entry_price=float(data["price"]),
            amount=float(data["amount"]),
            opened_at=int(data["timestamp"]),
            status=TradeStatus(data.get("status", "OPEN")),
            sl_price=data.get("slPrice"),
            tp_price=data.get("tpPrice"),
            realized_profit=data.get("profit"),
            close_reason=CloseReason(reason) if reason else None,
            exit_price=data.get("exitPrice"),
            closed_at=data.get("closedAt"),
            execution_mode=data.get("executionMode", "PAPER"),
        )


@dataclass
class SignalResult:
    """A trading recommendation from a signal source."""
    action: SignalAction
    confidence: float  # 0-100
    reasoning: str
    risk_level: RiskLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "riskLevel": self.risk_level.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SignalResult":
        """
        Strict parse. Raises ValueError on missing keys, unknown enum
        values or confidence outside [0, 100].
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        missing = [k for k in ("action", "confidence", "reasoning", "riskLevel") if k not in data]
        if missing:
            raise ValueError(f"Missing keys: {', '.join(missing)}")

        confidence = data["confidence"]
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError(f"confidence must be a number, got {confidence!r}")
        if not 0 <= confidence <= 100:
            raise ValueError(f"confidence {confidence} outside 0-100")

        return cls(
            action=SignalAction(str(data["action"]).upper()),
            confidence=float(confidence),
            reasoning=str(data["reasoning"]),
            risk_level=RiskLevel(str(data["riskLevel"]).upper()),
        )


@dataclass
class AnalysisLog:
    """An archived signal result, shown in the decision log."""
    time: str
    result: SignalResult

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "result": self.result.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisLog":
        return cls(time=data["time"], result=SignalResult.from_dict(data["result"]))


@dataclass
class MarketNews:
    """A news headline fed into the analysis prompt."""
    id: str
    headline: str
    source: str
    timestamp: int  # epoch ms
    sentiment: str | None = None  # "BULLISH", "BEARISH", "NEUTRAL"


@dataclass
class User:
    """Identity supplied by the external auth provider."""
    id: str
    email: str
    role: str = "user"  # "admin" or "user"


@dataclass
class LogMessage:
    """Represents a notification from the bot to the operator."""
    message: str
    level: str = "info"  # "info", "warning", "error", "trade"
