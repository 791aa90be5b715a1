# services/signals.py - Trading signal sources.
"""
"The Brain" of the bot - turns recent candles and headlines into a
BUY / SELL / HOLD recommendation.

Two sources:
- HeuristicSignalSource: deterministic breakout rule, no network.
- LLMSignalSource: asks a generative model through an OpenAI-compatible
  chat API (Gemini by default) and validates the JSON it returns.

analyze() never raises. Every failure path resolves to the heuristic
result, with the reasoning text saying why the fallback was used.

Update this file to:
- Change the model or prompt
- Change the fallback rule
"""

import json
from abc import ABC, abstractmethod

from openai import AsyncOpenAI

from models import BotConfig, Candle, MarketNews, RiskLevel, SignalAction, SignalResult
from settings import SIGNAL_API_KEY, SIGNAL_BASE_URL, SIGNAL_MODEL

PROMPT_CANDLES = 10
PROMPT_NEWS = 3

# Heuristic confidences stay below the engine's 70 threshold,
# so the fallback alone never trades
BREAKOUT_CONFIDENCE = 60
NEUTRAL_CONFIDENCE = 20


class SignalSource(ABC):
    """Produces a SignalResult from recent market data."""

    NAME: str = "base"

    @abstractmethod
    async def analyze(
        self,
        candles: list[Candle],
        news: list[MarketNews],
        config: BotConfig,
    ) -> SignalResult:
        """Return a recommendation. Implementations must not raise."""
        pass


class HeuristicSignalSource(SignalSource):
    """
    Breakout rule on the last two candles:
    - close above the previous high  -> BUY  (medium confidence, MEDIUM risk)
    - close below the previous low   -> SELL (medium confidence, MEDIUM risk)
    - otherwise                      -> HOLD (low confidence, LOW risk)
    """

    NAME = "heuristic"

    async def analyze(self, candles, news, config) -> SignalResult:
        return self.evaluate(candles)

    @staticmethod
    def evaluate(candles: list[Candle], note: str = "") -> SignalResult:
        prefix = f"{note} " if note else ""

        if len(candles) < 2:
            return SignalResult(
                action=SignalAction.HOLD,
                confidence=0,
                reasoning=f"{prefix}Not enough price history for the fallback heuristic.",
                risk_level=RiskLevel.LOW,
            )

        prev, last = candles[-2], candles[-1]

        if last.close > prev.high:
            return SignalResult(
                action=SignalAction.BUY,
                confidence=BREAKOUT_CONFIDENCE,
                reasoning=f"{prefix}Fallback heuristic: close {last.close:,.2f} broke above previous high {prev.high:,.2f}.",
                risk_level=RiskLevel.MEDIUM,
            )
        if last.close < prev.low:
            return SignalResult(
                action=SignalAction.SELL,
                confidence=BREAKOUT_CONFIDENCE,
                reasoning=f"{prefix}Fallback heuristic: close {last.close:,.2f} broke below previous low {prev.low:,.2f}.",
                risk_level=RiskLevel.MEDIUM,
            )
        return SignalResult(
            action=SignalAction.HOLD,
            confidence=NEUTRAL_CONFIDENCE,
            reasoning=f"{prefix}Fallback heuristic: price inside previous candle range.",
            risk_level=RiskLevel.LOW,
        )


class LLMSignalSource(SignalSource):
    """
    Generative-model signal source.

    Uses the openai SDK against any OpenAI-compatible endpoint. A missing
    API key is not an error: analyze() just returns the heuristic result.
    """

    NAME = "llm"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = SIGNAL_MODEL,
        base_url: str = SIGNAL_BASE_URL,
        client: AsyncOpenAI | None = None,
    ):
        self.model_name = model
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._fallback = HeuristicSignalSource()

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    @staticmethod
    def build_prompt(candles: list[Candle], news: list[MarketNews], config: BotConfig) -> str:
        """Structured prompt: last 10 candles, top 3 headlines, pair and risk profile."""
        recent = [
            {"o": round(c.open, 2), "h": round(c.high, 2), "l": round(c.low, 2),
             "c": round(c.close, 2), "v": c.volume}
            for c in candles[-PROMPT_CANDLES:]
        ]
        headlines = "\n".join(f"- {n.headline}" for n in news[:PROMPT_NEWS]) or "- (none)"

        return f"""You are an expert crypto trading bot. Analyze the following market data for {config.trading_pair}.

Strategy: {config.risk_tolerance}

Recent Price Action (OHLC):
{json.dumps(recent)}

Recent News Headlines:
{headlines}

Based on this, determine the immediate trading action.
Respond with a single JSON object with exactly these keys:
- "action": one of "BUY", "SELL", "HOLD"
- "confidence": number between 0 and 100
- "reasoning": short explanation of the decision (max 20 words)
- "riskLevel": one of "LOW", "MEDIUM", "HIGH"
"""

    async def analyze(self, candles, news, config) -> SignalResult:
        if not self.is_configured:
            return self._fallback.evaluate(candles, note="AI API key missing.")

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "user", "content": self.build_prompt(candles, news, config)}],
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
            if not content:
                raise ValueError("empty response")
            return SignalResult.from_dict(json.loads(content))

        except Exception as e:
            print(f"   ⚠️ AI analysis failed: {e}")
            return self._fallback.evaluate(candles, note="AI analysis failed; used fallback.")


def create_signal_source() -> SignalSource:
    """Build the signal source from settings (LLM, falling back when no key)."""
    return LLMSignalSource(api_key=SIGNAL_API_KEY)
