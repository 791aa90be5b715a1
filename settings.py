# settings.py - Environment-driven configuration.
"""
All runtime settings are loaded from .env (project root) with sensible
defaults, so the bot runs in paper mode with zero configuration.

To change behavior, update .env:
- SIGNAL_API_KEY / SIGNAL_MODEL / SIGNAL_BASE_URL: AI signal provider
- MARKET_TICK_SECONDS: simulated candle cadence
- STATE_BACKEND: "local" (JSON file) or "cloud" (hosted profiles table)
- BOT_*: default bot configuration shown in the dashboard
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from models import BotConfig, User

PROJECT_ROOT = Path(__file__).parent
load_dotenv(PROJECT_ROOT / ".env")


# === PATHS ===

DATA_DIR = PROJECT_ROOT / "data"
LOG_DIR = DATA_DIR / "logs"
STATE_FILE = Path(os.getenv("STATE_FILE", str(DATA_DIR / "state.json")))


# === SIGNAL PROVIDER ===

# Gemini exposes an OpenAI-compatible endpoint, so the openai SDK works as-is
DEFAULT_SIGNAL_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

SIGNAL_API_KEY = (
    os.getenv("SIGNAL_API_KEY")
    or os.getenv("GEMINI_API_KEY")
    or os.getenv("API_KEY")
)
SIGNAL_MODEL = os.getenv("SIGNAL_MODEL", "gemini-2.5-flash")
SIGNAL_BASE_URL = os.getenv("SIGNAL_BASE_URL", DEFAULT_SIGNAL_BASE_URL)


# === MARKET SIMULATION ===

MARKET_TICK_SECONDS = float(os.getenv("MARKET_TICK_SECONDS", "2"))
BASE_PRICE = float(os.getenv("BASE_PRICE", "96500"))
CANDLE_WINDOW_SIZE = 20
INITIAL_BALANCE = float(os.getenv("INITIAL_BALANCE", "10000"))


# === PERSISTENCE ===

STATE_BACKEND = os.getenv("STATE_BACKEND", "local").lower()
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
BOT_USER_ID = os.getenv("BOT_USER_ID", "")
BOT_USER_EMAIL = os.getenv("BOT_USER_EMAIL", "")

# Built-in admin account has no cloud profile row
ADMIN_USER_ID = "admin-master-id"


# === UI ===

UI_PORT = int(os.getenv("UI_PORT", "8080"))
UI_TITLE = "AstroTrade"
BOT_TIMEZONE = os.getenv("BOT_TIMEZONE", "UTC")


def default_bot_config() -> BotConfig:
    """Build the default BotConfig from BOT_* env vars."""
    return BotConfig(
        trading_pair=os.getenv("BOT_PAIR", "BTC/USDT"),
        amount_per_trade=float(os.getenv("BOT_AMOUNT", "100")),
        risk_tolerance=os.getenv("BOT_RISK", "aggressive"),
        ai_interval_seconds=int(os.getenv("BOT_AI_INTERVAL", "10")),
        stop_loss_pct=float(os.getenv("BOT_STOP_LOSS", "2")),
        take_profit_pct=float(os.getenv("BOT_TAKE_PROFIT", "5")),
        trading_mode=os.getenv("BOT_MODE", "paper"),
        api_key=os.getenv("EXCHANGE_API_KEY", ""),
        api_secret=os.getenv("EXCHANGE_API_SECRET", ""),
    )


def current_user() -> User | None:
    """Identity for the cloud store, or None when not configured."""
    if not BOT_USER_ID:
        return None
    return User(id=BOT_USER_ID, email=BOT_USER_EMAIL)
