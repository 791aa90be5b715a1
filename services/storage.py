"""
State persistence - full snapshot save/restore of the bot session.

Handles:
- Saving config, trades, decision logs, balance and profit after every change
- Loading the last snapshot on startup (None = use defaults)

Backends (same contract):
- LocalStateStore: JSON key-value file, data/state.json by default
- CloudStateStore: hosted "profiles" table (PostgREST), config column only

StateGateway wraps a backend and never raises: failures are printed and
the bot carries on in memory.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp

from models import AnalysisLog, BotConfig, Trade, User
from settings import (
    ADMIN_USER_ID,
    INITIAL_BALANCE,
    STATE_BACKEND,
    STATE_FILE,
    SUPABASE_KEY,
    SUPABASE_URL,
    current_user,
)


# === SNAPSHOT ===

@dataclass
class StateSnapshot:
    """A full copy of the engine state."""

    config: BotConfig
    trades: list[Trade] = field(default_factory=list)
    logs: list[AnalysisLog] = field(default_factory=list)
    balance: float = INITIAL_BALANCE
    profit: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "logs": [entry.to_dict() for entry in self.logs],
            "balance": self.balance,
            "profit": self.profit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StateSnapshot":
        """Each field defaults independently when absent."""
        return cls(
            config=BotConfig.from_dict(data["config"]),
            trades=[Trade.from_dict(t) for t in data.get("trades") or []],
            logs=[AnalysisLog.from_dict(entry) for entry in data.get("logs") or []],
            balance=float(data.get("balance", INITIAL_BALANCE)),
            profit=float(data.get("profit", 0.0)),
        )


# === BACKENDS ===

class StateStore(ABC):
    """Snapshot storage backend."""

    NAME: str = "base"

    @abstractmethod
    async def save(self, snapshot: StateSnapshot) -> None:
        """Persist the snapshot. May raise on I/O errors."""
        pass

    @abstractmethod
    async def load(self) -> StateSnapshot | None:
        """Return the stored snapshot, or None if nothing was saved yet."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete the stored snapshot."""
        pass


# Logical key names in the key-value file
KEYS = {
    "config": "astro_config",
    "trades": "astro_trades",
    "logs": "astro_logs",
    "balance": "astro_balance",
    "profit": "astro_profit",
}


class LocalStateStore(StateStore):
    """
    Key-value JSON file. Each value is itself a JSON string, keyed by
    the fixed names in KEYS.
    """

    NAME = "local"

    def __init__(self, path: Path = STATE_FILE):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        """Raw key-value map. An unreadable file reads as empty, so the next save replaces it."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"   Warning: Could not read {self.path.name}: {e}")
            return {}

        if not isinstance(data, dict):
            print(f"   Warning: {self.path.name} is not a key-value object, ignoring it")
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    async def save(self, snapshot: StateSnapshot) -> None:
        state = snapshot.to_dict()
        data = self._read()
        for name, key in KEYS.items():
            data[key] = json.dumps(state[name])
        self._write(data)

    async def load(self) -> StateSnapshot | None:
        data = self._read()
        if KEYS["config"] not in data:
            return None

        state = {
            name: json.loads(data[key])
            for name, key in KEYS.items()
            if key in data
        }
        return StateSnapshot.from_dict(state)

    async def clear(self) -> None:
        data = self._read()
        for key in KEYS.values():
            data.pop(key, None)
        self._write(data)


class CloudStateStore(StateStore):
    """
    Hosted backend: the user's row in the "profiles" table, config in
    the JSON "bot_config" column. Only the config is synced; trades,
    logs and balance stay local to the session.

    Usage:
        store = CloudStateStore(url, key, user)
        await store.save(snapshot)
        snapshot = await store.load()
        await store.close()
    """

    NAME = "cloud"
    TABLE = "profiles"
    COLUMN = "bot_config"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user: User,
        session: aiohttp.ClientSession | None = None,
    ):
        if not base_url or not api_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the cloud store")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.user = user
        self._session = session

    @property
    def _url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.TABLE}"

    @property
    def _is_admin(self) -> bool:
        return self.user.id == ADMIN_USER_ID

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                }
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def save(self, snapshot: StateSnapshot) -> None:
        if self._is_admin:
            return

        session = await self._get_session()
        params = {"id": f"eq.{self.user.id}"}
        payload = {self.COLUMN: snapshot.config.to_dict()}

        async with session.patch(self._url, params=params, json=payload) as response:
            if response.status not in (200, 204):
                text = await response.text()
                raise Exception(f"Cloud save error {response.status}: {text}")

    async def load(self) -> StateSnapshot | None:
        if self._is_admin:
            return None

        session = await self._get_session()
        params = {"id": f"eq.{self.user.id}", "select": self.COLUMN}

        async with session.get(self._url, params=params) as response:
            if response.status != 200:
                text = await response.text()
                raise Exception(f"Cloud load error {response.status}: {text}")
            rows = await response.json()

        if not rows or not rows[0].get(self.COLUMN):
            return None
        return StateSnapshot(config=BotConfig.from_dict(rows[0][self.COLUMN]))

    async def clear(self) -> None:
        if self._is_admin:
            return

        session = await self._get_session()
        params = {"id": f"eq.{self.user.id}"}
        async with session.patch(self._url, params=params, json={self.COLUMN: None}) as response:
            if response.status not in (200, 204):
                text = await response.text()
                raise Exception(f"Cloud clear error {response.status}: {text}")


# === GATEWAY ===

class StateGateway:
    """Write-through persistence that degrades to in-memory on failure."""

    def __init__(self, store: StateStore):
        self.store = store

    async def save(
        self,
        config: BotConfig,
        trades: list[Trade],
        logs: list[AnalysisLog],
        balance: float,
        profit: float,
    ) -> bool:
        snapshot = StateSnapshot(
            config=config, trades=trades, logs=logs, balance=balance, profit=profit
        )
        try:
            await self.store.save(snapshot)
            return True
        except Exception as e:
            print(f"   Error saving state ({self.store.NAME}): {e}")
            return False

    async def load(self) -> StateSnapshot | None:
        try:
            return await self.store.load()
        except Exception as e:
            print(f"   Warning: Could not load state ({self.store.NAME}): {e}")
            return None

    async def clear(self) -> bool:
        try:
            await self.store.clear()
            return True
        except Exception as e:
            print(f"   Error clearing state ({self.store.NAME}): {e}")
            return False

    async def close(self) -> None:
        if isinstance(self.store, CloudStateStore):
            await self.store.close()


def create_state_store() -> StateStore:
    """Pick the backend from STATE_BACKEND ("local" or "cloud")."""
    if STATE_BACKEND == "cloud":
        user = current_user()
        if user is None:
            raise ValueError("BOT_USER_ID must be set when STATE_BACKEND=cloud")
        return CloudStateStore(SUPABASE_URL, SUPABASE_KEY, user)
    return LocalStateStore(STATE_FILE)
