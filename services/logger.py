# services/logger.py - Session logging.
"""
Session logging - terminal capture and a CSV journal of signal decisions.

Terminal Logger:
- Captures ALL print() output without modifying existing code
- Session-based files: data/logs/terminal_YYYYMMDD_HHMMSS.txt

Signal Journal:
- One row per analysis cycle (price, action, confidence, whether it traded)
- Session-based files: data/logs/signals_YYYYMMDD_HHMMSS.csv

Usage:
    from services.logger import terminal_logger
    terminal_logger.start()

    # All subsequent print() calls are logged automatically

    terminal_logger.stop()
"""

import csv
import sys
import threading
from pathlib import Path
from typing import TextIO

from models import SignalResult
from settings import LOG_DIR
from services.time_utils import get_now, get_session_stamp


class TeeWriter:
    """
    A file-like object that writes to both the original stream and a log file.

    Every line gets a "[HH:MM:SS] " prefix. Thread-safe: uses a lock for file writes.
    """

    def __init__(self, original: TextIO, log_file: TextIO):
        self.original = original
        self.log_file = log_file
        self._lock = threading.Lock()
        self.at_line_start = True

    def _stamp(self, message: str) -> str:
        timestamp = f"[{get_now().strftime('%H:%M:%S')}] "
        out = []
        parts = message.split("\n")

        for i, part in enumerate(parts):
            is_last = i == len(parts) - 1
            if not is_last:
                out.append((timestamp if self.at_line_start else "") + part + "\n")
                self.at_line_start = True
            elif part:
                out.append((timestamp if self.at_line_start else "") + part)
                self.at_line_start = False

        return "".join(out)

    def write(self, message: str) -> int:
        """Write to both original stream and log file with timestamps."""
        with self._lock:
            out_str = self._stamp(message)
            self.original.write(out_str)
            if not self.log_file.closed:
                self.log_file.write(out_str)
                self.log_file.flush()
        return len(message)

    def flush(self) -> None:
        self.original.flush()
        with self._lock:
            if not self.log_file.closed:
                self.log_file.flush()

    def fileno(self) -> int:
        """Return original fileno for compatibility."""
        return self.original.fileno()

    def isatty(self) -> bool:
        return self.original.isatty()


class TerminalLogger:
    """Singleton terminal logger that captures stdout/stderr into a session file."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, log_dir: Path = LOG_DIR):
        if self._initialized:
            return

        self._initialized = True
        self.log_dir = log_dir
        self._log_file: TextIO | None = None
        self._original_stdout: TextIO | None = None
        self._original_stderr: TextIO | None = None
        self._session_file: Path | None = None
        self._started = False

    def start(self) -> Path:
        """Start capturing terminal output. Returns the session file path."""
        if self._started:
            return self._session_file

        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = get_session_stamp()
        self._session_file = self.log_dir / f"terminal_{stamp}.txt"
        self._log_file = open(self._session_file, "w", encoding="utf-8")

        self._log_file.write(f"=== Terminal Log Session: {stamp} ===\n")
        self._log_file.write(f"Started: {get_now().isoformat()}\n")
        self._log_file.write("=" * 60 + "\n\n")
        self._log_file.flush()

        self._original_stdout = sys.stdout
        self._original_stderr = sys.stderr
        sys.stdout = TeeWriter(self._original_stdout, self._log_file)
        sys.stderr = TeeWriter(self._original_stderr, self._log_file)

        self._started = True
        return self._session_file

    def stop(self) -> None:
        """Stop capturing and restore original stdout/stderr."""
        if not self._started:
            return

        if self._original_stdout:
            sys.stdout = self._original_stdout
        if self._original_stderr:
            sys.stderr = self._original_stderr

        if self._log_file:
            self._log_file.write(f"\n{'=' * 60}\n")
            self._log_file.write(f"Session ended: {get_now().isoformat()}\n")
            self._log_file.close()

        self._started = False

    @property
    def log_path(self) -> Path | None:
        return self._session_file


# Singleton instance
terminal_logger = TerminalLogger()


# =============================================================================
# SIGNAL JOURNAL - One CSV row per analysis cycle
# =============================================================================

JOURNAL_COLUMNS = [
    "event_time", "pair", "price", "action", "confidence",
    "risk", "acted", "reasoning",
]


class SignalJournal:
    """
    Appends every signal decision to a session CSV.

    Session-based files: data/logs/signals_YYYYMMDD_HHMMSS.csv

    Usage:
        journal = SignalJournal()
        journal.log_decision("BTC/USDT", 96500.0, result, acted=False)
    """

    def __init__(self, log_dir: Path = LOG_DIR):
        self.log_dir = log_dir
        self._session_file: Path | None = None
        self._lock = threading.Lock()

    def _open_session(self) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.log_dir / f"signals_{get_session_stamp()}.csv"
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(JOURNAL_COLUMNS)
        print(f"   📝 Signal journal: {path.name}")
        return path

    def log_decision(self, pair: str, price: float, result: SignalResult, acted: bool) -> bool:
        """Append one row. Returns False (and prints) if the file can't be written."""
        with self._lock:
            try:
                if self._session_file is None:
                    self._session_file = self._open_session()

                with open(self._session_file, "a", newline="", encoding="utf-8") as f:
                    csv.writer(f).writerow([
                        get_now().isoformat(timespec="seconds"),
                        pair,
                        round(price, 2),
                        result.action.value,
                        f"{result.confidence:g}",
                        result.risk_level.value,
                        acted,
                        result.reasoning,
                    ])
                return True

            except OSError as e:
                print(f"[SignalJournal] Error writing decision: {e}")
                return False

    @property
    def log_path(self) -> Path | None:
        return self._session_file
