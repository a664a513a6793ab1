from __future__ import annotations
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

logger = logging.getLogger(__name__)

# Persistence keys
DAILY_EQUATION = "DailyEquation"
LAST_EQUATION_DATE = "LastEquationDate"
LAST_GAME_COMPLETED_DATE = "LastGameCompletedDate"
LAST_STATS_UPDATE = "LastStatsUpdate"
LAST_WIN_DATE = "LastWinDate"
LAST_PLAYED_DATE = "LastPlayedDate"
CURRENT_STREAK = "CurrentStreak"
BEST_STREAK = "BestStreak"
TOTAL_GAMES_PLAYED = "TotalGamesPlayed"
TOTAL_GAMES_WON = "TotalGamesWon"
WIN_DISTRIBUTION = "WinDistribution"
FEWEST_TRIES = "FewestTries"
SAVED_GUESSES = "SavedGuesses"
CURRENT_GUESS_INDEX = "CurrentGuessIndex"
CURRENT_CHAR_INDEX = "CurrentCharIndex"
KEY_COLORS = "KeyColors"

SESSION_KEYS = (
    SAVED_GUESSES,
    CURRENT_GUESS_INDEX,
    CURRENT_CHAR_INDEX,
    KEY_COLORS,
    LAST_PLAYED_DATE,
)


class StoreError(RuntimeError):
    """The backing store could not be read or written."""


class MemoryStore:
    """Dict-backed store; also the base for the file store."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.state: Dict[str, Any] = dict(initial or {})

    def get(self, k: str, default=None):
        return self.state.get(k, default)

    def read(self, k: str, default=None):
        """Like get, but a failed read raises StoreError instead of defaulting."""
        return self.state.get(k, default)

    def set(self, k: str, v: Any) -> None:
        self.set_many({k: v})

    def remove(self, k: str) -> None:
        self.remove_many([k])

    def set_many(self, items: Dict[str, Any]) -> None:
        new_state = dict(self.state, **items)
        self._flush(new_state)
        self.state = new_state

    def remove_many(self, keys) -> None:
        gone = set(keys)
        new_state = {k: v for k, v in self.state.items() if k not in gone}
        self._flush(new_state)
        self.state = new_state

    def _flush(self, state: Dict[str, Any]) -> None:
        pass


class JsonFileStore(MemoryStore):
    def __init__(self, path: str = "out/eqle_state.json"):
        super().__init__()
        self.path = path
        if os.path.exists(path):
            try:
                with open(path, "r") as f:
                    loaded = json.load(f)
                self.state = loaded if isinstance(loaded, dict) else {}
            except (OSError, ValueError):
                logger.warning("unreadable state file %s; starting empty", path)
                self.state = {}

    def _flush(self, state: Dict[str, Any]) -> None:
        # whole-file replace so readers never see a partial write
        folder = os.path.dirname(self.path) or "."
        tmp = None
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=folder, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(state, f)
            os.replace(tmp, self.path)
            tmp = None
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"could not write {self.path}: {e}") from e
        finally:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)


class PgStore:
    """Key/value rows in ``eqle_kv`` (key text primary key, value jsonb)."""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or os.getenv("PG_DSN")

    def pg_conn(self):
        if self.dsn:
            return psycopg.connect(self.dsn, row_factory=dict_row)
        return psycopg.connect(row_factory=dict_row)

    def ensure_table(self) -> None:
        with self.pg_conn() as conn, conn.cursor() as cur:
            cur.execute(
                "CREATE TABLE IF NOT EXISTS eqle_kv (key TEXT PRIMARY KEY, value JSONB)"
            )
            conn.commit()

    def read(self, k: str, default=None):
        try:
            with self.pg_conn() as conn, conn.cursor() as cur:
                cur.execute("SELECT value FROM eqle_kv WHERE key=%s", (k,))
                row = cur.fetchone()
        except psycopg.Error as e:
            raise StoreError(f"could not read {k}: {e}") from e
        return default if row is None else row["value"]

    def get(self, k: str, default=None):
        try:
            return self.read(k, default)
        except StoreError as e:
            logger.warning("%s; using default", e)
            return default

    def set(self, k: str, v: Any) -> None:
        self.set_many({k: v})

    def remove(self, k: str) -> None:
        self.remove_many([k])

    def set_many(self, items: Dict[str, Any]) -> None:
        sql = (
            "INSERT INTO eqle_kv (key, value) VALUES (%s, %s) "
            "ON CONFLICT (key) DO UPDATE SET value=EXCLUDED.value"
        )
        try:
            with self.pg_conn() as conn, conn.cursor() as cur:
                cur.executemany(sql, [(k, Jsonb(v)) for k, v in items.items()])
                conn.commit()
        except psycopg.Error as e:
            raise StoreError(f"could not write {sorted(items)}: {e}") from e

    def remove_many(self, keys) -> None:
        try:
            with self.pg_conn() as conn, conn.cursor() as cur:
                cur.execute("DELETE FROM eqle_kv WHERE key = ANY(%s)", (list(keys),))
                conn.commit()
        except psycopg.Error as e:
            raise StoreError(f"could not remove {list(keys)}: {e}") from e


def make_store(cfg: Dict[str, Any]):
    backend = (cfg.get("backend") or "json").lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "postgres":
        store = PgStore(cfg.get("dsn"))
        store.ensure_table()
        return store
    if backend == "json":
        return JsonFileStore(cfg.get("path") or "out/eqle_state.json")
    raise ValueError(f"unknown store backend: {backend}")
