"""
Key/value stores behind the engine.
"""
import json

import psycopg
import pytest

from eqle.app.puzzle.storage import JsonFileStore, MemoryStore, PgStore, StoreError, make_store


def test_json_store_survives_restart(tmp_path):
    path = str(tmp_path / "state" / "eqle.json")
    store = JsonFileStore(path)
    store.set_many({"CurrentStreak": 3, "WinDistribution": [0, 1, 0, 0, 0, 0]})
    store.remove("CurrentStreak")
    reopened = JsonFileStore(path)
    assert reopened.get("CurrentStreak") is None
    assert reopened.get("WinDistribution") == [0, 1, 0, 0, 0, 0]


def test_json_store_corrupt_file_reads_empty(tmp_path):
    path = tmp_path / "eqle.json"
    path.write_text("{not json")
    assert JsonFileStore(str(path)).state == {}
    path.write_text(json.dumps([1, 2, 3]))
    assert JsonFileStore(str(path)).state == {}


def test_json_store_write_failure_raises_store_error(tmp_path):
    target = tmp_path / "occupied"
    target.mkdir()
    store = JsonFileStore(str(target))
    with pytest.raises(StoreError):
        store.set("TotalGamesPlayed", 1)


def test_make_store_backends(tmp_path):
    assert isinstance(make_store({"backend": "memory"}), MemoryStore)
    js = make_store({"backend": "json", "path": str(tmp_path / "s.json")})
    assert isinstance(js, JsonFileStore)
    with pytest.raises(ValueError):
        make_store({"backend": "redis"})


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, args=()):
        self.conn.calls.append((sql, args))

    def executemany(self, sql, rows):
        self.conn.calls.append((sql, list(rows)))

    def fetchone(self):
        return self.conn.row


class FakeConn:
    def __init__(self, row=None):
        self.row = row
        self.calls = []
        self.committed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.committed = True


def test_pg_store_upserts_jsonb(monkeypatch):
    conn = FakeConn()
    monkeypatch.setattr(PgStore, "pg_conn", lambda self: conn)
    PgStore("postgresql://x").set_many({"CurrentStreak": 2})
    sql, rows = conn.calls[0]
    assert "ON CONFLICT (key) DO UPDATE" in sql
    assert rows[0][0] == "CurrentStreak"
    assert rows[0][1].obj == 2
    assert conn.committed


def test_pg_store_reads_value(monkeypatch):
    conn = FakeConn(row={"value": [1, 0, 0, 0, 0, 0]})
    monkeypatch.setattr(PgStore, "pg_conn", lambda self: conn)
    assert PgStore("postgresql://x").get("WinDistribution") == [1, 0, 0, 0, 0, 0]


def test_pg_store_read_failure(monkeypatch):
    def down(self):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(PgStore, "pg_conn", down)
    store = PgStore("postgresql://x")
    assert store.get("TotalGamesPlayed", 0) == 0
    with pytest.raises(StoreError):
        store.read("TotalGamesPlayed", 0)
    with pytest.raises(StoreError):
        store.set("TotalGamesPlayed", 1)


class BrokenDisk(MemoryStore):
    def _flush(self, state):
        raise StoreError("disk full")


def test_failed_flush_leaves_memory_unchanged():
    store = BrokenDisk({"TotalGamesPlayed": 4, "CurrentStreak": 2})
    with pytest.raises(StoreError):
        store.set_many({"TotalGamesPlayed": 5, "LastGameCompletedDate": "2024-03-10"})
    with pytest.raises(StoreError):
        store.remove_many(["CurrentStreak"])
    assert store.state == {"TotalGamesPlayed": 4, "CurrentStreak": 2}


def test_json_store_failed_write_keeps_file_and_memory(tmp_path):
    target = tmp_path / "occupied"
    target.mkdir()
    store = JsonFileStore(str(target))
    store.state = {"TotalGamesPlayed": 4}
    with pytest.raises(StoreError):
        store.set("TotalGamesPlayed", 5)
    assert store.get("TotalGamesPlayed") == 4


def test_json_store_unserializable_value(tmp_path):
    path = tmp_path / "eqle.json"
    store = JsonFileStore(str(path))
    store.set("TotalGamesPlayed", 4)
    with pytest.raises(StoreError):
        store.set_many({"TotalGamesPlayed": 5, "Bad": object()})
    assert store.get("TotalGamesPlayed") == 4
    assert "Bad" not in store.state
    assert json.loads(path.read_text()) == {"TotalGamesPlayed": 4}
    assert list(tmp_path.glob("*.tmp")) == []
