from __future__ import annotations

import json
from pathlib import Path

from stats_import.services.session_store import JsonFileSessionStore, MemorySessionStore

SNAPSHOT = {"owner_id": "o", "file_name": "stats.xlsx", "step": "validate", "headers": ["Mois", "Portée"]}


def test_memory_store():
    store = MemorySessionStore()
    assert store.load() is None
    store.save(SNAPSHOT)
    loaded = store.load()
    assert loaded == SNAPSHOT and loaded is not SNAPSHOT
    store.clear()
    assert store.load() is None


def test_json_file_store_round_trip(tmp_path: Path):
    path = tmp_path / "state" / "session.json"
    store = JsonFileSessionStore(path)
    assert store.load() is None
    store.save(SNAPSHOT)
    assert json.loads(path.read_text(encoding="utf-8")) == SNAPSHOT
    assert store.load() == SNAPSHOT
    store.clear()
    assert not path.exists()
    store.clear()  # already gone


def test_json_file_store_ignores_corrupt_file(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileSessionStore(path).load() is None
    path.write_text("[1, 2]", encoding="utf-8")
    assert JsonFileSessionStore(path).load() is None


def test_json_file_store_save_failure_is_logged(tmp_path: Path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileSessionStore(blocker / "session.json")
    store.save(SNAPSHOT)
    assert "session snapshot not saved" in caplog.text
