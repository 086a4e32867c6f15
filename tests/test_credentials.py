from __future__ import annotations

import json
import stat
from pathlib import Path

from dashsync.credentials import FileCredentialStore, MemoryCredentialStore


def test_memory_store_round_trip() -> None:
    store = MemoryCredentialStore()
    assert store.get() is None
    store.set("tok")
    assert store.get() == "tok"
    store.clear()
    assert store.get() is None


def test_file_store_writes_owner_only_json(tmp_path: Path) -> None:
    path = tmp_path / "state" / "credential.json"
    store = FileCredentialStore(path)

    store.set("tok")

    assert json.loads(path.read_text(encoding="utf-8")) == {"token": "tok"}
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert FileCredentialStore(path).get() == "tok"
    assert [p.name for p in path.parent.iterdir()] == ["credential.json"]


def test_file_store_clear_is_idempotent(tmp_path: Path) -> None:
    store = FileCredentialStore(tmp_path / "credential.json")
    store.set("tok")
    store.clear()
    store.clear()
    assert store.get() is None


def test_file_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "credential.json"
    path.write_text("{not json", encoding="utf-8")
    assert FileCredentialStore(path).get() is None

    path.write_text(json.dumps({"token": ""}), encoding="utf-8")
    assert FileCredentialStore(path).get() is None
