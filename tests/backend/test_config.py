from __future__ import annotations

import pytest
from pydantic import ValidationError

from lingoloop.config import DEFAULT_DB_PATH, Settings


def _settings(monkeypatch: pytest.MonkeyPatch, **env: str) -> Settings:
    for key in ("STORAGE_BACKEND", "LINGOLOOP_DB_PATH", "SRS_DB_PATH", "DEFAULT_USER_ID"):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Settings(_env_file=None)


def test_defaults(monkeypatch):
    s = _settings(monkeypatch)
    assert s.storage_backend == "sqlite"
    assert s.lingoloop_db_path == DEFAULT_DB_PATH
    assert s.default_user_id == "local"
    assert s.review_session_limit == 0


def test_storage_backend_is_normalised(monkeypatch):
    assert _settings(monkeypatch, STORAGE_BACKEND=" Synced ").storage_backend == "synced"


def test_unknown_storage_backend_fails_fast(monkeypatch):
    with pytest.raises(ValidationError, match="STORAGE_BACKEND"):
        _settings(monkeypatch, STORAGE_BACKEND="mongo")


def test_legacy_db_path_variable_is_accepted(monkeypatch):
    assert _settings(monkeypatch, SRS_DB_PATH="/tmp/srs.sqlite3").lingoloop_db_path == "/tmp/srs.sqlite3"


def test_blank_default_user_is_rejected(monkeypatch):
    with pytest.raises(ValidationError):
        _settings(monkeypatch, DEFAULT_USER_ID="   ")


def test_create_store_selects_backend(monkeypatch, tmp_path):
    import lingoloop.store as store_module

    monkeypatch.setattr(store_module.settings, "lingoloop_db_path", str(tmp_path / "db.sqlite3"))

    assert isinstance(store_module.create_store("memory"), store_module.InMemoryVocabularyStore)
    assert isinstance(store_module.create_store("SQLite"), store_module.SQLiteVocabularyStore)
    with pytest.raises(ValueError):
        store_module.create_store("mongo")
