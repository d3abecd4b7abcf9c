from __future__ import annotations

from pathlib import Path

import pytest

from taskflow.config import MEMORY_DATABASE_URL, load_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DATABASE_URL", "SEED_CATEGORIES", "CORS_ORIGINS", "PORT", "LOG_DIR", "LOG_LEVEL"):
        monkeypatch.delenv(f"TASKFLOW_{name}", raising=False)

    settings = load_settings()

    assert settings.database_url == MEMORY_DATABASE_URL
    assert settings.seed_categories is True
    assert settings.cors_origins == ["*"]
    assert settings.port == 8000
    assert settings.log_dir is None
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKFLOW_DATABASE_URL", "sqlite+aiosqlite:///./tasks.db")
    monkeypatch.setenv("TASKFLOW_SEED_CATEGORIES", "no")
    monkeypatch.setenv("TASKFLOW_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("TASKFLOW_PORT", "not-a-number")
    monkeypatch.setenv("TASKFLOW_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("TASKFLOW_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.database_url == "sqlite+aiosqlite:///./tasks.db"
    assert settings.seed_categories is False
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.port == 8000
    assert settings.log_dir == tmp_path
    assert settings.log_level == "DEBUG"
