from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"

MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v.strip() == "" else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    app_name: str = "Taskflow API"
    log_level: str = "INFO"
    log_dir: Path | None = None

    database_url: str = MEMORY_DATABASE_URL
    seed_categories: bool = True

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings() -> Settings:
    return Settings(
        app_name=_env(_k("APP_NAME"), "Taskflow API"),
        log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
        log_dir=_env_path(_k("LOG_DIR")),
        database_url=_env(_k("DATABASE_URL"), MEMORY_DATABASE_URL),
        seed_categories=_env_bool(_k("SEED_CATEGORIES"), True),
        cors_origins=_env_list(_k("CORS_ORIGINS"), ["*"]),
        host=_env(_k("HOST"), "127.0.0.1"),
        port=_env_int(_k("PORT"), 8000),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
