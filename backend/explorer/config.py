from __future__ import annotations

import os
from pathlib import Path
from typing import Any


BASE_DIR = Path(__file__).resolve().parents[1]


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    cleaned = raw.strip()
    return cleaned or default


def env_origins() -> list[str]:
    raw_origins = os.getenv("FRONTEND_ORIGINS")
    if raw_origins:
        origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        if origins:
            return origins

    return ["http://localhost:5173", "http://127.0.0.1:5173"]


def engine_options(database_uri: str) -> dict[str, Any]:
    # SQLite uses a single file handle; pool sizing only applies to server databases.
    if database_uri.startswith("sqlite"):
        return {}
    return {
        "pool_size": max(1, env_int("DB_MAX_CONNECTIONS", 10)),
        "pool_recycle": max(1, env_int("DB_IDLE_TIMEOUT", 30000) // 1000),
        "pool_pre_ping": True,
        "pool_timeout": max(1, env_int("DB_CONNECTION_TIMEOUT", 2000) // 1000),
    }


class Config:
    APP_ENV = env_str("APP_ENV", "production")
    LOG_LEVEL = env_str("LOG_LEVEL", "INFO").upper()

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'explorer.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI)

    PORT = env_int("PORT", 3000)
    API_PREFIX = env_str("API_PREFIX", "/api/v1")
    BASE_URL = env_str("BASE_URL", f"http://localhost:{PORT}").rstrip("/")
    FRONTEND_ORIGINS = env_origins()

    STORAGE_ROOT = os.getenv("STORAGE_ROOT", str(BASE_DIR / "uploads"))
    MAX_CONTENT_LENGTH = env_int("MAX_CONTENT_LENGTH", 100 * 1024 * 1024)

    TREE_MAX_DEPTH = max(1, env_int("TREE_MAX_DEPTH", 256))
