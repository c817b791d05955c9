# Overview: Environment-driven application settings.

from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bagsofhope.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bagsofhope.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Back-order mode: let picks drive on-hand below zero instead of rejecting them
    ALLOW_NEGATIVE_ON_HAND = _env_flag("ALLOW_NEGATIVE_ON_HAND", False)

    # Batch numbers look like "B-2026-0001"
    BATCH_NUMBER_PREFIX = os.environ.get("BATCH_NUMBER_PREFIX", "B")
