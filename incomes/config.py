from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"


@dataclass(frozen=True)
class Settings:
    database_url: str
    default_currency: str
    list_limit: int
    default_locale: str
    timezone: str
    admin_email: str
    admin_password: str
    session_cookie_name: str
    session_hours: int
    session_cookie_secure: bool
    log_level: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings() -> Settings:
    return Settings(
        database_url=_getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'incomes.db'}"),
        default_currency=_getenv("INCOMES_DEFAULT_CURRENCY", "USD").upper(),
        list_limit=max(1, _getenv_int("INCOMES_LIST_LIMIT", 25)),
        default_locale=_getenv("INCOMES_DEFAULT_LOCALE", "en-GB"),
        timezone=_getenv("INCOMES_TIMEZONE", "UTC"),
        admin_email=_getenv("INCOMES_ADMIN_EMAIL", "admin@example.com").lower(),
        admin_password=_getenv("INCOMES_ADMIN_PASSWORD", "admin123"),
        session_cookie_name=_getenv("INCOMES_SESSION_COOKIE", "session_token"),
        session_hours=_getenv_int("INCOMES_SESSION_HOURS", 12),
        session_cookie_secure=_getenv("INCOMES_SESSION_COOKIE_SECURE", "false").lower() == "true",
        log_level=_getenv("INCOMES_LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
