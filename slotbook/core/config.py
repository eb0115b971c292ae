import os
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./slotbook.db")
DB_ECHO = _get_bool(os.getenv("DB_ECHO"), default=False)
DB_POOL_TIMEOUT_SECONDS = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "10"))
DB_LOCK_TIMEOUT_SECONDS = int(os.getenv("DB_LOCK_TIMEOUT_SECONDS", "15"))
DB_STATEMENT_TIMEOUT_SECONDS = int(os.getenv("DB_STATEMENT_TIMEOUT_SECONDS", "30"))

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Amman")

# Generated slots run back-to-back from SLOT_DAY_START until SLOT_DAY_END (local time).
SLOT_DAY_START = _get_time(os.getenv("SLOT_DAY_START"), time(9, 30))
SLOT_DAY_END = _get_time(os.getenv("SLOT_DAY_END"), time(17, 30))
DEFAULT_SLOT_CAPACITY = int(os.getenv("DEFAULT_SLOT_CAPACITY", "3"))
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "30"))
MAX_GENERATION_DAYS = int(os.getenv("MAX_GENERATION_DAYS", "92"))

# Legacy date/time booking grid.
RAW_BOOKING_DURATION_MINUTES = int(os.getenv("RAW_BOOKING_DURATION_MINUTES", "30"))
OPEN_TIMES_START = _get_time(os.getenv("OPEN_TIMES_START"), time(9, 0))
OPEN_TIMES_END = _get_time(os.getenv("OPEN_TIMES_END"), time(17, 0))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL", "")
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_DAY_END <= SLOT_DAY_START:
        raise RuntimeError("SLOT_DAY_END must be later than SLOT_DAY_START.")
    if DEFAULT_SLOT_CAPACITY < 1:
        raise RuntimeError("DEFAULT_SLOT_CAPACITY must be a positive integer.")
