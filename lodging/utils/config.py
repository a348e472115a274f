"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    admin_token: str | None
    planner_sex_weight: float
    planner_room_type_weight: float
    planner_floor_weight: float
    planner_accessibility_weight: float
    assignment_max_retries: int
    sqlite_busy_timeout_seconds: float
    seed_synthetic_data: bool
    synthetic_random_seed: int
    synthetic_attendee_count: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; tests override with dataclasses.replace."""
    admin_token = os.getenv("ADMIN_TOKEN")
    return Settings(
        app_name=_env_str("APP_NAME", "Lodging Room Assignment Engine"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        database_path=Path(_env_str("DATABASE_PATH", "data/lodging.db")),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        admin_token=admin_token.strip() if admin_token and admin_token.strip() else None,
        planner_sex_weight=_env_float("PLANNER_SEX_WEIGHT", 0.8),
        planner_room_type_weight=_env_float("PLANNER_ROOM_TYPE_WEIGHT", 0.6),
        planner_floor_weight=_env_float("PLANNER_FLOOR_WEIGHT", 0.4),
        planner_accessibility_weight=_env_float("PLANNER_ACCESSIBILITY_WEIGHT", 1.0),
        assignment_max_retries=_env_int("ASSIGNMENT_MAX_RETRIES", 3),
        sqlite_busy_timeout_seconds=_env_float("SQLITE_BUSY_TIMEOUT_SECONDS", 5.0),
        seed_synthetic_data=_env_bool("SEED_SYNTHETIC_DATA", True),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", 42),
        synthetic_attendee_count=_env_int("SYNTHETIC_ATTENDEE_COUNT", 40),
    )
