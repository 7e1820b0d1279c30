from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


def _env_csv(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class DispatchConfig:
    db_path: str = field(default_factory=lambda: os.getenv("DISPATCH_DB_PATH", "dispatch.db"))
    default_unit_limit: int = 5
    default_facility_limit: int = 3
    min_fuel_level: float = 20.0
    seed_demo_data: bool = True
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @classmethod
    def from_env(cls) -> "DispatchConfig":
        cfg = cls()
        cfg.db_path = _env_str("DISPATCH_DB_PATH", cfg.db_path)
        cfg.default_unit_limit = max(
            1, _env_int("DISPATCH_DEFAULT_UNIT_LIMIT", cfg.default_unit_limit)
        )
        cfg.default_facility_limit = max(
            1, _env_int("DISPATCH_DEFAULT_FACILITY_LIMIT", cfg.default_facility_limit)
        )
        cfg.min_fuel_level = _env_float("DISPATCH_MIN_FUEL_LEVEL", cfg.min_fuel_level)
        cfg.seed_demo_data = _env_bool("DISPATCH_SEED_DEMO_DATA", cfg.seed_demo_data)
        cfg.log_level = _env_str("DISPATCH_LOG_LEVEL", cfg.log_level).upper()
        cfg.host = _env_str("DISPATCH_HOST", cfg.host)
        cfg.port = _env_int("DISPATCH_PORT", cfg.port)
        cfg.reload = _env_bool("DISPATCH_RELOAD", cfg.reload)
        cfg.cors_origins = _env_csv("DISPATCH_CORS_ORIGINS", cfg.cors_origins)
        return cfg
