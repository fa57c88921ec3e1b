"""Runtime settings, read from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_DB_PATH = PACKAGE_DIR / "rotations.db"


def _flag(value: Optional[str], default: bool) -> bool:
    """Parse an on/off environment value. Unset means `default`."""
    if value is None:
        return default
    v = value.strip().lower()
    return v not in ("false", "0", "", "no", "off")


def _int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class Settings:
    """Engine parameters. Defaults match a single-node SQLite deployment."""
    database_url: str = f"sqlite:///{DEFAULT_DB_PATH}"
    timezone: str = "UTC"                  # reference zone for "today"
    extension_grace_days: int = 7          # ended-recently window for extension targets
    max_extension_days: int = 365
    auto_rotation: bool = True             # auto-advance on schedule reads
    auto_generate_on_create: bool = False  # first placement when an intern is created
    extension_cycles_enabled: bool = False # new cycles absorb extension days after completion
    lock_timeout_seconds: float = 10.0
    conflict_retries: int = 3
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/rotation_engine.log"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)
        env = os.environ
        defaults = cls()
        return cls(
            database_url=env.get("DATABASE_URL") or defaults.database_url,
            timezone=env.get("ROTATION_TIMEZONE") or defaults.timezone,
            extension_grace_days=_int(env.get("EXTENSION_GRACE_DAYS"), defaults.extension_grace_days),
            max_extension_days=_int(env.get("MAX_EXTENSION_DAYS"), defaults.max_extension_days),
            auto_rotation=_flag(env.get("AUTO_ROTATION"), defaults.auto_rotation),
            auto_generate_on_create=_flag(env.get("AUTO_GENERATE_ON_CREATE"), defaults.auto_generate_on_create),
            extension_cycles_enabled=_flag(env.get("EXTENSION_CYCLES_ENABLED"), defaults.extension_cycles_enabled),
            lock_timeout_seconds=float(env.get("LOCK_TIMEOUT_SECONDS") or defaults.lock_timeout_seconds),
            conflict_retries=_int(env.get("CONFLICT_RETRIES"), defaults.conflict_retries),
            log_level=env.get("LOG_LEVEL") or defaults.log_level,
            log_file=env.get("LOG_FILE", defaults.log_file) or None,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
