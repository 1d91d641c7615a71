"""
Store configuration: environment-aware settings.

All environment variables are documented here; a local .env file is read
on import.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent


class BaseConfig:
    TESTING = False

    # Storage
    STORE_NAMESPACE = os.environ.get("STORE_NAMESPACE", "classroom-store")
    STORE_DATABASE = os.environ.get("STORE_DATABASE", str(BASE_DIR / "store_data" / "store.db"))
    # Durable storage moves to Redis when set (SQLite fallback if unreachable)
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Repository
    AUTOSYNC_SECONDS = int(os.environ.get("AUTOSYNC_SECONDS", "30"))
    TEACHER_FALLBACK_POLICY = os.environ.get("TEACHER_FALLBACK_POLICY", "first")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(BaseConfig):
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(BaseConfig):
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or nonsensical configuration in production."""
        from integrity import TEACHER_POLICIES

        errors: list[str] = []

        if cls.AUTOSYNC_SECONDS <= 0:
            errors.append("AUTOSYNC_SECONDS must be a positive number of seconds.")

        if cls.TEACHER_FALLBACK_POLICY not in TEACHER_POLICIES:
            errors.append(
                f"TEACHER_FALLBACK_POLICY must be one of {sorted(TEACHER_POLICIES)}."
            )

        if not cls.STORE_NAMESPACE:
            errors.append("STORE_NAMESPACE must not be empty.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    STORE_DATABASE = ":memory:"
    REDIS_URL = ""
    LOG_LEVEL = "WARNING"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def load_config(overrides: dict | None = None) -> dict:
    """Settings for STORE_ENV as a plain dict, with ``overrides`` applied."""
    env = os.environ.get("STORE_ENV", "development")
    cfg = config_by_name.get(env, config_by_name["development"])
    if hasattr(cfg, "validate"):
        cfg.validate()
    settings = {name: getattr(cfg, name) for name in dir(cfg) if name.isupper()}
    if overrides:
        settings.update(overrides)
    return settings
