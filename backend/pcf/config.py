"""
Configuration Module

Settings for the PCF backend, read from the environment once at import time.
A local .env file is loaded first so development setups need no exports.
"""

import logging
import os
from typing import List

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}; using {default}")
        return default


class Settings:
    """Process-wide settings"""

    def __init__(self):
        self.environment = os.getenv("ENVIRONMENT", "development").lower()
        self.database_url = os.getenv("DATABASE_URL") or None
        self.run_sandbox = _env_bool("PCF_RUN_SANDBOX", True)

        # Behavioral windows
        self.velocity_window_minutes = _env_int("PCF_VELOCITY_WINDOW_MIN", 10)
        self.multi_account_window_minutes = _env_int("PCF_MULTI_ACCOUNT_WINDOW_MIN", 5)

        # Downstream notification
        self.notify_webhook_url = os.getenv("PCF_NOTIFY_WEBHOOK_URL") or None
        self.notify_timeout_sec = _env_float("PCF_NOTIFY_TIMEOUT_SEC", 3.0)
        self.notify_retry_max = max(1, _env_int("PCF_NOTIFY_RETRY_MAX", 3))
        self.notify_retry_backoff_ms = max(0, _env_int("PCF_NOTIFY_RETRY_BACKOFF_MS", 250))
        self.notify_keep_recent = max(0, _env_int("PCF_NOTIFY_KEEP_RECENT", 50))

        self.cors_origins = self._get_cors_origins()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def _get_cors_origins(self) -> List[str]:
        """Get CORS origins from env, falling back to local development hosts"""
        raw = os.getenv("PCF_CORS_ORIGINS", "")
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        if origins:
            return origins
        if self.environment == "production":
            return []
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:4000",
            "http://127.0.0.1:4000",
        ]

    def apply_middleware(self, app: FastAPI) -> None:
        """Apply GZip and CORS middleware to the FastAPI app."""
        app.add_middleware(GZipMiddleware, minimum_size=1000)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Accept", "Content-Type", "Origin"],
            expose_headers=["X-PCF-Login-Event-Id", "X-PCF-Domain-Salt", "X-PCF-Run-Sandbox"],
            max_age=86400,
        )
        logger.info(f"Middleware applied for environment: {self.environment}")


def validate_environment(current: "Settings") -> None:
    """Log warnings for settings that are likely misconfigured"""
    if current.environment not in ["development", "test", "staging", "production"]:
        logger.warning(f"Invalid ENVIRONMENT value: {current.environment}")

    if current.is_production and not current.database_url:
        logger.warning("DATABASE_URL is not set; login history will not survive restarts")

    if current.is_production and not current.notify_webhook_url:
        logger.warning("PCF_NOTIFY_WEBHOOK_URL is not set; notifications are only logged")

    if current.velocity_window_minutes <= 0 or current.multi_account_window_minutes <= 0:
        logger.warning("Behavioral window sizes should be positive minutes")


settings = Settings()


def get_settings() -> Settings:
    return settings
