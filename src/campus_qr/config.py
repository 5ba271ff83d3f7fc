"""Runtime settings read from the environment (and `.env`)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .token import DEFAULT_FRESHNESS_MS, DEFAULT_ROTATION_MS
from .utils.env_utils import load_env
from .utils.logger import logger

DEFAULT_API_URL = "https://campusqr-4.onrender.com"
DEFAULT_STORAGE_FILE = ".campusqr_storage.json"
DEFAULT_MARK_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    rotation_ms: int = DEFAULT_ROTATION_MS
    freshness_ms: int = DEFAULT_FRESHNESS_MS
    mark_timeout_seconds: float = DEFAULT_MARK_TIMEOUT_SECONDS
    reset_delay_seconds: float = 0.0
    storage_file: str = DEFAULT_STORAGE_FILE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            api_url=(env.get("CAMPUSQR_API_URL") or DEFAULT_API_URL).rstrip("/"),
            rotation_ms=_read_number(env, "QR_ROTATION_MS", DEFAULT_ROTATION_MS, int),
            freshness_ms=_read_number(env, "QR_FRESHNESS_MS", DEFAULT_FRESHNESS_MS, int),
            mark_timeout_seconds=_read_number(
                env, "MARK_TIMEOUT_SECONDS", DEFAULT_MARK_TIMEOUT_SECONDS, float
            ),
            reset_delay_seconds=_read_number(env, "SCAN_RESET_DELAY_SECONDS", 0.0, float),
            storage_file=env.get("CAMPUSQR_STORAGE_FILE") or DEFAULT_STORAGE_FILE,
        )


def _read_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", key, raw, default)
        return default
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load `.env` defaults (existing variables win) and build Settings."""
    load_env(env_file or os.getenv("ENV_FILE", ".env"))
    return Settings.from_env()
