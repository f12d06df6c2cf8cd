"""
Runtime configuration.

Values come from environment variables, optionally loaded from a `.env` file
in the project root. Nothing here talks to Supabase; credentials are only
required by the Supabase adapters (see repositories/client.py).

Environment variables:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
- PRODUCT_SALES_LOG_LEVEL: root log level (default INFO)
- SIDE_EFFECT_WORKERS: side-effect thread pool size (default 4)
- PERMISSION_TIMEOUT_SECONDS: permission check timeout, empty disables (default 5)
- BULK_MAX_WORKERS: bulk parallelism, 1 means sequential (default 1)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).parent / ".env"


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    log_level: str = "INFO"
    side_effect_workers: int = 4
    permission_timeout_seconds: Optional[float] = 5.0
    bulk_max_workers: int = 1


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not an integer") from None
    if value < minimum:
        raise RuntimeError(f"Invalid environment variable: {name} must be >= {minimum}")
    return value


def _timeout_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return default
    if raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not a number") from None
    if value <= 0:
        raise RuntimeError(f"Invalid environment variable: {name} must be > 0")
    return value


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """Load settings from the environment (and the .env file, if present)."""

    load_dotenv(dotenv_path=env_path or _ENV_PATH)

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        log_level=(os.getenv("PRODUCT_SALES_LOG_LEVEL") or "INFO").upper(),
        side_effect_workers=_int_env("SIDE_EFFECT_WORKERS", 4),
        permission_timeout_seconds=_timeout_env("PERMISSION_TIMEOUT_SECONDS", 5.0),
        bulk_max_workers=_int_env("BULK_MAX_WORKERS", 1),
    )


__all__ = ["Settings", "load_settings"]
