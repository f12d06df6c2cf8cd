"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is
created on first use so that the pure workflow core (and its tests) can be
imported without credentials.

Environment variables required (see config.py):
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config import Settings, load_settings


def create_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Create a new Supabase client from settings (or the environment)."""

    settings = settings or load_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Process-wide Supabase client, created on first call."""

    return create_supabase_client()


__all__ = ["create_supabase_client", "get_supabase_client"]
