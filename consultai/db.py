"""Supabase client access — tables, auth-owned rows and the realtime feed."""

import os

from supabase import AsyncClient, Client, acreate_client, create_client

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")

_client: Client | None = None


def get_client() -> Client:
    global _client
    if _client is None:
        if not SUPABASE_URL or not SUPABASE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _client


async def get_async_client() -> AsyncClient:
    # Realtime channels are only available on the async client.
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
    return await acreate_client(SUPABASE_URL, SUPABASE_KEY)


def first_row(rows: list[dict] | None, what: str) -> dict:
    if not rows:
        raise KeyError(f"{what} not found")
    return rows[0]
