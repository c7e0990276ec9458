"""
Supabase clients

The publishable client serves RLS-guarded reads. Auth flows get a fresh
publishable client per request: supabase-py keeps the last session it
received on the client, so sign-in, verification and refresh must never share
one across users. The secret client writes profiles and user metadata on the
user's behalf after verification.
"""
from functools import lru_cache
from supabase import Client, create_client
from supabase.client import ClientOptions
from app.core.config import get_settings


@lru_cache()
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_PUBLISHABLE_KEY)


def get_supabase_auth_client() -> Client:
    """Request-scoped publishable client that never persists or refreshes a session"""
    settings = get_settings()
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_PUBLISHABLE_KEY,
        options=ClientOptions(persist_session=False, auto_refresh_token=False),
    )


@lru_cache()
def get_supabase_admin_client() -> Client:
    """Secret-key client, bypasses RLS. Never hand its responses to callers unfiltered."""
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SECRET_KEY)
