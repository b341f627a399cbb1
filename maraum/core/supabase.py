"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from maraum.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get the cached Supabase client used by the store adapter.

    There is no end-user auth yet, so the backend talks to PostgREST with
    the service role key when one is configured and the anon key otherwise.
    """
    settings = get_settings()
    key = settings.supabase_service_role_key or settings.supabase_anon_key
    return create_client(settings.supabase_url, key)
