"""Service-side Supabase client used by the internal endpoints."""

from functools import lru_cache

from supabase import Client, create_client

from startupsareeasy.config.settings import get_settings


@lru_cache()
def get_supabase() -> Client:
    """Service-role client when the key is configured, anon client otherwise."""
    settings = get_settings()
    key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY
    return create_client(settings.SUPABASE_URL, key)
