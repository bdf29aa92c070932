from functools import lru_cache

from supabase import Client, create_client

from lead_relay.config import settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
