from supabase import create_client
from glowstore.core import config
from glowstore.core.errors import NotConfiguredError

supabase = None
def get_client():
    global supabase
    if supabase is None:
        key = config.SUPABASE_SERVICE_KEY or config.SUPABASE_ANON_KEY
        if not config.SUPABASE_URL or not key:
            raise NotConfiguredError("Supabase URL/Key not configured. See .env")
        supabase = create_client(config.SUPABASE_URL, key)
    return supabase


def first(res):
    """First row of a query response, or None."""
    return res.data[0] if res.data else None
