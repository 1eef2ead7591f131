import logging
from typing import Optional

from supabase import Client, create_client

from apps.familypoints.utils.settings import settings

log = logging.getLogger("familypoints.db")


def get_supabase() -> Optional[Client]:
    if not settings.supabase_configured:
        return None
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except Exception as e:
        log.error("Failed to initialize Supabase client: %s", e)
        return None
