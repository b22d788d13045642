import logging
from typing import Any, Dict, Optional

from supabase import create_client, Client
from app.config.settings import settings
from app.core.exceptions import InternalError

logger = logging.getLogger(__name__)


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use for auth admin calls and audit writes."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def new_client(cls) -> Client:
        """Fresh, unshared client. Password sign-in stores the session on the client, so it must not be the shared one."""
        return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_service_supabase() -> Client:
    return SupabaseClient.get_service_client()


def execute(query, error_message: str = "Database query failed"):
    """Run a PostgREST query; any transport or database failure becomes InternalError."""
    try:
        return query.execute()
    except Exception as e:
        logger.error("%s: %s", error_message, e)
        raise InternalError(error_message) from e


def first_row(query, error_message: str = "Database query failed") -> Optional[Dict[str, Any]]:
    """Run `query` limited to one row and return it, or None."""
    result = execute(query.limit(1), error_message)
    if not result or not result.data:
        return None
    return result.data[0]
