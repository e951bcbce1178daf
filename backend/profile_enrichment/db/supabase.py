"""Supabase client module for database operations."""

import logging

from profile_enrichment.core.config import get_settings
from profile_enrichment.core.exceptions import DatabaseError
from supabase import Client, create_client

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Singleton Supabase client for backend operations."""

    _client: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create the Supabase client singleton.

        Returns:
            Initialized Supabase client.

        Raises:
            DatabaseError: If client initialization fails.
        """
        if cls._client is None:
            settings = get_settings()
            try:
                cls._client = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                logger.exception("Failed to initialize Supabase client")
                raise DatabaseError(f"Failed to initialize database connection: {e}") from e
        return cls._client

    @classmethod
    def reset_client(cls) -> None:
        """Reset the client singleton (useful for testing)."""
        cls._client = None
