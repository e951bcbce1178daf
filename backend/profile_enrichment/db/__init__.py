"""Database clients for the enrichment relay."""

from profile_enrichment.db.supabase import SupabaseClient

__all__ = ["SupabaseClient"]
