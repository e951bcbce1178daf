"""API route handlers for the enrichment relay."""

from profile_enrichment.api.routes import enrichment as enrichment
from profile_enrichment.api.routes import health as health

__all__ = ["enrichment", "health"]
