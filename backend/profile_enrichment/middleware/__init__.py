"""HTTP middleware for the enrichment relay."""

from profile_enrichment.middleware.request_context import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
