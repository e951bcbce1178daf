"""HTTP API for the enrichment relay."""
