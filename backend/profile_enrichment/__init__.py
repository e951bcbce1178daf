"""Progressive profile enrichment: streaming relay and subscription client."""

__version__ = "1.0.0"
