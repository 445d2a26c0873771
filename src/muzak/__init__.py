"""muzak - audio ingestion and catalog aggregation service."""

__version__ = "0.1.0"
