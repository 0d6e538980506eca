"""Weather station archive ingestion, aggregation, and statistics."""

__version__ = "0.1.0"
