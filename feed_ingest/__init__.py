"""Feed ingestion pipeline: scheduler, job queue, worker and provider adapters."""

__version__ = "0.1.0"
