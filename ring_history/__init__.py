"""Ring cloud history crawler: resumable backfill, progress ledger and cloud cache."""

__version__ = "1.0.0"
