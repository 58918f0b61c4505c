"""Command line entry points: review-ingest and review-admin."""
