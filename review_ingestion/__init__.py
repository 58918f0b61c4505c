"""
Hotel review ingestion pipeline.

Discovers JSON Lines review files in S3, tracks each file version in a
PostgreSQL ledger and loads validated, normalized reviews into the warehouse.
"""

__version__ = "0.1.0"
