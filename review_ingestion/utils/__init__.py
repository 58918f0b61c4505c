"""Shared helpers for dates and content fingerprints."""

from .dates import ACCEPTED_DATE_FORMATS, parse_review_date
from .hashing import compute_content_hash, normalize_text

__all__ = [
    "ACCEPTED_DATE_FORMATS",
    "parse_review_date",
    "compute_content_hash",
    "normalize_text",
]
