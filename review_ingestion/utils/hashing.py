"""
Content fingerprint for reviews.
"""

import hashlib
from typing import Any


def normalize_text(value: Any) -> str:
    """Lower-case and collapse all whitespace runs to a single space."""
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def _field(value: Any) -> str:
    return "" if value is None else str(value)


def compute_content_hash(hotel_id: Any, comment: Any, rating: Any, raw_review_date: Any) -> str:
    """
    Compute the SHA-256 content hash of a review.

    The hash covers the hotel id, the normalized comment text, the rating and
    the review date string exactly as received, joined with "|".

    Args:
        hotel_id: Hotel identifier
        comment: Free-text review comment
        rating: Rating value
        raw_review_date: Unparsed review date string

    Returns:
        64-character hex digest
    """
    content = "|".join([
        _field(hotel_id),
        normalize_text(comment),
        _field(rating),
        _field(raw_review_date),
    ])
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
