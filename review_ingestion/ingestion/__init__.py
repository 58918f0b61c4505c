"""
Record pipeline: JSON Lines parsing and review transformation.
"""

from .jsonl_parser import DEFAULT_BATCH_SIZE, JsonLinesParser, ParseStats
from .transformer import ReviewTransformer, content_hash_for

__all__ = [
    "JsonLinesParser",
    "ParseStats",
    "DEFAULT_BATCH_SIZE",
    "ReviewTransformer",
    "content_hash_for",
]
