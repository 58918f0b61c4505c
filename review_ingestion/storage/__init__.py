"""Object store access."""

from .object_store import ACCEPTED_EXTENSIONS, S3ObjectStore, is_candidate, translate_error

__all__ = ["S3ObjectStore", "ACCEPTED_EXTENSIONS", "is_candidate", "translate_error"]
