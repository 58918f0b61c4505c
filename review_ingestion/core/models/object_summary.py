"""
ObjectSummary model - listing entry for a remote object (ephemeral).
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ObjectSummary(BaseModel):
    """
    Metadata for one object in the bucket, as returned by a listing or a HEAD probe.

    Attributes:
        key: Object key
        size: Size in bytes
        last_modified: Last-modified timestamp reported by the store
        fingerprint: ETag with surrounding quotes removed
    """

    key: str = Field(..., min_length=1)
    size: int = Field(0, ge=0)
    last_modified: datetime | None = None
    fingerprint: str = Field(..., min_length=1)
