"""
Review model - canonical hotel review stored in the warehouse (persistent).
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .file_record import utcnow

# Column bounds of the reviews table
BIGINT_MAX = 2**63 - 1
INTEGER_MIN = -(2**31)
INTEGER_MAX = 2**31 - 1


class Review(BaseModel):
    """
    Validated, transformed review ready to persist.

    The authoritative dedup key is (provider_id, provider_external_id).
    content_hash is a secondary signal over the normalized review content.

    Attributes:
        id: Warehouse row id (None until persisted)
        hotel_id: Provider-supplied hotel identifier
        hotel_name: Whitespace-normalized hotel name
        provider_id: Resolved provider row id
        provider_external_id: Provider-assigned review id
        rating: Rating on a 0-10 scale
        review_date: Parsed review date (None when unparsable)
        raw_review_date: Review date string exactly as received
        content_hash: SHA-256 over normalized hotel id, comment, rating, raw date
        source_file_id: Ledger row of the file the review came from
        source_line_number: Line in that file
        raw_data: Original JSON payload
    """

    id: int | None = None
    hotel_id: int = Field(..., gt=0, le=BIGINT_MAX)
    hotel_name: str | None = Field(None, max_length=255)
    provider_id: int
    provider_external_id: str = Field(..., min_length=1, max_length=100)
    rating: float | None = Field(None, ge=0.0, le=10.0)
    review_title: str | None = None
    review_comments: str | None = Field(None, max_length=5000)
    review_positives: str | None = None
    review_negatives: str | None = None
    review_date: datetime | None = None
    raw_review_date: str | None = Field(None, max_length=64)
    reviewer_name: str | None = Field(None, max_length=255)
    reviewer_country: str | None = Field(None, max_length=100)
    reviewer_group: str | None = Field(None, max_length=100)
    room_type: str | None = Field(None, max_length=255)
    length_of_stay: int | None = Field(None, ge=INTEGER_MIN, le=INTEGER_MAX)
    helpful_votes: int | None = Field(None, ge=INTEGER_MIN, le=INTEGER_MAX)
    total_votes: int | None = Field(None, ge=INTEGER_MIN, le=INTEGER_MAX)
    is_verified: bool | None = None
    language: str | None = Field(None, max_length=10)
    content_hash: str = Field(..., min_length=64, max_length=64)
    source_file_id: int | None = None
    source_line_number: int | None = Field(None, ge=1, le=INTEGER_MAX)
    raw_data: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "hotel_id": 10984,
            "hotel_name": "Oscar Saigon Hotel",
            "provider_id": 1,
            "provider_external_id": "948353737",
            "rating": 6.4,
            "review_title": "Perfect location and safe but hotel under renovation",
            "review_comments": "Hotel room is basic and very small.",
            "review_date": "2025-04-09T22:37:00Z",
            "raw_review_date": "2025-04-10T05:37:00+07:00",
            "reviewer_country": "India",
            "reviewer_group": "Solo traveler",
            "length_of_stay": 2,
            "content_hash": "4f0c6c5c8c2d1a7e9a1f0d3b6e2b8a9c4d5e6f708192a3b4c5d6e7f8091a2b3c",
            "source_line_number": 1,
        }
    })
