"""
RawReview model - one decoded line of a JSON Lines file (ephemeral).
"""

from typing import Any

from pydantic import BaseModel, Field


class RawReview(BaseModel):
    """
    Parsed but unvalidated review line.

    Values are kept as found in the source so that the validator can report
    exactly what was wrong with them.

    Attributes:
        hotel_id: Provider-supplied hotel identifier
        provider: Provider (platform) name
        hotel_name: Hotel display name
        comment: Nested review payload (rating, texts, dates, reviewer info)
        overall_by_providers: Aggregate ratings block, kept for diagnostics
        line_number: 1-based line number in the source file
        raw_json: Original line text
    """

    hotel_id: Any = None
    provider: Any = None
    hotel_name: Any = None
    comment: dict[str, Any] | None = None
    overall_by_providers: list[Any] | None = None
    line_number: int = Field(..., ge=1)
    raw_json: str = ""
