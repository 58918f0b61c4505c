"""
Transformation of validated raw reviews into canonical warehouse reviews.
"""

import json
from typing import Any

from pydantic import ValidationError

from ..core.exceptions import TransformError
from ..core.models import Provider, RawReview, Review
from ..core.validators.range_validator import coerce_number
from ..utils.dates import parse_review_date
from ..utils.hashing import compute_content_hash


def _text(value: Any) -> str | None:
    """Trim a text field; blank or missing becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _collapse(value: Any) -> str | None:
    """Trim and collapse internal whitespace runs to one space."""
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _int(value: Any) -> int | None:
    number = coerce_number(value, integer=True)
    return int(number) if number is not None else None


def content_hash_for(raw: RawReview) -> str:
    """Content fingerprint of a raw review."""
    comment = raw.comment or {}
    return compute_content_hash(
        raw.hotel_id,
        comment.get("reviewComments"),
        comment.get("rating"),
        comment.get("reviewDate"),
    )


class ReviewTransformer:
    """
    Maps a RawReview that passed validation to a Review.

    Optional fields are extracted defensively: absent or oddly typed values
    become None rather than errors. Validation is the authoritative gate, so
    an unparsable date here yields a null review_date.
    """

    def transform(self, raw: RawReview, provider: Provider, source_file_id: int | None = None) -> Review:
        """
        Transform a raw review.

        Args:
            raw: Validated raw review
            provider: Resolved provider (must be persisted)
            source_file_id: Ledger row of the file being processed

        Returns:
            Review ready to persist

        Raises:
            TransformError: If identifiers needed for storage are missing, or a
                value does not fit its warehouse column
        """
        if provider.id is None:
            raise TransformError(f"Provider {provider.code} has no id")

        comment = raw.comment
        if not isinstance(comment, dict):
            raise TransformError("Comment section is missing")

        hotel_id = _int(raw.hotel_id)
        if hotel_id is None or hotel_id <= 0:
            raise TransformError(f"Invalid hotel id: {raw.hotel_id!r}")

        external_id = _int(comment.get("hotelReviewId"))
        if external_id is None:
            raise TransformError("Missing hotel review id")

        rating = coerce_number(comment.get("rating"))
        reviewer = comment.get("reviewerInfo")
        if not isinstance(reviewer, dict):
            reviewer = {}

        raw_date = comment.get("reviewDate")
        is_verified = comment.get("isVerified")

        try:
            raw_data = json.loads(raw.raw_json) if raw.raw_json else None
        except json.JSONDecodeError:
            raw_data = None

        try:
            return Review(
                hotel_id=hotel_id,
                hotel_name=_collapse(raw.hotel_name),
                provider_id=provider.id,
                provider_external_id=str(external_id),
                rating=float(rating) if rating is not None else None,
                review_title=_text(comment.get("reviewTitle")),
                review_comments=_text(comment.get("reviewComments")),
                review_positives=_text(comment.get("reviewPositives")),
                review_negatives=_text(comment.get("reviewNegatives")),
                review_date=parse_review_date(raw_date),
                raw_review_date=raw_date if isinstance(raw_date, str) else None,
                reviewer_name=_text(comment.get("reviewerName") or reviewer.get("displayMemberName")),
                reviewer_country=_text(reviewer.get("countryName")),
                reviewer_group=_text(reviewer.get("reviewGroupName")),
                room_type=_text(reviewer.get("roomTypeName")),
                length_of_stay=_int(reviewer.get("lengthOfStay")),
                helpful_votes=_int(comment.get("helpfulVotes")),
                total_votes=_int(comment.get("totalVotes")),
                is_verified=is_verified if isinstance(is_verified, bool) else None,
                language=_text(comment.get("language") or comment.get("translateSource")),
                content_hash=content_hash_for(raw),
                source_file_id=source_file_id,
                source_line_number=raw.line_number,
                raw_data=raw_data if isinstance(raw_data, dict) else None,
            )
        except ValidationError as e:
            raise TransformError(
                "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            ) from e
