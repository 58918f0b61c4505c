"""
ReviewValidator - applies all field rules to a raw review line.

Validation never raises and never stops at the first failure: each field
contributes at most one violation (the first rule in its chain that fails),
and every field is checked.
"""

from datetime import datetime
from typing import Any, Callable

from ..models.file_record import utcnow
from ..models.provider import ProviderCode
from ..models.raw_review import RawReview
from ..models.validation_outcome import ValidationOutcome
from .base_validator import BaseValidator, ValidationError
from .choice_validator import ChoiceValidator
from .date_validator import DateValidator
from .length_validator import LengthValidator
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator

MAX_HOTEL_NAME_LENGTH = 255
MAX_COMMENT_LENGTH = 5000
MIN_RATING = 0
MAX_RATING = 10
MAX_REVIEW_AGE_YEARS = 20

WHEN_PRESENT = {"suffix": " when present"}


class ReviewValidator:
    """
    Validates RawReview instances for the review pipeline.

    Example:
        >>> validator = ReviewValidator()
        >>> outcome = validator.validate(raw)
        >>> outcome.is_valid, outcome.errors
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        """
        Initialize validator rule chains.

        Args:
            clock: Source of "now" for review date checks
        """
        self.clock = clock

        self.top_level_rules: list[tuple[str, list[BaseValidator]]] = [
            ("hotel_id", [
                RequiredFieldValidator("hotel_id", "Hotel ID"),
                RangeValidator("hotel_id", "Hotel ID", {"min_exclusive": 0, "integer": True}),
            ]),
            ("provider", [
                RequiredFieldValidator("provider", "Provider"),
                ChoiceValidator("provider", "Provider", {"choices": ProviderCode.names()}),
            ]),
            ("hotel_name", [
                RequiredFieldValidator("hotel_name", "Hotel name"),
                LengthValidator("hotel_name", "Hotel name", {"max_length": MAX_HOTEL_NAME_LENGTH}),
            ]),
        ]

        self.comment_rules: list[tuple[str, list[BaseValidator]]] = [
            ("hotelReviewId", [
                RequiredFieldValidator("hotelReviewId", "Hotel review ID"),
                RangeValidator("hotelReviewId", "Hotel review ID", {"min_exclusive": 0, "integer": True}),
            ]),
            ("rating", [
                RequiredFieldValidator("rating", "Rating"),
                RangeValidator("rating", "Rating", {"min": MIN_RATING, "max": MAX_RATING}),
            ]),
            ("reviewDate", [
                RequiredFieldValidator("reviewDate", "Review date"),
                DateValidator(
                    "reviewDate", "Review date",
                    {"max_age_years": MAX_REVIEW_AGE_YEARS},
                    clock=self.clock,
                ),
            ]),
            ("reviewComments", [
                LengthValidator("reviewComments", "Review comments", {"max_length": MAX_COMMENT_LENGTH}),
            ]),
        ]

        self.reviewer_rules: list[tuple[str, list[BaseValidator]]] = [
            ("countryName", [
                RequiredFieldValidator("countryName", "Country name", {"optional": True, **WHEN_PRESENT}),
            ]),
            ("lengthOfStay", [
                RangeValidator("lengthOfStay", "Length of stay", {"min_exclusive": 0, "integer": True, **WHEN_PRESENT}),
            ]),
        ]

    def validate(self, raw: RawReview | None) -> ValidationOutcome:
        """
        Validate a raw review.

        Args:
            raw: Parsed review line

        Returns:
            ValidationOutcome with every violation found, in field order
        """
        if raw is None:
            return ValidationOutcome.invalid(["Review data cannot be null"])

        errors: list[str] = []
        record = raw.model_dump()

        self._apply(self.top_level_rules, record, errors)

        comment = raw.comment
        if not isinstance(comment, dict):
            errors.append("Comment section is required")
        else:
            self._apply(self.comment_rules, comment, errors)
            reviewer = comment.get("reviewerInfo")
            if isinstance(reviewer, dict):
                self._apply(self.reviewer_rules, reviewer, errors)

        if errors:
            return ValidationOutcome.invalid(errors, line_number=raw.line_number)
        return ValidationOutcome.valid(line_number=raw.line_number)

    @staticmethod
    def _apply(
        rules: list[tuple[str, list[BaseValidator]]],
        record: dict[str, Any],
        errors: list[str],
    ) -> None:
        for field_name, chain in rules:
            value = record.get(field_name)
            for validator in chain:
                try:
                    validator.validate(value, record)
                except ValidationError as e:
                    errors.append(e.message)
                    break
