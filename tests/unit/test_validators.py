"""
Unit tests for review validation rules.

Includes property-based testing with hypothesis for validators.
"""

from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from review_ingestion.core.models import RawReview
from review_ingestion.core.validators import (
    ChoiceValidator,
    DateValidator,
    LengthValidator,
    RangeValidator,
    RequiredFieldValidator,
    ReviewValidator,
    ValidationError,
    coerce_number,
)
from review_ingestion.core.validators.date_validator import years_before

from ..fakes import make_raw

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class TestRequiredFieldValidator:
    """Tests for RequiredFieldValidator"""

    def test_present_value_passes(self):
        RequiredFieldValidator("hotel_name", "Hotel name").validate("Oscar", {})

    def test_none_is_required(self):
        with pytest.raises(ValidationError) as exc_info:
            RequiredFieldValidator("hotel_name", "Hotel name").validate(None, {})

        assert exc_info.value.message == "Hotel name is required"
        assert exc_info.value.field_name == "hotel_name"

    def test_whitespace_is_empty(self):
        with pytest.raises(ValidationError, match="Hotel name cannot be empty"):
            RequiredFieldValidator("hotel_name", "Hotel name").validate("   ", {})

    def test_optional_allows_none(self):
        RequiredFieldValidator("countryName", "Country name", {"optional": True}).validate(None, {})

    def test_optional_still_rejects_blank(self):
        validator = RequiredFieldValidator("countryName", "Country name", {"optional": True, "suffix": " when present"})
        with pytest.raises(ValidationError, match="Country name cannot be empty when present"):
            validator.validate("", {})

    @given(st.text(min_size=1).filter(lambda s: s.strip() != ""))
    def test_property_any_nonblank_string_passes(self, value):
        """Property test: any non-blank string should pass"""
        RequiredFieldValidator("field", "Field").validate(value, {})


class TestCoerceNumber:
    """Tests for numeric coercion of JSON values"""

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        (6.4, 6.4),
        ("7", 7),
        (" 8.5 ", 8.5),
    ])
    def test_accepts_numbers_and_numeric_strings(self, value, expected):
        assert coerce_number(value) == expected

    @pytest.mark.parametrize("value", [True, False, "abc", "", None, [], {}, float("nan"), float("inf")])
    def test_rejects_non_numbers(self, value):
        assert coerce_number(value) is None

    def test_integer_mode(self):
        assert coerce_number(12.0, integer=True) == 12
        assert coerce_number(12.5, integer=True) is None


class TestRangeValidator:
    """Tests for RangeValidator"""

    def test_rating_out_of_range(self):
        validator = RangeValidator("rating", "Rating", {"min": 0, "max": 10})
        with pytest.raises(ValidationError, match="Rating must be between 0 and 10"):
            validator.validate(11.0, {})

    def test_rating_not_a_number(self):
        validator = RangeValidator("rating", "Rating", {"min": 0, "max": 10})
        with pytest.raises(ValidationError, match="Rating must be a valid number"):
            validator.validate("great", {})

    def test_positive_id(self):
        validator = RangeValidator("hotel_id", "Hotel ID", {"min_exclusive": 0, "integer": True})
        with pytest.raises(ValidationError, match="Hotel ID must be positive"):
            validator.validate(0, {})
        validator.validate(10984, {})

    def test_none_skipped(self):
        RangeValidator("rating", "Rating", {"min": 0, "max": 10}).validate(None, {})

    def test_requires_a_bound(self):
        with pytest.raises(ValueError):
            RangeValidator("rating", "Rating", {})

    @given(st.floats(min_value=0, max_value=10, allow_nan=False, allow_infinity=False))
    def test_property_values_in_range_pass(self, value):
        """Property test: any rating in [0, 10] passes"""
        RangeValidator("rating", "Rating", {"min": 0, "max": 10}).validate(value, {})

    @given(st.floats(min_value=10.001, allow_nan=False, allow_infinity=False))
    def test_property_values_above_range_fail(self, value):
        """Property test: any rating above 10 fails"""
        with pytest.raises(ValidationError):
            RangeValidator("rating", "Rating", {"min": 0, "max": 10}).validate(value, {})


class TestLengthAndChoiceValidators:
    """Tests for LengthValidator and ChoiceValidator"""

    def test_length_limit(self):
        validator = LengthValidator("hotel_name", "Hotel name", {"max_length": 5})
        validator.validate("12345", {})
        with pytest.raises(ValidationError, match="Hotel name cannot exceed 5 characters"):
            validator.validate("123456", {})

    def test_choice_case_insensitive(self):
        validator = ChoiceValidator("provider", "Provider", {"choices": ["Agoda", "Booking", "Expedia"]})
        validator.validate("booking", {})

    def test_choice_rejects_unknown(self):
        validator = ChoiceValidator("provider", "Provider", {"choices": ["Agoda", "Booking", "Expedia"]})
        with pytest.raises(ValidationError, match="Provider must be one of: Agoda, Booking, Expedia"):
            validator.validate("Trivago", {})


class TestDateValidator:
    """Tests for DateValidator"""

    @pytest.mark.parametrize("value", [
        "2025-04-10T05:37:00+07:00",
        "2025-04-10T05:37:00.123+07:00",
        "2025-04-10T05:37:00",
        "2025-04-10 05:37:00",
        "2025-04-10",
    ])
    def test_accepted_formats(self, value):
        DateValidator("reviewDate", "Review date", clock=fixed_clock).validate(value, {})

    def test_invalid_format(self):
        with pytest.raises(ValidationError, match="Invalid review date format"):
            DateValidator("reviewDate", "Review date", clock=fixed_clock).validate("10/04/2025", {})

    def test_future_date(self):
        with pytest.raises(ValidationError, match="Review date cannot be in the future"):
            DateValidator("reviewDate", "Review date", clock=fixed_clock).validate("2025-06-02", {})

    def test_too_old(self):
        validator = DateValidator("reviewDate", "Review date", {"max_age_years": 20}, clock=fixed_clock)
        with pytest.raises(ValidationError, match="Review date cannot be older than 20 years"):
            validator.validate("2005-05-31", {})

    def test_years_before_leap_day(self):
        leap = datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert years_before(leap, 1) == datetime(2023, 2, 28, tzinfo=timezone.utc)


class TestReviewValidator:
    """Tests for the combined review validator"""

    def test_valid_review(self):
        outcome = ReviewValidator(clock=fixed_clock).validate(make_raw(rating=6.4))
        assert outcome.is_valid
        assert outcome.errors == []
        assert outcome.line_number == 1

    def test_rating_out_of_range(self):
        outcome = ReviewValidator(clock=fixed_clock).validate(make_raw(rating=11.0))
        assert not outcome.is_valid
        assert any("Rating must be between 0 and 10" in e for e in outcome.errors)

    def test_null_review(self):
        outcome = ReviewValidator(clock=fixed_clock).validate(None)
        assert outcome.errors == ["Review data cannot be null"]

    def test_missing_comment(self):
        raw = RawReview(hotel_id=1, provider="Agoda", hotel_name="X", line_number=4)
        outcome = ReviewValidator(clock=fixed_clock).validate(raw)
        assert outcome.errors == ["Comment section is required"]
        assert outcome.line_number == 4

    def test_collects_one_error_per_field(self):
        raw = make_raw(hotel_id=-5, provider="Trivago", rating="bad", review_id=None)
        outcome = ReviewValidator(clock=fixed_clock).validate(raw)

        assert outcome.errors == [
            "Hotel ID must be positive",
            "Provider must be one of: Agoda, Booking, Expedia",
            "Hotel review ID is required",
            "Rating must be a valid number",
        ]

    def test_reviewer_info_checked_when_present(self):
        raw = make_raw()
        raw.comment["reviewerInfo"]["countryName"] = "  "
        raw.comment["reviewerInfo"]["lengthOfStay"] = 0
        outcome = ReviewValidator(clock=fixed_clock).validate(raw)

        assert outcome.errors == [
            "Country name cannot be empty when present",
            "Length of stay must be positive when present",
        ]

    def test_reviewer_info_optional(self):
        raw = make_raw()
        del raw.comment["reviewerInfo"]
        assert ReviewValidator(clock=fixed_clock).validate(raw).is_valid

    def test_overlong_comment(self):
        outcome = ReviewValidator(clock=fixed_clock).validate(make_raw(comments="x" * 5001))
        assert outcome.errors == ["Review comments cannot exceed 5000 characters"]

    @given(st.floats(min_value=0, max_value=10, allow_nan=False, allow_infinity=False))
    def test_property_valid_ratings_pass(self, rating):
        """Property test: any rating in [0, 10] gives a valid review"""
        assert ReviewValidator(clock=fixed_clock).validate(make_raw(rating=rating)).is_valid

    @given(st.one_of(
        st.floats(max_value=-0.001, allow_nan=False, allow_infinity=False),
        st.floats(min_value=10.001, allow_nan=False, allow_infinity=False),
    ))
    def test_property_invalid_ratings_fail(self, rating):
        """Property test: ratings outside [0, 10] are always rejected"""
        outcome = ReviewValidator(clock=fixed_clock).validate(make_raw(rating=rating))
        assert not outcome.is_valid
        assert "Rating must be between 0 and 10" in outcome.errors
