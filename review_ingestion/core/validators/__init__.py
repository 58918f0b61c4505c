"""
Validation rules for raw review lines.

Provides field validators for required fields, numeric ranges, text length,
allowed choices and review dates, plus the ReviewValidator that combines them.
"""

from .base_validator import BaseValidator, ValidationError
from .choice_validator import ChoiceValidator
from .date_validator import DateValidator
from .length_validator import LengthValidator
from .range_validator import RangeValidator, coerce_number
from .required_field_validator import RequiredFieldValidator
from .review_validator import ReviewValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "RangeValidator",
    "LengthValidator",
    "ChoiceValidator",
    "DateValidator",
    "ReviewValidator",
    "coerce_number",
]
