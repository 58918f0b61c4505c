"""
RangeValidator - validates numeric values are within a specified range.
"""

import math
from typing import Any

from .base_validator import BaseValidator


def coerce_number(value: Any, integer: bool = False) -> int | float | None:
    """
    Convert a JSON value to a number.

    Numeric strings are accepted, booleans and non-finite values are not.

    Args:
        value: Raw value
        integer: Require a whole number

    Returns:
        The number, or None if the value is not numeric
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if integer:
            return int(value) if value.is_integer() else None
        return value

    return None


def _format_bound(bound: int | float) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)


class RangeValidator(BaseValidator):
    """
    Validates that a numeric field is within a specified range.

    Parameters:
    - min: Minimum value (inclusive)
    - max: Maximum value (inclusive)
    - min_exclusive: Minimum value (exclusive)
    - integer: Require a whole number
    """

    def __init__(self, field_name: str, label: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, label, parameters)

        self.min_value = self.parameters.get("min")
        self.max_value = self.parameters.get("max")
        self.min_exclusive = self.parameters.get("min_exclusive")
        self.integer = self.parameters.get("integer", False)

        if all(v is None for v in [self.min_value, self.max_value, self.min_exclusive]):
            raise ValueError("RangeValidator requires at least one of: min, max, min_exclusive")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        # Skip validation for None (handled by required_field validator)
        if value is None:
            return

        number = coerce_number(value, integer=self.integer)
        if number is None:
            raise self.fail(f"{self.label} must be a valid number")

        if self.min_exclusive is not None and number <= self.min_exclusive:
            if self.min_exclusive == 0:
                raise self.fail(f"{self.label} must be positive")
            raise self.fail(f"{self.label} must be greater than {_format_bound(self.min_exclusive)}")

        out_of_range = (
            (self.min_value is not None and number < self.min_value)
            or (self.max_value is not None and number > self.max_value)
        )
        if out_of_range:
            if self.min_value is not None and self.max_value is not None:
                raise self.fail(
                    f"{self.label} must be between "
                    f"{_format_bound(self.min_value)} and {_format_bound(self.max_value)}"
                )
            if self.min_value is not None and number < self.min_value:
                raise self.fail(f"{self.label} must be at least {_format_bound(self.min_value)}")
            raise self.fail(f"{self.label} must be at most {_format_bound(self.max_value)}")

    @property
    def rule_type(self) -> str:
        return "range"
