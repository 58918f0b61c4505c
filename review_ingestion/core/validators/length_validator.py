"""
LengthValidator - caps the length of free-text fields.
"""

from typing import Any

from .base_validator import BaseValidator


class LengthValidator(BaseValidator):
    """Validates that a text field is at most max_length characters."""

    def __init__(self, field_name: str, label: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, label, parameters)
        if "max_length" not in self.parameters:
            raise ValueError("LengthValidator requires 'max_length' parameter")
        self.max_length = int(self.parameters["max_length"])

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return

        if len(str(value)) > self.max_length:
            raise self.fail(f"{self.label} cannot exceed {self.max_length} characters")

    @property
    def rule_type(self) -> str:
        return "length"
