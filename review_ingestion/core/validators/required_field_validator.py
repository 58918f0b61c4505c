"""
RequiredFieldValidator - ensures a field is present and not blank.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a field is present and not blank.

    Fails if:
    - Field value is None ("<label> is required"), unless optional=True
    - Field value is a whitespace-only string ("<label> cannot be empty")
    """

    def __init__(self, field_name: str, label: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, label, parameters)
        self.optional = self.parameters.get("optional", False)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            if self.optional:
                return
            raise self.fail(f"{self.label} is required")

        if isinstance(value, str) and value.strip() == "":
            raise self.fail(f"{self.label} cannot be empty")

    @property
    def rule_type(self) -> str:
        return "required_field"
