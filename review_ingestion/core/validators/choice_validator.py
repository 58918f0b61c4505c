"""
ChoiceValidator - restricts a field to a fixed set of values.
"""

from typing import Any

from .base_validator import BaseValidator


class ChoiceValidator(BaseValidator):
    """
    Validates that a value is one of the allowed choices.

    Parameters:
    - choices: Allowed values, in the order they are listed in messages
    - case_sensitive: Compare exactly (default False)
    """

    def __init__(self, field_name: str, label: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, label, parameters)
        self.choices = list(self.parameters.get("choices", []))
        if not self.choices:
            raise ValueError("ChoiceValidator requires a non-empty 'choices' parameter")
        self.case_sensitive = self.parameters.get("case_sensitive", False)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return

        candidate = str(value).strip()
        if self.case_sensitive:
            allowed = candidate in self.choices
        else:
            allowed = candidate.lower() in {c.lower() for c in self.choices}

        if not allowed:
            raise self.fail(f"{self.label} must be one of: {', '.join(self.choices)}")

    @property
    def rule_type(self) -> str:
        return "choice"
