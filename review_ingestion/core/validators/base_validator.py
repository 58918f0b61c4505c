"""
Base validator interface for review field rules.

All validators inherit from BaseValidator and implement validate(). A
validator raises ValidationError with a human-readable message; the review
validator collects those messages instead of letting them escape.
"""

from abc import ABC, abstractmethod
from typing import Any


class ValidationError(Exception):
    """Raised when a validation rule fails."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


class BaseValidator(ABC):
    """
    Abstract base class for all validators.

    Each validator implements a specific rule type
    (required_field, range, length, choice, date).
    """

    def __init__(self, field_name: str, label: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Name of the field to validate
            label: Human-readable field name used in messages (e.g. "Hotel ID")
            parameters: Rule-specific parameters (e.g., min/max for range)
        """
        self.field_name = field_name
        self.label = label
        self.parameters = parameters or {}
        # Appended to messages, e.g. " when present" for optional sub-fields
        self.suffix = self.parameters.get("suffix", "")

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate a value against this rule.

        Args:
            value: The field value to validate
            record: The object the field belongs to (for context-dependent rules)

        Raises:
            ValidationError: If validation fails
        """
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def fail(self, message: str) -> ValidationError:
        """Build a ValidationError for this rule with the configured suffix."""
        return ValidationError(
            rule_name=self.rule_type,
            field_name=self.field_name,
            message=f"{message}{self.suffix}",
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
