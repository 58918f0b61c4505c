"""
ValidationOutcome model - result of validating one raw review (ephemeral).
"""

from pydantic import BaseModel, Field, field_validator


class ValidationOutcome(BaseModel):
    """
    Validity flag plus the ordered list of violations found.

    Note: ValidationOutcome is ephemeral, not persisted to database.
    """

    line_number: int | None = None
    is_valid: bool
    errors: list[str] = Field(default_factory=list)

    @field_validator("errors")
    @classmethod
    def check_valid_consistency(cls, v, info):
        """Validate that is_valid=True implies no errors."""
        if info.data.get("is_valid") and len(v) > 0:
            raise ValueError("is_valid=True but errors is not empty")
        return v

    @classmethod
    def valid(cls, line_number: int | None = None) -> "ValidationOutcome":
        return cls(line_number=line_number, is_valid=True)

    @classmethod
    def invalid(cls, errors: list[str], line_number: int | None = None) -> "ValidationOutcome":
        return cls(line_number=line_number, is_valid=False, errors=list(errors))
