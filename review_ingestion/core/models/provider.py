"""
Provider model - review platform a record came from (persistent).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .file_record import utcnow


class ProviderCode(str, Enum):
    """Known review platforms, keyed by display name."""

    AGODA = "Agoda"
    BOOKING = "Booking"
    EXPEDIA = "Expedia"

    @classmethod
    def from_name(cls, name: str) -> "ProviderCode":
        """
        Resolve a provider name case-insensitively.

        Raises:
            ValueError: If the name is not a known provider
        """
        normalized = name.strip().lower()
        for code in cls:
            if code.value.lower() == normalized or code.name.lower() == normalized:
                return code
        raise ValueError(f"Unknown provider: {name}")

    @classmethod
    def names(cls) -> list[str]:
        return [code.value for code in cls]


def infer_provider(key: str) -> str | None:
    """
    Infer the provider from an object key such as ``reviews/2025/04/10/agoda.jl``.

    Returns:
        Provider display name, or None when the key names no known provider
    """
    lowered = key.lower()
    for code in ProviderCode:
        if code.value.lower() in lowered:
            return code.value
    return None


class Provider(BaseModel):
    """
    Review provider, created lazily the first time a record names it.

    Identity is the unique code; the in-process cache keyed by name is only
    an optimization over the resolve-or-create upsert.
    """

    id: int | None = None
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
