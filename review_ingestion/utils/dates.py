"""
Review date parsing.

The validator and the transformer share this list, so a date that passes
validation always parses to the same value during transformation.
"""

from datetime import datetime, timezone
from typing import Any

# Tried in order, first match wins
ACCEPTED_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def parse_review_date(value: Any) -> datetime | None:
    """
    Parse a review date using the accepted formats.

    Naive values are taken to be UTC.

    Args:
        value: Raw date value from the source record

    Returns:
        Timezone-aware datetime, or None when the value is missing or unparsable
    """
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    for fmt in ACCEPTED_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None
