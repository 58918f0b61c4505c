"""
DateValidator - checks review dates parse and fall inside the accepted window.
"""

from datetime import datetime
from typing import Any, Callable

from ...utils.dates import parse_review_date
from ..models.file_record import utcnow
from .base_validator import BaseValidator


def years_before(moment: datetime, years: int) -> datetime:
    """Return the same calendar moment the given number of years earlier."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


class DateValidator(BaseValidator):
    """
    Validates a date string against the accepted formats.

    Parameters:
    - max_age_years: Oldest acceptable date, in years before now (default 20)
    - allow_future: Accept dates after now (default False)
    """

    def __init__(
        self,
        field_name: str,
        label: str,
        parameters: dict[str, Any] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(field_name, label, parameters)
        self.max_age_years = int(self.parameters.get("max_age_years", 20))
        self.allow_future = self.parameters.get("allow_future", False)
        self.clock = clock

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return

        parsed = parse_review_date(value)
        if parsed is None:
            raise self.fail(f"Invalid {self.label.lower()} format")

        now = self.clock()
        if not self.allow_future and parsed > now:
            raise self.fail(f"{self.label} cannot be in the future")

        if parsed < years_before(now, self.max_age_years):
            raise self.fail(f"{self.label} cannot be older than {self.max_age_years} years")

    @property
    def rule_type(self) -> str:
        return "date"
