"""
Aggregation result types.

Ephemeral summaries derived from usage records; never persisted.
"""

from dataclasses import dataclass
from datetime import date


@dataclass
class DailyBucket:
    """Summed energy and cost for one local calendar day."""
    date: date
    energy: float = 0.0
    cost: float = 0.0


@dataclass
class HourlyBucket:
    """Summed energy for one hour of a day (0-23)."""
    hour: int
    energy: float = 0.0

    @property
    def label(self) -> str:
        """Clock label such as "12am" or "3pm"."""
        period = "pm" if self.hour >= 12 else "am"
        display_hour = self.hour % 12 or 12
        return f"{display_hour}{period}"


@dataclass(frozen=True)
class MonthTotal:
    """Month-to-date energy and cost."""
    energy: float = 0.0
    cost: float = 0.0
