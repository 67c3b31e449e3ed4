"""
Threshold alerting.

Decides whether budget and high-usage conditions warrant a new alert,
suppressing repeats of an alert already shown recently.

Suppression is tracked per (user, title) and read fresh from the alert
store on every call:
- No alert with the title inside its re-fire window -> create
- Alert inside the window with a different message -> create
- Alert inside the window with the same message -> suppress

Store failures are logged and the check is abandoned; a missed alert must
not break the refresh that triggered it.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from energy_guard.storage.models import Alert, AlertSeverity
from energy_guard.storage.repository import EnergyRepository

logger = logging.getLogger(__name__)

DEFAULT_HIGH_USAGE_THRESHOLD_KWH = 20.0
BUDGET_ALERT_PERCENT = 80.0
BUDGET_EXCEEDED_PERCENT = 100.0


@dataclass(frozen=True)
class AlertTier:
    """Title, severity and re-fire window of one kind of alert."""
    title: str
    severity: AlertSeverity
    window_hours: float


BUDGET_EXCEEDED = AlertTier("Budget Exceeded", AlertSeverity.ERROR, 1)
BUDGET_ALERT = AlertTier("Budget Alert", AlertSeverity.WARNING, 6)
HIGH_USAGE = AlertTier("High Energy Usage", AlertSeverity.WARNING, 3)


def format_amount(amount: float) -> str:
    """Thousands-separated amount with up to three decimals, trailing zeros dropped."""
    text = f"{amount:,.3f}"
    return text.rstrip("0").rstrip(".")


def round_percent(percentage: float) -> int:
    """Round to a whole percent, halves going up."""
    return int(Decimal(str(percentage)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class AlertEvaluator:
    """Evaluates thresholds for a user and writes alerts to the store."""

    def __init__(
        self,
        repository: EnergyRepository,
        clock: Callable[[], datetime] = datetime.now,
        currency_symbol: str = "₦"
    ):
        self.repository = repository
        self.clock = clock
        self.currency_symbol = currency_symbol

    def is_suppressed(
        self,
        user_id: str,
        title: str,
        window_hours: float,
        candidate_message: Optional[str] = None
    ) -> bool:
        """Check whether an alert with this title was raised recently.

        Without a candidate message this is a pure rate limit. With one,
        the recent alert only suppresses if its message is identical.

        Raises:
            sqlite3.Error: If the alert store cannot be read
        """
        since = self.clock() - timedelta(hours=window_hours)
        latest = self.repository.find_latest_alert(user_id, title, since)
        if latest is None:
            return False
        if candidate_message is None:
            return True
        return latest.message == candidate_message

    def evaluate_budget(
        self,
        user_id: str,
        month_to_date_cost: float,
        monthly_budget: Optional[float]
    ) -> Optional[Alert]:
        """Raise a budget alert at 80% of the budget, and an error at 100%.

        Args:
            user_id: User being evaluated
            month_to_date_cost: Spend since the 1st of the month
            monthly_budget: Budget in currency units; None or <= 0 disables the check

        Returns:
            The created alert, or None if no alert was written
        """
        if not monthly_budget or monthly_budget <= 0:
            return None

        percentage = month_to_date_cost / monthly_budget * 100

        if percentage >= BUDGET_EXCEEDED_PERCENT:
            tier = BUDGET_EXCEEDED
            message = (
                f"You have exceeded your monthly budget of "
                f"{self.currency_symbol}{format_amount(monthly_budget)}."
            )
        elif percentage >= BUDGET_ALERT_PERCENT:
            tier = BUDGET_ALERT
            message = f"You have used {round_percent(percentage)}% of your monthly budget."
        else:
            return None

        return self._raise(user_id, tier, message)

    def evaluate_high_usage(
        self,
        user_id: str,
        today_energy_kwh: float,
        threshold_kwh: float = DEFAULT_HIGH_USAGE_THRESHOLD_KWH
    ) -> Optional[Alert]:
        """Raise a warning when today's usage is above the threshold.

        Returns:
            The created alert, or None if no alert was written
        """
        if today_energy_kwh <= threshold_kwh:
            return None

        message = f"Your energy usage today ({today_energy_kwh:.1f} kWh) is higher than usual."
        return self._raise(user_id, HIGH_USAGE, message)

    def _raise(self, user_id: str, tier: AlertTier, message: str) -> Optional[Alert]:
        """Write the alert unless an identical one is inside the tier's window."""
        try:
            if self.is_suppressed(user_id, tier.title, tier.window_hours, message):
                logger.debug("Suppressed '%s' for user %s", tier.title, user_id)
                return None
            alert = self.repository.insert_alert(
                user_id=user_id,
                title=tier.title,
                message=message,
                severity=tier.severity,
                created_at=self.clock()
            )
        except sqlite3.Error:
            logger.exception("Alert check '%s' failed for user %s", tier.title, user_id)
            return None

        logger.info("Raised '%s' for user %s: %s", tier.title, user_id, message)
        return alert
