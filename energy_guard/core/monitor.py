"""
Refresh flow.

Reads the user's aggregates and hands them to the alert evaluator.
"""

import logging
from typing import List

from .aggregation import UsageAggregator
from .alerts import AlertEvaluator
from energy_guard.config.loader import AlertThresholdConfig
from energy_guard.storage.models import Alert

logger = logging.getLogger(__name__)


def refresh_alerts(
    user_id: str,
    thresholds: AlertThresholdConfig,
    aggregator: UsageAggregator,
    evaluator: AlertEvaluator
) -> List[Alert]:
    """Run the budget and high-usage checks for a user.

    Thresholds are passed explicitly; nothing is read from session state.

    Args:
        user_id: User to evaluate
        thresholds: User's budget and usage thresholds
        aggregator: Source of month-to-date and daily totals
        evaluator: Decides and writes alerts

    Returns:
        Alerts created by this refresh (empty if all were suppressed)
    """
    if not thresholds.alerts_enabled:
        logger.debug("Alerts disabled for user %s", user_id)
        return []

    created = []

    if thresholds.monthly_budget is not None:
        month = aggregator.month_total(user_id)
        alert = evaluator.evaluate_budget(user_id, month.cost, thresholds.monthly_budget)
        if alert is not None:
            created.append(alert)

    today = aggregator.daily_usage(user_id, days=0)[-1]
    alert = evaluator.evaluate_high_usage(
        user_id, today.energy, thresholds.high_usage_threshold_kwh
    )
    if alert is not None:
        created.append(alert)

    return created
