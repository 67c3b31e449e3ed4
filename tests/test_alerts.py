"""
Tests for threshold alerting and repeat suppression.
"""
import logging
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from energy_guard.core.alerts import (
    BUDGET_ALERT,
    BUDGET_EXCEEDED,
    HIGH_USAGE,
    AlertEvaluator,
    format_amount,
    round_percent,
)
from energy_guard.storage.models import AlertSeverity
from energy_guard.storage.repository import EnergyRepository

NOW = datetime(2024, 3, 15, 14, 30)
USER = "user-1"
OTHER_USER = "user-2"


class EvaluatorTestCase:
    """Temporary alert store and a fixed clock."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.repository = EnergyRepository(os.path.join(self.temp_dir, "test.db"))
        self.repository.initialize_schema()
        self.evaluator = AlertEvaluator(self.repository, clock=lambda: NOW)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def stored(self, user_id=USER):
        return self.repository.fetch_alerts(user_id)

    def add_past_alert(self, tier, message, hours_ago, user_id=USER):
        return self.repository.insert_alert(
            user_id=user_id,
            title=tier.title,
            message=message,
            severity=tier.severity,
            created_at=NOW - timedelta(hours=hours_ago)
        )


class TestBudgetEvaluation(EvaluatorTestCase):
    """Test budget tiers."""

    def test_at_budget_raises_exceeded(self):
        """100% of budget is an error-level Budget Exceeded alert."""
        alert = self.evaluator.evaluate_budget(USER, 100, 100)

        assert alert is not None
        assert alert.title == "Budget Exceeded"
        assert alert.severity == AlertSeverity.ERROR
        assert alert.message == "You have exceeded your monthly budget of ₦100."
        assert alert.created_at == NOW
        assert alert.read is False
        assert len(self.stored()) == 1

    def test_repeat_exceeded_is_suppressed(self):
        """Same inputs again inside the window write nothing."""
        self.evaluator.evaluate_budget(USER, 100, 100)
        assert self.evaluator.evaluate_budget(USER, 100, 100) is None
        assert len(self.stored()) == 1

    def test_new_budget_inside_window_raises_again(self):
        """A different budget means a different message and a new alert."""
        self.evaluator.evaluate_budget(USER, 100, 100)

        alert = self.evaluator.evaluate_budget(USER, 100, 120)

        assert alert is not None
        assert alert.title == "Budget Alert"
        assert len(self.stored()) == 2

    def test_exceeded_with_different_amount_not_suppressed(self):
        """Same title, new amount in the message, still inside the window."""
        self.evaluator.evaluate_budget(USER, 100, 100)

        alert = self.evaluator.evaluate_budget(USER, 130, 120)

        assert alert is not None
        assert alert.title == "Budget Exceeded"
        assert "₦120" in alert.message

    def test_eighty_percent_raises_warning(self):
        """80% up to 100% is a warning with the rounded percentage."""
        alert = self.evaluator.evaluate_budget(USER, 85, 100)

        assert alert.title == "Budget Alert"
        assert alert.severity == AlertSeverity.WARNING
        assert alert.message == "You have used 85% of your monthly budget."

    def test_exactly_eighty_percent(self):
        assert self.evaluator.evaluate_budget(USER, 80, 100).title == "Budget Alert"

    def test_half_percent_rounds_up(self):
        """82.5% is reported as 83%, not rounded to even."""
        alert = self.evaluator.evaluate_budget(USER, 82.5, 100)
        assert alert.message == "You have used 83% of your monthly budget."

    def test_changed_percentage_not_suppressed(self):
        """A materially different percentage gets through immediately."""
        self.evaluator.evaluate_budget(USER, 85, 100)
        assert self.evaluator.evaluate_budget(USER, 85, 100) is None
        assert self.evaluator.evaluate_budget(USER, 90, 100) is not None
        assert len(self.stored()) == 2

    def test_below_eighty_percent_no_alert(self):
        """50% of budget raises nothing."""
        assert self.evaluator.evaluate_budget(USER, 50, 100) is None
        assert self.stored() == []

    @pytest.mark.parametrize("budget", [0, -10, None])
    def test_no_budget_is_noop(self, budget):
        assert self.evaluator.evaluate_budget(USER, 500, budget) is None
        assert self.stored() == []

    def test_exceeded_window_is_one_hour(self):
        """An identical alert older than an hour no longer suppresses."""
        message = "You have exceeded your monthly budget of ₦100."
        self.add_past_alert(BUDGET_EXCEEDED, message, hours_ago=0.5)
        assert self.evaluator.evaluate_budget(USER, 100, 100) is None

        self.add_past_alert(BUDGET_EXCEEDED, message, hours_ago=2, user_id=OTHER_USER)
        assert self.evaluator.evaluate_budget(OTHER_USER, 100, 100) is not None

    def test_budget_alert_window_is_six_hours(self):
        message = "You have used 85% of your monthly budget."
        self.add_past_alert(BUDGET_ALERT, message, hours_ago=5)
        assert self.evaluator.evaluate_budget(USER, 85, 100) is None

        self.add_past_alert(BUDGET_ALERT, message, hours_ago=7, user_id=OTHER_USER)
        assert self.evaluator.evaluate_budget(OTHER_USER, 85, 100) is not None

    def test_thousands_in_budget_message(self):
        evaluator = AlertEvaluator(self.repository, clock=lambda: NOW, currency_symbol="$")
        alert = evaluator.evaluate_budget(USER, 16000, 15000)
        assert alert.message == "You have exceeded your monthly budget of $15,000."


class TestHighUsageEvaluation(EvaluatorTestCase):
    """Test high daily usage alerts."""

    def test_above_threshold_raises_warning(self):
        """Usage over the threshold names the figure to one decimal."""
        alert = self.evaluator.evaluate_high_usage(USER, 25, 20)

        assert alert.title == "High Energy Usage"
        assert alert.severity == AlertSeverity.WARNING
        assert "25.0" in alert.message

    def test_repeat_is_suppressed(self):
        self.evaluator.evaluate_high_usage(USER, 25, 20)
        assert self.evaluator.evaluate_high_usage(USER, 25, 20) is None
        assert len(self.stored()) == 1

    def test_new_figure_not_suppressed(self):
        """A different usage figure gets through inside the window."""
        self.evaluator.evaluate_high_usage(USER, 25, 20)
        alert = self.evaluator.evaluate_high_usage(USER, 30, 20)
        assert alert is not None
        assert "30.0" in alert.message
        assert len(self.stored()) == 2

    def test_at_threshold_no_alert(self):
        """The threshold itself is not high usage."""
        assert self.evaluator.evaluate_high_usage(USER, 20, 20) is None

    def test_default_threshold(self):
        assert self.evaluator.evaluate_high_usage(USER, 19.9) is None
        assert self.evaluator.evaluate_high_usage(USER, 20.1) is not None

    def test_window_is_three_hours(self):
        message = "Your energy usage today (25.0 kWh) is higher than usual."
        self.add_past_alert(HIGH_USAGE, message, hours_ago=2)
        assert self.evaluator.evaluate_high_usage(USER, 25, 20) is None

        self.add_past_alert(HIGH_USAGE, message, hours_ago=4, user_id=OTHER_USER)
        assert self.evaluator.evaluate_high_usage(OTHER_USER, 25, 20) is not None


class TestSuppressionCheck(EvaluatorTestCase):
    """Test the suppression lookup directly."""

    def test_no_alert_not_suppressed(self):
        assert self.evaluator.is_suppressed(USER, "Budget Alert", 6) is False

    def test_recent_alert_without_candidate_suppresses(self):
        """Without a message the check is a pure rate limit."""
        self.add_past_alert(BUDGET_ALERT, "anything", hours_ago=1)
        assert self.evaluator.is_suppressed(USER, "Budget Alert", 6) is True

    def test_message_must_match_verbatim(self):
        self.add_past_alert(BUDGET_ALERT, "You have used 85% of your monthly budget.", hours_ago=1)
        assert self.evaluator.is_suppressed(
            USER, "Budget Alert", 6, "You have used 85% of your monthly budget."
        ) is True
        assert self.evaluator.is_suppressed(
            USER, "Budget Alert", 6, "You have used 86% of your monthly budget."
        ) is False

    def test_only_most_recent_alert_is_compared(self):
        """An older identical alert does not hide a newer different one."""
        self.add_past_alert(HIGH_USAGE, "old", hours_ago=2)
        self.add_past_alert(HIGH_USAGE, "new", hours_ago=1)
        assert self.evaluator.is_suppressed(USER, HIGH_USAGE.title, 3, "old") is False
        assert self.evaluator.is_suppressed(USER, HIGH_USAGE.title, 3, "new") is True

    def test_scoped_to_user_and_title(self):
        self.add_past_alert(BUDGET_ALERT, "msg", hours_ago=1)
        assert self.evaluator.is_suppressed("someone-else", "Budget Alert", 6) is False
        assert self.evaluator.is_suppressed(USER, "Budget Exceeded", 6) is False


class TestEvaluatorFailures:
    """Store failures are logged, never raised."""

    def test_read_failure_skips_alert(self, caplog):
        repo = MagicMock()
        repo.find_latest_alert.side_effect = sqlite3.OperationalError("database is locked")
        evaluator = AlertEvaluator(repo, clock=lambda: NOW)

        with caplog.at_level(logging.ERROR, logger="energy_guard"):
            assert evaluator.evaluate_budget(USER, 100, 100) is None

        repo.insert_alert.assert_not_called()
        assert "Budget Exceeded" in caplog.text

    def test_write_failure_skips_alert(self):
        repo = MagicMock()
        repo.find_latest_alert.return_value = None
        repo.insert_alert.side_effect = sqlite3.OperationalError("disk full")
        evaluator = AlertEvaluator(repo, clock=lambda: NOW)

        assert evaluator.evaluate_high_usage(USER, 30, 20) is None


class TestFormatAmount:
    """Test budget amount formatting."""

    @pytest.mark.parametrize("amount,expected", [
        (100, "100"),
        (15000, "15,000"),
        (15000.0, "15,000"),
        (1234.5, "1,234.5"),
        (1234.25, "1,234.25"),
        (0.1234, "0.123"),
    ])
    def test_format_amount(self, amount, expected):
        assert format_amount(amount) == expected


class TestRoundPercent:
    """Test whole-percent rounding."""

    @pytest.mark.parametrize("percentage,expected", [
        (82.5, 83),
        (84.5, 85),
        (82.4, 82),
        (99.99, 100),
        (80, 80),
    ])
    def test_round_percent(self, percentage, expected):
        assert round_percent(percentage) == expected
