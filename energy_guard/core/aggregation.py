"""
Usage aggregation.

Rolls raw usage records into zero-filled daily and hourly series and
month-to-date totals, and synthesizes a demo history from appliances.

Failure tiers:
1. Reads (daily, hourly, month) - never raise on store errors; return the
   zero-filled value so callers can fall back to an estimate
2. Writes (log, backfill) - store errors propagate; a lost record must be visible
"""

import logging
import random
import sqlite3
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from .buckets import DailyBucket, HourlyBucket, MonthTotal
from .devices import (
    DEFAULT_ELECTRICITY_RATE,
    FALLBACK_DEVICES,
    Device,
    calculate_daily_energy,
)
from energy_guard.storage.models import UsageRecord
from energy_guard.storage.repository import EnergyRepository

logger = logging.getLogger(__name__)

BACKFILL_DAYS = 30
BACKFILL_VARIATION = (0.8, 1.2)


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


class UsageAggregator:
    """Computes usage summaries for a user from the record store.

    Holds no per-user state; every call is a fresh read of the store.
    """

    def __init__(
        self,
        repository: EnergyRepository,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            repository: Record store to read from and write to
            clock: Returns the current local time
            rng: Random source for synthetic history
        """
        self.repository = repository
        self.clock = clock
        self.rng = rng or random.Random()

    def daily_usage(self, user_id: str, days: int = 7) -> List[DailyBucket]:
        """Daily totals for the last `days` days plus today.

        Returns exactly days+1 buckets in ascending date order, zero-filled
        for days without records. Records dated outside the window are
        ignored.

        Args:
            user_id: Owner of the records
            days: Number of days before today to include

        Returns:
            List of daily buckets ending today

        Raises:
            ValueError: If days is negative
        """
        if days < 0:
            raise ValueError("days cannot be negative")

        today = self.clock().date()
        first_day = today - timedelta(days=days)

        buckets: Dict[date, DailyBucket] = {}
        for offset in range(days + 1):
            day = first_day + timedelta(days=offset)
            buckets[day] = DailyBucket(date=day)

        try:
            records = self.repository.fetch_usage_records(
                user_id, start=_start_of_day(first_day)
            )
        except sqlite3.Error:
            logger.exception("Failed to read daily usage for user %s", user_id)
            return list(buckets.values())

        for record in records:
            bucket = buckets.get(record.timestamp.date())
            if bucket is None:
                continue
            bucket.energy += record.energy_kwh
            bucket.cost += record.cost

        return list(buckets.values())

    def hourly_usage(self, user_id: str, day: Optional[date] = None) -> List[HourlyBucket]:
        """Energy per hour of a single day (today by default).

        Always returns 24 buckets, hours 0..23. An all-zero series is
        returned when the store cannot be read.
        """
        day = day or self.clock().date()
        start = _start_of_day(day)
        end = start + timedelta(days=1)

        buckets = [HourlyBucket(hour=hour) for hour in range(24)]

        try:
            records = self.repository.fetch_usage_records(user_id, start=start, end=end)
        except sqlite3.Error:
            logger.exception("Failed to read hourly usage for user %s on %s", user_id, day)
            return buckets

        for record in records:
            buckets[record.timestamp.hour].energy += record.energy_kwh

        return buckets

    def month_total(self, user_id: str) -> MonthTotal:
        """Energy and cost from the 1st of the current month until now."""
        start = _start_of_day(self.clock().date().replace(day=1))

        try:
            records = self.repository.fetch_usage_records(user_id, start=start)
        except sqlite3.Error:
            logger.exception("Failed to read month total for user %s", user_id)
            return MonthTotal()

        return MonthTotal(
            energy=sum(r.energy_kwh for r in records),
            cost=sum(r.cost for r in records)
        )

    def log_usage(
        self,
        user_id: str,
        device_id: Optional[str],
        energy_kwh: float,
        cost: float,
        timestamp: Optional[datetime] = None
    ) -> UsageRecord:
        """Append one usage record.

        Store failures propagate to the caller.

        Returns:
            The stored record with its assigned id

        Raises:
            ValueError: If energy or cost is negative
        """
        record = UsageRecord(
            user_id=user_id,
            device_id=device_id,
            energy_kwh=energy_kwh,
            cost=cost,
            timestamp=timestamp or self.clock()
        )
        record_id = self.repository.insert_usage_record(record)
        logger.debug("Logged %.3f kWh for user %s (device %s)", energy_kwh, user_id, device_id)
        return UsageRecord(
            id=record_id,
            user_id=record.user_id,
            device_id=record.device_id,
            energy_kwh=record.energy_kwh,
            cost=record.cost,
            timestamp=record.timestamp
        )

    def backfill(
        self,
        user_id: str,
        devices: Sequence[Device],
        electricity_rate: Optional[float] = None
    ) -> bool:
        """Regenerate a synthetic usage history for the trailing 30 days.

        Existing records in the window are replaced, so running this again
        never double-counts. One record per device per day is written, each
        scaled by its own random factor in [0.8, 1.2]. With no devices the
        fallback appliance set is used and records carry no device id.

        Args:
            user_id: Owner of the history
            devices: Registered appliances
            electricity_rate: Cost per kWh, defaults to DEFAULT_ELECTRICITY_RATE

        Returns:
            True once the history has been written

        Raises:
            ValueError: If electricity_rate is negative
            sqlite3.Error: If the store rejects the regeneration
        """
        rate = DEFAULT_ELECTRICITY_RATE if electricity_rate is None else electricity_rate
        if rate < 0:
            raise ValueError("electricity_rate cannot be negative")

        use_fallback = not devices
        source = FALLBACK_DEVICES if use_fallback else devices

        now = self.clock()
        today = now.date()
        window_start = _start_of_day(today - timedelta(days=BACKFILL_DAYS - 1))
        window_end = _start_of_day(today + timedelta(days=1))

        low, high = BACKFILL_VARIATION
        records = []
        for days_ago in range(BACKFILL_DAYS):
            timestamp = now - timedelta(days=days_ago)
            for device in source:
                factor = self.rng.uniform(low, high)
                energy = calculate_daily_energy(device) * factor
                records.append(UsageRecord(
                    user_id=user_id,
                    device_id=None if use_fallback else device.id,
                    energy_kwh=energy,
                    cost=energy * rate,
                    timestamp=timestamp
                ))

        deleted = self.repository.replace_usage_records(
            user_id, window_start, window_end, records
        )
        logger.info(
            "Backfilled %d records for user %s (replaced %d, %s devices)",
            len(records), user_id, deleted, "fallback" if use_fallback else len(source)
        )
        return True
