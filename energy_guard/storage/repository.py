"""
Repository pattern for data access.

Handles database operations for usage records and alerts.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import Alert, AlertSeverity, UsageRecord

logger = logging.getLogger(__name__)

_INSERT_USAGE_SQL = """
    INSERT INTO usage_record (user_id, device_id, energy_kwh, cost, timestamp)
    VALUES (?, ?, ?, ?, ?)
"""


def _usage_params(record: UsageRecord) -> tuple:
    return (
        record.user_id,
        record.device_id,
        record.energy_kwh,
        record.cost,
        record.timestamp.isoformat(),
    )


def _row_to_usage_record(row: sqlite3.Row) -> UsageRecord:
    return UsageRecord(
        id=row["id"],
        user_id=row["user_id"],
        device_id=row["device_id"],
        energy_kwh=row["energy_kwh"],
        cost=row["cost"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        message=row["message"],
        severity=AlertSeverity(row["severity"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        read=bool(row["read"]),
    )


class EnergyRepository:
    """Repository for usage records and alerts.

    Every method opens its own short-lived connection, so an instance holds
    no state besides the database path and is safe to share between callers.
    Timestamps are stored as local ISO-8601 strings, which sort in time order.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create the usage_record and alert tables if they don't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS usage_record (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    device_id TEXT,
                    energy_kwh REAL NOT NULL,
                    cost REAL NOT NULL,
                    timestamp TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_usage_record_user_ts
                ON usage_record(user_id, timestamp);

                CREATE TABLE IF NOT EXISTS alert (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    read INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_alert_user_title_created
                ON alert(user_id, title, created_at);
            """)
            conn.commit()
        finally:
            conn.close()

    # Usage records

    def fetch_usage_records(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[UsageRecord]:
        """Get usage records for a user, optionally within a time range.

        Args:
            user_id: Owner of the records
            start: Inclusive lower bound on timestamp
            end: Exclusive upper bound on timestamp

        Returns:
            List of usage records ordered by timestamp (oldest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT id, user_id, device_id, energy_kwh, cost, timestamp
                FROM usage_record
                WHERE user_id = ?
            """
            params = [user_id]

            if start is not None:
                query += " AND timestamp >= ?"
                params.append(start.isoformat())
            if end is not None:
                query += " AND timestamp < ?"
                params.append(end.isoformat())

            query += " ORDER BY timestamp ASC, id ASC"

            cursor = conn.execute(query, params)
            return [_row_to_usage_record(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def insert_usage_record(self, record: UsageRecord) -> int:
        """Append a single usage record.

        Args:
            record: The usage record to store

        Returns:
            Id assigned to the new record
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(_INSERT_USAGE_SQL, _usage_params(record))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def insert_usage_records(self, records: List[UsageRecord]) -> None:
        """Append multiple usage records atomically.

        All records are inserted in a single transaction; on failure nothing
        is written and the error propagates.

        Args:
            records: Usage records to store
        """
        if not records:
            return

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            conn.executemany(_INSERT_USAGE_SQL, [_usage_params(r) for r in records])
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_usage_records(self, user_id: str, start: datetime, end: datetime) -> int:
        """Delete a user's records with start <= timestamp < end.

        Returns:
            Number of records deleted
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "DELETE FROM usage_record WHERE user_id = ? AND timestamp >= ? AND timestamp < ?",
                (user_id, start.isoformat(), end.isoformat())
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def replace_usage_records(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        records: List[UsageRecord]
    ) -> int:
        """Delete a user's records in [start, end) and insert new ones.

        Both steps run in one transaction, so a failed regeneration leaves
        the previous window untouched.

        Args:
            user_id: Owner of the window being replaced
            start: Inclusive lower bound of the window
            end: Exclusive upper bound of the window
            records: Replacement records

        Returns:
            Number of records deleted
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            cursor = conn.execute(
                "DELETE FROM usage_record WHERE user_id = ? AND timestamp >= ? AND timestamp < ?",
                (user_id, start.isoformat(), end.isoformat())
            )
            deleted = cursor.rowcount
            conn.executemany(_INSERT_USAGE_SQL, [_usage_params(r) for r in records])
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Alerts

    def find_latest_alert(self, user_id: str, title: str, since: datetime) -> Optional[Alert]:
        """Get the most recent alert with this exact title created at or after `since`."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, user_id, title, message, severity, created_at, read
                FROM alert
                WHERE user_id = ? AND title = ? AND created_at >= ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
            """, (user_id, title, since.isoformat()))
            row = cursor.fetchone()
            return _row_to_alert(row) if row is not None else None
        finally:
            conn.close()

    def insert_alert(
        self,
        user_id: str,
        title: str,
        message: str,
        severity: AlertSeverity,
        created_at: datetime
    ) -> Alert:
        """Store a new unread alert.

        Returns:
            The stored alert with its assigned id
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO alert (user_id, title, message, severity, created_at, read)
                VALUES (?, ?, ?, ?, ?, 0)
            """, (user_id, title, message, severity.value, created_at.isoformat()))
            conn.commit()
            return Alert(
                id=cursor.lastrowid,
                user_id=user_id,
                title=title,
                message=message,
                severity=severity,
                created_at=created_at,
                read=False
            )
        finally:
            conn.close()

    def mark_alert_read(self, alert_id: int) -> bool:
        """Flip an alert's read flag.

        Returns:
            True if the alert exists, False otherwise
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("UPDATE alert SET read = 1 WHERE id = ?", (alert_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def fetch_alerts(self, user_id: str, limit: int = 50, unread_only: bool = False) -> List[Alert]:
        """Get a user's alerts, newest first."""
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT id, user_id, title, message, severity, created_at, read
                FROM alert
                WHERE user_id = ?
            """
            params = [user_id]
            if unread_only:
                query += " AND read = 0"
            query += " ORDER BY created_at DESC, id DESC LIMIT ?"
            params.append(limit)

            cursor = conn.execute(query, params)
            return [_row_to_alert(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def count_unread_alerts(self, user_id: str) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM alert WHERE user_id = ? AND read = 0",
                (user_id,)
            )
            return cursor.fetchone()[0]
        finally:
            conn.close()


# Repository instances keyed by database path
_repositories: Dict[str, EnergyRepository] = {}


def get_repository(db_path: str = DEFAULT_DB_PATH) -> EnergyRepository:
    """Get the shared repository instance for a database path.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of EnergyRepository
    """
    if db_path not in _repositories:
        _repositories[db_path] = EnergyRepository(db_path)
    return _repositories[db_path]


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the record store tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    logger.debug("Initializing schema at %s", db_path)
    get_repository(db_path).initialize_schema()
