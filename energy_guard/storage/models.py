"""
Data models for storage layer.

Defines the persisted entities: usage records and alerts.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AlertSeverity(Enum):
    """Severity levels shown to the user."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class UsageRecord:
    """Immutable fact of energy consumed and what it cost.
    
    Records are only ever inserted, or bulk-deleted when a synthetic
    history window is regenerated. They are never updated.
    """
    user_id: str
    energy_kwh: float
    cost: float
    timestamp: datetime
    device_id: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.energy_kwh < 0:
            raise ValueError("energy_kwh cannot be negative")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")


@dataclass(frozen=True)
class Alert:
    """Alert raised for a user. Only the read flag changes after creation."""
    id: int
    user_id: str
    title: str
    message: str
    severity: AlertSeverity
    created_at: datetime
    read: bool = False
