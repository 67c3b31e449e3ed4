"""
Appliance models and consumption estimates.

Converts an appliance's power rating and daily running hours into
energy and cost figures.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List

from .buckets import HourlyBucket

DEFAULT_ELECTRICITY_RATE = 70.0  # currency units per kWh


class DeviceType(Enum):
    """Appliance categories."""
    AC = "ac"
    FRIDGE = "fridge"
    TV = "tv"
    FAN = "fan"
    LIGHTS = "lights"
    OTHER = "other"


@dataclass(frozen=True)
class Device:
    """An appliance registered by the user."""
    id: str
    name: str
    type: DeviceType
    power_rating: float  # watts
    daily_usage_hours: float
    is_on: bool = True

    def __post_init__(self):
        """Validate rating and hours are physically meaningful."""
        if self.power_rating < 0:
            raise ValueError("power_rating cannot be negative")
        if not 0 <= self.daily_usage_hours <= 24:
            raise ValueError("daily_usage_hours must be between 0 and 24")


# Used when the user has not registered any appliance yet
FALLBACK_DEVICES = (
    Device("1", "Living Room AC", DeviceType.AC, 1500, 6),
    Device("2", "Kitchen Fridge", DeviceType.FRIDGE, 150, 24),
    Device("3", "Smart TV", DeviceType.TV, 100, 4, is_on=False),
    Device("4", "Ceiling Fan", DeviceType.FAN, 75, 8),
    Device("5", "Bedroom Lights", DeviceType.LIGHTS, 60, 5, is_on=False),
)


def calculate_daily_energy(device: Device) -> float:
    """Estimated energy used per day in kWh."""
    return device.power_rating * device.daily_usage_hours / 1000


def calculate_daily_cost(device: Device, rate: float = DEFAULT_ELECTRICITY_RATE) -> float:
    """Estimated cost per day at the given rate per kWh."""
    return calculate_daily_energy(device) * rate


_ACTIVE_HOURS: Dict[DeviceType, Callable[[int], bool]] = {
    DeviceType.FRIDGE: lambda hour: True,
    DeviceType.AC: lambda hour: hour >= 20 or hour <= 6,
    DeviceType.LIGHTS: lambda hour: hour >= 18,
    DeviceType.TV: lambda hour: 18 <= hour <= 23,
    DeviceType.FAN: lambda hour: 12 <= hour <= 16 or hour >= 20 or hour <= 6,
    DeviceType.OTHER: lambda hour: 8 <= hour <= 22,
}


def estimate_hourly_usage(devices: List[Device]) -> List[HourlyBucket]:
    """Simulate a day's hourly profile from typical appliance habits.

    Each switched-on device draws its full rating during the hours it is
    usually running. Callers show this when no hourly records exist.

    Args:
        devices: Appliances to include

    Returns:
        24 hourly buckets, hours 0..23
    """
    buckets = []
    for hour in range(24):
        energy = sum(
            device.power_rating / 1000
            for device in devices
            if device.is_on and _ACTIVE_HOURS[device.type](hour)
        )
        buckets.append(HourlyBucket(hour=hour, energy=energy))
    return buckets
