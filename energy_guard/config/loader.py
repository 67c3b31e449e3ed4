"""
Configuration management and loading.

Handles alert thresholds, registered appliances and storage settings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from energy_guard.core.alerts import DEFAULT_HIGH_USAGE_THRESHOLD_KWH
from energy_guard.core.devices import DEFAULT_ELECTRICITY_RATE, Device, DeviceType
from energy_guard.storage.db import DEFAULT_DB_PATH


@dataclass(frozen=True)
class AlertThresholdConfig:
    """User-set budget and usage thresholds."""
    monthly_budget: Optional[float] = None
    electricity_rate: float = DEFAULT_ELECTRICITY_RATE
    high_usage_threshold_kwh: float = DEFAULT_HIGH_USAGE_THRESHOLD_KWH
    alerts_enabled: bool = True

    def __post_init__(self):
        """Validate thresholds are positive."""
        if self.monthly_budget is not None and self.monthly_budget <= 0:
            raise ValueError("monthly_budget must be > 0")
        if self.electricity_rate <= 0:
            raise ValueError("electricity_rate must be > 0")
        if self.high_usage_threshold_kwh <= 0:
            raise ValueError("high_usage_threshold_kwh must be > 0")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    database: str = DEFAULT_DB_PATH
    currency_symbol: str = "₦"
    thresholds: AlertThresholdConfig = field(default_factory=AlertThresholdConfig)
    devices: Tuple[Device, ...] = ()


def default_config() -> AppConfig:
    """Configuration used when no file is given."""
    return AppConfig()


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Unknown keys are rejected so that a typo never silently disables
    an alert.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'database', 'currency_symbol', 'thresholds', 'devices'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database = raw_config.get('database', DEFAULT_DB_PATH)
    if not isinstance(database, str) or not database.strip():
        raise ValueError("'database' must be a non-empty string")

    currency_symbol = raw_config.get('currency_symbol', "₦")
    if not isinstance(currency_symbol, str):
        raise ValueError("'currency_symbol' must be a string")

    thresholds_data = raw_config.get('thresholds', {})
    if not isinstance(thresholds_data, dict):
        raise ValueError("'thresholds' must be a dictionary")
    thresholds = _parse_thresholds(thresholds_data)

    devices_data = raw_config.get('devices', [])
    if not isinstance(devices_data, list):
        raise ValueError("'devices' must be a list")
    devices = tuple(
        _parse_device(device_data, f"devices[{i}]")
        for i, device_data in enumerate(devices_data)
    )

    return AppConfig(
        database=database,
        currency_symbol=currency_symbol,
        thresholds=thresholds,
        devices=devices
    )


def _number(data: Dict, key: str, path: str, default=None) -> Optional[float]:
    """Read an optional numeric value, rejecting booleans and strings."""
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' in {path} must be a number")
    return float(value)


def _parse_thresholds(data: Dict) -> AlertThresholdConfig:
    """Parse and validate the thresholds section.

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {
        'monthly_budget', 'electricity_rate',
        'high_usage_threshold_kwh', 'alerts_enabled'
    }
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in thresholds: {unknown_keys}")

    alerts_enabled = data.get('alerts_enabled', True)
    if not isinstance(alerts_enabled, bool):
        raise ValueError("'alerts_enabled' in thresholds must be true or false")

    return AlertThresholdConfig(
        monthly_budget=_number(data, 'monthly_budget', 'thresholds'),
        electricity_rate=_number(
            data, 'electricity_rate', 'thresholds', DEFAULT_ELECTRICITY_RATE
        ),
        high_usage_threshold_kwh=_number(
            data, 'high_usage_threshold_kwh', 'thresholds', DEFAULT_HIGH_USAGE_THRESHOLD_KWH
        ),
        alerts_enabled=alerts_enabled
    )


def _parse_device(data, path: str) -> Device:
    """Parse and validate one registered appliance.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a dictionary")

    allowed_keys = {'id', 'name', 'type', 'power_rating', 'daily_usage_hours', 'is_on'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    for key in ('id', 'name', 'power_rating', 'daily_usage_hours'):
        if data.get(key) is None:
            raise ValueError(f"Missing required '{key}' in {path}")

    type_str = data.get('type', DeviceType.OTHER.value)
    try:
        device_type = DeviceType(str(type_str).lower())
    except ValueError:
        valid_types = [t.value for t in DeviceType]
        raise ValueError(f"'type' in {path} must be one of: {valid_types}")

    is_on = data.get('is_on', True)
    if not isinstance(is_on, bool):
        raise ValueError(f"'is_on' in {path} must be true or false")

    return Device(
        id=str(data['id']),
        name=str(data['name']),
        type=device_type,
        power_rating=_number(data, 'power_rating', path),
        daily_usage_hours=_number(data, 'daily_usage_hours', path),
        is_on=is_on
    )
