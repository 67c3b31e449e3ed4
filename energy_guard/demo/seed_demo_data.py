# energy_guard/demo/seed_demo_data.py

from energy_guard.config.loader import AlertThresholdConfig
from energy_guard.core.aggregation import UsageAggregator
from energy_guard.core.alerts import AlertEvaluator
from energy_guard.core.monitor import refresh_alerts
from energy_guard.storage.repository import get_repository, initialize_schema

DEMO_USER = "demo-user"

initialize_schema()

repository = get_repository()
aggregator = UsageAggregator(repository)

# No devices registered: history comes from the fallback appliance set
aggregator.backfill(DEMO_USER, devices=[])

# A spike today so the high usage alert has something to say
aggregator.log_usage(DEMO_USER, None, energy_kwh=18.5, cost=18.5 * 70)

created = refresh_alerts(
    DEMO_USER,
    AlertThresholdConfig(monthly_budget=15000),
    aggregator,
    AlertEvaluator(repository)
)

print(f"Demo history generated, {len(created)} alert(s) raised")
