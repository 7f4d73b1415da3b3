"""Master item and field usage analysis."""

from .master_cache import MasterItemCache
from .master_usage import MasterUsage, MasterUsageCounter
from .aggregator import UsageAggregator, UsageCategory, UsageResult

__all__ = [
    "MasterItemCache",
    "MasterUsage",
    "MasterUsageCounter",
    "UsageAggregator",
    "UsageCategory",
    "UsageResult",
]
