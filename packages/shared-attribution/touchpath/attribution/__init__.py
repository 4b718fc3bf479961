"""
touchpath Attribution - fractional multi-touch attribution for conversion paths.

Provides:
- Counterfactual (leave-one-out) attribution engine with floor-at-zero and
  last-touch fallback policies
- Rule-based baselines (last-touch, first-touch, linear, position-based)
- Channel-level aggregation of attributed conversions and revenue
- Normalizers for customer path and touch-level records

The key idea: a touchpoint's credit is how much the path's conversion
probability drops when that touchpoint is removed, measured against paths
actually observed in the data.

Usage:
    from touchpath.attribution import (
        attribution_fit,
        channel_revenue_attribution_report,
    )

    # Per-path fractions from a path summary
    fractions = attribution_fit(summary_df, "exposure", path_level_only=True)

    # Channel report from customer paths with revenue
    report = channel_revenue_attribution_report(customers, "exposure")
"""

from touchpath.attribution.aggregator import (
    ChannelAggregator,
    aggregate,
)
from touchpath.attribution.config import AttributionConfig
from touchpath.attribution.engine import (
    AttributionEngine,
    fractional_values,
)
from touchpath.attribution.normalizer import (
    CustomerPathNormalizer,
    PathRecordNormalizer,
    TouchpointNormalizer,
)
from touchpath.attribution.pipeline import (
    FractionalAttribution,
    attribution_fit,
    channel_revenue_attribution_report,
    normalize_channel_name,
)
from touchpath.attribution.schema import (
    AttributionModel,
    AttributionRow,
    ChannelReport,
    ChannelTotals,
    CustomerPath,
)

__all__ = [
    # Schema
    "AttributionModel",
    "AttributionRow",
    "ChannelReport",
    "ChannelTotals",
    "CustomerPath",
    # Config
    "AttributionConfig",
    # Engine
    "AttributionEngine",
    "fractional_values",
    # Aggregation
    "ChannelAggregator",
    "aggregate",
    # Normalizers
    "PathRecordNormalizer",
    "CustomerPathNormalizer",
    "TouchpointNormalizer",
    # Pipeline
    "FractionalAttribution",
    "attribution_fit",
    "channel_revenue_attribution_report",
    "normalize_channel_name",
]
