"""
Channel aggregation - roll path-level credits up into a channel report.

Accumulation is a pure sum, so partial aggregators built over disjoint
slices of customers can be merged in any order.
"""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from touchpath.attribution.schema import AttributionRow, ChannelReport, ChannelTotals

REPORT_COLUMNS = ["channel", "attributed_conversions", "attributed_revenue"]


class ChannelAggregator:
    """Accumulate AttributionRows into per-channel conversions and revenue.

    Example:
        aggregator = ChannelAggregator()
        aggregator.add({"Search": 0.6, "Email": 0.4}, revenue=100.0)
        aggregator.report()["Search"].attributed_revenue  # 60.0
    """

    def __init__(self) -> None:
        self._totals: ChannelReport = {}
        self.rows_added = 0

    def add(self, row: AttributionRow, revenue: float = 0.0) -> None:
        """Add one converting instance's credits, weighted by its revenue."""
        for channel, fraction in row.items():
            totals = self._totals.setdefault(channel, ChannelTotals())
            totals.attributed_conversions += fraction
            totals.attributed_revenue += fraction * revenue
        self.rows_added += 1

    def merge(self, other: ChannelAggregator) -> ChannelAggregator:
        """Fold another partial aggregator into this one and return self."""
        for channel, other_totals in other._totals.items():
            totals = self._totals.setdefault(channel, ChannelTotals())
            totals.attributed_conversions += other_totals.attributed_conversions
            totals.attributed_revenue += other_totals.attributed_revenue
        self.rows_added += other.rows_added
        return self

    def report(self) -> ChannelReport:
        """Snapshot of the accumulated per-channel totals."""
        return {
            channel: ChannelTotals(totals.attributed_conversions, totals.attributed_revenue)
            for channel, totals in self._totals.items()
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per channel, highest attributed revenue first."""
        df = pd.DataFrame(
            [
                {
                    "channel": channel,
                    "attributed_conversions": totals.attributed_conversions,
                    "attributed_revenue": totals.attributed_revenue,
                }
                for channel, totals in self._totals.items()
            ],
            columns=REPORT_COLUMNS,
        )
        return df.sort_values(
            ["attributed_revenue", "attributed_conversions", "channel"],
            ascending=[False, False, True],
            ignore_index=True,
        )


def aggregate(rows: Iterable[tuple[AttributionRow, float]]) -> ChannelReport:
    """
    Sum (row, revenue) pairs into a channel report.

    Args:
        rows: AttributionRow and revenue for each converting instance

    Returns:
        Dict from channel to ChannelTotals
    """
    aggregator = ChannelAggregator()
    for row, revenue in rows:
        aggregator.add(row, revenue)
    return aggregator.report()
