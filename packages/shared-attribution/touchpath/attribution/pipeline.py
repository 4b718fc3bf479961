"""
Attribution pipeline - path summary in, wide attribution tables out.

Entry points:
- attribution_fit: one row per distinct converting path, one column per
  channel, optionally joined back to customer records
- channel_revenue_attribution_report: attributed conversions and revenue
  per channel

Output identifiers are normalized at this boundary only: recency/frequency
tags are stripped to the channel (for those two methods only), names are
lowercased with whitespace and hyphen runs collapsed to "_", and absent
(path, channel) cells are 0.0. A channel whose normalized name equals a
fixed output column is rejected with InvalidInput.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pandas as pd

from touchpath.attribution.aggregator import ChannelAggregator
from touchpath.attribution.config import AttributionConfig
from touchpath.attribution.engine import AttributionEngine
from touchpath.attribution.normalizer import CustomerPathNormalizer
from touchpath.attribution.schema import AttributionModel, AttributionRow, CustomerPath
from touchpath.paths import (
    InvalidConfiguration,
    InvalidInput,
    Path,
    PathSummary,
    PathSummaryBuilder,
    PathTransformMethod,
    channel_of,
)

logger = logging.getLogger(__name__)

PATH_COLUMNS = ["path", "total_paths", "converting_paths", "conversion_prob"]
CUSTOMER_COLUMNS = ["customer_id", "converted", "revenue", "transformed_path"]

# Methods whose tokens carry a tag to strip before reporting
TAGGING_METHODS = frozenset({PathTransformMethod.RECENCY, PathTransformMethod.FREQUENCY})

_SEPARATOR_RUN = re.compile(r"[\s\-]+")

CustomerRecords = pd.DataFrame | Sequence[CustomerPath] | Sequence[dict[str, Any]]
SummaryInput = PathSummary | pd.DataFrame | Sequence[dict[str, Any]]


def normalize_channel_name(name: str) -> str:
    """Lowercase a channel name and collapse whitespace/hyphen runs to "_".

    Example:
        normalize_channel_name("Paid  Search")  # "paid_search"
        normalize_channel_name("e-Mail")  # "e_mail"
    """
    return _SEPARATOR_RUN.sub("_", name.strip()).lower()


def channel_row(row: AttributionRow, method: PathTransformMethod | str) -> dict[str, float]:
    """Map a row's tokens to normalized channel names.

    Recency and frequency tags are stripped, so tokens of one channel merge.
    Under the other methods parentheses are part of the channel name.
    """
    strip_tags = PathTransformMethod.parse(method) in TAGGING_METHODS
    channels: dict[str, float] = {}
    for token, value in row.items():
        channel = normalize_channel_name(channel_of(token) if strip_tags else token)
        channels[channel] = channels.get(channel, 0.0) + value
    return channels


def _check_channel_columns(channels: Iterable[str], reserved: Sequence[str]) -> None:
    clashes = sorted(set(channels) & set(reserved))
    if clashes:
        raise InvalidInput(f"Channel names collide with output columns: {clashes}")


def _as_customer_paths(records: CustomerRecords) -> list[CustomerPath]:
    if isinstance(records, pd.DataFrame):
        return CustomerPathNormalizer().normalize(records)
    records = list(records)
    raw = [record for record in records if not isinstance(record, CustomerPath)]
    if not raw:
        return records

    # Only plain records go through the normalizer; CustomerPaths keep their Touchpoints
    normalized = iter(CustomerPathNormalizer().normalize(raw))
    return [record if isinstance(record, CustomerPath) else next(normalized) for record in records]


def _as_summary(path_summary: SummaryInput, method: PathTransformMethod) -> PathSummary:
    if isinstance(path_summary, PathSummary):
        if path_summary.method != method:
            raise InvalidConfiguration(
                f"Path summary was built with {path_summary.method.value!r}, "
                f"not {method.value!r}"
            )
        return path_summary
    return PathSummary.from_records(path_summary, method)


def _wide_table(
    summary: PathSummary,
    rows: Mapping[Path, AttributionRow],
    reserved: Sequence[str] = PATH_COLUMNS,
) -> pd.DataFrame:
    merged_rows = {path: channel_row(row, summary.method) for path, row in rows.items()}
    channel_columns = sorted({channel for merged in merged_rows.values() for channel in merged})
    _check_channel_columns(channel_columns, reserved)

    records = []
    for path, merged in merged_rows.items():
        stats = summary.get(path)
        records.append({
            "path": str(path),
            "total_paths": stats.total_occurrences if stats else 0,
            "converting_paths": stats.converting_occurrences if stats else 0,
            "conversion_prob": stats.conversion_prob if stats else 0.0,
            **merged,
        })

    df = pd.DataFrame(records, columns=PATH_COLUMNS + channel_columns)
    if channel_columns:
        df[channel_columns] = df[channel_columns].fillna(0.0).astype(float)
    return df


class FractionalAttribution:
    """Run counterfactual (or rule-based) attribution with one configuration.

    Example:
        >>> attribution = FractionalAttribution(AttributionConfig(transform_method="exposure"))
        >>> report = attribution.channel_report(customers)
        >>> report[["channel", "attributed_revenue"]]
    """

    def __init__(self, config: AttributionConfig | None = None):
        """Initialize the runner.

        Args:
            config: Attribution configuration. If None, loads from environment.
        """
        self.config = config or AttributionConfig.from_env()

    def _engine(self, summary: PathSummary) -> AttributionEngine:
        return AttributionEngine(
            summary,
            normalize=self.config.normalize,
            model=self.config.model,
            max_workers=self.config.max_workers,
        )

    def fit(
        self,
        path_summary: SummaryInput,
        customer_paths: CustomerRecords | None = None,
    ) -> pd.DataFrame:
        """
        Attribute every distinct converting path of a summary.

        Args:
            path_summary: PathSummary, or records with path, total_paths,
                converting_paths and conversion_prob
            customer_paths: Customer records to join back; required unless
                the config sets path_level_only

        Returns:
            DataFrame with one row per path (or per customer) and one column
            per channel

        Raises:
            InvalidConfiguration: If customer records are needed but missing,
                or the summary was built with another transform method.
            InvalidInput: If the summary records are malformed, or a channel
                name collides with a fixed output column.
        """
        method = self.config.transform_method
        if not self.config.path_level_only and customer_paths is None:
            raise InvalidConfiguration(
                "customer_paths are required unless path_level_only is set"
            )

        summary = _as_summary(path_summary, method)
        rows = self._engine(summary).fit()
        reserved = PATH_COLUMNS if self.config.path_level_only else PATH_COLUMNS + CUSTOMER_COLUMNS
        path_table = _wide_table(summary, rows, reserved)

        if self.config.path_level_only:
            return path_table

        customer_records = []
        for customer in _as_customer_paths(customer_paths):
            path = summary.canonicalize(customer.path)
            stats = summary.get(path)
            customer_records.append({
                "customer_id": customer.customer_id,
                "converted": customer.converted,
                "revenue": customer.revenue,
                "transformed_path": str(path),
                "total_paths": stats.total_occurrences if stats else 0,
                "converting_paths": stats.converting_occurrences if stats else 0,
                "conversion_prob": stats.conversion_prob if stats else 0.0,
            })
        customer_table = pd.DataFrame(customer_records, columns=CUSTOMER_COLUMNS + PATH_COLUMNS[1:])

        channel_columns = [col for col in path_table.columns if col not in PATH_COLUMNS]
        joined = customer_table.merge(
            path_table[["path", *channel_columns]].rename(columns={"path": "transformed_path"}),
            on="transformed_path",
            how="left",
        )
        if channel_columns:
            joined[channel_columns] = joined[channel_columns].fillna(0.0)
        logger.info(f"Joined attribution for {len(joined)} customer records")
        return joined

    def channel_report(self, customer_paths_with_revenue: CustomerRecords) -> pd.DataFrame:
        """
        Attribute converting customers and sum credits and revenue per channel.

        Args:
            customer_paths_with_revenue: Customer records with path,
                converted and revenue

        Returns:
            DataFrame with channel, attributed_conversions, attributed_revenue
        """
        customers = _as_customer_paths(customer_paths_with_revenue)
        builder = PathSummaryBuilder(self.config.transform_method)

        transformed = [(customer, builder.canonicalize(customer.path)) for customer in customers]
        summary = builder.build((path, customer.converted) for customer, path in transformed)

        converting_paths = [path for customer, path in transformed if customer.converted and path]
        rows = self._engine(summary).fit(converting_paths)

        aggregator = ChannelAggregator()
        skipped = 0
        for customer, path in transformed:
            if not customer.converted:
                continue
            if not path:
                skipped += 1
                continue
            aggregator.add(channel_row(rows[path], summary.method), customer.revenue)

        if skipped:
            logger.warning(f"Skipped {skipped} converting customers with no touchpoints")
        logger.info(
            f"Channel report: {aggregator.rows_added} converting customers, "
            f"{len(rows)} distinct paths"
        )
        return aggregator.to_dataframe()


def attribution_fit(
    path_summary: SummaryInput,
    path_transform_method: PathTransformMethod | str,
    normalize: bool = True,
    path_level_only: bool = False,
    customer_paths: CustomerRecords | None = None,
    model: AttributionModel | str = AttributionModel.COUNTERFACTUAL,
    max_workers: int = 1,
) -> pd.DataFrame:
    """
    Fit fractional attribution on a path summary.

    Args:
        path_summary: PathSummary or path summary records
        path_transform_method: unique, exposure, first, recency or frequency
        normalize: Normalize credits to sum to 1 per path
        path_level_only: Return path-level rows only
        customer_paths: Customer records joined back when path_level_only is False
        model: Attribution model
        max_workers: Threads used to attribute distinct paths

    Returns:
        Wide DataFrame of per-path (or per-customer) channel fractions
    """
    config = AttributionConfig(
        transform_method=path_transform_method,
        model=model,
        normalize=normalize,
        path_level_only=path_level_only,
        max_workers=max_workers,
    )
    return FractionalAttribution(config).fit(path_summary, customer_paths)


def channel_revenue_attribution_report(
    customer_paths_with_revenue: CustomerRecords,
    path_transform_method: PathTransformMethod | str,
    normalize: bool = True,
    model: AttributionModel | str = AttributionModel.COUNTERFACTUAL,
) -> pd.DataFrame:
    """
    Build the channel-level revenue attribution report.

    Args:
        customer_paths_with_revenue: Customer records (CustomerPath objects,
            dicts or a DataFrame) with path, converted and revenue
        path_transform_method: unique, exposure, first, recency or frequency
        normalize: Normalize credits to sum to 1 per path
        model: Attribution model

    Returns:
        DataFrame with channel, attributed_conversions, attributed_revenue
    """
    config = AttributionConfig(
        transform_method=path_transform_method,
        model=model,
        normalize=normalize,
        path_level_only=True,
    )
    return FractionalAttribution(config).channel_report(customer_paths_with_revenue)
