"""
Path summary - deduplicated conversion statistics per canonical path.

A PathSummary is built once per transform method and is read-only
afterwards, so it can be shared between concurrent attribution workers
without locking. A path that was never observed is simply absent; absence
is distinct from "observed, zero conversions".

Usage:
    builder = PathSummaryBuilder(PathTransformMethod.EXPOSURE)
    summary = builder.build([("Search > Search > Email", True), ("Email", False)])
    summary.conversion_prob(Path.parse("Search > Email"))  # 1.0
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

import pandas as pd

from touchpath.paths.exceptions import InvalidInput
from touchpath.paths.schema import Path, PathStats, PathTransformMethod
from touchpath.paths.transforms import RawPath, get_transform

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["path", "total_paths", "converting_paths", "conversion_prob"]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def _as_count(value: Any, raw: str) -> int:
    try:
        number = float(value)
    except (ValueError, TypeError) as e:
        raise InvalidInput(f"Invalid path counts for path {raw!r}") from e
    if not number.is_integer():
        raise InvalidInput(f"Path count {value!r} is not a whole number for path {raw!r}")
    return int(number)


class PathSummary(Mapping[Path, PathStats]):
    """Read-only mapping from canonical Path to its PathStats.

    Example:
        summary = PathSummary.from_records(
            [{"path": "Search > Email", "total_paths": 10, "converting_paths": 2}],
            method="unique",
        )
        summary[Path.parse("Search > Email")].conversion_prob  # 0.2
    """

    def __init__(
        self,
        stats: Mapping[Path, PathStats],
        method: PathTransformMethod | str,
    ):
        self._stats = MappingProxyType(dict(stats))
        self._method = PathTransformMethod.parse(method)

    @property
    def method(self) -> PathTransformMethod:
        """Transform method the keys are canonical under."""
        return self._method

    def __getitem__(self, path: Path) -> PathStats:
        return self._stats[path]

    def __iter__(self) -> Iterator[Path]:
        return iter(self._stats)

    def __len__(self) -> int:
        return len(self._stats)

    def __repr__(self) -> str:
        return f"PathSummary(method={self._method.value!r}, paths={len(self)})"

    def conversion_prob(self, path: Path) -> float:
        """Conversion probability of a path, 0.0 when it was never observed."""
        stats = self._stats.get(path)
        if stats is None:
            return 0.0
        return stats.conversion_prob

    def converting_paths(self) -> list[Path]:
        """Paths observed with at least one conversion."""
        return [path for path, stats in self._stats.items() if stats.converting_occurrences > 0]

    def canonicalize(self, raw_path: RawPath) -> Path:
        """Transform a raw path with this summary's method."""
        return get_transform(self._method)(raw_path)

    def to_dataframe(self) -> pd.DataFrame:
        """Export the summary using the path summary input schema."""
        return pd.DataFrame(
            [
                {
                    "path": str(path),
                    "total_paths": stats.total_occurrences,
                    "converting_paths": stats.converting_occurrences,
                    "conversion_prob": stats.conversion_prob,
                }
                for path, stats in self._stats.items()
            ],
            columns=SUMMARY_COLUMNS,
        )

    @classmethod
    def from_records(
        cls,
        records: pd.DataFrame | list[dict[str, Any]],
        method: PathTransformMethod | str,
    ) -> PathSummary:
        """Create a PathSummary from path-level summary records.

        Each record has ``path``, ``total_paths``, ``converting_paths`` and an
        optional ``conversion_prob``. Paths are read as keys already rendered
        by ``method`` and re-canonicalized with it; records that collapse onto
        the same canonical path are merged and their probability recomputed
        from the summed counts.

        Args:
            records: DataFrame or list of dicts.
            method: Transform method for the summary keys.

        Returns:
            PathSummary instance.

        Raises:
            InvalidInput: If a count is negative, fractional or non-numeric,
                converting paths exceed total paths, or conversion_prob is
                outside [0, 1].
            InvalidConfiguration: If the method is not supported.
        """
        path_transform = get_transform(method)
        df = records if isinstance(records, pd.DataFrame) else pd.DataFrame(records)

        missing = [col for col in ("path", "total_paths", "converting_paths") if col not in df.columns]
        if missing:
            raise InvalidInput(f"Path summary is missing required columns: {missing}")

        counts: dict[Path, tuple[int, int]] = {}
        supplied: dict[Path, float | None] = {}
        skipped = 0

        for _, row in df.iterrows():
            raw = row["path"]
            raw = "" if _is_missing(raw) else str(raw)

            total = _as_count(row["total_paths"], raw)
            converting = _as_count(row["converting_paths"], raw)

            if total < 0 or converting < 0:
                raise InvalidInput(f"Negative path counts for path {raw!r}")
            if converting > total:
                raise InvalidInput(
                    f"converting_paths ({converting}) exceeds total_paths ({total}) for path {raw!r}"
                )

            prob = row.get("conversion_prob")
            if _is_missing(prob):
                prob = None
            else:
                try:
                    prob = float(prob)
                except (ValueError, TypeError) as e:
                    raise InvalidInput(f"Invalid conversion_prob for path {raw!r}: {prob!r}") from e
                if not 0.0 <= prob <= 1.0:
                    raise InvalidInput(f"conversion_prob {prob} outside [0, 1] for path {raw!r}")

            path = path_transform(raw, canonical=True)
            if total == 0 or not path:
                skipped += 1
                continue

            if path in counts:
                prev_total, prev_converting = counts[path]
                counts[path] = (prev_total + total, prev_converting + converting)
                supplied[path] = None
            else:
                counts[path] = (total, converting)
                supplied[path] = prob

        stats = {}
        for path, (total, converting) in counts.items():
            prob = supplied[path]
            if prob is None:
                stats[path] = PathStats.from_counts(total, converting)
            else:
                stats[path] = PathStats(total, converting, prob)

        if skipped:
            logger.debug(f"Skipped {skipped} empty or unobserved summary records")
        logger.info(
            f"Loaded path summary: {len(stats)} distinct paths from {len(df)} records "
            f"({path_transform.method.value})"
        )
        return cls(stats, path_transform.method)


class PathSummaryBuilder:
    """Aggregate raw (possibly duplicate) paths into a PathSummary.

    Example:
        builder = PathSummaryBuilder("first")
        summary = builder.build([
            ("Search > Display > Search", True),
            ("Search > Display", False),
        ])
        summary.conversion_prob(Path.parse("Search > Display"))  # 0.5
    """

    def __init__(self, method: PathTransformMethod | str):
        """
        Initialize builder.

        Args:
            method: Transform method applied to every raw path

        Raises:
            InvalidConfiguration: If the method is not supported.
        """
        self._transform = get_transform(method)

    @property
    def method(self) -> PathTransformMethod:
        return self._transform.method

    def canonicalize(self, raw_path: RawPath) -> Path:
        """Transform a raw path with the builder's method."""
        return self._transform(raw_path)

    def build(self, raw_paths: Iterable[tuple[RawPath, bool]]) -> PathSummary:
        """
        Group raw paths by their canonical form and count conversions.

        Args:
            raw_paths: Pairs of (raw path, converted)

        Returns:
            PathSummary keyed by canonical path
        """
        counts: dict[Path, list[int]] = {}
        seen = 0
        empty = 0

        for raw_path, converted in raw_paths:
            seen += 1
            path = self._transform(raw_path)
            if not path:
                empty += 1
                continue
            entry = counts.setdefault(path, [0, 0])
            entry[0] += 1
            if converted:
                entry[1] += 1

        if empty:
            logger.debug(f"Skipped {empty} raw paths with no touchpoints")
        logger.info(
            f"Built path summary: {len(counts)} distinct paths from {seen} raw paths "
            f"({self.method.value})"
        )
        return PathSummary(
            {path: PathStats.from_counts(total, converting) for path, (total, converting) in counts.items()},
            self.method,
        )
