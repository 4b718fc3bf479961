"""
touchpath Paths - canonical marketing paths and their conversion statistics.

Provides:
- Path / Touchpoint data model with " > " serialization
- Five canonicalization strategies (unique, exposure, first, recency, frequency)
- PathSummary: read-only conversion statistics per canonical path
- Leave-one-out counterfactual generation

Usage:
    from touchpath.paths import (
        PathSummaryBuilder,
        PathTransformMethod,
        counterfactuals,
        transform,
    )

    path = transform("Search > Search > Email", PathTransformMethod.EXPOSURE)
    summary = PathSummaryBuilder("exposure").build(raw_paths)
    for dropped, counterfactual in counterfactuals(path):
        summary.conversion_prob(counterfactual)
"""

from touchpath.paths.counterfactuals import (
    counterfactuals,
    drop_event,
    path_length,
)
from touchpath.paths.exceptions import (
    AttributionError,
    InvalidConfiguration,
    InvalidInput,
)
from touchpath.paths.schema import (
    Path,
    PathStats,
    PathTransformMethod,
    Touchpoint,
)
from touchpath.paths.summary import (
    PathSummary,
    PathSummaryBuilder,
)
from touchpath.paths.transforms import (
    PathTransform,
    channel_of,
    get_transform,
    recency_bucket,
    transform,
)

__all__ = [
    # Schema
    "Path",
    "PathStats",
    "PathTransformMethod",
    "Touchpoint",
    # Exceptions
    "AttributionError",
    "InvalidConfiguration",
    "InvalidInput",
    # Transforms
    "PathTransform",
    "get_transform",
    "transform",
    "recency_bucket",
    "channel_of",
    # Summary
    "PathSummary",
    "PathSummaryBuilder",
    # Counterfactuals
    "counterfactuals",
    "drop_event",
    "path_length",
]
