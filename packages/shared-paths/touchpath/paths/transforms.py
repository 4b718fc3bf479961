"""
Path transforms - canonicalize raw paths before counterfactual lookup.

Supports five canonicalization strategies:
- unique: Every occurrence kept as-is
- exposure: Consecutive duplicates collapsed (A > A > B -> A > B)
- first: Only the first occurrence of each event kept (A > B > A -> A > B)
- frequency: One entry per event tagged with its count (A > B > A -> A(2) > B(1))
- recency: Events tagged with a days-before-conversion bucket (A(1) > B(3-4))

Each strategy is a stateless object; select it once with get_transform()
and reuse it for every row.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from touchpath.paths.exceptions import InvalidInput
from touchpath.paths.schema import (
    Path,
    PathTransformMethod,
    Touchpoint,
    split_tag,
    tag_event,
)

logger = logging.getLogger(__name__)

# Right-inclusive upper bounds (days before conversion) and their labels
RECENCY_BUCKETS: tuple[tuple[float, str], ...] = (
    (1, "1"),
    (2, "2"),
    (4, "3-4"),
    (7, "5-7"),
    (14, "8-14"),
    (30, "15-30"),
)
RECENCY_BUCKET_LABELS = frozenset(label for _, label in RECENCY_BUCKETS)
MAX_RECENCY_DAYS = RECENCY_BUCKETS[-1][0]

RawPath = Path | str | Sequence[str | Touchpoint]


def recency_bucket(days_before: float) -> str | None:
    """Map days-before-conversion to its bucket label.

    Returns None for touches beyond the last bucket (more than 30 days out).

    Raises:
        InvalidInput: If days_before is negative (touch after the conversion).
    """
    if days_before < 0:
        raise InvalidInput(f"Touch occurs after the conversion: days_before={days_before}")
    for upper, label in RECENCY_BUCKETS:
        if days_before <= upper:
            return label
    return None


def channel_of(token: str) -> str:
    """Strip a recency or frequency tag, returning the underlying channel."""
    event, tag = split_tag(token)
    if tag is not None and (tag.isdigit() or tag in RECENCY_BUCKET_LABELS):
        return event
    return token


def _collapse_consecutive(events: Sequence[str]) -> list[str]:
    collapsed: list[str] = []
    for event in events:
        if not collapsed or collapsed[-1] != event:
            collapsed.append(event)
    return collapsed


def _as_touchpoints(raw_path: RawPath) -> list[Touchpoint]:
    if isinstance(raw_path, (Path, str)):
        return [Touchpoint(event) for event in Path.coerce(raw_path)]

    touchpoints = []
    for item in raw_path:
        if isinstance(item, Touchpoint):
            touchpoints.append(item)
        else:
            touchpoints.append(Touchpoint(str(item)))
    # Validate tokens the same way serialized paths are validated
    Path.of(tp.event for tp in touchpoints)
    return touchpoints


class PathTransform(ABC):
    """Base class for path canonicalization strategies."""

    method: PathTransformMethod

    def __call__(self, raw_path: RawPath, canonical: bool = False) -> Path:
        # Output of this transform is returned unchanged
        if isinstance(raw_path, Path) and raw_path.method == self.method:
            return raw_path
        touchpoints = _as_touchpoints(raw_path)
        path = self.apply_canonical(touchpoints) if canonical else self.apply(touchpoints)
        return Path(path.events, self.method)

    @abstractmethod
    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        """Canonicalize an ordered list of raw touchpoints."""
        pass

    def apply_canonical(self, touchpoints: list[Touchpoint]) -> Path:
        """Re-canonicalize tokens already rendered by this method, e.g. summary keys."""
        return self.apply(touchpoints)


class UniqueTransform(PathTransform):
    """Identity: lookup keys equal the raw path."""

    method = PathTransformMethod.UNIQUE

    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        return Path(tuple(tp.event for tp in touchpoints))


class ExposureTransform(PathTransform):
    """Collapse runs of the same event, keeping non-adjacent repeats."""

    method = PathTransformMethod.EXPOSURE

    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        return Path(tuple(_collapse_consecutive([tp.event for tp in touchpoints])))


class FirstTransform(PathTransform):
    """Keep only the first occurrence of each event."""

    method = PathTransformMethod.FIRST

    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        return Path(tuple(dict.fromkeys(tp.event for tp in touchpoints)))


class FrequencyTransform(PathTransform):
    """
    One entry per event, in first-occurrence order, tagged with its count.

    Orderings with the same per-event counts canonicalize identically:
    A > B > A and A > A > B both become A(2) > B(1). Raw tokens are counted
    literally, so Sale(2024) > Sale(2024) becomes Sale(2024)(2). Only
    canonical input (summary keys) has its numeric tags read back as counts.
    """

    method = PathTransformMethod.FREQUENCY

    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        counts: dict[str, int] = {}
        for tp in touchpoints:
            counts[tp.event] = counts.get(tp.event, 0) + 1
        return self._render(counts)

    def apply_canonical(self, touchpoints: list[Touchpoint]) -> Path:
        counts: dict[str, int] = {}
        for tp in touchpoints:
            event, tag = split_tag(tp.event)
            if tag is not None and tag.isdigit():
                count = int(tag)
            else:
                event, count = tp.event, 1
            counts[event] = counts.get(event, 0) + count
        return self._render(counts)

    @staticmethod
    def _render(counts: dict[str, int]) -> Path:
        return Path(tuple(tag_event(event, count) for event, count in counts.items()))


class RecencyTransform(PathTransform):
    """
    Tag each touch with its days-before-conversion bucket.

    Buckets are right-inclusive: 1, 2, 3-4, 5-7, 8-14, 15-30. Touches more
    than 30 days out are excluded. Consecutive touches of the same event in
    the same bucket collapse; the same event in different buckets stays
    distinct.
    """

    method = PathTransformMethod.RECENCY

    def apply(self, touchpoints: list[Touchpoint]) -> Path:
        tagged = []
        excluded = 0
        for tp in touchpoints:
            if tp.days_before is None:
                _, tag = split_tag(tp.event)
                if tag not in RECENCY_BUCKET_LABELS:
                    raise InvalidInput(
                        f"Recency transform needs days before conversion for event: {tp.event!r}"
                    )
                tagged.append(tp.event)
                continue

            bucket = recency_bucket(tp.days_before)
            if bucket is None:
                excluded += 1
                continue
            tagged.append(tag_event(tp.event, bucket))

        if excluded:
            logger.debug(f"Excluded {excluded} touches older than {MAX_RECENCY_DAYS} days")
        return Path(tuple(_collapse_consecutive(tagged)))


_TRANSFORMS: dict[PathTransformMethod, PathTransform] = {
    transform.method: transform
    for transform in (
        UniqueTransform(),
        ExposureTransform(),
        FirstTransform(),
        RecencyTransform(),
        FrequencyTransform(),
    )
}


def get_transform(method: PathTransformMethod | str) -> PathTransform:
    """
    Select the strategy for a transform method.

    Raises:
        InvalidConfiguration: If the method is not supported.
    """
    return _TRANSFORMS[PathTransformMethod.parse(method)]


def transform(
    raw_path: RawPath,
    method: PathTransformMethod | str,
    canonical: bool = False,
) -> Path:
    """
    Canonicalize a raw path with the given method.

    Args:
        raw_path: Path, serialized string, or sequence of tokens/Touchpoints
        method: Transform method
        canonical: Input is already in the method's rendered form (for
            example a path summary key), so frequency tags are read as counts

    Returns:
        Canonical Path (the empty path maps to the empty path)
    """
    return get_transform(method)(raw_path, canonical)
