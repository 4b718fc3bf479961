"""
Path data model - canonical marketing paths and their conversion statistics.

A path is an ordered sequence of touchpoint tokens serialized with a fixed
separator (" > "). Tokens are opaque channel identifiers; the recency and
frequency transforms attach a tag to a token, rendered as ``Event(tag)``:

    Search > Display > Email            # unique / exposure / first
    Search(2) > Display(1)              # frequency
    Search(8-14) > Email(1)             # recency
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from touchpath.paths.exceptions import InvalidConfiguration, InvalidInput

# Matches a trailing "(tag)" on a token, e.g. "Search(3-4)" or "Email(2)"
TAG_PATTERN = re.compile(r"^(?P<event>.*\S)\((?P<tag>[^()]+)\)$")


class PathTransformMethod(str, Enum):
    """Canonicalization strategy applied to raw paths before attribution."""

    UNIQUE = "unique"  # Identity, every occurrence kept
    EXPOSURE = "exposure"  # Collapse consecutive duplicates
    FIRST = "first"  # Keep the first occurrence of each event
    RECENCY = "recency"  # Tag events with a days-before-conversion bucket
    FREQUENCY = "frequency"  # One entry per event tagged with its count

    @classmethod
    def parse(cls, value: PathTransformMethod | str) -> PathTransformMethod:
        """Resolve a method from an enum member or its string value.

        Raises:
            InvalidConfiguration: If the value names no supported method.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            supported = ", ".join(m.value for m in cls)
            raise InvalidConfiguration(
                f"Unsupported path_transform_method: {value!r} (expected one of: {supported})"
            ) from e


def split_tag(token: str) -> tuple[str, str | None]:
    """Split a token into its event name and optional tag."""
    match = TAG_PATTERN.match(token)
    if match is None:
        return token, None
    return match.group("event"), match.group("tag")


def tag_event(event: str, tag: str | int) -> str:
    """Render an event with a tag, e.g. ``tag_event("Search", 2) -> "Search(2)"``."""
    return f"{event}({tag})"


def _validate_token(token: str, source: object) -> str:
    token = token.strip()
    if not token:
        raise InvalidInput(f"Empty event in path: {source!r}")
    if ">" in token:
        raise InvalidInput(f"Malformed path separator in: {source!r}")
    return token


@dataclass(frozen=True)
class Touchpoint:
    """A single touch with its distance (in days) from the conversion.

    ``days_before`` is only consulted by the recency transform.
    """

    event: str
    days_before: float | None = None


@dataclass(frozen=True)
class Path:
    """Immutable ordered sequence of event tokens.

    Two paths are equal iff their serializations are equal, so a Path can be
    used directly as a lookup key. ``method`` records the transform that
    produced the path; it takes no part in equality.

    Example:
        path = Path.parse("Search > Display > Email")
        len(path)  # 3
        str(path.without(1))  # "Search > Email"
    """

    SEPARATOR: ClassVar[str] = " > "

    events: tuple[str, ...] = ()
    method: PathTransformMethod | None = field(default=None, compare=False, repr=False)

    @classmethod
    def parse(cls, value: str) -> Path:
        """Parse a serialized path.

        Raises:
            InvalidInput: If a token is empty or the separator is malformed.
        """
        if not isinstance(value, str):
            raise InvalidInput(f"Path must be a string, got {type(value).__name__}: {value!r}")
        if not value.strip():
            return cls()
        return cls(tuple(_validate_token(token, value) for token in value.split(cls.SEPARATOR)))

    @classmethod
    def of(cls, events: Iterable[str]) -> Path:
        """Build a path from already-split event tokens."""
        events = tuple(events)
        return cls(tuple(_validate_token(str(event), events) for event in events))

    @classmethod
    def coerce(cls, value: Path | str | Sequence[str]) -> Path:
        """Accept a Path, a serialized string or a sequence of tokens."""
        if isinstance(value, Path):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        return cls.of(value)

    def __str__(self) -> str:
        return self.SEPARATOR.join(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[str]:
        return iter(self.events)

    def __getitem__(self, index: int) -> str:
        return self.events[index]

    @property
    def last(self) -> str:
        """Final event of the path."""
        if not self.events:
            raise InvalidInput("Empty path has no last event")
        return self.events[-1]

    def without(self, index: int) -> Path:
        """Return a copy of the path with the token at ``index`` removed."""
        if not 0 <= index < len(self.events):
            raise InvalidInput(f"Position {index} out of range for path: {str(self)!r}")
        return Path(self.events[:index] + self.events[index + 1 :])

    def distinct_events(self) -> list[str]:
        """Distinct tokens in first-occurrence order."""
        return list(dict.fromkeys(self.events))


@dataclass(frozen=True)
class PathStats:
    """Observed occurrence counts for one canonical path."""

    total_occurrences: int
    converting_occurrences: int
    conversion_prob: float

    @classmethod
    def from_counts(cls, total: int, converting: int) -> PathStats:
        """Derive the empirical conversion probability from counts."""
        return cls(
            total_occurrences=total,
            converting_occurrences=converting,
            conversion_prob=converting / total if total > 0 else 0.0,
        )

    @property
    def non_converting_occurrences(self) -> int:
        """Occurrences that did not end in a conversion."""
        return self.total_occurrences - self.converting_occurrences
