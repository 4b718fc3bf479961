"""Leave-one-out counterfactual paths.

Counterfactuals are looked up in the summary directly, without
re-transforming. Under unique, first and frequency the result is always
canonical. Under exposure and recency, dropping a token between two equal
neighbours leaves an adjacent duplicate (A > B > A -> A > A) that no summary
holds, so it counts as never converting.
"""

from __future__ import annotations

from touchpath.paths.schema import Path


def path_length(path: Path) -> int:
    """Number of tokens, which is also the number of counterfactuals."""
    return len(path)


def drop_event(path: Path, index: int) -> Path:
    """Remove the token at 0-based ``index``.

    Raises:
        InvalidInput: If the index is out of range.
    """
    return path.without(index)


def counterfactuals(path: Path) -> list[tuple[str, Path]]:
    """Return (dropped_event, counterfactual_path) for every position, in order."""
    return [(event, path.without(i)) for i, event in enumerate(path)]
