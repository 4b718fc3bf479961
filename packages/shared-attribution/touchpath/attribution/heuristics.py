"""
Rule-based attribution models.

These share the AttributionRow shape of the counterfactual engine so the
data-driven result can be compared against the usual baselines:
- Last-touch: Credit to the last touchpoint
- First-touch: Credit to the first touchpoint
- Linear: Equal credit to all touchpoints
- Position-based: 40% first, 40% last, 20% middle

Repeated events accumulate the credit of every position they occupy.
"""

from __future__ import annotations

from collections.abc import Callable

from touchpath.attribution.schema import AttributionModel, AttributionRow
from touchpath.paths import InvalidConfiguration, InvalidInput, Path


def _empty_row(path: Path) -> AttributionRow:
    if not path:
        raise InvalidInput("Cannot attribute an empty path")
    return dict.fromkeys(path.distinct_events(), 0.0)


def last_touch(path: Path) -> AttributionRow:
    """Assign 100% credit to the last event in the path."""
    row = _empty_row(path)
    row[path.last] = 1.0
    return row


def first_touch(path: Path) -> AttributionRow:
    """Assign 100% credit to the first event in the path."""
    row = _empty_row(path)
    row[path[0]] = 1.0
    return row


def linear(path: Path) -> AttributionRow:
    """Distribute credit evenly between all positions."""
    row = _empty_row(path)
    credit = 1.0 / len(path)
    for event in path:
        row[event] += credit
    return row


def position_based(path: Path) -> AttributionRow:
    """
    40% to first, 40% to last, 20% distributed to middle.

    A single touch gets everything; two touches split 50/50.
    """
    row = _empty_row(path)
    if len(path) == 1:
        row[path[0]] = 1.0
        return row

    if len(path) == 2:
        row[path[0]] += 0.5
        row[path[1]] += 0.5
        return row

    middle_credit = 0.2 / (len(path) - 2)
    row[path[0]] += 0.4
    row[path.last] += 0.4
    for event in path.events[1:-1]:
        row[event] += middle_credit
    return row


HEURISTIC_MODELS: dict[AttributionModel, Callable[[Path], AttributionRow]] = {
    AttributionModel.LAST_TOUCH: last_touch,
    AttributionModel.FIRST_TOUCH: first_touch,
    AttributionModel.LINEAR: linear,
    AttributionModel.POSITION_BASED: position_based,
}


def get_heuristic(model: AttributionModel | str) -> Callable[[Path], AttributionRow]:
    """
    Select a rule-based model.

    Raises:
        InvalidConfiguration: If the model is not a rule-based model.
    """
    model = AttributionModel.parse(model)
    if model not in HEURISTIC_MODELS:
        raise InvalidConfiguration(f"Not a rule-based attribution model: {model.value}")
    return HEURISTIC_MODELS[model]
