"""
Attribution schema - customer-level records and attribution outputs.

An AttributionRow maps each distinct event of one baseline path to its
fractional credit. A ChannelReport accumulates those credits (and the
revenue they carry) across every converting customer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from touchpath.paths import InvalidConfiguration, Path, Touchpoint

AttributionRow = dict[str, float]


class AttributionModel(str, Enum):
    """Attribution model used to split credit across a path."""

    COUNTERFACTUAL = "counterfactual"  # Leave-one-out marginal contribution
    LAST_TOUCH = "last_touch"
    FIRST_TOUCH = "first_touch"
    LINEAR = "linear"  # Equal credit to all touchpoints
    POSITION_BASED = "position_based"  # 40% first, 40% last, 20% middle

    @classmethod
    def parse(cls, value: AttributionModel | str) -> AttributionModel:
        """Resolve a model from an enum member or its string value.

        Raises:
            InvalidConfiguration: If the value names no supported model.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise InvalidConfiguration(f"Unsupported attribution model: {value!r}") from e


@dataclass
class CustomerPath:
    """
    One customer's touchpoint path and its outcome.

    ``path`` is kept raw; it is canonicalized with the run's transform
    method. Use Touchpoint sequences when the recency transform needs
    days-before-conversion.

    Example:
        customer = CustomerPath(
            customer_id="CUST-001",
            path="Search > Display > Email",
            converted=True,
            revenue=120.0,
        )
    """

    path: Path | str | Sequence[str | Touchpoint]
    converted: bool = False
    revenue: float = 0.0
    customer_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat record; Touchpoint paths serialize their events."""
        if isinstance(self.path, (Path, str)):
            path = str(self.path)
        else:
            path = Path.SEPARATOR.join(
                item.event if isinstance(item, Touchpoint) else str(item) for item in self.path
            )
        return {
            "customer_id": self.customer_id,
            "path": path,
            "converted": self.converted,
            "revenue": self.revenue,
        }


@dataclass
class ChannelTotals:
    """Attributed conversions and revenue for one channel."""

    attributed_conversions: float = 0.0
    attributed_revenue: float = 0.0


ChannelReport = dict[str, ChannelTotals]
