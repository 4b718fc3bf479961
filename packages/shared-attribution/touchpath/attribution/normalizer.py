"""
Customer path normalizers - turn source records into CustomerPath objects.

Each normalizer handles a specific record shape:
- CustomerPathNormalizer: one record per customer with a serialized path
- TouchpointNormalizer: one record per touch with timestamps; derives the
  days-before-conversion needed by the recency transform
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import pandas as pd

from touchpath.attribution.schema import CustomerPath
from touchpath.paths import InvalidInput, Touchpoint

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "y", "t"}

SECONDS_PER_DAY = 86400


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def _parse_converted(value: Any) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value > 0) if isinstance(value, (int, float)) else bool(value)


def _parse_revenue(value: Any, customer_id: Any) -> float:
    if _is_missing(value):
        return 0.0
    try:
        return float(value)
    except (ValueError, TypeError) as e:
        raise InvalidInput(f"Invalid revenue for customer {customer_id!r}: {value!r}") from e


def _parse_timestamp(value: Any) -> datetime | None:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidInput(f"Invalid timestamp format: {value}") from e
    elif not isinstance(value, datetime):
        raise InvalidInput(f"Invalid timestamp: {value!r}")

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


class PathRecordNormalizer(ABC):
    """Base class for customer path normalizers."""

    def __init__(self, field_map: dict[str, str] | None = None):
        """
        Initialize normalizer.

        Args:
            field_map: Mapping of source fields to CustomerPath fields
        """
        self.field_map = field_map or self._default_field_map()

    @abstractmethod
    def _default_field_map(self) -> dict[str, str]:
        pass

    @abstractmethod
    def normalize(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> list[CustomerPath]:
        """
        Normalize source data to CustomerPath objects.

        Args:
            data: Source data as DataFrame or list of dicts

        Returns:
            List of normalized CustomerPath objects
        """
        pass

    def _to_dataframe(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> pd.DataFrame:
        """Convert input to DataFrame."""
        if isinstance(data, pd.DataFrame):
            return data
        return pd.DataFrame(data)

    def _map_fields(self, row_dict: dict[str, Any]) -> dict[str, Any]:
        mapped = {}
        for source_field, target_field in self.field_map.items():
            if source_field in row_dict:
                mapped[target_field] = row_dict[source_field]
        return mapped


class CustomerPathNormalizer(PathRecordNormalizer):
    """
    Normalize customer-level path records.

    Example:
        normalizer = CustomerPathNormalizer()
        customers = normalizer.normalize([
            {"customer_id": "C1", "path": "Search > Email", "converted": True, "revenue": 80.0},
        ])
    """

    def _default_field_map(self) -> dict[str, str]:
        """Default field mappings for path-level exports."""
        return {
            # Path variants
            "path": "path",
            "channel_path": "path",
            "touchpoints": "path",
            # Customer variants
            "customer_id": "customer_id",
            "user_id": "customer_id",
            "client_id": "customer_id",
            # Outcome variants
            "converted": "converted",
            "conversion": "converted",
            "conversions": "converted",
            "has_conversion": "converted",
            # Revenue variants
            "revenue": "revenue",
            "value": "revenue",
            "conversion_value": "revenue",
        }

    def normalize(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> list[CustomerPath]:
        """Normalize path-level records to CustomerPaths."""
        df = self._to_dataframe(data)
        customers = []

        for _, row in df.iterrows():
            mapped = self._map_fields(row.to_dict())

            path = mapped.get("path")
            customer_id = mapped.get("customer_id")
            if _is_missing(path):
                path = ""

            customers.append(
                CustomerPath(
                    path=path if isinstance(path, (list, tuple)) else str(path),
                    converted=_parse_converted(mapped.get("converted")),
                    revenue=_parse_revenue(mapped.get("revenue"), customer_id),
                    customer_id=None if _is_missing(customer_id) else str(customer_id),
                )
            )

        return customers


class TouchpointNormalizer(PathRecordNormalizer):
    """
    Normalize event-level touch records into Touchpoint paths.

    Touches are grouped per customer and ordered by timestamp. Days before
    conversion are measured from the customer's conversion timestamp, or from
    their last touch when they did not convert. Touches after the conversion
    are not part of the path and are dropped.

    Example:
        normalizer = TouchpointNormalizer()
        customers = normalizer.normalize([
            {"customer_id": "C1", "channel": "Search", "timestamp": "2025-01-01T10:00:00Z",
             "conversion_timestamp": "2025-01-04T10:00:00Z", "revenue": 50.0},
            {"customer_id": "C1", "channel": "Email", "timestamp": "2025-01-03T10:00:00Z",
             "conversion_timestamp": "2025-01-04T10:00:00Z", "revenue": 50.0},
        ])
        customers[0].path  # [Touchpoint("Search", 3.0), Touchpoint("Email", 1.0)]
    """

    def _default_field_map(self) -> dict[str, str]:
        """Default field mappings for event-level touch logs."""
        return {
            # Customer variants
            "customer_id": "customer_id",
            "user_id": "customer_id",
            "client_id": "customer_id",
            # Channel variants
            "channel": "channel",
            "event": "channel",
            "source": "channel",
            # Timestamp variants
            "timestamp": "timestamp",
            "event_time": "timestamp",
            "touch_timestamp": "timestamp",
            # Conversion variants
            "conversion_timestamp": "conversion_timestamp",
            "converted_at": "conversion_timestamp",
            # Revenue variants
            "revenue": "revenue",
            "conversion_value": "revenue",
        }

    def normalize(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> list[CustomerPath]:
        """Normalize touch records to one CustomerPath per customer."""
        df = self._to_dataframe(data)
        touches: dict[str, list[tuple[datetime, str]]] = {}
        conversions: dict[str, datetime] = {}
        revenues: dict[str, float] = {}

        for _, row in df.iterrows():
            mapped = self._map_fields(row.to_dict())

            customer_id = mapped.get("customer_id")
            if _is_missing(customer_id):
                raise InvalidInput(f"Touch record without customer_id: {mapped}")
            customer_id = str(customer_id)

            channel = mapped.get("channel")
            timestamp = _parse_timestamp(mapped.get("timestamp"))
            if _is_missing(channel) or timestamp is None:
                raise InvalidInput(f"Touch record for customer {customer_id!r} needs channel and timestamp")
            touches.setdefault(customer_id, []).append((timestamp, str(channel)))

            converted_at = _parse_timestamp(mapped.get("conversion_timestamp"))
            if converted_at is not None:
                conversions.setdefault(customer_id, converted_at)
            if not _is_missing(mapped.get("revenue")) and customer_id not in revenues:
                revenues[customer_id] = _parse_revenue(mapped.get("revenue"), customer_id)

        customers = []
        dropped = 0
        for customer_id, customer_touches in touches.items():
            customer_touches.sort(key=lambda touch: touch[0])
            converted_at = conversions.get(customer_id)
            reference = converted_at or customer_touches[-1][0]

            path = []
            for timestamp, channel in customer_touches:
                if timestamp > reference:
                    dropped += 1
                    continue
                days_before = (reference - timestamp).total_seconds() / SECONDS_PER_DAY
                path.append(Touchpoint(channel, days_before))

            customers.append(
                CustomerPath(
                    path=path,
                    converted=converted_at is not None,
                    revenue=revenues.get(customer_id, 0.0),
                    customer_id=customer_id,
                )
            )

        if dropped:
            logger.debug(f"Dropped {dropped} touches recorded after their conversion")
        return customers
