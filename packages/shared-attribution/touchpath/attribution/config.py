"""Configuration for attribution runs."""

from __future__ import annotations

import os
from dataclasses import dataclass

from touchpath.attribution.schema import AttributionModel
from touchpath.paths import InvalidConfiguration, PathTransformMethod

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise InvalidConfiguration(f"{name} must be a boolean, got {value!r}")


@dataclass
class AttributionConfig:
    """Settings for one attribution run.

    Attributes:
        transform_method: Path canonicalization applied before attribution.
        model: Attribution model (counterfactual by default).
        normalize: Normalize counterfactual credits to sum to 1 per path.
        path_level_only: Return path-level rows without the customer join.
        max_workers: Threads used to attribute distinct paths.
    """

    transform_method: PathTransformMethod = PathTransformMethod.UNIQUE
    model: AttributionModel = AttributionModel.COUNTERFACTUAL
    normalize: bool = True
    path_level_only: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        self.transform_method = PathTransformMethod.parse(self.transform_method)
        self.model = AttributionModel.parse(self.model)
        if self.max_workers < 1:
            raise InvalidConfiguration(f"max_workers must be at least 1, got {self.max_workers}")

    @classmethod
    def from_env(cls) -> AttributionConfig:
        """Create configuration from environment variables.

        Environment variables:
            TOUCHPATH_TRANSFORM_METHOD: unique, exposure, first, recency, frequency
                (default: unique)
            TOUCHPATH_MODEL: Attribution model (default: counterfactual)
            TOUCHPATH_NORMALIZE: Normalize credits (default: true)
            TOUCHPATH_PATH_LEVEL_ONLY: Skip the customer join (default: false)
            TOUCHPATH_MAX_WORKERS: Worker threads (default: 1)
        """
        max_workers = os.environ.get("TOUCHPATH_MAX_WORKERS", "1")
        try:
            max_workers = int(max_workers)
        except ValueError as e:
            raise InvalidConfiguration(
                f"TOUCHPATH_MAX_WORKERS must be an integer, got {max_workers!r}"
            ) from e

        return cls(
            transform_method=os.environ.get("TOUCHPATH_TRANSFORM_METHOD", "unique"),
            model=os.environ.get("TOUCHPATH_MODEL", "counterfactual"),
            normalize=_env_bool("TOUCHPATH_NORMALIZE", True),
            path_level_only=_env_bool("TOUCHPATH_PATH_LEVEL_ONLY", False),
            max_workers=max_workers,
        )
