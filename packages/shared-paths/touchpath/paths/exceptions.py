"""Custom exceptions for path canonicalization and attribution."""

from __future__ import annotations


class AttributionError(Exception):
    """Base exception for attribution errors."""

    pass


class InvalidConfiguration(AttributionError):
    """Raised when a transform method, model or setting is not supported."""

    pass


class InvalidInput(AttributionError):
    """Raised when a path, summary record or probability is malformed."""

    pass
