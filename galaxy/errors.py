"""Exceptions raised by galaxy generation and the display scene."""
from __future__ import annotations

from typing import Any, Optional, Tuple


class GalaxyError(Exception):
    """Base class for galaxy errors."""


class InvalidParameterError(GalaxyError, ValueError):
    """A galaxy parameter is outside its declared bounds or malformed."""

    def __init__(
        self,
        field: str,
        value: Any,
        bounds: Optional[Tuple[float, float]] = None,
        reason: Optional[str] = None,
    ):
        self.field = field
        self.value = value
        self.bounds = bounds
        if reason is None:
            if bounds is not None:
                reason = f"must be within [{bounds[0]}, {bounds[1]}]"
            else:
                reason = "is invalid"
        self.reason = reason
        super().__init__(f"Parameter '{field}'={value!r} {reason}")


class SceneError(GalaxyError):
    """Scene membership violated (e.g. removing an object that is not live)."""


class ResourceDisposalError(GalaxyError, RuntimeError):
    """The previous point cloud could not be released, or a released buffer was used."""
