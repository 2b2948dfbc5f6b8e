"""
Error conditions raised inside the retargeting core.

None of these are fatal: every one of them degrades to "animate less"
at the layer that catches it.
"""

from typing import Iterable, Optional


class MotionRigError(Exception):
    """Base class for all motionrig errors."""


class MalformedLandmarks(MotionRigError):
    """A landmark set has the wrong length or lacks required indices."""

    def __init__(self, part: str, expected: int, actual: int):
        self.part = part
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{part} landmarks malformed: expected at least {expected} points, got {actual}"
        )


class BindingNotFound(MotionRigError):
    """A semantic channel has no matching bone or morph target in the asset."""

    def __init__(
        self,
        asset_id: str,
        channel: str,
        available: Optional[Iterable[str]] = None,
    ):
        self.asset_id = asset_id
        self.channel = channel
        self.available = sorted(set(available or ()))
        super().__init__(f"No binding for channel '{channel}' in asset '{asset_id}'")


class SceneUnavailable(MotionRigError):
    """The rendering host has not attached a scene graph yet."""


class ConfigError(MotionRigError):
    """Configuration file could not be loaded or is invalid."""
