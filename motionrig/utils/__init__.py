"""Utility functions for motionrig."""

from motionrig.utils.math_utils import (
    clamp,
    normalize_vector,
    angle_between_vectors,
    joint_angle,
    flexion_angle,
    atan2_degrees,
    midpoint,
)

__all__ = [
    "clamp",
    "normalize_vector",
    "angle_between_vectors",
    "joint_angle",
    "flexion_angle",
    "atan2_degrees",
    "midpoint",
]
