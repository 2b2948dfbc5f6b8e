"""
Mathematical utilities for landmark geometry.

Provides functions for:
- Clamping and normalization
- Vector operations
- Joint angle calculations
"""

import math

import numpy as np


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a scalar into [low, high]."""
    return float(min(high, max(low, value)))


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Input vector

    Returns:
        Normalized vector (or zero vector if input is zero)
    """
    norm = np.linalg.norm(v)
    if norm < 1e-10:
        return np.zeros_like(v)
    return v / norm


def angle_between_vectors(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    Calculate angle between two vectors in degrees.

    Args:
        v1: First vector
        v2: Second vector

    Returns:
        Angle in degrees, 0 if either vector is degenerate
    """
    if np.linalg.norm(v1) < 1e-10 or np.linalg.norm(v2) < 1e-10:
        return 0.0
    v1_n = normalize_vector(v1)
    v2_n = normalize_vector(v2)

    dot = np.clip(np.dot(v1_n, v2_n), -1.0, 1.0)
    return float(np.degrees(np.arccos(dot)))


def joint_angle(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    """
    Interior angle at joint b formed by segments b->a and b->c, in degrees.

    A straight limb gives 180, a fully folded one approaches 0.
    """
    return angle_between_vectors(np.asarray(a) - np.asarray(b), np.asarray(c) - np.asarray(b))


def flexion_angle(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    """Bend at joint b in degrees (0 = straight)."""
    if np.linalg.norm(np.asarray(a) - np.asarray(b)) < 1e-10:
        return 0.0
    if np.linalg.norm(np.asarray(c) - np.asarray(b)) < 1e-10:
        return 0.0
    return 180.0 - joint_angle(a, b, c)


def atan2_degrees(y: float, x: float) -> float:
    """atan2 in degrees."""
    return math.degrees(math.atan2(y, x))


def midpoint(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return (np.asarray(a) + np.asarray(b)) / 2.0
