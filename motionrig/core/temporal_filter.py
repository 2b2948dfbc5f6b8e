"""
Temporal smoothing for per-frame signal channels.

The analyzers recompute every signal from scratch each frame; the only
state carried across frames is the smoothing kept here. A ChannelSmoother
belongs to one tracking session and is discarded when tracking stops.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np


class TemporalFilter(ABC):
    """Abstract base class for temporal filters."""

    @abstractmethod
    def filter(self, value: np.ndarray, timestamp: Optional[float] = None) -> np.ndarray:
        """
        Apply filter to a single value/frame.

        Args:
            value: Input value (scalar or array)
            timestamp: Optional timestamp for time-aware filtering

        Returns:
            Filtered value with same shape as input
        """
        pass

    @abstractmethod
    def reset(self):
        """Reset the filter state."""
        pass


class ExponentialFilter(TemporalFilter):
    """
    Simple exponential smoothing filter.

    new = alpha * raw + (1 - alpha) * prev. The first sample passes through
    unchanged.

    Attributes:
        alpha: Weight of the new sample (0-1, lower = more smoothing)
    """

    def __init__(self, alpha: float = 0.5):
        """Initialize the Exponential Filter."""
        self.alpha = float(np.clip(alpha, 0.01, 1.0))
        self._x_prev: Optional[np.ndarray] = None

    def filter(self, value: np.ndarray, timestamp: Optional[float] = None) -> np.ndarray:
        """Apply exponential smoothing."""
        value = np.atleast_1d(value).astype(np.float64)

        if self._x_prev is None:
            self._x_prev = value.copy()
            return value

        result = self.alpha * value + (1 - self.alpha) * self._x_prev
        self._x_prev = result
        return result

    def reset(self):
        """Reset filter state."""
        self._x_prev = None

    @property
    def primed(self) -> bool:
        return self._x_prev is not None


class ChannelSmoother:
    """
    Named scalar channels, each with its own exponential filter.

    Channels are created lazily on first use with the alpha passed in,
    so one smoother can hold slow (openness) and fast (blink) channels.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._filters: Dict[str, ExponentialFilter] = {}

    def smooth(self, channel: str, value: float, alpha: float) -> float:
        """
        Smooth one sample of a channel.

        Args:
            channel: Channel name (e.g. "eye.left.openness")
            value: Raw sample
            alpha: Weight of the raw sample

        Returns:
            Smoothed value
        """
        if not self.enabled:
            return float(value)

        filt = self._filters.get(channel)
        if filt is None:
            filt = ExponentialFilter(alpha=alpha)
            self._filters[channel] = filt
        return float(filt.filter(value)[0])

    def reset(self):
        """Drop all channel state."""
        self._filters.clear()

    @property
    def channels(self) -> list[str]:
        return sorted(self._filters)
