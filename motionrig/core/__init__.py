"""
Core signal extraction module.

Contains the per-frame analysis pipeline including:
- Landmark frames and index tables
- Neutral-face baseline calibration
- Facial expression analysis
- Hand gesture and body posture analysis
- Temporal smoothing of signal channels
"""

from motionrig.core.landmarks import (
    Landmark,
    LandmarkFrame,
    FaceLandmark,
    HandLandmark,
    PoseLandmark,
)
from motionrig.errors import (
    MotionRigError,
    MalformedLandmarks,
    BindingNotFound,
    SceneUnavailable,
    ConfigError,
)
from motionrig.core.calibration import Baseline, BaselineCalibrator, CalibrationState
from motionrig.core.expression import ExpressionAnalyzer
from motionrig.core.gesture import GestureAnalyzer
from motionrig.core.session import TrackingSession
from motionrig.core.signals import (
    ExpressionSignal,
    GestureSignal,
    GestureType,
    MouthShape,
    Posture,
)
from motionrig.core.temporal_filter import TemporalFilter, ExponentialFilter, ChannelSmoother

__all__ = [
    "Landmark",
    "LandmarkFrame",
    "FaceLandmark",
    "HandLandmark",
    "PoseLandmark",
    "MotionRigError",
    "MalformedLandmarks",
    "BindingNotFound",
    "SceneUnavailable",
    "ConfigError",
    "Baseline",
    "BaselineCalibrator",
    "CalibrationState",
    "ExpressionAnalyzer",
    "GestureAnalyzer",
    "TrackingSession",
    "ExpressionSignal",
    "GestureSignal",
    "GestureType",
    "MouthShape",
    "Posture",
    "TemporalFilter",
    "ExponentialFilter",
    "ChannelSmoother",
]
