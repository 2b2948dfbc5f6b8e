"""
Runtime pipeline: scheduling and engine orchestration.
"""

from motionrig.pipeline.scheduler import AnimationScheduler
from motionrig.pipeline.engine import LandmarkSource, MotionRigEngine

__all__ = [
    "AnimationScheduler",
    "LandmarkSource",
    "MotionRigEngine",
]
