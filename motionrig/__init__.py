"""
MotionRig - Landmark-driven avatar retargeting

Turns per-frame face, hand and body landmarks from an external detector
into animation of an arbitrary rigged (or unrigged) 3D avatar.

Features:
- Personalized neutral-face calibration
- Facial expression analysis (eyes, mouth, brows, composites, micro-expressions)
- Hand gesture and body posture classification
- Subscription-tiered capability budgets
- Bone and morph-target name resolution across Mixamo, VRM and Unreal rigs
- Frame-rate gated retargeting onto the host scene graph
"""

__version__ = "1.0.0"

from motionrig.config.settings import Settings
from motionrig.core.landmarks import Landmark, LandmarkFrame
from motionrig.core.signals import ExpressionSignal, GestureSignal, SignalBundle
from motionrig.pipeline.engine import MotionRigEngine
from motionrig.rig.capability import PLAN_TIERS, CapabilityBudget, CapabilityGate

__all__ = [
    "Settings",
    "Landmark",
    "LandmarkFrame",
    "ExpressionSignal",
    "GestureSignal",
    "SignalBundle",
    "MotionRigEngine",
    "PLAN_TIERS",
    "CapabilityBudget",
    "CapabilityGate",
]
