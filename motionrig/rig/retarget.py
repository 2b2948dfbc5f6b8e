"""
Signal to rig retargeting.

Converts a SignalBundle into local bone rotations and morph-target
weights and writes them into a bound asset. Bone targets are expressed
in degrees and applied as radians, blended from the current pose by the
budget's animation responsiveness.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from motionrig.config.settings import EyeConfig, RetargetConfig
from motionrig.core.signals import ExpressionSignal, GestureSignal, SignalBundle
from motionrig.rig.capability import (
    FINGER_BONES,
    PLAN_TIERS,
    CapabilityBudget,
    FeatureFlags,
)
from motionrig.rig.resolver import RigBinding
from motionrig.utils.math_utils import clamp

logger = logging.getLogger(__name__)

Euler = Tuple[float, float, float]

FACE_BONES = ("head", "neck", "jaw")
HAND_BONES = ("leftHand", "rightHand")
BODY_BONES = (
    "spine", "spine1", "spine2", "hips",
    "leftShoulder", "rightShoulder",
    "leftUpperArm", "rightUpperArm", "leftLowerArm", "rightLowerArm",
    "leftHip", "rightHip",
    "leftUpperLeg", "rightUpperLeg", "leftLowerLeg", "rightLowerLeg",
)

BONE_GROUPS: Dict[str, Tuple[str, ...]] = {
    **{name: ("face",) for name in FACE_BONES},
    **{name: ("body",) for name in BODY_BONES},
    **{name: ("hand",) for name in HAND_BONES},
    **{name: ("finger",) for name in FINGER_BONES},
}


def morph_groups(name: str) -> Tuple[str, ...]:
    """Feature flags a morph channel depends on."""
    if name == "jawOpen":
        return ("face",)
    if name.startswith("eye"):
        return ("face", "eye")
    return ("face", "expression")


@dataclass
class ApplyReport:
    """What one tick wrote into the scene."""
    bones_applied: int = 0
    morphs_applied: int = 0
    skipped: int = 0


class RetargetingEngine:
    """
    Writes signal values into a RigBinding.

    Attributes:
        budget: Capability budget gating features and responsiveness
        config: Bone distribution factors
        eyes: Eye thresholds shared with the expression analyzer
    """

    def __init__(
        self,
        budget: Optional[CapabilityBudget] = None,
        config: Optional[RetargetConfig] = None,
        eyes: Optional[EyeConfig] = None,
    ):
        self.budget = budget or PLAN_TIERS["free"].budget
        self.config = config or RetargetConfig()
        self.eyes = eyes or EyeConfig()

    def bone_targets(self, expression: ExpressionSignal, gesture: GestureSignal) -> Dict[str, Euler]:
        """
        Target local rotation per bone channel, in degrees.

        Body channels are only produced when the pose carried joint
        angles; finger channels only for detected hands.
        """
        cfg = self.config
        head = expression.head
        targets: Dict[str, Euler] = {
            "head": (head.x, head.y, head.z),
            "neck": (head.x * cfg.neck_factor, head.y * cfg.neck_factor, head.z * cfg.neck_factor),
            "jaw": (expression.jaw_drop * cfg.jaw_max_degrees, 0.0, 0.0),
        }

        angles = gesture.body.joint_angles
        if angles:
            lean = angles.get("spine", 0.0)
            for name, share in zip(("spine", "spine1", "spine2"), cfg.spine_shares):
                targets[name] = (0.0, 0.0, lean * share)
            targets["hips"] = (0.0, 0.0, angles.get("pelvisTilt", 0.0))

            arm_upper = cfg.arm_upper_share
            leg_upper = cfg.leg_upper_share
            for side in ("left", "right"):
                elbow = angles.get(f"{side}Elbow", 0.0)
                knee = angles.get(f"{side}Knee", 0.0)
                targets[f"{side}Shoulder"] = (0.0, 0.0, angles.get(f"{side}Shoulder", 0.0))
                targets[f"{side}UpperArm"] = (elbow * arm_upper, 0.0, 0.0)
                targets[f"{side}LowerArm"] = (elbow * (1.0 - arm_upper), 0.0, 0.0)
                targets[f"{side}Hand"] = (angles.get(f"{side}Wrist", 0.0), 0.0, 0.0)
                targets[f"{side}Hip"] = (0.0, 0.0, angles.get(f"{side}Hip", 0.0))
                targets[f"{side}UpperLeg"] = (knee * leg_upper, 0.0, 0.0)
                targets[f"{side}LowerLeg"] = (knee * (1.0 - leg_upper), 0.0, 0.0)

        for side, hand in (("left", gesture.left_hand), ("right", gesture.right_hand)):
            for joint, curl in hand.finger_curls.items():
                targets[f"{side}{joint[0].upper()}{joint[1:]}"] = (curl, 0.0, 0.0)

        return targets

    def morph_targets(self, expression: ExpressionSignal, gesture: GestureSignal) -> Dict[str, float]:
        """Target weight per ARKit-style morph channel."""
        eyes = expression.eyes
        brow = expression.brow
        mouth = expression.mouth_details
        micro = expression.micro

        targets = {
            "jawOpen": max(expression.jaw_drop, expression.mouth.lip_sync),
            "mouthSmileLeft": max(expression.smile, mouth.left_smirk),
            "mouthSmileRight": max(expression.smile, mouth.right_smirk),
            "mouthFrownLeft": max(expression.frown, mouth.left_frown),
            "mouthFrownRight": max(expression.frown, mouth.right_frown),
            "browInnerUp": expression.eyebrow_raise,
            "browOuterUpLeft": brow.left_raise,
            "browOuterUpRight": brow.right_raise,
            "browDownLeft": brow.left_lower,
            "browDownRight": brow.right_lower,
            "mouthPucker": mouth.pursed,
            "noseSneerLeft": micro.nose_wrinkle,
            "noseSneerRight": micro.nose_wrinkle,
            "cheekSquintLeft": micro.cheek_raise,
            "cheekSquintRight": micro.cheek_raise,
            "mouthDimpleLeft": micro.dimpler,
            "mouthDimpleRight": micro.dimpler,
            "mouthRollLower": micro.lip_suck,
            "mouthRollUpper": micro.lip_suck,
            "mouthShrugLower": micro.chin_raise,
        }

        c = self.eyes
        squint_span = c.squint_max - c.squint_min
        wide_span = 1.0 - c.openness_at_normal
        for suffix, eye, inward in (("Left", eyes.left, 1.0), ("Right", eyes.right, -1.0)):
            targets[f"eyeBlink{suffix}"] = eye.blink
            targets[f"eyeSquint{suffix}"] = (
                clamp((c.squint_max - eye.openness) / squint_span) if eye.squinting and squint_span > 0 else 0.0
            )
            targets[f"eyeWide{suffix}"] = (
                max(0.0, (eye.openness - c.openness_at_normal) / wide_span) if wide_span > 0 else 0.0
            )
            targets[f"eyeLookIn{suffix}"] = clamp(eye.gaze_x * inward)
            targets[f"eyeLookOut{suffix}"] = clamp(-eye.gaze_x * inward)
            targets[f"eyeLookUp{suffix}"] = clamp(-eye.gaze_y)
            targets[f"eyeLookDown{suffix}"] = clamp(eye.gaze_y)

        return targets

    def apply(self, signals: SignalBundle, binding: Optional[RigBinding]) -> ApplyReport:
        """
        Write one tick of signals into the bound asset.

        Args:
            signals: Signal bundle of this tick
            binding: Bound asset, or None when no scene is attached

        Returns:
            ApplyReport with counts of written and skipped channels
        """
        report = ApplyReport()
        if binding is None or not binding.attached or binding.scene is None:
            logger.debug("Retarget skipped: no scene attached")
            return report

        features = self.budget.features
        alpha = self.budget.animation_responsiveness
        bone_values = self.bone_targets(signals.expression, signals.gesture)
        morph_values = self.morph_targets(signals.expression, signals.gesture)

        skeletons = []
        for channel, bound in binding.bones.items():
            target = bone_values.get(channel)
            if target is None or not self._enabled(BONE_GROUPS.get(channel, ("body",)), features):
                report.skipped += 1
                continue

            bone = bound.bone
            current = np.asarray(bone.rotation, dtype=np.float64)
            bone.rotation = current + (np.radians(target) - current) * alpha
            report.bones_applied += 1

            skeleton = bound.skeleton
            if skeleton is not None and all(s is not skeleton for s in skeletons):
                skeletons.append(skeleton)

        for skeleton in skeletons:
            skeleton.pose()

        meshes = []
        for channel, bound in binding.morphs.items():
            value = morph_values.get(channel)
            if value is None or not self._enabled(morph_groups(channel), features):
                report.skipped += 1
                continue

            bound.mesh.morph_target_influences[bound.index] = clamp(value)
            report.morphs_applied += 1
            if all(m is not bound.mesh for m in meshes):
                meshes.append(bound.mesh)

        for mesh in meshes:
            mesh.mark_influences_dirty()

        return report

    @staticmethod
    def _enabled(groups: Tuple[str, ...], features: FeatureFlags) -> bool:
        return all(getattr(features, group) for group in groups)
