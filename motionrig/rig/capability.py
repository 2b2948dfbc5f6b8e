"""
Subscription capability gating.

Maps a plan tier to a CapabilityBudget and truncates bone and morph
channel lists to that budget in a fixed priority order. Exceeding the
budget is never an error: lower-priority channels are simply not
animated.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

from motionrig.rig.scene import Bone, SceneNode, bounding_box

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureFlags:
    """Tracking features unlocked by a plan."""
    face: bool = True
    body: bool = False
    hand: bool = False
    finger: bool = False
    eye: bool = False
    expression: bool = False

    def restricted_to(self, requested: "FeatureFlags") -> "FeatureFlags":
        """Features enabled in both; a request can switch features off, never on."""
        return FeatureFlags(**{
            f.name: getattr(self, f.name) and getattr(requested, f.name)
            for f in dataclasses.fields(self)
        })


@dataclass(frozen=True)
class CapabilityBudget:
    """Per-session animation limits."""
    max_bones: int
    max_morph_targets: int
    animation_responsiveness: float
    max_frame_rate: float
    features: FeatureFlags = field(default_factory=FeatureFlags)

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.max_frame_rate


@dataclass(frozen=True)
class PlanTier:
    id: str
    display_name: str
    priority_level: int
    budget: CapabilityBudget


PLAN_TIERS: Dict[str, PlanTier] = {
    "free": PlanTier("free", "Free", 1, CapabilityBudget(
        max_bones=9, max_morph_targets=5, animation_responsiveness=0.5, max_frame_rate=15,
        features=FeatureFlags(face=True),
    )),
    "reply_guy": PlanTier("reply_guy", "Reply Guy", 2, CapabilityBudget(
        max_bones=15, max_morph_targets=12, animation_responsiveness=0.7, max_frame_rate=24,
        features=FeatureFlags(face=True, body=True, eye=True, expression=True),
    )),
    "spartan": PlanTier("spartan", "Spartan", 3, CapabilityBudget(
        max_bones=25, max_morph_targets=20, animation_responsiveness=0.8, max_frame_rate=30,
        features=FeatureFlags(face=True, body=True, hand=True, eye=True, expression=True),
    )),
    "zeus": PlanTier("zeus", "Zeus", 4, CapabilityBudget(
        max_bones=45, max_morph_targets=35, animation_responsiveness=0.9, max_frame_rate=60,
        features=FeatureFlags(face=True, body=True, hand=True, finger=True, eye=True, expression=True),
    )),
    "goat": PlanTier("goat", "GOAT", 5, CapabilityBudget(
        max_bones=65, max_morph_targets=50, animation_responsiveness=1.0, max_frame_rate=120,
        features=FeatureFlags(face=True, body=True, hand=True, finger=True, eye=True, expression=True),
    )),
}

DEFAULT_PLAN = "free"

FINGER_BONES = [
    f"{side}{finger}{joint}"
    for side in ("left", "right")
    for finger in ("Thumb", "Index", "Middle", "Ring", "Pinky")
    for joint in (1, 2, 3)
]

# Placeholder offsets are fractions of the model's bounding-box size
CORE_BONES = [
    ("head", (0.0, 0.35, 0.0)),
    ("neck", (0.0, 0.25, 0.0)),
    ("spine", (0.0, 0.0, 0.0)),
    ("leftShoulder", (-0.3, 0.15, 0.0)),
    ("rightShoulder", (0.3, 0.15, 0.0)),
    ("leftUpperArm", (-0.4, 0.05, 0.0)),
    ("rightUpperArm", (0.4, 0.05, 0.0)),
    ("leftLowerArm", (-0.5, -0.1, 0.0)),
    ("rightLowerArm", (0.5, -0.1, 0.0)),
    ("leftHand", (-0.6, -0.2, 0.0)),
    ("rightHand", (0.6, -0.2, 0.0)),
    ("hips", (0.0, -0.15, 0.0)),
    ("leftUpperLeg", (-0.15, -0.3, 0.0)),
    ("rightUpperLeg", (0.15, -0.3, 0.0)),
    ("leftLowerLeg", (-0.15, -0.45, 0.0)),
    ("rightLowerLeg", (0.15, -0.45, 0.0)),
]

BONE_PRIORITY = (
    [name for name, _ in CORE_BONES]
    + ["jaw", "spine1", "spine2", "leftHip", "rightHip"]
    + FINGER_BONES
)

MORPH_PRIORITY = [
    "jawOpen",
    "eyeBlinkLeft", "eyeBlinkRight",
    "mouthSmileLeft", "mouthSmileRight",
    "browInnerUp",
    "mouthFrownLeft", "mouthFrownRight",
    "browDownLeft", "browDownRight",
    "browOuterUpLeft", "browOuterUpRight",
    "eyeSquintLeft", "eyeSquintRight",
    "eyeWideLeft", "eyeWideRight",
    "mouthPucker",
    "noseSneerLeft", "noseSneerRight",
    "cheekSquintLeft", "cheekSquintRight",
    "eyeLookUpLeft", "eyeLookUpRight",
    "eyeLookDownLeft", "eyeLookDownRight",
    "eyeLookInLeft", "eyeLookInRight",
    "eyeLookOutLeft", "eyeLookOutRight",
    "mouthDimpleLeft", "mouthDimpleRight",
    "mouthRollLower", "mouthRollUpper",
    "mouthShrugLower",
]


class CapabilityGate:
    """Allocates plan budgets and selects the channels that fit them."""

    def allocate(self, plan: str, requested: Optional[CapabilityBudget] = None) -> CapabilityBudget:
        """
        Budget for a plan tier.

        Args:
            plan: Tier id; unknown ids fall back to the free tier
            requested: Optional client request; it can only tighten limits

        Returns:
            Effective CapabilityBudget
        """
        tier = PLAN_TIERS.get(plan)
        if tier is None:
            logger.warning(f"Unknown plan '{plan}', falling back to '{DEFAULT_PLAN}'")
            tier = PLAN_TIERS[DEFAULT_PLAN]
        budget = tier.budget

        if requested is None:
            return budget

        return CapabilityBudget(
            max_bones=max(0, min(budget.max_bones, requested.max_bones)),
            max_morph_targets=max(0, min(budget.max_morph_targets, requested.max_morph_targets)),
            animation_responsiveness=min(budget.animation_responsiveness, requested.animation_responsiveness),
            max_frame_rate=min(budget.max_frame_rate, requested.max_frame_rate),
            features=budget.features.restricted_to(requested.features),
        )

    def select_bones(self, candidates: Iterable[str], budget: CapabilityBudget) -> List[str]:
        """Candidates in bone priority order, truncated to max_bones."""
        available = set(candidates)
        return [name for name in BONE_PRIORITY if name in available][:max(0, budget.max_bones)]

    def select_morphs(self, candidates: Iterable[str], budget: CapabilityBudget) -> List[str]:
        """Candidates in morph priority order, truncated to max_morph_targets."""
        available = set(candidates)
        return [name for name in MORPH_PRIORITY if name in available][:max(0, budget.max_morph_targets)]

    def synthesize_placeholder_bones(self, scene: SceneNode, budget: CapabilityBudget) -> Dict[str, SceneNode]:
        """
        Add placeholder bones to an unrigged model.

        Up to max_bones of the core humanoid bones are attached under the
        scene root, laid out relative to the model's bounding box.

        Args:
            scene: Scene root
            budget: Session budget

        Returns:
            Mapping of semantic bone name to the created node
        """
        created: Dict[str, SceneNode] = {}
        if budget.max_bones <= 0:
            return created

        center, size = bounding_box(scene)
        for name, offset in CORE_BONES[:budget.max_bones]:
            bone = Bone(f"Virtual{name[0].upper()}{name[1:]}", center + np.asarray(offset) * size)
            scene.add(bone)
            created[name] = bone

        logger.info(f"Created {len(created)} placeholder bones for unrigged model")
        return created

    def validate_budget(self, budget: CapabilityBudget) -> List[str]:
        """Range warnings for a budget (empty when valid)."""
        warnings = []
        if not 0 <= budget.max_bones <= 100:
            warnings.append(f"max_bones must be between 0 and 100, got {budget.max_bones}")
        if not 0 <= budget.max_morph_targets <= 100:
            warnings.append(f"max_morph_targets must be between 0 and 100, got {budget.max_morph_targets}")
        if not 0.1 <= budget.animation_responsiveness <= 1.0:
            warnings.append(
                f"animation_responsiveness must be between 0.1 and 1.0, got {budget.animation_responsiveness}"
            )
        if budget.max_frame_rate <= 0:
            warnings.append(f"max_frame_rate must be positive, got {budget.max_frame_rate}")
        return warnings
