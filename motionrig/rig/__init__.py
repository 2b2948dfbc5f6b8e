"""
Rig-side module: scene access, capability gating, binding and retargeting.
"""

from motionrig.rig.scene import (
    SceneNode,
    Bone,
    Skeleton,
    SkinnedMesh,
    build_demo_humanoid,
)
from motionrig.rig.capability import (
    CapabilityGate,
    CapabilityBudget,
    FeatureFlags,
    PLAN_TIERS,
    BONE_PRIORITY,
    MORPH_PRIORITY,
)
from motionrig.rig.resolver import (
    BoneMorphResolver,
    RigBinding,
    ChannelBinding,
    Unbound,
    BoneBinding,
    MorphBinding,
)
from motionrig.rig.retarget import RetargetingEngine, ApplyReport

__all__ = [
    "SceneNode",
    "Bone",
    "Skeleton",
    "SkinnedMesh",
    "build_demo_humanoid",
    "CapabilityGate",
    "CapabilityBudget",
    "FeatureFlags",
    "PLAN_TIERS",
    "BONE_PRIORITY",
    "MORPH_PRIORITY",
    "BoneMorphResolver",
    "RigBinding",
    "ChannelBinding",
    "Unbound",
    "BoneBinding",
    "MorphBinding",
    "RetargetingEngine",
    "ApplyReport",
]
