"""
Semantic channel to asset binding.

Resolves semantic channel names ("leftUpperArm", "jawOpen") to concrete
bones and morph-target slots of an arbitrary asset:
- Mixamo, VRM and Unreal bone naming aliases
- Declared synonym variants (lower/upper case, morph_/blend_/face_ prefixes,
  Shape suffix)
- Exact matches win over substring matches across the whole scene
- Results, including misses, are cached per asset

Bindings are resolved once per asset; the per-frame path only reads the
resulting ChannelBinding values.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from motionrig.errors import BindingNotFound, SceneUnavailable
from motionrig.rig.scene import iter_nodes, iter_skeletons

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unbound:
    channel: str


@dataclass(frozen=True, eq=False)
class BoneBinding:
    channel: str
    bone: Any
    skeleton: Any = None


@dataclass(frozen=True, eq=False)
class MorphBinding:
    channel: str
    mesh: Any
    index: int


ChannelBinding = Union[Unbound, BoneBinding, MorphBinding]


@dataclass
class RigBinding:
    """All channel bindings of one attached asset."""

    asset_id: str
    scene: Any
    bones: Dict[str, BoneBinding] = field(default_factory=dict)
    morphs: Dict[str, MorphBinding] = field(default_factory=dict)
    unbound: List[str] = field(default_factory=list)
    attached: bool = True

    def get(self, channel: str) -> ChannelBinding:
        return self.bones.get(channel) or self.morphs.get(channel) or Unbound(channel)

    def detach(self):
        self.attached = False

    @property
    def skeletons(self) -> list:
        result = []
        for binding in self.bones.values():
            skeleton = binding.skeleton
            if skeleton is not None and all(s is not skeleton for s in result):
                result.append(skeleton)
        return result


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def _finger_aliases() -> Dict[str, List[str]]:
    aliases = {}
    for side, vrm, ue in (("left", "L", "l"), ("right", "R", "r")):
        for finger in ("Thumb", "Index", "Middle", "Ring", "Pinky"):
            ue_finger = finger.lower()
            for joint in (1, 2, 3):
                aliases[f"{side}{finger}{joint}"] = [
                    f"{_capitalize(side)}Hand{finger}{joint}",
                    f"J_Bip_{vrm}_{finger}{joint}",
                    f"{ue_finger}_0{joint}_{ue}",
                ]
    return aliases


BONE_ALIASES: Dict[str, List[str]] = {
    "hips": ["J_Bip_C_Hips", "pelvis"],
    "spine": ["J_Bip_C_Spine"],
    "spine1": ["J_Bip_C_Chest", "chest", "spine_02"],
    "spine2": ["J_Bip_C_UpperChest", "upperChest", "spine_03"],
    "neck": ["J_Bip_C_Neck", "neck_01"],
    "head": ["J_Bip_C_Head"],
    "leftShoulder": ["J_Bip_L_Shoulder", "clavicle_l"],
    "rightShoulder": ["J_Bip_R_Shoulder", "clavicle_r"],
    "leftUpperArm": ["LeftArm", "J_Bip_L_UpperArm", "upperarm_l"],
    "rightUpperArm": ["RightArm", "J_Bip_R_UpperArm", "upperarm_r"],
    "leftLowerArm": ["LeftForeArm", "J_Bip_L_LowerArm", "lowerarm_l"],
    "rightLowerArm": ["RightForeArm", "J_Bip_R_LowerArm", "lowerarm_r"],
    "leftHand": ["J_Bip_L_Hand", "hand_l"],
    "rightHand": ["J_Bip_R_Hand", "hand_r"],
    "leftUpperLeg": ["LeftUpLeg", "J_Bip_L_UpperLeg", "thigh_l"],
    "rightUpperLeg": ["RightUpLeg", "J_Bip_R_UpperLeg", "thigh_r"],
    "leftLowerLeg": ["LeftLeg", "J_Bip_L_LowerLeg", "calf_l"],
    "rightLowerLeg": ["RightLeg", "J_Bip_R_LowerLeg", "calf_r"],
    **_finger_aliases(),
}


def synonym_variants(name: str) -> List[str]:
    """Declared naming variants of one channel name."""
    return [
        name,
        name.lower(),
        name.upper(),
        f"morph_{name}",
        f"{name}Shape",
        f"blend_{name}",
        f"face_{name}",
    ]


def candidate_names(name: str, aliases: Optional[Iterable[str]] = None) -> List[str]:
    """
    All names a channel may go by, lower-cased and de-duplicated in order.

    Args:
        name: Semantic channel name
        aliases: Rig-specific aliases of that channel

    Returns:
        Candidates, most specific first
    """
    bases = [name, _capitalize(name)] + list(aliases or [])
    result = []
    for base in bases:
        for variant in synonym_variants(base):
            key = variant.lower()
            if key not in result:
                result.append(key)
    return result


class BoneMorphResolver:
    """
    Resolves and caches channel bindings per asset.

    A miss is not an error: it is recorded as BindingNotFound, logged once
    per (asset, channel) with the names that were available, and the
    channel stays unbound.
    """

    def __init__(self):
        self._cache: Dict[Tuple[str, str], Any] = {}
        self._warned: set = set()
        self.misses: Dict[Tuple[str, str], BindingNotFound] = {}
        self.traversals = 0

    def invalidate(self, asset_id: Optional[str] = None):
        """Drop cached results for one asset, or for all assets."""
        if asset_id is None:
            self._cache.clear()
            self._warned.clear()
            self.misses.clear()
            return
        for store in (self._cache, self.misses):
            for key in [k for k in store if k[0] == asset_id]:
                del store[key]
        self._warned = {k for k in self._warned if k[0] != asset_id}

    def resolve_bone(self, scene, name: str, asset_id: Optional[str] = None) -> Optional[Any]:
        """
        Find the bone driven by a semantic channel.

        Only nodes carrying a rotation are considered.

        Args:
            scene: Scene root
            name: Semantic bone name
            asset_id: Cache key of the asset; defaults to the root name

        Returns:
            The bone node, or None when nothing matches
        """
        asset_id = self._asset_id(scene, asset_id)
        key = (asset_id, name)
        if key in self._cache:
            return self._cache[key]

        self.traversals += 1
        candidates = candidate_names(name, BONE_ALIASES.get(name))
        nodes = [
            node for node in iter_nodes(scene)
            if node is not scene
            and getattr(node, "name", "")
            and hasattr(node, "rotation")
        ]

        found = None
        for node in nodes:
            if node.name.lower() in candidates:
                found = node
                break
        if found is None:
            for node in nodes:
                lowered = node.name.lower()
                if any(candidate in lowered for candidate in candidates):
                    found = node
                    break

        if found is None:
            self._miss(asset_id, name, (getattr(n, "name", "") for n in nodes))
        self._cache[key] = found
        return found

    def resolve_morph(self, scene, name: str, asset_id: Optional[str] = None) -> Optional[Tuple[Any, int]]:
        """
        Find the morph-target slot driven by a semantic channel.

        Args:
            scene: Scene root or a single mesh
            name: ARKit-style blendshape name
            asset_id: Cache key of the asset

        Returns:
            (mesh, influence index), or None when nothing matches
        """
        asset_id = self._asset_id(scene, asset_id)
        key = (asset_id, name)
        if key in self._cache:
            return self._cache[key]

        self.traversals += 1
        meshes = [
            node for node in iter_nodes(scene)
            if getattr(node, "morph_target_dictionary", None)
        ]
        candidates = candidate_names(name)

        found = None
        for match in (self._exact_key, self._folded_key, self._contained_key):
            for mesh in meshes:
                index = match(mesh, name, candidates)
                if index is not None and 0 <= index < len(mesh.morph_target_influences):
                    found = (mesh, index)
                    break
            if found is not None:
                break

        if found is None:
            available = [k for mesh in meshes for k in mesh.morph_target_dictionary]
            self._miss(asset_id, name, available)
        self._cache[key] = found
        return found

    def claim_bones(self, scene, names: Iterable[str], asset_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Resolve bone channels in priority order, one channel per node.

        A node matched by several channels goes to the first of them.

        Returns:
            Channel name -> bone for every channel that owns a node
        """
        claimed: Dict[str, Any] = {}
        owned = set()
        for name in names:
            bone = self.resolve_bone(scene, name, asset_id)
            if bone is None or id(bone) in owned:
                continue
            owned.add(id(bone))
            claimed[name] = bone
        return claimed

    def bind(
        self,
        scene,
        bones: Iterable[str],
        morphs: Iterable[str],
        asset_id: Optional[str] = None,
    ) -> "RigBinding":
        """
        Resolve every channel of an asset once.

        Args:
            scene: Scene root
            bones: Bone channels, highest priority first
            morphs: Morph channels, highest priority first
            asset_id: Asset identifier

        Returns:
            RigBinding for the asset

        Raises:
            SceneUnavailable: if no scene is attached
        """
        if scene is None:
            raise SceneUnavailable("Cannot bind channels without a scene")

        asset_id = self._asset_id(scene, asset_id)
        binding = RigBinding(asset_id=asset_id, scene=scene)
        owners = self._bone_owners(scene)

        bones = list(bones)
        claimed = self.claim_bones(scene, bones, asset_id)
        for name in bones:
            bone = claimed.get(name)
            if bone is None:
                binding.unbound.append(name)
                continue
            binding.bones[name] = BoneBinding(name, bone, owners.get(id(bone)))

        for name in morphs:
            result = self.resolve_morph(scene, name, asset_id)
            if result is None:
                binding.unbound.append(name)
                continue
            mesh, index = result
            binding.morphs[name] = MorphBinding(name, mesh, index)

        logger.info(
            f"Bound {len(binding.bones)} bones and {len(binding.morphs)} morph targets "
            f"for asset '{asset_id}' ({len(binding.unbound)} unbound)"
        )
        return binding

    @staticmethod
    def _exact_key(mesh, name: str, candidates: List[str]) -> Optional[int]:
        return mesh.morph_target_dictionary.get(name)

    @staticmethod
    def _folded_key(mesh, name: str, candidates: List[str]) -> Optional[int]:
        for key, index in mesh.morph_target_dictionary.items():
            if key.lower() in candidates:
                return index
        return None

    @staticmethod
    def _contained_key(mesh, name: str, candidates: List[str]) -> Optional[int]:
        for key, index in mesh.morph_target_dictionary.items():
            lowered = key.lower()
            if any(candidate in lowered for candidate in candidates):
                return index
        return None

    @staticmethod
    def _bone_owners(scene) -> Dict[int, Any]:
        owners = {}
        for skeleton in iter_skeletons(scene):
            for bone in getattr(skeleton, "bones", None) or []:
                owners.setdefault(id(bone), skeleton)
        return owners

    @staticmethod
    def _asset_id(scene, asset_id: Optional[str]) -> str:
        if asset_id:
            return asset_id
        return getattr(scene, "name", "") or f"scene-{id(scene):x}"

    def _miss(self, asset_id: str, channel: str, available: Iterable[str]):
        error = BindingNotFound(asset_id, channel, [n for n in available if n])
        self.misses[(asset_id, channel)] = error
        if (asset_id, channel) in self._warned:
            return
        self._warned.add((asset_id, channel))
        shown = ", ".join(error.available[:20])
        more = f" (+{len(error.available) - 20} more)" if len(error.available) > 20 else ""
        logger.warning(f"{error}; available: {shown or 'none'}{more}")
