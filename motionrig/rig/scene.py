"""
Scene graph host interface and an in-memory implementation.

The rendering host owns the real scene graph; the engine only needs the
small surface described by the protocols below. The in-memory classes
implement that surface for headless use, the CLI and tests.
"""

from typing import Dict, Iterator, List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
from scipy.spatial.transform import Rotation


@runtime_checkable
class SkeletonLike(Protocol):
    bones: Sequence

    def pose(self) -> None:
        ...


@runtime_checkable
class SceneNodeLike(Protocol):
    name: str
    children: Sequence


@runtime_checkable
class MorphMeshLike(Protocol):
    morph_target_dictionary: Dict[str, int]
    morph_target_influences: List[float]

    def mark_influences_dirty(self) -> None:
        ...


class SceneNode:
    """
    A named node in the scene hierarchy.

    Attributes:
        name: Node name as authored in the asset
        position: Local position relative to the parent
        children: Child nodes in authoring order
        skeleton: Optional skeleton attached to this node
    """

    def __init__(self, name: str = "", position: Optional[Sequence[float]] = None):
        self.name = name
        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=np.float64)
        self.children: List["SceneNode"] = []
        self.parent: Optional["SceneNode"] = None
        self.skeleton: Optional["Skeleton"] = None

    def add(self, child: "SceneNode") -> "SceneNode":
        """Attach a child node and return it."""
        child.parent = self
        self.children.append(child)
        return child

    def traverse(self) -> Iterator["SceneNode"]:
        """Depth-first pre-order walk over this node and its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @property
    def world_position(self) -> np.ndarray:
        position = self.position.copy()
        node = self.parent
        while node is not None:
            position += node.position
            node = node.parent
        return position

    def find(self, name: str) -> Optional["SceneNode"]:
        for node in self.traverse():
            if node.name == name:
                return node
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Bone(SceneNode):
    """A rig bone with a local Euler rotation (radians, XYZ order)."""

    is_bone = True

    def __init__(self, name: str = "", position: Optional[Sequence[float]] = None):
        super().__init__(name, position)
        self.rotation = np.zeros(3)

    @property
    def quaternion(self) -> np.ndarray:
        """Local rotation as a unit quaternion [x, y, z, w]."""
        return Rotation.from_euler("xyz", self.rotation).as_quat()

    def set_rotation(self, x: float, y: float, z: float):
        self.rotation = np.array([x, y, z], dtype=np.float64)


class Skeleton:
    """Set of bones deformed together; pose() requests a matrix update."""

    def __init__(self, bones: Optional[Sequence[Bone]] = None):
        self.bones: List[Bone] = list(bones or [])
        self.pose_count = 0

    def pose(self) -> None:
        self.pose_count += 1


class SkinnedMesh(SceneNode):
    """
    A mesh with optional skinning and morph targets.

    Attributes:
        morph_target_dictionary: Morph name -> influence index
        morph_target_influences: Influence weights in [0, 1]
        vertices: (N, 3) local vertex positions, used for bounds
    """

    def __init__(
        self,
        name: str = "",
        morph_targets: Optional[Sequence[str]] = None,
        vertices: Optional[np.ndarray] = None,
        skeleton: Optional[Skeleton] = None,
    ):
        super().__init__(name)
        names = list(morph_targets or [])
        self.morph_target_dictionary: Dict[str, int] = {n: i for i, n in enumerate(names)}
        self.morph_target_influences: List[float] = [0.0] * len(names)
        self.vertices = np.zeros((0, 3)) if vertices is None else np.asarray(vertices, dtype=np.float64)
        self.skeleton = skeleton
        self.influences_dirty = False

    def mark_influences_dirty(self) -> None:
        self.influences_dirty = True


def iter_nodes(root) -> Iterator:
    """
    Depth-first walk over any protocol-conforming scene graph.

    Bones reachable only through a node's skeleton are yielded right
    after that node's subtree. Each node is visited once.
    """
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node

        pending = list(getattr(node, "children", None) or [])
        skeleton = getattr(node, "skeleton", None)
        if skeleton is not None:
            pending.extend(getattr(skeleton, "bones", None) or [])
        stack.extend(reversed(pending))


def is_bone(node) -> bool:
    return bool(getattr(node, "is_bone", False))


def has_bones(root) -> bool:
    """Whether the scene exposes at least one bone."""
    return any(is_bone(node) for node in iter_nodes(root))


def iter_skeletons(root) -> Iterator:
    seen = set()
    for node in iter_nodes(root):
        skeleton = getattr(node, "skeleton", None)
        if skeleton is not None and id(skeleton) not in seen:
            seen.add(id(skeleton))
            yield skeleton


def bounding_box(root) -> tuple[np.ndarray, np.ndarray]:
    """
    Axis-aligned bounds of a scene in world space.

    Mesh vertices are used where available, node origins otherwise.

    Returns:
        (center, size) vectors
    """
    points = []
    for node in iter_nodes(root):
        origin = np.asarray(getattr(node, "world_position", np.zeros(3)), dtype=np.float64)
        points.append(origin)
        vertices = getattr(node, "vertices", None)
        if vertices is not None and len(vertices):
            points.extend(vertices + origin)

    cloud = np.asarray(points, dtype=np.float64)
    low = cloud.min(axis=0)
    high = cloud.max(axis=0)
    return (low + high) / 2.0, high - low


# (bone, parent, local offset) in hierarchy order
DEMO_HUMANOID_BONES = [
    ("Hips", None, (0.0, 1.0, 0.0)),
    ("Spine", "Hips", (0.0, 0.1, 0.0)),
    ("Spine1", "Spine", (0.0, 0.12, 0.0)),
    ("Spine2", "Spine1", (0.0, 0.12, 0.0)),
    ("Neck", "Spine2", (0.0, 0.15, 0.0)),
    ("Head", "Neck", (0.0, 0.1, 0.0)),
    ("Jaw", "Head", (0.0, -0.03, 0.05)),
    ("LeftShoulder", "Spine2", (-0.06, 0.12, 0.0)),
    ("LeftArm", "LeftShoulder", (-0.12, 0.0, 0.0)),
    ("LeftForeArm", "LeftArm", (-0.26, 0.0, 0.0)),
    ("LeftHand", "LeftForeArm", (-0.24, 0.0, 0.0)),
    ("RightShoulder", "Spine2", (0.06, 0.12, 0.0)),
    ("RightArm", "RightShoulder", (0.12, 0.0, 0.0)),
    ("RightForeArm", "RightArm", (0.26, 0.0, 0.0)),
    ("RightHand", "RightForeArm", (0.24, 0.0, 0.0)),
    ("LeftUpLeg", "Hips", (-0.09, -0.05, 0.0)),
    ("LeftLeg", "LeftUpLeg", (0.0, -0.42, 0.0)),
    ("LeftFoot", "LeftLeg", (0.0, -0.42, 0.0)),
    ("RightUpLeg", "Hips", (0.09, -0.05, 0.0)),
    ("RightLeg", "RightUpLeg", (0.0, -0.42, 0.0)),
    ("RightFoot", "RightLeg", (0.0, -0.42, 0.0)),
]

DEMO_FINGERS = ("Thumb", "Index", "Middle", "Ring", "Pinky")

DEMO_MORPH_TARGETS = [
    "jawOpen",
    "eyeBlinkLeft", "eyeBlinkRight",
    "eyeSquintLeft", "eyeSquintRight",
    "eyeWideLeft", "eyeWideRight",
    "eyeLookUpLeft", "eyeLookUpRight",
    "eyeLookDownLeft", "eyeLookDownRight",
    "eyeLookInLeft", "eyeLookInRight",
    "eyeLookOutLeft", "eyeLookOutRight",
    "mouthSmileLeft", "mouthSmileRight",
    "mouthFrownLeft", "mouthFrownRight",
    "mouthPucker",
    "mouthDimpleLeft", "mouthDimpleRight",
    "mouthRollLower", "mouthRollUpper",
    "mouthShrugLower",
    "browInnerUp",
    "browDownLeft", "browDownRight",
    "browOuterUpLeft", "browOuterUpRight",
    "noseSneerLeft", "noseSneerRight",
    "cheekSquintLeft", "cheekSquintRight",
]


def build_demo_humanoid(prefix: str = "mixamorig:", fingers: bool = True) -> SceneNode:
    """
    Build a Mixamo-style humanoid avatar.

    The rig has a skinned body mesh with an ARKit blendshape set, a
    skeleton reachable through the mesh and the armature hierarchy.

    Args:
        prefix: Bone name prefix
        fingers: Whether to add three-joint finger chains

    Returns:
        Scene root node
    """
    root = SceneNode("DemoAvatar")
    armature = root.add(SceneNode("Armature"))

    bones: Dict[str, Bone] = {}
    for name, parent, offset in DEMO_HUMANOID_BONES:
        bone = Bone(f"{prefix}{name}", offset)
        (bones[parent] if parent else armature).add(bone)
        bones[name] = bone

    if fingers:
        for side, sign in (("Left", -1.0), ("Right", 1.0)):
            for finger_index, finger in enumerate(DEMO_FINGERS):
                parent = bones[f"{side}Hand"]
                for joint in range(1, 4):
                    name = f"{side}Hand{finger}{joint}"
                    offset = (sign * 0.03, 0.0, 0.02 * (finger_index - 2)) if joint == 1 else (sign * 0.025, 0.0, 0.0)
                    bone = parent.add(Bone(f"{prefix}{name}", offset))
                    bones[name] = bone
                    parent = bone

    skeleton = Skeleton(bones.values())
    vertices = np.array([
        [-0.9, 0.0, -0.15],
        [0.9, 0.0, -0.15],
        [-0.9, 1.75, 0.15],
        [0.9, 1.75, 0.15],
    ])
    root.add(SkinnedMesh("Body", DEMO_MORPH_TARGETS, vertices=vertices, skeleton=skeleton))
    return root
