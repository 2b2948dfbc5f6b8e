"""
Landmark data delivered by the external detector.

Provides:
- Landmark point type
- Immutable per-frame LandmarkFrame snapshot
- Index tables for the face mesh, hand and body pose topologies
"""

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional, Sequence, Union

import numpy as np

from motionrig.errors import MalformedLandmarks


FACE_LANDMARK_COUNT = 468
FACE_LANDMARK_COUNT_REFINED = 478
HAND_LANDMARK_COUNT = 21
POSE_LANDMARK_COUNT = 33


class Landmark(NamedTuple):
    """A single landmark point in normalized image/world space."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


PointsLike = Union[np.ndarray, Sequence[Any]]


def _coords(point: Any) -> tuple[float, float, float]:
    """Extract (x, y, z) from a Landmark, detector object or plain sequence."""
    if hasattr(point, "x"):
        return float(point.x), float(point.y), float(getattr(point, "z", 0.0))
    values = tuple(point)
    if len(values) < 2:
        raise ValueError(f"Landmark needs at least x and y, got {values!r}")
    z = float(values[2]) if len(values) > 2 else 0.0
    return float(values[0]), float(values[1]), z


def as_points(values: Optional[PointsLike]) -> Optional[np.ndarray]:
    """
    Convert landmark input to a read-only (N, 3) float array.

    Args:
        values: numpy array, or a sequence of Landmark / (x, y[, z]) items

    Returns:
        Read-only array, or None if no landmarks were given
    """
    if values is None:
        return None

    if isinstance(values, np.ndarray):
        array = np.asarray(values, dtype=np.float64)
        if array.ndim != 2 or array.shape[1] < 2:
            raise ValueError(f"Expected an (N, 2) or (N, 3) array, got shape {array.shape}")
        if array.shape[1] == 2:
            array = np.hstack([array, np.zeros((array.shape[0], 1))])
        points = np.array(array[:, :3], dtype=np.float64)
    else:
        points = np.array([_coords(p) for p in values], dtype=np.float64).reshape(-1, 3)

    points.setflags(write=False)
    return points


@dataclass(frozen=True, eq=False)
class LandmarkFrame:
    """
    Immutable snapshot of the detector output for one video frame.

    Each landmark set is optional. Arrays are copied on construction and
    marked read-only, so a frame can be shared freely between analyzers.
    """

    face: Optional[np.ndarray] = None
    left_hand: Optional[np.ndarray] = None
    right_hand: Optional[np.ndarray] = None
    pose: Optional[np.ndarray] = None
    timestamp: float = 0.0
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        for name in ("face", "left_hand", "right_hand", "pose"):
            object.__setattr__(self, name, as_points(getattr(self, name)))

    @classmethod
    def from_landmarks(
        cls,
        face: Optional[PointsLike] = None,
        left_hand: Optional[PointsLike] = None,
        right_hand: Optional[PointsLike] = None,
        pose: Optional[PointsLike] = None,
        timestamp: float = 0.0,
    ) -> "LandmarkFrame":
        """Build a frame from sequences of landmarks."""
        return cls(
            face=face,
            left_hand=left_hand,
            right_hand=right_hand,
            pose=pose,
            timestamp=timestamp,
        )

    @property
    def has_face(self) -> bool:
        return self.face is not None and len(self.face) > 0

    @property
    def has_iris(self) -> bool:
        """Whether refined iris points (468-477) are present."""
        return self.face is not None and len(self.face) >= FACE_LANDMARK_COUNT_REFINED

    @property
    def has_pose(self) -> bool:
        return self.pose is not None and len(self.pose) > 0

    @property
    def has_hands(self) -> bool:
        return self.left_hand is not None or self.right_hand is not None

    def require_face(self) -> np.ndarray:
        """
        Return the face array, checking it covers the full mesh.

        Raises:
            MalformedLandmarks: if the face has fewer than 468 points
        """
        count = 0 if self.face is None else len(self.face)
        if count < FACE_LANDMARK_COUNT:
            raise MalformedLandmarks("face", FACE_LANDMARK_COUNT, count)
        return self.face


class FaceLandmark:
    """Face mesh indices used by the expression analysis."""
    NOSE_TIP = 1
    NOSE_BASE = 2
    NOSTRIL_LEFT = 5
    NOSTRIL_RIGHT = 6
    FOREHEAD = 10
    UPPER_LIP = 13
    LOWER_LIP = 14
    LEFT_EYE_OUTER = 33
    LEFT_BROW_OUTER = 46
    MOUTH_LEFT = 61
    LEFT_BROW_INNER = 70
    RIGHT_BROW_INNER_ALT = 107
    LEFT_CHEEK_UPPER = 116
    LEFT_EYE_INNER = 133
    LEFT_EYE_BOTTOM = 145
    CHIN = 152
    LEFT_EYE_TOP = 159
    NOSE_BRIDGE = 168
    CHIN_LOWER = 175
    LEFT_DIMPLE = 192
    LEFT_CHEEK = 205
    LEFT_FACE_EDGE = 234
    RIGHT_EYE_OUTER = 263
    RIGHT_BROW_OUTER = 276
    MOUTH_RIGHT = 291
    RIGHT_BROW_INNER = 300
    RIGHT_CHEEK_UPPER = 345
    RIGHT_EYE_INNER = 362
    RIGHT_EYE_BOTTOM = 374
    RIGHT_EYE_TOP = 386
    RIGHT_DIMPLE = 416
    RIGHT_CHEEK = 425
    RIGHT_FACE_EDGE = 454
    LEFT_IRIS = 468
    RIGHT_IRIS = 473


class HandLandmark:
    """Hand landmark indices."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20

    # First landmark of each finger chain
    FINGER_BASES = {
        "thumb": THUMB_CMC,
        "index": INDEX_MCP,
        "middle": MIDDLE_MCP,
        "ring": RING_MCP,
        "pinky": PINKY_MCP,
    }


class PoseLandmark:
    """Body pose landmark indices."""
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
