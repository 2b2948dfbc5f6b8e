"""Shared fixtures: synthetic landmark sets and a demo avatar."""

import numpy as np
import pytest

from motionrig.core.landmarks import LandmarkFrame
from motionrig.rig.scene import SceneNode, SkinnedMesh, build_demo_humanoid

# A front-facing neutral face, face width 0.4
NEUTRAL_FACE_POINTS = {
    # face edges
    234: (0.30, 0.50),
    454: (0.70, 0.50),
    # left eye: outer, inner, top, bottom (EAR 0.235)
    33: (0.36, 0.40),
    133: (0.44, 0.40),
    159: (0.40, 0.3906),
    145: (0.40, 0.4094),
    # right eye
    362: (0.56, 0.40),
    263: (0.64, 0.40),
    386: (0.60, 0.3906),
    374: (0.60, 0.4094),
    # nose tip level with the eye line, so head rotation is zero
    1: (0.50, 0.40),
    2: (0.50, 0.55),
    5: (0.50, 0.52),
    6: (0.50, 0.52),
    168: (0.50, 0.40),
    # mouth
    61: (0.42, 0.60),
    291: (0.58, 0.60),
    13: (0.50, 0.5995),
    14: (0.50, 0.6005),
    # cheeks
    205: (0.40, 0.55),
    425: (0.60, 0.55),
    116: (0.35, 0.47),
    345: (0.65, 0.47),
    # brows
    46: (0.37, 0.3806),
    276: (0.63, 0.3806),
    70: (0.44, 0.3806),
    300: (0.56, 0.3806),
    107: (0.56, 0.3806),
    # dimples, chin, forehead
    192: (0.43, 0.62),
    416: (0.57, 0.62),
    175: (0.50, 0.70),
    10: (0.50, 0.20),
    152: (0.50, 0.80),
}


def make_face(overrides=None, count=468):
    """468-point face array, neutral unless overridden (index -> (x, y))."""
    face = np.full((count, 3), 0.5)
    face[:, 2] = 0.0
    for index, (x, y) in {**NEUTRAL_FACE_POINTS, **(overrides or {})}.items():
        if index < count:
            face[index, :2] = (x, y)
    return face


SMILE = {61: (0.42, 0.59), 291: (0.58, 0.59)}
LEFT_WINK = {
    159: (0.40, 0.398), 145: (0.40, 0.402),
    386: (0.60, 0.388), 374: (0.60, 0.412),
}
MOUTH_OPEN = {13: (0.50, 0.595), 14: (0.50, 0.605)}

FINGERS = ("thumb", "index", "middle", "ring", "pinky")


def make_hand(extended=FINGERS):
    """21-point upright hand; fingers not listed are curled below their middle joint."""
    hand = np.zeros((21, 3))
    hand[0] = (0.5, 0.9, 0.0)
    for i, finger in enumerate(FINGERS):
        base = 1 + 4 * i
        x = 0.40 + 0.05 * i
        hand[base] = (x, 0.70, 0.0)
        hand[base + 1] = (x, 0.60, 0.0)
        hand[base + 2] = (x, 0.55, 0.0)
        hand[base + 3] = (x, 0.50 if finger in extended else 0.65, 0.0)
    return hand


def make_pose(lean=0.0):
    """33-point standing pose; lean shifts the shoulders sideways (positive = right)."""
    pose = np.full((33, 3), 0.5)
    pose[:, 2] = 0.0
    points = {
        11: (0.40 + lean, 0.30), 12: (0.60 + lean, 0.30),
        13: (0.35 + lean, 0.45), 14: (0.65 + lean, 0.45),
        15: (0.33 + lean, 0.60), 16: (0.67 + lean, 0.60),
        19: (0.33 + lean, 0.65), 20: (0.67 + lean, 0.65),
        23: (0.42, 0.60), 24: (0.58, 0.60),
        25: (0.42, 0.80), 26: (0.58, 0.80),
        27: (0.42, 0.95), 28: (0.58, 0.95),
    }
    for index, (x, y) in points.items():
        pose[index, :2] = (x, y)
    return pose


@pytest.fixture
def neutral_face():
    return make_face()


@pytest.fixture
def neutral_frame():
    return LandmarkFrame(face=make_face())


@pytest.fixture
def demo_scene():
    return build_demo_humanoid()


@pytest.fixture
def unrigged_scene():
    root = SceneNode("Statue")
    root.add(SkinnedMesh(
        "StatueMesh",
        vertices=np.array([[-0.5, 0.0, -0.2], [0.5, 2.0, 0.2]]),
    ))
    return root
