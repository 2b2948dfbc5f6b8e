"""
Shared face-mesh measurements.

Coordinates are normalized image space: x grows to the right, y grows
downward. All helpers expect a full (>= 468, 3) face array.
"""

import math

import numpy as np

from motionrig.core.landmarks import FaceLandmark as F
from motionrig.utils.math_utils import atan2_degrees


def face_width(face: np.ndarray) -> float:
    """Horizontal distance between the two face-edge landmarks."""
    return abs(face[F.RIGHT_FACE_EDGE, 0] - face[F.LEFT_FACE_EDGE, 0])


def mean_y(face: np.ndarray, a: int, b: int) -> float:
    return (face[a, 1] + face[b, 1]) / 2.0


def eye_aspect_ratio(face: np.ndarray, corner1: int, top: int, corner2: int, bottom: int) -> float:
    """Vertical eyelid gap over horizontal eye-corner distance."""
    width = abs(face[corner2, 0] - face[corner1, 0])
    if width == 0:
        return 0.0
    return abs(face[bottom, 1] - face[top, 1]) / width


def mouth_height(face: np.ndarray) -> float:
    return abs(face[F.UPPER_LIP, 1] - face[F.LOWER_LIP, 1])


def mouth_width(face: np.ndarray) -> float:
    return abs(face[F.MOUTH_RIGHT, 0] - face[F.MOUTH_LEFT, 0])


def nostril_width(face: np.ndarray) -> float:
    return abs(face[F.NOSTRIL_RIGHT, 0] - face[F.NOSTRIL_LEFT, 0])


def head_rotation(face: np.ndarray) -> tuple[float, float, float]:
    """
    Estimate head rotation from the eye line and nose tip.

    Yaw and pitch come from the nose-tip offset relative to the midpoint
    between the outer eye corners, scaled by eye distance; roll is the
    angle of the eye line.

    Returns:
        (pitch, yaw, roll) in degrees, all 0 for a degenerate eye line
    """
    left_eye = face[F.LEFT_EYE_OUTER]
    right_eye = face[F.RIGHT_EYE_OUTER]
    nose = face[F.NOSE_TIP]

    eye_distance = abs(right_eye[0] - left_eye[0])
    if eye_distance == 0:
        return 0.0, 0.0, 0.0

    center_x = (left_eye[0] + right_eye[0]) / 2.0
    center_y = (left_eye[1] + right_eye[1]) / 2.0

    yaw = math.degrees(math.atan2(nose[0] - center_x, eye_distance)) * 2.0
    pitch = math.degrees(math.atan2(nose[1] - center_y, eye_distance)) * 2.0
    roll = atan2_degrees(right_eye[1] - left_eye[1], right_eye[0] - left_eye[0])
    return pitch, yaw, roll
