"""
Hand gesture and body posture analysis.

Analyzes hand and pose landmarks to determine:
- Extended fingers and the overall hand gesture (open, fist, point, peace)
- Per-joint finger flexion angles
- Upper-body posture from the spine lean
- Limb joint angles used to drive the rig
"""

import logging
from typing import Dict, Optional

import numpy as np

from motionrig.core.landmarks import (
    HAND_LANDMARK_COUNT,
    POSE_LANDMARK_COUNT,
    HandLandmark as H,
    LandmarkFrame,
    PoseLandmark as P,
)
from motionrig.core.signals import (
    GestureSignal,
    GestureType,
    HandGesture,
    Posture,
    PostureState,
)
from motionrig.utils.math_utils import atan2_degrees, flexion_angle, joint_angle, midpoint

logger = logging.getLogger(__name__)

# (tip, joint below the tip) per finger
EXTENSION_PAIRS = {
    "thumb": (H.THUMB_TIP, H.THUMB_IP),
    "index": (H.INDEX_TIP, H.INDEX_PIP),
    "middle": (H.MIDDLE_TIP, H.MIDDLE_PIP),
    "ring": (H.RING_TIP, H.RING_PIP),
    "pinky": (H.PINKY_TIP, H.PINKY_PIP),
}

UPRIGHT_LIMIT_DEGREES = 10.0


def _line_roll(a: np.ndarray, b: np.ndarray) -> float:
    """Roll of the line a->b in degrees, folded into [-90, 90]."""
    angle = atan2_degrees(b[1] - a[1], b[0] - a[0])
    if angle > 90.0:
        angle -= 180.0
    elif angle < -90.0:
        angle += 180.0
    return angle


class GestureAnalyzer:
    """
    Classifies hand gestures and body posture.

    Classification is purely geometric and per-frame; no state is kept
    between calls.
    """

    def analyze(self, frame: LandmarkFrame) -> GestureSignal:
        """
        Analyze both hands and the body pose of a frame.

        Args:
            frame: Landmark frame

        Returns:
            GestureSignal with both hands and the posture
        """
        return GestureSignal(
            left_hand=self.analyze_hand(frame.left_hand),
            right_hand=self.analyze_hand(frame.right_hand),
            body=self.analyze_pose(frame.pose),
        )

    def extended_fingers(self, hand: np.ndarray) -> list[str]:
        """Fingers whose tip is above (smaller y than) the joint below it."""
        return [
            finger for finger, (tip, joint) in EXTENSION_PAIRS.items()
            if hand[tip, 1] < hand[joint, 1]
        ]

    def finger_curls(self, hand: np.ndarray) -> Dict[str, float]:
        """
        Flexion of every finger joint in degrees.

        The chain of a finger is the wrist followed by its four points;
        joint k is the bend at chain point k.
        """
        curls = {}
        for finger, base in H.FINGER_BASES.items():
            chain = [H.WRIST, base, base + 1, base + 2, base + 3]
            for k in range(1, 4):
                curls[f"{finger}{k}"] = flexion_angle(
                    hand[chain[k - 1]], hand[chain[k]], hand[chain[k + 1]]
                )
        return curls

    def analyze_hand(self, landmarks: Optional[np.ndarray]) -> HandGesture:
        """
        Classify one hand.

        Args:
            landmarks: (21, 3) hand landmarks, or None when the hand is not
                visible

        Returns:
            HandGesture; 'none' with confidence 0 unless exactly 21 points
            are given
        """
        count = 0 if landmarks is None else len(landmarks)
        if count == 0:
            return HandGesture()
        if count != HAND_LANDMARK_COUNT:
            logger.debug(f"Hand skipped: expected {HAND_LANDMARK_COUNT} points, got {count}")
            return HandGesture(detected=True, landmark_count=count)

        extended = self.extended_fingers(landmarks)
        without_thumb = [f for f in extended if f != "thumb"]

        if len(extended) == 5:
            gesture, confidence = GestureType.OPEN, 0.9
        elif not extended:
            gesture, confidence = GestureType.FIST, 0.9
        elif without_thumb == ["index"]:
            gesture, confidence = GestureType.POINT, 0.8
        elif without_thumb == ["index", "middle"]:
            gesture, confidence = GestureType.PEACE, 0.8
        else:
            gesture, confidence = GestureType.PARTIAL, 0.6

        return HandGesture(
            detected=True,
            landmark_count=count,
            gesture=gesture,
            confidence=confidence,
            finger_curls=self.finger_curls(landmarks),
        )

    def spine_angle(self, pose: np.ndarray) -> float:
        """Signed lateral lean in degrees; positive leans right."""
        shoulders = midpoint(pose[P.LEFT_SHOULDER], pose[P.RIGHT_SHOULDER])
        hips = midpoint(pose[P.LEFT_HIP], pose[P.RIGHT_HIP])
        return atan2_degrees(shoulders[0] - hips[0], hips[1] - shoulders[1])

    def joint_angles(self, pose: np.ndarray) -> Dict[str, float]:
        """Limb angles in degrees, keyed by rig-facing joint name."""
        return {
            "leftElbow": flexion_angle(pose[P.LEFT_SHOULDER], pose[P.LEFT_ELBOW], pose[P.LEFT_WRIST]),
            "rightElbow": flexion_angle(pose[P.RIGHT_SHOULDER], pose[P.RIGHT_ELBOW], pose[P.RIGHT_WRIST]),
            "leftKnee": flexion_angle(pose[P.LEFT_HIP], pose[P.LEFT_KNEE], pose[P.LEFT_ANKLE]),
            "rightKnee": flexion_angle(pose[P.RIGHT_HIP], pose[P.RIGHT_KNEE], pose[P.RIGHT_ANKLE]),
            "leftShoulder": joint_angle(pose[P.LEFT_HIP], pose[P.LEFT_SHOULDER], pose[P.LEFT_ELBOW]),
            "rightShoulder": joint_angle(pose[P.RIGHT_HIP], pose[P.RIGHT_SHOULDER], pose[P.RIGHT_ELBOW]),
            "leftHip": flexion_angle(pose[P.LEFT_SHOULDER], pose[P.LEFT_HIP], pose[P.LEFT_KNEE]),
            "rightHip": flexion_angle(pose[P.RIGHT_SHOULDER], pose[P.RIGHT_HIP], pose[P.RIGHT_KNEE]),
            "leftWrist": flexion_angle(pose[P.LEFT_ELBOW], pose[P.LEFT_WRIST], pose[P.LEFT_INDEX]),
            "rightWrist": flexion_angle(pose[P.RIGHT_ELBOW], pose[P.RIGHT_WRIST], pose[P.RIGHT_INDEX]),
            "spine": self.spine_angle(pose),
            "pelvisTilt": _line_roll(pose[P.LEFT_HIP], pose[P.RIGHT_HIP]),
        }

    def analyze_pose(self, landmarks: Optional[np.ndarray]) -> PostureState:
        """
        Classify the upper-body posture.

        Args:
            landmarks: (33, 3) pose landmarks, or None

        Returns:
            PostureState; 'unknown' with confidence 0 for fewer than 33 points
        """
        count = 0 if landmarks is None else len(landmarks)
        if count < POSE_LANDMARK_COUNT:
            if count:
                logger.debug(f"Pose skipped: expected {POSE_LANDMARK_COUNT} points, got {count}")
            return PostureState()

        angle = self.spine_angle(landmarks)
        if abs(angle) < UPRIGHT_LIMIT_DEGREES:
            posture, confidence = Posture.UPRIGHT, 0.9
        elif angle > UPRIGHT_LIMIT_DEGREES:
            posture, confidence = Posture.LEANING_RIGHT, 0.8
        elif angle < -UPRIGHT_LIMIT_DEGREES:
            posture, confidence = Posture.LEANING_LEFT, 0.8
        else:
            posture, confidence = Posture.NEUTRAL, 0.7

        return PostureState(
            posture=posture,
            confidence=confidence,
            joint_angles=self.joint_angles(landmarks),
        )
