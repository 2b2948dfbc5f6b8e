"""Tests for hand gesture and posture classification."""

import numpy as np
import pytest

from conftest import make_hand, make_pose
from motionrig.core.gesture import GestureAnalyzer
from motionrig.core.landmarks import LandmarkFrame
from motionrig.core.signals import GestureType, Posture


@pytest.fixture
def analyzer():
    return GestureAnalyzer()


class TestHandGesture:
    @pytest.mark.parametrize(
        "extended, expected, confidence",
        [
            (("thumb", "index", "middle", "ring", "pinky"), GestureType.OPEN, 0.9),
            ((), GestureType.FIST, 0.9),
            (("index",), GestureType.POINT, 0.8),
            (("thumb", "index"), GestureType.POINT, 0.8),
            (("index", "middle"), GestureType.PEACE, 0.8),
            (("index", "ring"), GestureType.PARTIAL, 0.6),
        ],
    )
    def test_classification(self, analyzer, extended, expected, confidence):
        hand = analyzer.analyze_hand(make_hand(extended))

        assert hand.detected
        assert hand.gesture is expected
        assert hand.confidence == confidence

    def test_missing_hand(self, analyzer):
        hand = analyzer.analyze_hand(None)

        assert not hand.detected
        assert hand.gesture is GestureType.NONE
        assert hand.confidence == 0.0

    def test_wrong_point_count(self, analyzer):
        hand = analyzer.analyze_hand(np.zeros((20, 3)))

        assert hand.detected
        assert hand.gesture is GestureType.NONE
        assert hand.confidence == 0.0
        assert hand.finger_curls == {}

    def test_finger_curls(self, analyzer):
        curls = analyzer.finger_curls(make_hand(("thumb", "middle", "ring", "pinky")))

        assert len(curls) == 15
        assert curls["middle2"] == pytest.approx(0.0)
        assert curls["middle3"] == pytest.approx(0.0)
        assert curls["index3"] == pytest.approx(180.0)


class TestPosture:
    def test_upright(self, analyzer):
        posture = analyzer.analyze_pose(make_pose())

        assert posture.posture is Posture.UPRIGHT
        assert posture.confidence == 0.9
        assert posture.joint_angles["spine"] == pytest.approx(0.0)
        assert posture.joint_angles["pelvisTilt"] == pytest.approx(0.0)
        assert posture.joint_angles["leftKnee"] == pytest.approx(0.0)

    def test_leaning(self, analyzer):
        assert analyzer.analyze_pose(make_pose(lean=0.1)).posture is Posture.LEANING_RIGHT
        assert analyzer.analyze_pose(make_pose(lean=-0.1)).posture is Posture.LEANING_LEFT

    def test_spine_angle_sign(self, analyzer):
        assert analyzer.spine_angle(make_pose(lean=0.1)) == pytest.approx(np.degrees(np.arctan2(0.1, 0.3)))

    def test_incomplete_pose(self, analyzer):
        posture = analyzer.analyze_pose(np.zeros((20, 3)))

        assert posture.posture is Posture.UNKNOWN
        assert posture.confidence == 0.0
        assert posture.joint_angles == {}

    def test_joint_angle_keys(self, analyzer):
        angles = analyzer.joint_angles(make_pose())

        assert set(angles) == {
            "leftElbow", "rightElbow", "leftKnee", "rightKnee",
            "leftShoulder", "rightShoulder", "leftHip", "rightHip",
            "leftWrist", "rightWrist", "spine", "pelvisTilt",
        }


def test_analyze_frame(analyzer):
    frame = LandmarkFrame(left_hand=make_hand(()), pose=make_pose())

    signal = analyzer.analyze(frame)

    assert signal.left_hand.gesture is GestureType.FIST
    assert not signal.right_hand.detected
    assert signal.body.posture is Posture.UPRIGHT
    assert signal.to_dict()["leftHand"]["gesture"] == "fist"
