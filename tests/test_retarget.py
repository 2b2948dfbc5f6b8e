"""Tests for signal to rig retargeting."""

import numpy as np
import pytest

from motionrig.config.settings import EyeConfig
from motionrig.core.signals import (
    EyesState,
    EyeState,
    ExpressionSignal,
    GestureSignal,
    HandGesture,
    HeadRotation,
    MouthState,
    PostureState,
    SignalBundle,
)
from motionrig.rig.capability import CapabilityGate
from motionrig.rig.resolver import BoneMorphResolver, RigBinding
from motionrig.rig.retarget import RetargetingEngine, morph_groups


def bind(scene, bones, morphs):
    return BoneMorphResolver().bind(scene, bones, morphs, "demo")


@pytest.fixture
def spartan():
    return CapabilityGate().allocate("spartan")


class TestTargets:
    def test_head_and_neck(self):
        expression = ExpressionSignal(head=HeadRotation(x=10.0, y=-20.0, z=5.0))

        targets = RetargetingEngine().bone_targets(expression, GestureSignal())

        assert targets["head"] == (10.0, -20.0, 5.0)
        assert targets["neck"] == pytest.approx((3.0, -6.0, 1.5))
        assert "spine" not in targets

    def test_body_distribution(self):
        angles = {"spine": 20.0, "leftElbow": 90.0, "rightKnee": 50.0, "pelvisTilt": 4.0}
        gesture = GestureSignal(body=PostureState(joint_angles=angles))

        targets = RetargetingEngine().bone_targets(ExpressionSignal(), gesture)

        assert targets["spine"] == pytest.approx((0.0, 0.0, 6.0))
        assert targets["spine1"] == pytest.approx((0.0, 0.0, 8.0))
        assert targets["leftUpperArm"] == pytest.approx((27.0, 0.0, 0.0))
        assert targets["leftLowerArm"] == pytest.approx((63.0, 0.0, 0.0))
        assert targets["rightUpperLeg"] == pytest.approx((20.0, 0.0, 0.0))
        assert targets["rightLowerLeg"] == pytest.approx((30.0, 0.0, 0.0))
        assert targets["hips"] == (0.0, 0.0, 4.0)

    def test_finger_channels(self):
        hand = HandGesture(detected=True, finger_curls={"index2": 45.0})
        targets = RetargetingEngine().bone_targets(ExpressionSignal(), GestureSignal(right_hand=hand))

        assert targets["rightIndex2"] == (45.0, 0.0, 0.0)

    def test_jaw_open_morph(self):
        expression = ExpressionSignal(jaw_drop=0.2, mouth=MouthState(openness=0.5, speaking=True, lip_sync=0.45))

        targets = RetargetingEngine().morph_targets(expression, GestureSignal())

        assert targets["jawOpen"] == pytest.approx(0.45)

    def test_eye_morphs_follow_eye_thresholds(self):
        eyes = EyesState(
            left=EyeState(openness=0.3, squinting=True),
            right=EyeState(openness=0.85),
            squinting=True,
        )
        expression = ExpressionSignal(eyes=eyes)

        targets = RetargetingEngine().morph_targets(expression, GestureSignal())
        assert targets["eyeSquintLeft"] == pytest.approx(0.15 / 0.35)
        assert targets["eyeWideRight"] == pytest.approx(0.5)

        tuned = EyeConfig(squint_min=0.2, squint_max=0.4, openness_at_normal=0.6)
        targets = RetargetingEngine(eyes=tuned).morph_targets(expression, GestureSignal())
        assert targets["eyeSquintLeft"] == pytest.approx(0.5)
        assert targets["eyeWideRight"] == pytest.approx(0.625)
        assert targets["eyeSquintRight"] == 0.0

    def test_morph_groups(self):
        assert morph_groups("jawOpen") == ("face",)
        assert morph_groups("eyeBlinkLeft") == ("face", "eye")
        assert morph_groups("mouthSmileLeft") == ("face", "expression")


class TestApply:
    def test_blends_by_responsiveness(self, demo_scene, spartan):
        binding = bind(demo_scene, ["head"], [])
        bundle = SignalBundle(ExpressionSignal(head=HeadRotation(x=10.0)))

        report = RetargetingEngine(spartan).apply(bundle, binding)

        head = binding.bones["head"].bone
        assert report.bones_applied == 1
        np.testing.assert_allclose(head.rotation, [np.radians(10.0) * 0.8, 0.0, 0.0])
        assert binding.bones["head"].skeleton.pose_count == 1

    def test_converges_to_target(self, demo_scene, spartan):
        binding = bind(demo_scene, ["head"], [])
        bundle = SignalBundle(ExpressionSignal(head=HeadRotation(y=30.0)))
        engine = RetargetingEngine(spartan)

        for _ in range(30):
            engine.apply(bundle, binding)

        assert binding.bones["head"].bone.rotation[1] == pytest.approx(np.radians(30.0))

    def test_morph_influences_clamped(self, demo_scene, spartan):
        binding = bind(demo_scene, [], ["jawOpen", "mouthSmileLeft"])
        bundle = SignalBundle(ExpressionSignal(smile=0.6, jaw_drop=1.0))

        report = RetargetingEngine(spartan).apply(bundle, binding)

        mesh, index = binding.morphs["mouthSmileLeft"].mesh, binding.morphs["mouthSmileLeft"].index
        assert report.morphs_applied == 2
        assert mesh.morph_target_influences[index] == pytest.approx(0.6)
        assert mesh.morph_target_influences[binding.morphs["jawOpen"].index] == 1.0
        assert mesh.influences_dirty

    def test_disabled_features_are_skipped(self, demo_scene):
        free = CapabilityGate().allocate("free")
        binding = bind(demo_scene, ["head", "spine"], ["jawOpen", "mouthSmileLeft"])
        gesture = GestureSignal(body=PostureState(joint_angles={"spine": 20.0}))
        bundle = SignalBundle(ExpressionSignal(smile=1.0, jaw_drop=0.5), gesture)

        report = RetargetingEngine(free).apply(bundle, binding)

        assert report.bones_applied == 1
        assert report.morphs_applied == 1
        assert report.skipped == 2
        assert binding.bones["spine"].bone.rotation[2] == 0.0

    def test_no_body_angles_leaves_body_bones(self, demo_scene, spartan):
        binding = bind(demo_scene, ["spine"], [])

        report = RetargetingEngine(spartan).apply(SignalBundle(), binding)

        assert report.bones_applied == 0
        assert report.skipped == 1

    def test_detached_binding_is_noop(self, demo_scene, spartan):
        binding = bind(demo_scene, ["head"], [])
        binding.detach()

        report = RetargetingEngine(spartan).apply(SignalBundle(ExpressionSignal(head=HeadRotation(x=10.0))), binding)

        assert report.bones_applied == 0
        assert binding.bones["head"].bone.rotation[0] == 0.0

    def test_missing_binding_is_noop(self, spartan):
        assert RetargetingEngine(spartan).apply(SignalBundle(), None).bones_applied == 0

    def test_empty_scene_binding(self, spartan):
        binding = RigBinding(asset_id="empty", scene=None)
        assert RetargetingEngine(spartan).apply(SignalBundle(), binding).skipped == 0
