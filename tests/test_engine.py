"""End-to-end tests for the motion-to-rig engine."""

import json
import time

import numpy as np
import pytest

from conftest import SMILE, make_face, make_hand, make_pose
from motionrig.config.settings import CalibrationConfig, Settings
from motionrig.core.landmarks import LandmarkFrame
from motionrig.core.signals import ExpressionSignal, GestureType
from motionrig.data.recording import NumpyEncoder, Recording, RecordingSource
from motionrig.errors import SceneUnavailable
from motionrig.pipeline.engine import LandmarkSource, MotionRigEngine
from motionrig.rig.capability import CapabilityBudget, CapabilityGate, FeatureFlags
from motionrig.rig.scene import Bone, SceneNode


def make_engine(plan="spartan", frames=3, enabled=True, budget=None):
    settings = Settings(plan=plan, calibration=CalibrationConfig(enabled=enabled, required_frames=frames))
    return MotionRigEngine(settings, budget=budget)


def neutral_frames(count, start=0.0):
    return [LandmarkFrame(face=make_face(), timestamp=start + i / 30.0) for i in range(count)]


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FailingSource:
    def __init__(self):
        self.closed = False

    def open(self):
        raise RuntimeError("camera busy")

    def read(self):
        return None

    def close(self):
        self.closed = True


class TestCalibrationFlow:
    def test_calibration_frames_are_not_published(self, demo_scene):
        engine = make_engine(frames=3)
        engine.attach_scene(demo_scene)

        bundles = engine.process_frames(neutral_frames(5))

        assert len(bundles) == 2
        assert engine.calibration.is_complete
        assert bundles[0].calibration.frames_collected == 3
        assert bundles[0].expression.dominant == "neutral"

    def test_calibration_disabled(self):
        engine = make_engine(enabled=False)

        bundles = engine.process_frames(neutral_frames(2))

        assert len(bundles) == 2

    def test_malformed_calibration_frame_not_counted(self):
        engine = make_engine(frames=2)
        frames = [LandmarkFrame(face=np.zeros((100, 3)))] + neutral_frames(2)

        bundles = engine.process_frames(frames)

        assert bundles == []
        assert engine.calibration.frames_collected == 2


class TestScenarios:
    def test_smile_drives_morphs(self, demo_scene):
        engine = make_engine("spartan")
        binding = engine.attach_scene(demo_scene, "demo")

        bundles = engine.process_frames(neutral_frames(3) + [LandmarkFrame(face=make_face(SMILE), timestamp=0.2)])

        assert bundles[-1].expression.smile == pytest.approx(0.5)
        smile = binding.morphs["mouthSmileLeft"]
        assert smile.mesh.morph_target_influences[smile.index] == pytest.approx(1.0)
        assert engine.last_report.morphs_applied > 0

    def test_requested_budget_limits_bones(self, demo_scene):
        features = FeatureFlags(face=True, body=True, hand=True, finger=True, eye=True, expression=True)
        budget = CapabilityGate().allocate(
            "goat",
            CapabilityBudget(max_bones=4, max_morph_targets=50, animation_responsiveness=1.0,
                             max_frame_rate=120, features=features),
        )
        engine = make_engine("goat", budget=budget)

        binding = engine.attach_scene(demo_scene)

        assert list(binding.bones) == ["head", "neck", "spine", "leftShoulder"]

    def test_shared_bone_does_not_use_a_budget_slot(self):
        root = SceneNode("Avatar")
        root.add(Bone("HeadNeck"))
        root.add(Bone("Spine"))
        features = FeatureFlags(face=True, body=True, hand=True, finger=True, eye=True, expression=True)
        budget = CapabilityGate().allocate(
            "goat",
            CapabilityBudget(max_bones=2, max_morph_targets=50, animation_responsiveness=1.0,
                             max_frame_rate=120, features=features),
        )
        engine = make_engine("goat", budget=budget)

        binding = engine.attach_scene(root)

        assert list(binding.bones) == ["head", "spine"]
        assert binding.unbound == []

    def test_free_plan_binding(self, demo_scene):
        engine = make_engine("free")

        binding = engine.attach_scene(demo_scene)

        assert list(binding.bones) == ["head", "neck", "jaw"]
        assert list(binding.morphs) == ["jawOpen"]
        assert engine.scheduler.max_frame_rate == 15

    def test_goat_binds_fingers(self, demo_scene):
        engine = make_engine("goat")
        binding = engine.attach_scene(demo_scene)

        engine.process_frames(neutral_frames(3) + [
            LandmarkFrame(face=make_face(), right_hand=make_hand(()), pose=make_pose(), timestamp=0.2),
        ])

        assert "rightIndex1" in binding.bones
        assert engine.latest.gesture.right_hand.gesture is GestureType.FIST
        assert binding.bones["rightIndex3"].bone.rotation[0] == pytest.approx(np.radians(180.0))

    def test_unrigged_model_gets_placeholders(self, unrigged_scene):
        engine = make_engine("reply_guy")

        binding = engine.attach_scene(unrigged_scene)

        assert len(engine.placeholders) == 15
        assert binding.bones["head"].bone is engine.placeholders["head"]
        assert "leftHand" not in binding.bones


class TestSceneLifecycle:
    def test_tick_without_scene(self):
        engine = make_engine(enabled=False)

        bundles = engine.process_frames(neutral_frames(1))

        assert len(bundles) == 1
        assert engine.last_report is None

    def test_attach_requires_scene(self):
        with pytest.raises(SceneUnavailable):
            make_engine().attach_scene(None)

    def test_detach_stops_animation(self, demo_scene):
        engine = make_engine(enabled=False)
        binding = engine.attach_scene(demo_scene)
        engine.detach_scene()

        engine.process_frames([LandmarkFrame(face=make_face({1: (0.55, 0.40)}))])

        assert not binding.attached
        assert binding.bones["head"].bone.rotation[1] == 0.0

    def test_reattach_replaces_binding(self, demo_scene):
        engine = make_engine()
        first = engine.attach_scene(demo_scene, "a")
        second = engine.attach_scene(demo_scene, "b")

        assert not first.attached
        assert second.attached
        assert engine.binding is second


class TestFrameIntake:
    def test_newer_frame_replaces_pending(self):
        engine = make_engine(enabled=False)
        engine.process_frames([])

        engine.submit(LandmarkFrame(face=make_face(), timestamp=1.0))
        engine.submit(LandmarkFrame(face=make_face(), timestamp=2.0))
        bundle = engine.tick()

        assert bundle.timestamp == 2.0
        assert engine.session.frames_dropped == 1
        assert engine.tick() is None

    def test_malformed_frame_publishes_zero_expression(self):
        engine = make_engine(enabled=False)

        bundles = engine.process_frames([LandmarkFrame(face=np.zeros((100, 3)), timestamp=0.5)])

        assert bundles[0].expression == ExpressionSignal.zero()
        assert bundles[0].timestamp == 0.5


    def test_published_bundle_is_json_serializable(self):
        engine = make_engine(enabled=False)

        bundle = engine.process_frames([LandmarkFrame(face=make_face())])[0]
        data = json.loads(json.dumps(bundle.to_dict(), cls=NumpyEncoder))

        assert type(bundle.expression.glasses_detected) is bool
        assert type(bundle.expression.eyes.eye_roll) is bool
        assert data["expression"]["glassesDetected"] is False


class TestTrackingLifecycle:
    def test_recording_source_satisfies_protocol(self):
        assert isinstance(RecordingSource(Recording()), LandmarkSource)

    def test_start_and_stop_with_source(self, demo_scene):
        engine = make_engine("goat", enabled=False)
        engine.attach_scene(demo_scene)
        source = RecordingSource(Recording(neutral_frames(20)), realtime=False)

        engine.start(source)
        assert engine.is_running
        assert wait_for(lambda: engine.latest is not None)
        engine.stop()

        assert not engine.is_running
        assert not source.is_open
        assert engine.session is None

    def test_source_closed_when_open_fails(self):
        engine = make_engine()
        source = FailingSource()

        with pytest.raises(RuntimeError):
            engine.start(source)

        assert source.closed
        assert not engine.is_running
        assert engine.session is None

    def test_context_manager_stops(self):
        with make_engine() as engine:
            engine.start()
            assert engine.scheduler.is_running

        assert not engine.is_running
        assert not engine.scheduler.is_running
