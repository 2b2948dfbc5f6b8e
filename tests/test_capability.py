"""Tests for plan tiers and capability gating."""

import numpy as np
import pytest

from motionrig.rig.capability import (
    BONE_PRIORITY,
    MORPH_PRIORITY,
    PLAN_TIERS,
    CapabilityBudget,
    CapabilityGate,
    FeatureFlags,
)
from motionrig.rig.scene import has_bones, iter_nodes


@pytest.fixture
def gate():
    return CapabilityGate()


ALL_FEATURES = FeatureFlags(face=True, body=True, hand=True, finger=True, eye=True, expression=True)


class TestPlanTiers:
    def test_tiers_are_monotonic(self):
        tiers = sorted(PLAN_TIERS.values(), key=lambda t: t.priority_level)
        assert [t.id for t in tiers] == ["free", "reply_guy", "spartan", "zeus", "goat"]
        for lower, higher in zip(tiers, tiers[1:]):
            assert lower.budget.max_bones <= higher.budget.max_bones
            assert lower.budget.max_morph_targets <= higher.budget.max_morph_targets
            assert lower.budget.max_frame_rate <= higher.budget.max_frame_rate

    def test_free_tier(self, gate):
        budget = gate.allocate("free")

        assert budget.max_bones == 9
        assert budget.max_morph_targets == 5
        assert budget.max_frame_rate == 15
        assert budget.features == FeatureFlags(face=True)
        assert budget.frame_interval_ms == pytest.approx(1000.0 / 15)

    def test_unknown_plan_falls_back_to_free(self, gate, caplog):
        budget = gate.allocate("platinum")

        assert budget == PLAN_TIERS["free"].budget
        assert "platinum" in caplog.text

    def test_request_can_only_tighten(self, gate):
        requested = CapabilityBudget(
            max_bones=200,
            max_morph_targets=10,
            animation_responsiveness=0.5,
            max_frame_rate=240,
            features=FeatureFlags(face=True, body=False, hand=True, finger=True, eye=True, expression=True),
        )

        budget = gate.allocate("spartan", requested)

        assert budget.max_bones == 25
        assert budget.max_morph_targets == 10
        assert budget.animation_responsiveness == 0.5
        assert budget.max_frame_rate == 30
        assert not budget.features.body
        assert not budget.features.finger
        assert budget.features.hand


class TestSelection:
    def test_bones_follow_priority(self, gate):
        budget = CapabilityBudget(4, 0, 1.0, 60, ALL_FEATURES)
        candidates = list(reversed(BONE_PRIORITY))

        assert gate.select_bones(candidates, budget) == ["head", "neck", "spine", "leftShoulder"]

    def test_missing_candidates_are_skipped(self, gate):
        budget = CapabilityBudget(3, 0, 1.0, 60, ALL_FEATURES)

        assert gate.select_bones(["jaw", "neck", "unknown"], budget) == ["neck", "jaw"]

    def test_morphs_follow_priority(self, gate):
        budget = gate.allocate("free")

        selected = gate.select_morphs(MORPH_PRIORITY, budget)

        assert selected == ["jawOpen", "eyeBlinkLeft", "eyeBlinkRight", "mouthSmileLeft", "mouthSmileRight"]

    def test_zero_budget(self, gate):
        budget = CapabilityBudget(0, 0, 1.0, 60)

        assert gate.select_bones(BONE_PRIORITY, budget) == []
        assert gate.select_morphs(MORPH_PRIORITY, budget) == []


class TestPlaceholderBones:
    def test_created_within_bounds(self, gate, unrigged_scene):
        budget = gate.allocate("reply_guy")

        created = gate.synthesize_placeholder_bones(unrigged_scene, budget)

        assert list(created) == [
            "head", "neck", "spine", "leftShoulder", "rightShoulder",
            "leftUpperArm", "rightUpperArm", "leftLowerArm", "rightLowerArm",
            "leftHand", "rightHand", "hips", "leftUpperLeg", "rightUpperLeg", "leftLowerLeg",
        ]
        assert created["head"].name == "VirtualHead"
        # bounds: center (0, 1, 0), size (1, 2, 0.4)
        np.testing.assert_allclose(created["head"].world_position, [0.0, 1.7, 0.0])
        np.testing.assert_allclose(created["leftHand"].world_position, [-0.6, 0.6, 0.0])
        assert has_bones(unrigged_scene)

    def test_respects_bone_budget(self, gate, unrigged_scene):
        budget = CapabilityBudget(3, 0, 1.0, 60)

        created = gate.synthesize_placeholder_bones(unrigged_scene, budget)

        assert list(created) == ["head", "neck", "spine"]
        assert sum(1 for node in iter_nodes(unrigged_scene) if getattr(node, "is_bone", False)) == 3


def test_validate_budget(gate):
    assert gate.validate_budget(gate.allocate("goat")) == []
    warnings = gate.validate_budget(CapabilityBudget(150, -1, 0.05, 0))
    assert len(warnings) == 4
