"""Tests for bone and morph-target name resolution."""

import pytest

from motionrig.errors import SceneUnavailable
from motionrig.rig.resolver import (
    BoneBinding,
    BoneMorphResolver,
    MorphBinding,
    Unbound,
    candidate_names,
)
from motionrig.rig.scene import Bone, SceneNode, Skeleton, SkinnedMesh


@pytest.fixture
def resolver():
    return BoneMorphResolver()


def vrm_scene():
    root = SceneNode("VRMAvatar")
    hips = root.add(Bone("J_Bip_C_Hips"))
    spine = hips.add(Bone("J_Bip_C_Spine"))
    chest = spine.add(Bone("J_Bip_C_Chest"))
    neck = chest.add(Bone("J_Bip_C_Neck"))
    neck.add(Bone("J_Bip_C_Head"))
    chest.add(Bone("J_Bip_L_UpperArm"))
    face = root.add(SkinnedMesh("Face", ["Fcl_MTH_A", "morph_eyeBlinkLeft", "MOUTHSMILELEFT"]))
    face.skeleton = Skeleton([hips])
    return root


class TestCandidates:
    def test_synonym_variants(self):
        names = candidate_names("jawOpen")

        assert names[0] == "jawopen"
        for expected in ("morph_jawopen", "jawopenshape", "blend_jawopen", "face_jawopen"):
            assert expected in names

    def test_aliases_included(self):
        assert "j_bip_c_head" in candidate_names("head", ["J_Bip_C_Head"])


class TestBoneResolution:
    def test_mixamo_prefixed_names(self, resolver, demo_scene):
        for channel, expected in [
            ("head", "mixamorig:Head"),
            ("spine", "mixamorig:Spine"),
            ("spine1", "mixamorig:Spine1"),
            ("leftUpperArm", "mixamorig:LeftArm"),
            ("leftLowerArm", "mixamorig:LeftForeArm"),
            ("leftHand", "mixamorig:LeftHand"),
            ("rightUpperLeg", "mixamorig:RightUpLeg"),
            ("rightLowerLeg", "mixamorig:RightLeg"),
            ("leftIndex2", "mixamorig:LeftHandIndex2"),
        ]:
            assert resolver.resolve_bone(demo_scene, channel).name == expected

    def test_vrm_names(self, resolver):
        scene = vrm_scene()

        assert resolver.resolve_bone(scene, "head").name == "J_Bip_C_Head"
        assert resolver.resolve_bone(scene, "spine1").name == "J_Bip_C_Chest"
        assert resolver.resolve_bone(scene, "leftUpperArm").name == "J_Bip_L_UpperArm"

    def test_exact_match_beats_earlier_substring(self, resolver):
        root = SceneNode("Avatar")
        root.add(Bone("HeadTop_End"))
        root.add(Bone("Head"))

        assert resolver.resolve_bone(root, "head").name == "Head"

    def test_meshes_are_not_bones(self, resolver):
        root = SceneNode("Avatar")
        root.add(SkinnedMesh("HeadMesh"))

        assert resolver.resolve_bone(root, "head") is None

    def test_miss_is_cached_and_logged_once(self, resolver, demo_scene, caplog):
        assert resolver.resolve_bone(demo_scene, "leftHip", "demo") is None
        assert resolver.resolve_bone(demo_scene, "leftHip", "demo") is None

        assert resolver.traversals == 1
        assert caplog.text.count("leftHip") == 1
        miss = resolver.misses[("demo", "leftHip")]
        assert "mixamorig:Head" in miss.available

    def test_hit_is_cached(self, resolver, demo_scene):
        first = resolver.resolve_bone(demo_scene, "head", "demo")
        second = resolver.resolve_bone(demo_scene, "head", "demo")

        assert first is not None
        assert second is first
        assert resolver.traversals == 1

    def test_invalidate(self, resolver, demo_scene):
        resolver.resolve_bone(demo_scene, "head", "demo")
        resolver.invalidate("demo")
        resolver.resolve_bone(demo_scene, "head", "demo")

        assert resolver.traversals == 2


class TestMorphResolution:
    def test_exact_key(self, resolver, demo_scene):
        mesh, index = resolver.resolve_morph(demo_scene, "jawOpen")

        assert mesh.name == "Body"
        assert mesh.morph_target_dictionary["jawOpen"] == index

    def test_synonyms(self, resolver):
        scene = vrm_scene()

        _, blink = resolver.resolve_morph(scene, "eyeBlinkLeft")
        _, smile = resolver.resolve_morph(scene, "mouthSmileLeft")

        assert blink == 1
        assert smile == 2

    def test_unrelated_names_do_not_match(self, resolver):
        root = SceneNode("Avatar")
        root.add(SkinnedMesh("Face", ["Mouth_Open_L"]))

        assert resolver.resolve_morph(root, "jawOpen") is None

    def test_index_outside_influences_is_rejected(self, resolver):
        root = SceneNode("Avatar")
        mesh = root.add(SkinnedMesh("Face", ["jawOpen"]))
        mesh.morph_target_influences = []

        assert resolver.resolve_morph(root, "jawOpen") is None


class TestBind:
    def test_bind_demo(self, resolver, demo_scene):
        binding = resolver.bind(
            demo_scene,
            ["head", "neck", "leftHip"],
            ["jawOpen", "tongueOut"],
            "demo",
        )

        assert isinstance(binding.get("head"), BoneBinding)
        assert isinstance(binding.get("jawOpen"), MorphBinding)
        assert binding.get("leftHip") == Unbound("leftHip")
        assert binding.unbound == ["leftHip", "tongueOut"]
        assert binding.bones["head"].skeleton is not None
        assert len(binding.skeletons) == 1

    def test_each_bone_bound_once(self, resolver):
        root = SceneNode("Avatar")
        root.add(Bone("Spine"))

        binding = resolver.bind(root, ["spine", "spine1"], [])

        assert list(binding.bones) == ["spine"]
        assert binding.unbound == ["spine1"]

    def test_claim_bones_first_channel_wins(self, resolver):
        root = SceneNode("Avatar")
        shared = root.add(Bone("HeadNeck"))
        spine = root.add(Bone("Spine"))

        claimed = resolver.claim_bones(root, ["head", "neck", "spine"])

        assert list(claimed) == ["head", "spine"]
        assert claimed["head"] is shared
        assert claimed["spine"] is spine

    def test_bind_accepts_generators(self, resolver, demo_scene):
        binding = resolver.bind(demo_scene, (name for name in ["head", "neck"]), [])

        assert list(binding.bones) == ["head", "neck"]

    def test_requires_scene(self, resolver):
        with pytest.raises(SceneUnavailable):
            resolver.bind(None, ["head"], [])

    def test_detach(self, resolver, demo_scene):
        binding = resolver.bind(demo_scene, ["head"], [])
        binding.detach()
        assert not binding.attached
