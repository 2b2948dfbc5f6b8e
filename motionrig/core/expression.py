"""
Facial expression analysis from face mesh landmarks.

Derives normalized signals from a 468-point face mesh:
- Eye openness via Eye Aspect Ratio, wink/blink/squint flags and gaze
- Mouth openness, shape, speaking and lip-sync amplitude
- Brow raise/furrow per side
- Head rotation (pitch, yaw, roll)
- Composite expressions (smile, frown, anger, disgust, surprise,
  concentration), dynamic combinations and micro-expressions

All distances are normalized by face width so the signals do not depend
on how close the user sits to the camera. When a calibrated Baseline is
supplied, the population constants are replaced by the user's own
neutral measurements.
"""

import logging
from typing import Optional

import numpy as np

from motionrig.config.settings import ExpressionConfig, SmoothingConfig
from motionrig.core import face_geometry as geo
from motionrig.core.calibration import Baseline
from motionrig.errors import MalformedLandmarks
from motionrig.core.landmarks import FaceLandmark as F, LandmarkFrame
from motionrig.core.signals import (
    BrowDetails,
    DynamicCombinations,
    ExpressionSignal,
    EyesState,
    EyeState,
    HeadRotation,
    MicroExpressions,
    MouthDetails,
    MouthShape,
    MouthState,
)
from motionrig.core.temporal_filter import ChannelSmoother
from motionrig.utils.math_utils import clamp

logger = logging.getLogger(__name__)

# (corner1, top, corner2, bottom, iris)
LEFT_EYE = (F.LEFT_EYE_OUTER, F.LEFT_EYE_TOP, F.LEFT_EYE_INNER, F.LEFT_EYE_BOTTOM, F.LEFT_IRIS)
RIGHT_EYE = (F.RIGHT_EYE_INNER, F.RIGHT_EYE_TOP, F.RIGHT_EYE_OUTER, F.RIGHT_EYE_BOTTOM, F.RIGHT_IRIS)


def _beyond(value: float, tolerance: float) -> float:
    """Value when it exceeds the tolerance, otherwise 0."""
    return value if value > tolerance else 0.0


class ExpressionAnalyzer:
    """
    Computes an ExpressionSignal bundle per frame.

    The analyzer itself is stateless; exponential smoothing state lives
    in the ChannelSmoother passed to analyze(), which the tracking session
    owns.

    Example:
        >>> analyzer = ExpressionAnalyzer()
        >>> signal = analyzer.analyze(frame, baseline=session.baseline,
        ...                           smoother=session.smoother)
        >>> signal.eyes.left_wink, signal.mouth.shape
    """

    def __init__(
        self,
        config: Optional[ExpressionConfig] = None,
        smoothing: Optional[SmoothingConfig] = None,
    ):
        self.config = config or ExpressionConfig()
        self.smoothing = smoothing or SmoothingConfig()

    def analyze(
        self,
        frame: LandmarkFrame,
        baseline: Optional[Baseline] = None,
        smoother: Optional[ChannelSmoother] = None,
    ) -> ExpressionSignal:
        """
        Analyze the face in a frame.

        Frames without a face, or with fewer than 468 face points, yield
        the all-zero bundle instead of raising.

        Args:
            frame: Landmark frame
            baseline: Calibrated neutral face, if calibration has completed
            smoother: Session smoothing state; None disables smoothing

        Returns:
            ExpressionSignal for this frame
        """
        try:
            face = frame.require_face()
        except MalformedLandmarks as e:
            logger.debug(f"Expression analysis skipped: {e}")
            return ExpressionSignal.zero()
        return self.analyze_face(face, baseline, smoother)

    def analyze_face(
        self,
        face: np.ndarray,
        baseline: Optional[Baseline] = None,
        smoother: Optional[ChannelSmoother] = None,
    ) -> ExpressionSignal:
        """Analyze a validated (>= 468, 3) face array."""
        fw = geo.face_width(face)
        if fw <= 0:
            logger.debug("Expression analysis skipped: degenerate face width")
            return ExpressionSignal.zero()

        eyes = self.analyze_eyes(face, smoother)
        mouth = self.analyze_mouth(face, smoother)
        head = self.head_rotation(face, baseline)

        cfg_m = self.config.mouth
        cfg_b = self.config.brows
        cfg_c = self.config.composites

        glasses = self.detect_glasses(face)
        brow_scale = self.config.eyes.glasses_compensation if glasses else 1.0

        # Smile / frown from mouth-corner lift relative to the lip center
        left_corner = face[F.MOUTH_LEFT]
        right_corner = face[F.MOUTH_RIGHT]
        corner_mean_y = (left_corner[1] + right_corner[1]) / 2.0
        lip_center_y = geo.mean_y(face, F.UPPER_LIP, F.LOWER_LIP)

        # Corner movement inside the tolerance band is rest
        tolerance = cfg_m.corner_tolerance / fw
        left_up = _beyond(float(lip_center_y - left_corner[1]) / fw, tolerance)
        right_up = _beyond(float(lip_center_y - right_corner[1]) / fw, tolerance)
        left_down = _beyond(float(left_corner[1] - lip_center_y) / fw, tolerance)
        right_down = _beyond(float(right_corner[1] - lip_center_y) / fw, tolerance)

        left_smirk = clamp(left_up * cfg_m.smirk_gain)
        right_smirk = clamp(right_up * cfg_m.smirk_gain)
        left_frown = clamp(left_down * cfg_m.corner_frown_gain)
        right_frown = clamp(right_down * cfg_m.corner_frown_gain)

        if baseline is not None:
            cheek_y = geo.mean_y(face, F.LEFT_CHEEK_UPPER, F.RIGHT_CHEEK_UPPER)
            cheek_rise = max(0.0, (baseline.neutral_cheek_y - cheek_y) / fw)
        else:
            eye_top_y = geo.mean_y(face, F.LEFT_EYE_TOP, F.RIGHT_EYE_TOP)
            cheek_y = geo.mean_y(face, F.LEFT_CHEEK, F.RIGHT_CHEEK)
            cheek_rise = max(0.0, (eye_top_y - cheek_y) / fw)

        raw_smile = min(1.0, (left_up + right_up) / 2.0 * cfg_m.smile_gain + cheek_rise * cfg_m.cheek_rise_gain)
        raw_frown = clamp((left_down + right_down) / 2.0 * cfg_m.frown_gain)
        smile = raw_smile if raw_smile > raw_frown else 0.0
        frown = raw_frown if raw_frown > raw_smile else 0.0

        # Jaw and lips
        height_ratio = geo.mouth_height(face) / fw
        width_ratio = geo.mouth_width(face) / fw
        neutral_height = baseline.mouth_height_ratio if baseline is not None else 0.0
        neutral_width = baseline.mouth_width_ratio if baseline is not None else cfg_m.normal_lip_width
        neutral_thickness = (
            baseline.mouth_height_ratio if baseline is not None else cfg_m.normal_lip_thickness
        )

        jaw_drop = clamp((height_ratio - neutral_height) * cfg_m.jaw_drop_gain)
        pursed = clamp((neutral_width - width_ratio) * cfg_m.pursed_gain)
        lip_purse = clamp((neutral_width - width_ratio) * cfg_m.lip_purse_gain)
        lip_suck = clamp((neutral_thickness - height_ratio) * cfg_m.lip_suck_gain)

        # Brows: identical formula on both sides
        raise_threshold = cfg_b.raise_threshold
        if baseline is not None:
            raise_threshold = max(raise_threshold, baseline.brow_distance_ratio)
        left_brow_distance = abs(face[F.LEFT_EYE_TOP, 1] - face[F.LEFT_BROW_OUTER, 1]) / fw
        right_brow_distance = abs(face[F.RIGHT_EYE_TOP, 1] - face[F.RIGHT_BROW_OUTER, 1]) / fw
        left_raise = clamp((left_brow_distance - raise_threshold) * cfg_b.raise_gain) * brow_scale
        right_raise = clamp((right_brow_distance - raise_threshold) * cfg_b.raise_gain) * brow_scale
        eyebrow_raise = (left_raise + right_raise) / 2.0

        inner_separation = abs(face[F.LEFT_BROW_INNER, 0] - face[F.RIGHT_BROW_INNER, 0]) / fw
        furrow = clamp((cfg_b.base_separation - inner_separation) * cfg_b.furrow_gain) * brow_scale
        brow_lowering = furrow
        brow_asymmetry = 1.0 if abs(left_raise - right_raise) > cfg_b.asymmetry_threshold else 0.0

        # Nose
        nostril_ratio = geo.nostril_width(face) / fw
        anger_base = cfg_c.anger_nostril_base
        disgust_base = cfg_c.disgust_nostril_base
        if baseline is not None:
            anger_base = max(anger_base, baseline.nostril_width_ratio)
            disgust_base = max(disgust_base, baseline.nostril_width_ratio)
        anger_flare = clamp((nostril_ratio - anger_base) * cfg_c.anger_nostril_gain)
        disgust_flare = clamp((nostril_ratio - disgust_base) * cfg_c.disgust_nostril_gain)

        lip_to_nose = abs(face[F.UPPER_LIP, 1] - face[F.NOSE_BASE, 1]) / fw
        lip_raise = clamp((cfg_c.disgust_lip_nose_base - lip_to_nose) * cfg_c.disgust_lip_raise_gain)

        # Composites, mutually exclusive by priority
        if brow_lowering > cfg_c.anger_brow_threshold or anger_flare > cfg_c.anger_flare_threshold:
            raw_anger = max(brow_lowering * cfg_c.anger_brow_weight, anger_flare)
        else:
            raw_anger = 0.0

        if lip_raise > cfg_c.disgust_lip_threshold or disgust_flare > cfg_c.disgust_flare_threshold:
            raw_disgust = max(lip_raise, disgust_flare * cfg_c.disgust_flare_weight)
        else:
            raw_disgust = 0.0

        if eyebrow_raise > cfg_c.surprise_brow_threshold and jaw_drop > cfg_c.surprise_jaw_threshold:
            raw_surprise = min(
                1.0,
                eyebrow_raise * cfg_c.surprise_brow_weight + jaw_drop * cfg_c.surprise_jaw_weight,
            )
        else:
            raw_surprise = 0.0

        quiet = cfg_c.exclusivity_threshold
        mouth_quiet = smile < quiet and frown < quiet
        anger = raw_anger if mouth_quiet else 0.0
        disgust = raw_disgust if mouth_quiet and anger < quiet else 0.0
        surprise = raw_surprise if mouth_quiet and anger < quiet and disgust < quiet else 0.0

        if anger > 0 or disgust > 0 or surprise > 0:
            # A composite claimed the frame; drop the sub-threshold mouth residue
            smile = 0.0
            frown = 0.0

        if (
            brow_lowering > cfg_c.concentration_brow_threshold
            and eyes.squinting
            and not eyes.blinking
            and smile < cfg_c.concentration_smile_max
            and frown < quiet
            and anger < quiet
            and disgust < quiet
        ):
            concentration = min(1.0, brow_lowering * cfg_c.concentration_gain + cfg_c.concentration_offset)
        else:
            concentration = 0.0

        # Micro-expressions
        eye_ref_y = face[F.RIGHT_IRIS, 1] if len(face) > F.RIGHT_IRIS else face[F.RIGHT_EYE_TOP, 1]
        cheek_baseline_y = (face[F.NOSE_BRIDGE, 1] + eye_ref_y) / 2.0
        micro_cheek_y = geo.mean_y(face, F.LEFT_CHEEK, F.RIGHT_CHEEK)
        cheek_raise = clamp((cheek_baseline_y - micro_cheek_y) / fw * cfg_m.cheek_raise_gain)

        dimple_y = geo.mean_y(face, F.LEFT_DIMPLE, F.RIGHT_DIMPLE)
        dimpler = clamp(max(0.0, (corner_mean_y - dimple_y) / fw) * cfg_m.dimpler_gain)
        chin_raise = clamp((face[F.LOWER_LIP, 1] - face[F.CHIN_LOWER, 1]) / fw * cfg_m.chin_raise_gain)

        micro = MicroExpressions(
            cheek_raise=cheek_raise,
            lip_purse=lip_purse,
            nose_wrinkle=disgust_flare,
            dimpler=dimpler,
            lip_corner_depressor=frown,
            chin_raise=chin_raise,
            nostril_flare=disgust_flare,
            lip_suck=lip_suck,
        )

        # Dynamic combinations
        asymmetric_smile = (
            max(left_smirk, right_smirk)
            if abs(left_smirk - right_smirk) > cfg_c.asymmetry_threshold else 0.0
        )
        asymmetric_frown = (
            max(left_frown, right_frown)
            if abs(left_frown - right_frown) > cfg_c.asymmetry_threshold else 0.0
        )
        lowering = cfg_c.brow_lowering_threshold
        combinations = DynamicCombinations(
            concentrated_frown=float(
                brow_lowering > cfg_c.concentrated_frown_brow
                and frown > cfg_c.concentrated_frown_frown
                and eyes.squinting
            ),
            confused_expression=float(
                bool(brow_asymmetry)
                and (left_raise > cfg_c.confused_raise or right_raise > cfg_c.confused_raise)
            ),
            smirking_concentration=float(
                (left_smirk > cfg_c.smirk_threshold or right_smirk > cfg_c.smirk_threshold)
                and brow_lowering > lowering
            ),
            skeptical_look=float(brow_lowering > lowering and asymmetric_smile > cfg_c.skeptical_smile),
            concerned_smile=float(smile > cfg_c.concerned_smile and brow_lowering > lowering),
        )

        return ExpressionSignal(
            smile=clamp(smile),
            anger=clamp(anger),
            disgust=clamp(disgust),
            surprise=clamp(surprise),
            frown=clamp(frown),
            eyebrow_raise=clamp(eyebrow_raise),
            jaw_drop=jaw_drop,
            concentration=clamp(concentration),
            brow=BrowDetails(
                left_raise=left_raise,
                right_raise=right_raise,
                left_lower=furrow,
                right_lower=furrow,
                asymmetry=brow_asymmetry,
            ),
            mouth_details=MouthDetails(
                left_smirk=left_smirk,
                right_smirk=right_smirk,
                left_frown=left_frown,
                right_frown=right_frown,
                pursed=pursed,
                asymmetric_smile=asymmetric_smile,
                asymmetric_frown=asymmetric_frown,
            ),
            combinations=combinations,
            micro=micro,
            eyes=eyes,
            mouth=mouth,
            head=head,
            glasses_detected=glasses,
        )

    # ------------------------------------------------------------------
    # Eyes
    # ------------------------------------------------------------------

    def openness_from_ear(self, ear: float) -> float:
        """
        Map an Eye Aspect Ratio to openness in [0, 1].

        Three linear segments: closed [0, ear_closed] -> [0, 0.1], normal
        (ear_closed, ear_normal] -> (0.1, 0.7], wide-open above that up to
        1.0. The mapping is monotonically non-decreasing.
        """
        c = self.config.eyes
        if ear <= c.ear_closed:
            value = ear / c.ear_closed * c.openness_at_closed
        elif ear <= c.ear_normal:
            span = (ear - c.ear_closed) / (c.ear_normal - c.ear_closed)
            value = c.openness_at_closed + span * (c.openness_at_normal - c.openness_at_closed)
        else:
            span = (ear - c.ear_normal) / (c.ear_wide_open - c.ear_normal)
            value = c.openness_at_normal + span * (1.0 - c.openness_at_normal)
        return clamp(value)

    def classify_eyes(self, left_openness: float, right_openness: float) -> EyesState:
        """
        Wink/blink/squint flags from the two openness values.

        Both eyes use identical thresholds, so swapping the inputs swaps
        left_wink and right_wink and leaves the other flags unchanged.
        """
        c = self.config.eyes
        difference = abs(left_openness - right_openness)

        left_wink = (
            left_openness < c.wink_closed_threshold
            and right_openness > c.wink_open_threshold
            and difference > c.wink_difference
        )
        right_wink = (
            right_openness < c.wink_closed_threshold
            and left_openness > c.wink_open_threshold
            and difference > c.wink_difference
        )
        blinking = left_openness < c.blink_threshold and right_openness < c.blink_threshold
        squinting = (
            not blinking
            and not left_wink
            and not right_wink
            and c.squint_min < left_openness < c.squint_max
            and c.squint_min < right_openness < c.squint_max
        )

        return EyesState(
            left=EyeState(openness=left_openness, blinking=blinking, winking=left_wink, squinting=squinting),
            right=EyeState(openness=right_openness, blinking=blinking, winking=right_wink, squinting=squinting),
            left_wink=left_wink,
            right_wink=right_wink,
            double_wink=left_wink and right_wink,
            blinking=blinking,
            squinting=squinting,
        )

    def analyze_eyes(
        self,
        face: np.ndarray,
        smoother: Optional[ChannelSmoother] = None,
    ) -> EyesState:
        """Openness, blink channel, gaze and classification flags for both eyes."""
        raw = {}
        for side, indices in (("left", LEFT_EYE), ("right", RIGHT_EYE)):
            corner1, top, corner2, bottom, _ = indices
            raw[side] = self.openness_from_ear(geo.eye_aspect_ratio(face, corner1, top, corner2, bottom))

        openness = {
            side: self._smooth(smoother, f"eye.{side}.openness", value, self.smoothing.openness_alpha)
            for side, value in raw.items()
        }
        state = self.classify_eyes(openness["left"], openness["right"])

        gain = self.config.eyes.gaze_gain
        for side, indices, eye in (("left", LEFT_EYE, state.left), ("right", RIGHT_EYE, state.right)):
            corner1, top, corner2, bottom, iris = indices
            eye.blink = self._smooth(
                smoother, f"eye.{side}.blink", 1.0 - raw[side], self.smoothing.blink_alpha
            )
            if len(face) > iris:
                width = abs(face[corner2, 0] - face[corner1, 0])
                height = abs(face[top, 1] - face[bottom, 1])
                center_x = (face[corner1, 0] + face[corner2, 0]) / 2.0
                center_y = (face[top, 1] + face[bottom, 1]) / 2.0
                eye.gaze_x = (face[iris, 0] - center_x) / width * gain if width > 0 else 0.0
                eye.gaze_y = (face[iris, 1] - center_y) / height * gain if height > 0 else 0.0

        roll = self.config.eyes.eye_roll_threshold
        state.eye_roll = bool(abs(state.left.gaze_y) > roll or abs(state.right.gaze_y) > roll)
        return state

    def detect_glasses(self, face: np.ndarray) -> bool:
        """Asymmetric brow/eye spacing is a sign of glasses frames occluding landmarks."""
        c = self.config.eyes
        right_span = abs(face[F.RIGHT_BROW_OUTER, 1] - face[F.RIGHT_EYE_OUTER, 1])
        if right_span == 0:
            return False
        ratio = abs(face[F.LEFT_BROW_OUTER, 1] - face[F.LEFT_EYE_OUTER, 1]) / right_span
        return bool(ratio > c.glasses_ratio_max or ratio < c.glasses_ratio_min)

    # ------------------------------------------------------------------
    # Mouth and head
    # ------------------------------------------------------------------

    def analyze_mouth(
        self,
        face: np.ndarray,
        smoother: Optional[ChannelSmoother] = None,
    ) -> MouthState:
        """Mouth openness, priority-ordered shape, speaking flag and lip-sync amplitude."""
        c = self.config.mouth
        width = geo.mouth_width(face)
        raw = clamp(geo.mouth_height(face) / width * c.openness_gain) if width > 0 else 0.0
        openness = self._smooth(smoother, "mouth.openness", raw, self.smoothing.openness_alpha)

        corner_y = geo.mean_y(face, F.MOUTH_LEFT, F.MOUTH_RIGHT)
        lip_center_y = geo.mean_y(face, F.UPPER_LIP, F.LOWER_LIP)

        if openness > c.open_threshold:
            shape = MouthShape.OPEN
        elif openness > c.partially_open_threshold:
            shape = MouthShape.PARTIALLY_OPEN
        elif corner_y < lip_center_y - c.corner_tolerance:
            shape = MouthShape.SMILE
        elif corner_y > lip_center_y + c.corner_tolerance:
            shape = MouthShape.FROWN
        else:
            shape = MouthShape.CLOSED

        speaking = openness > c.speaking_threshold
        return MouthState(
            openness=openness,
            shape=shape,
            speaking=speaking,
            lip_sync=openness * c.lip_sync_gain if speaking else 0.0,
        )

    def head_rotation(self, face: np.ndarray, baseline: Optional[Baseline] = None) -> HeadRotation:
        """Head rotation in degrees; pitch is relative to the calibrated neutral when available."""
        pitch, yaw, roll = geo.head_rotation(face)
        if baseline is not None:
            pitch -= baseline.neutral_head_pitch
        return HeadRotation(x=round(pitch, 1), y=round(yaw, 1), z=round(roll, 1))

    @staticmethod
    def _smooth(
        smoother: Optional[ChannelSmoother],
        channel: str,
        value: float,
        alpha: float,
    ) -> float:
        if smoother is None:
            return float(value)
        return smoother.smooth(channel, value, alpha)
