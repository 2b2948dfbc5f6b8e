"""
Personalized neutral-face calibration.

The first frames of a tracking session are folded into a Baseline with a
running average. Once the configured number of frames has been accepted
the baseline is frozen for the rest of the session.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from motionrig.core import face_geometry as geo
from motionrig.core.landmarks import FaceLandmark as F, LandmarkFrame

logger = logging.getLogger(__name__)

DEFAULT_CALIBRATION_FRAMES = 30


@dataclass(frozen=True)
class Baseline:
    """Anthropometric reference distances of the user's neutral face."""

    face_width: float
    neutral_mouth_corner_y: float
    neutral_mouth_height: float
    neutral_brow_distance: float
    neutral_mouth_width: float
    neutral_cheek_y: float
    neutral_nostril_width: float
    interocular_distance: float
    face_height: float
    neutral_head_pitch: float = 0.0
    frame_timestamp: float = 0.0

    @classmethod
    def from_face(cls, face: np.ndarray, timestamp: float = 0.0) -> "Baseline":
        """Measure a single-frame sample from a full face array."""
        pitch, _, _ = geo.head_rotation(face)
        return cls(
            face_width=geo.face_width(face),
            neutral_mouth_corner_y=geo.mean_y(face, F.MOUTH_LEFT, F.MOUTH_RIGHT),
            neutral_mouth_height=geo.mouth_height(face),
            neutral_brow_distance=(
                (face[F.LEFT_BROW_INNER, 1] - face[F.LEFT_EYE_TOP, 1])
                + (face[F.RIGHT_BROW_INNER_ALT, 1] - face[F.RIGHT_EYE_TOP, 1])
            ) / 2.0,
            neutral_mouth_width=geo.mouth_width(face),
            neutral_cheek_y=geo.mean_y(face, F.LEFT_CHEEK_UPPER, F.RIGHT_CHEEK_UPPER),
            neutral_nostril_width=geo.nostril_width(face),
            interocular_distance=abs(face[F.LEFT_EYE_OUTER, 0] - face[F.RIGHT_EYE_OUTER, 0]),
            face_height=abs(face[F.FOREHEAD, 1] - face[F.CHIN, 1]),
            neutral_head_pitch=pitch,
            frame_timestamp=timestamp,
        )

    def averaged_with(self, sample: "Baseline") -> "Baseline":
        """Fold a new sample in: avg = (avg + sample) / 2, field by field."""
        values = {}
        for f in dataclasses.fields(self):
            if f.name == "frame_timestamp":
                values[f.name] = sample.frame_timestamp
            else:
                values[f.name] = (getattr(self, f.name) + getattr(sample, f.name)) / 2.0
        return Baseline(**values)

    def ratio(self, value: float) -> float:
        """Express a neutral distance as a fraction of the neutral face width."""
        if self.face_width <= 0:
            return 0.0
        return value / self.face_width

    @property
    def mouth_height_ratio(self) -> float:
        return self.ratio(self.neutral_mouth_height)

    @property
    def mouth_width_ratio(self) -> float:
        return self.ratio(self.neutral_mouth_width)

    @property
    def nostril_width_ratio(self) -> float:
        return self.ratio(self.neutral_nostril_width)

    @property
    def brow_distance_ratio(self) -> float:
        return self.ratio(abs(self.neutral_brow_distance))

    def to_dict(self) -> Dict[str, float]:
        return {f.name: float(getattr(self, f.name)) for f in dataclasses.fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Baseline":
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in names})


@dataclass(frozen=True)
class CalibrationState:
    """Snapshot of calibration progress."""

    frames_collected: int = 0
    required_frames: int = DEFAULT_CALIBRATION_FRAMES
    baseline: Optional[Baseline] = None

    @property
    def is_complete(self) -> bool:
        return self.frames_collected >= self.required_frames

    @property
    def progress(self) -> float:
        if self.required_frames <= 0:
            return 1.0
        return min(1.0, self.frames_collected / self.required_frames)


class BaselineCalibrator:
    """
    Averages the first N accepted face frames into a Baseline.

    The calibrator exclusively owns the baseline while calibrating; after
    completion it only hands out the frozen result.
    """

    def __init__(self, required_frames: int = DEFAULT_CALIBRATION_FRAMES):
        self.required_frames = required_frames
        self._state = CalibrationState(required_frames=required_frames)

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state.is_complete

    @property
    def baseline(self) -> Optional[Baseline]:
        """The frozen baseline, or None while calibration is still running."""
        return self._state.baseline if self._state.is_complete else None

    def accumulate(self, frame: LandmarkFrame) -> CalibrationState:
        """
        Fold one frame into the running baseline.

        Frames without a face are skipped and not counted.

        Args:
            frame: Landmark frame from the detector

        Returns:
            Calibration state after this frame

        Raises:
            MalformedLandmarks: if the face has fewer than 468 points; the
                state does not advance
        """
        if self._state.is_complete:
            return self._state

        if not frame.has_face:
            logger.debug("Calibration frame skipped: no face detected")
            return self._state

        face = frame.require_face()
        sample = Baseline.from_face(face, frame.timestamp)

        current = self._state.baseline
        baseline = sample if current is None else current.averaged_with(sample)
        frames = self._state.frames_collected + 1
        self._state = CalibrationState(
            frames_collected=frames,
            required_frames=self.required_frames,
            baseline=baseline,
        )

        if self._state.is_complete:
            logger.info(
                f"Calibration complete after {frames} frames "
                f"(face width {baseline.face_width:.4f})"
            )
        else:
            logger.debug(f"Calibrating baseline... {frames}/{self.required_frames} frames")

        return self._state

    def reset(self):
        """Discard the baseline and start over."""
        self._state = CalibrationState(required_frames=self.required_frames)
