from dataclasses import dataclass, field
from typing import Optional

from motionrig.config.settings import CalibrationConfig, SmoothingConfig
from motionrig.core.calibration import Baseline, BaselineCalibrator, CalibrationState
from motionrig.core.temporal_filter import ChannelSmoother


@dataclass
class TrackingSession:
    """Per-session state: the calibrator and the smoothing channels."""

    calibrator: BaselineCalibrator
    smoother: ChannelSmoother
    calibration_enabled: bool = True
    frames_seen: int = 0
    frames_dropped: int = 0
    metadata: dict = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        calibration: Optional[CalibrationConfig] = None,
        smoothing: Optional[SmoothingConfig] = None,
    ) -> "TrackingSession":
        calibration = calibration or CalibrationConfig()
        smoothing = smoothing or SmoothingConfig()
        return cls(
            calibrator=BaselineCalibrator(calibration.required_frames),
            smoother=ChannelSmoother(enabled=smoothing.enabled),
            calibration_enabled=calibration.enabled,
        )

    @property
    def calibrating(self) -> bool:
        return self.calibration_enabled and not self.calibrator.is_complete

    @property
    def baseline(self) -> Optional[Baseline]:
        return self.calibrator.baseline

    @property
    def calibration(self) -> CalibrationState:
        return self.calibrator.state

    def reset(self) -> None:
        self.calibrator.reset()
        self.smoother.reset()
        self.frames_seen = 0
        self.frames_dropped = 0
