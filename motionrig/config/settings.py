"""
Configuration for the retargeting engine.

Every threshold below is an empirically tuned calibration parameter.
The defaults work for a typical webcam at arm's length; they may need
retuning for a different camera, lens or lighting setup.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import yaml

from motionrig.errors import ConfigError

T = TypeVar("T")


@dataclass
class EyeConfig:
    """Eye aspect ratio mapping and eye-state classification."""

    # EAR anchors of the piecewise openness mapping
    ear_closed: float = 0.08
    ear_normal: float = 0.25
    ear_wide_open: float = 0.40
    openness_at_closed: float = 0.1
    openness_at_normal: float = 0.7

    blink_threshold: float = 0.3
    wink_closed_threshold: float = 0.35
    wink_open_threshold: float = 0.65
    wink_difference: float = 0.30
    squint_min: float = 0.1
    squint_max: float = 0.45

    gaze_gain: float = 4.0
    eye_roll_threshold: float = 0.6

    # Brow/eye ratio outside this band suggests glasses frames
    glasses_ratio_min: float = 0.7
    glasses_ratio_max: float = 1.3
    glasses_compensation: float = 0.8


@dataclass
class MouthConfig:
    """Mouth shape, smile/frown and lip micro-expression parameters."""

    openness_gain: float = 8.0
    open_threshold: float = 0.4
    partially_open_threshold: float = 0.15
    corner_tolerance: float = 0.005
    speaking_threshold: float = 0.25
    lip_sync_gain: float = 0.9

    smirk_gain: float = 80.0
    corner_frown_gain: float = 100.0
    smile_gain: float = 20.0
    cheek_rise_gain: float = 15.0
    frown_gain: float = 100.0

    jaw_drop_gain: float = 12.0
    normal_lip_width: float = 0.08
    pursed_gain: float = 30.0
    lip_purse_gain: float = 25.0
    normal_lip_thickness: float = 0.02
    lip_suck_gain: float = 30.0

    dimpler_gain: float = 15.0
    chin_raise_gain: float = 20.0
    cheek_raise_gain: float = 8.0


@dataclass
class BrowConfig:
    """Brow raise and furrow parameters."""

    raise_threshold: float = 0.030
    raise_gain: float = 20.0
    base_separation: float = 0.10
    furrow_gain: float = 40.0
    asymmetry_threshold: float = 0.2


@dataclass
class CompositeConfig:
    """Composite expressions and their exclusivity guards."""

    # Smile/frown/anger/disgust must stay below this for lower priorities to fire
    exclusivity_threshold: float = 0.1

    anger_brow_weight: float = 0.8
    anger_brow_threshold: float = 0.3
    anger_flare_threshold: float = 0.2
    anger_nostril_base: float = 0.018
    anger_nostril_gain: float = 50.0

    disgust_nostril_base: float = 0.012
    disgust_nostril_gain: float = 80.0
    disgust_lip_nose_base: float = 0.070
    disgust_lip_raise_gain: float = 60.0
    disgust_lip_threshold: float = 0.2
    disgust_flare_threshold: float = 0.3
    disgust_flare_weight: float = 0.7

    surprise_brow_threshold: float = 0.4
    surprise_jaw_threshold: float = 0.3
    surprise_brow_weight: float = 0.6
    surprise_jaw_weight: float = 0.4

    concentration_brow_threshold: float = 0.25
    concentration_smile_max: float = 0.05
    concentration_gain: float = 1.5
    concentration_offset: float = 0.2

    # Dynamic combinations
    asymmetry_threshold: float = 0.2
    concentrated_frown_brow: float = 0.3
    concentrated_frown_frown: float = 0.2
    confused_raise: float = 0.3
    smirk_threshold: float = 0.3
    brow_lowering_threshold: float = 0.2
    skeptical_smile: float = 0.2
    concerned_smile: float = 0.3


@dataclass
class ExpressionConfig:
    """Expression analysis configuration."""

    eyes: EyeConfig = field(default_factory=EyeConfig)
    mouth: MouthConfig = field(default_factory=MouthConfig)
    brows: BrowConfig = field(default_factory=BrowConfig)
    composites: CompositeConfig = field(default_factory=CompositeConfig)


@dataclass
class SmoothingConfig:
    """Exponential smoothing of per-frame channels (alpha = weight of the new sample)."""

    enabled: bool = True
    openness_alpha: float = 0.4  # new = 0.6 * prev + 0.4 * raw
    blink_alpha: float = 0.7  # faster, keeps blinks sharp


@dataclass
class CalibrationConfig:
    """Neutral-face baseline calibration."""

    enabled: bool = True
    required_frames: int = 30


@dataclass
class RetargetConfig:
    """How joint angles are distributed over bones."""

    neck_factor: float = 0.3
    arm_upper_share: float = 0.3  # lower arm gets the rest
    leg_upper_share: float = 0.4  # lower leg gets the rest
    spine_shares: Tuple[float, float, float] = (0.3, 0.4, 0.3)
    jaw_max_degrees: float = 20.0


@dataclass
class SchedulerConfig:
    """Animation scheduler configuration."""

    host_refresh_hz: float = 60.0
    join_timeout_s: float = 2.0
    # Overrides the plan's frame rate when set (never raises it)
    max_frame_rate: Optional[float] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt: str = "%H:%M:%S"


@dataclass
class Settings:
    """Top-level motionrig configuration."""

    plan: str = "free"

    expression: ExpressionConfig = field(default_factory=ExpressionConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    retarget: RetargetConfig = field(default_factory=RetargetConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """Build settings from a (possibly partial) nested dictionary."""
        return _build(cls, data or {}, "settings")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a plain nested dictionary."""
        def dataclass_to_dict(obj):
            if dataclasses.is_dataclass(obj):
                return {
                    k: dataclass_to_dict(v) for k, v in obj.__dict__.items()
                }
            elif isinstance(obj, tuple):
                return list(obj)
            return obj

        return dataclass_to_dict(self)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read configuration {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")

        return cls.from_dict(data)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        issues = []

        eyes = self.expression.eyes
        if not eyes.ear_closed < eyes.ear_normal < eyes.ear_wide_open:
            issues.append("EAR anchors must satisfy ear_closed < ear_normal < ear_wide_open")
        if not 0.0 <= eyes.openness_at_closed < eyes.openness_at_normal <= 1.0:
            issues.append("Openness anchors must satisfy 0 <= closed < normal <= 1")
        if eyes.wink_closed_threshold >= eyes.wink_open_threshold:
            issues.append("wink_closed_threshold should be below wink_open_threshold")

        mouth = self.expression.mouth
        if mouth.speaking_threshold <= mouth.partially_open_threshold:
            issues.append("speaking_threshold should exceed partially_open_threshold")

        for name in ("openness_alpha", "blink_alpha"):
            value = getattr(self.smoothing, name)
            if not 0.0 < value <= 1.0:
                issues.append(f"smoothing.{name} must be in (0, 1], got {value}")

        if self.calibration.required_frames < 1:
            issues.append("calibration.required_frames must be at least 1")

        shares = self.retarget.spine_shares
        if len(shares) != 3:
            issues.append("retarget.spine_shares needs exactly three values")
        elif abs(sum(shares) - 1.0) > 1e-6:
            issues.append(f"retarget.spine_shares should sum to 1.0, got {sum(shares):.3f}")
        for name in ("arm_upper_share", "leg_upper_share", "neck_factor"):
            value = getattr(self.retarget, name)
            if not 0.0 <= value <= 1.0:
                issues.append(f"retarget.{name} must be in [0, 1], got {value}")

        if self.scheduler.host_refresh_hz <= 0:
            issues.append("scheduler.host_refresh_hz must be positive")
        if self.scheduler.max_frame_rate is not None and self.scheduler.max_frame_rate <= 0:
            issues.append("scheduler.max_frame_rate must be positive when set")

        return issues


def _build(cls: Type[T], data: Dict[str, Any], section: str) -> T:
    """Recursively build a config dataclass, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")

    known = {f.name: f for f in dataclasses.fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")

    kwargs = {}
    for name, value in data.items():
        f = known[name]
        if dataclasses.is_dataclass(f.type):
            kwargs[name] = _build(f.type, value or {}, f"{section}.{name}")
        elif isinstance(value, list):
            kwargs[name] = tuple(value)
        else:
            kwargs[name] = value

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid section '{section}': {e}") from e
