"""
Normalized signal bundles produced by the analyzers.

Bundles are recreated every frame and handed out read-only to the
retargeting engine and to any telemetry/debug display.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from motionrig.core.calibration import CalibrationState


class MouthShape(Enum):
    """Priority-ordered mouth shape classification."""
    CLOSED = "closed"
    PARTIALLY_OPEN = "partially_open"
    OPEN = "open"
    SMILE = "smile"
    FROWN = "frown"


class GestureType(Enum):
    """Hand gesture classification."""
    NONE = "none"
    OPEN = "open"
    FIST = "fist"
    POINT = "point"
    PEACE = "peace"
    PARTIAL = "partial"


class Posture(Enum):
    """Upper-body posture classification."""
    UNKNOWN = "unknown"
    UPRIGHT = "upright"
    LEANING_LEFT = "leaning_left"
    LEANING_RIGHT = "leaning_right"
    NEUTRAL = "neutral"


@dataclass
class EyeState:
    """State of a single eye."""
    openness: float = 0.0
    blink: float = 0.0  # eyelid closure channel, 1 - openness with faster smoothing
    gaze_x: float = 0.0
    gaze_y: float = 0.0
    blinking: bool = False
    winking: bool = False
    squinting: bool = False


@dataclass
class EyesState:
    """Both eyes plus the symmetric classification flags."""
    left: EyeState = field(default_factory=EyeState)
    right: EyeState = field(default_factory=EyeState)
    left_wink: bool = False
    right_wink: bool = False
    double_wink: bool = False
    blinking: bool = False
    squinting: bool = False
    eye_roll: bool = False

    @property
    def winking(self) -> bool:
        return self.left_wink or self.right_wink


@dataclass
class MouthState:
    openness: float = 0.0
    shape: MouthShape = MouthShape.CLOSED
    speaking: bool = False
    lip_sync: float = 0.0


@dataclass
class HeadRotation:
    """Head rotation in degrees: x = pitch, y = yaw, z = roll."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class BrowDetails:
    left_raise: float = 0.0
    right_raise: float = 0.0
    left_lower: float = 0.0
    right_lower: float = 0.0
    asymmetry: float = 0.0


@dataclass
class MouthDetails:
    left_smirk: float = 0.0
    right_smirk: float = 0.0
    left_frown: float = 0.0
    right_frown: float = 0.0
    pursed: float = 0.0
    asymmetric_smile: float = 0.0
    asymmetric_frown: float = 0.0


@dataclass
class DynamicCombinations:
    """Combined expression flags (0 or 1)."""
    concentrated_frown: float = 0.0
    confused_expression: float = 0.0
    smirking_concentration: float = 0.0
    skeptical_look: float = 0.0
    concerned_smile: float = 0.0


@dataclass
class MicroExpressions:
    cheek_raise: float = 0.0
    lip_purse: float = 0.0
    nose_wrinkle: float = 0.0
    dimpler: float = 0.0
    lip_corner_depressor: float = 0.0
    chin_raise: float = 0.0
    nostril_flare: float = 0.0
    lip_suck: float = 0.0


PRIMARY_SIGNALS = (
    "smile",
    "anger",
    "disgust",
    "surprise",
    "frown",
    "eyebrow_raise",
    "jaw_drop",
    "concentration",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _export(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dataclass_fields__"):
        return {_camel(k): _export(v) for k, v in obj.__dict__.items()}
    if isinstance(obj, dict):
        return {k: _export(v) for k, v in obj.items()}
    return obj


@dataclass
class ExpressionSignal:
    """
    Complete facial signal bundle for one frame.

    Primary signals are in [0, 1]. Smile, frown, anger, disgust and
    surprise are mutually exclusive: at most one of them is nonzero.
    """

    smile: float = 0.0
    anger: float = 0.0
    disgust: float = 0.0
    surprise: float = 0.0
    frown: float = 0.0
    eyebrow_raise: float = 0.0
    jaw_drop: float = 0.0
    concentration: float = 0.0

    brow: BrowDetails = field(default_factory=BrowDetails)
    mouth_details: MouthDetails = field(default_factory=MouthDetails)
    combinations: DynamicCombinations = field(default_factory=DynamicCombinations)
    micro: MicroExpressions = field(default_factory=MicroExpressions)

    eyes: EyesState = field(default_factory=EyesState)
    mouth: MouthState = field(default_factory=MouthState)
    head: HeadRotation = field(default_factory=HeadRotation)

    glasses_detected: bool = False

    @classmethod
    def zero(cls) -> "ExpressionSignal":
        """All-zero bundle, emitted for frames without a usable face."""
        return cls()

    @property
    def primary(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in PRIMARY_SIGNALS}

    @property
    def dominant(self) -> str:
        """Name of the strongest primary signal, or 'neutral'."""
        name, value = max(self.primary.items(), key=lambda item: item[1])
        return name if value > 0 else "neutral"

    def to_dict(self) -> Dict[str, Any]:
        """camelCase telemetry view."""
        return _export(self)


@dataclass
class HandGesture:
    detected: bool = False
    landmark_count: int = 0
    gesture: GestureType = GestureType.NONE
    confidence: float = 0.0
    # Per-joint flexion in degrees, keyed "index1".."pinky3"
    finger_curls: Dict[str, float] = field(default_factory=dict)


@dataclass
class PostureState:
    posture: Posture = Posture.UNKNOWN
    confidence: float = 0.0
    joint_angles: Dict[str, float] = field(default_factory=dict)


@dataclass
class GestureSignal:
    """Hand gestures and body posture for one frame."""

    left_hand: HandGesture = field(default_factory=HandGesture)
    right_hand: HandGesture = field(default_factory=HandGesture)
    body: PostureState = field(default_factory=PostureState)

    def to_dict(self) -> Dict[str, Any]:
        return _export(self)


@dataclass(frozen=True)
class SignalBundle:
    """Everything published for one tick; read-only for UI and telemetry."""

    expression: ExpressionSignal = field(default_factory=ExpressionSignal)
    gesture: GestureSignal = field(default_factory=GestureSignal)
    calibration: Optional[CalibrationState] = None
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        calibration = None
        if self.calibration is not None:
            calibration = {
                "framesCollected": self.calibration.frames_collected,
                "requiredFrames": self.calibration.required_frames,
                "isComplete": self.calibration.is_complete,
            }
        return {
            "timestamp": self.timestamp,
            "expression": self.expression.to_dict(),
            "gesture": self.gesture.to_dict(),
            "calibration": calibration,
        }
