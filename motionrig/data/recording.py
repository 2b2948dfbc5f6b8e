"""
Landmark recordings.

A recording is a JSON document holding detector output frame by frame:

    {
      "version": "1.0",
      "format": "motionrig_landmarks",
      "fps": 30.0,
      "frames": [
        {"timestamp": 0.0, "face": [[x, y, z], ...], "leftHand": [...],
         "rightHand": [...], "pose": [...]}
      ]
    }

Missing or null landmark sets mean "not detected" for that frame.
Recordings replay through the engine exactly like a live detector.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np

from motionrig.core.landmarks import LandmarkFrame
from motionrig.errors import MotionRigError

logger = logging.getLogger(__name__)

FORMAT_NAME = "motionrig_landmarks"
FORMAT_VERSION = "1.0"

# JSON key -> LandmarkFrame attribute
LANDMARK_KEYS = {
    "face": "face",
    "leftHand": "left_hand",
    "rightHand": "right_hand",
    "pose": "pose",
}


class RecordingError(MotionRigError):
    """A recording file could not be read or is malformed."""


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


@dataclass
class Recording:
    """An in-memory landmark recording."""

    frames: List[LandmarkFrame] = field(default_factory=list)
    fps: float = 30.0
    name: str = ""

    def __iter__(self) -> Iterator[LandmarkFrame]:
        return iter(self.frames)

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def duration(self) -> float:
        if not self.frames:
            return 0.0
        return self.frames[-1].timestamp - self.frames[0].timestamp

    def to_dict(self) -> Dict[str, Any]:
        frames = []
        for frame in self.frames:
            data: Dict[str, Any] = {"timestamp": frame.timestamp}
            for key, attr in LANDMARK_KEYS.items():
                points = getattr(frame, attr)
                if points is not None:
                    data[key] = points
            frames.append(data)
        return {
            "version": FORMAT_VERSION,
            "format": FORMAT_NAME,
            "name": self.name,
            "fps": self.fps,
            "frames": frames,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        if not isinstance(data, dict) or not isinstance(data.get("frames"), list):
            raise RecordingError("Recording must be an object with a 'frames' list")

        fps = float(data.get("fps") or 30.0)
        frames = []
        for index, item in enumerate(data["frames"]):
            if not isinstance(item, dict):
                raise RecordingError(f"Frame {index} is not an object")
            timestamp = item.get("timestamp")
            try:
                frame = LandmarkFrame(
                    timestamp=float(index / fps if timestamp is None else timestamp),
                    **{attr: item.get(key) for key, attr in LANDMARK_KEYS.items()},
                )
            except (TypeError, ValueError) as e:
                raise RecordingError(f"Frame {index} has invalid landmarks: {e}") from e
            frames.append(frame)

        return cls(frames=frames, fps=fps, name=str(data.get("name") or ""))


def load_recording(path: Path) -> Recording:
    """
    Load a landmark recording from a JSON file.

    Args:
        path: Recording file path

    Returns:
        Recording

    Raises:
        RecordingError: if the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RecordingError(f"Could not read recording {path}: {e}") from e

    recording = Recording.from_dict(data)
    if not recording.name:
        recording.name = path.stem
    logger.info(f"Loaded {len(recording)} frames from {path} ({recording.fps:g} fps)")
    return recording


def save_recording(recording: Recording, path: Path, pretty_print: bool = False) -> Path:
    """
    Write a landmark recording to a JSON file.

    Args:
        recording: Recording to save
        path: Output file path
        pretty_print: Indent the output

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        if pretty_print:
            json.dump(recording.to_dict(), f, indent=2, cls=NumpyEncoder)
        else:
            json.dump(recording.to_dict(), f, cls=NumpyEncoder)

    return path


class RecordingSource:
    """
    Plays a recording as a landmark detector.

    With realtime=True frames are released according to their
    timestamps; otherwise every read() returns the next frame at once.
    """

    def __init__(self, recording: Recording, realtime: bool = True, loop: bool = False):
        self.recording = recording
        self.realtime = realtime
        self.loop = loop
        self._index = 0
        self._start_time: Optional[float] = None
        self.is_open = False

    def open(self) -> None:
        self._index = 0
        self._start_time = time.perf_counter()
        self.is_open = True

    def read(self) -> Optional[LandmarkFrame]:
        if not self.is_open or self.exhausted:
            return None

        frames = self.recording.frames
        frame = frames[self._index]
        if self.realtime:
            elapsed = time.perf_counter() - self._start_time
            if frame.timestamp - frames[0].timestamp > elapsed:
                return None

        self._index += 1
        if self.loop and self._index >= len(frames):
            self._index = 0
            self._start_time = time.perf_counter()
        return frame

    def close(self) -> None:
        self.is_open = False

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self.recording.frames)
