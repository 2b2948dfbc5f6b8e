"""
Landmark recording storage and playback.
"""

from motionrig.data.recording import (
    Recording,
    RecordingError,
    RecordingSource,
    load_recording,
    save_recording,
)

__all__ = [
    "Recording",
    "RecordingError",
    "RecordingSource",
    "load_recording",
    "save_recording",
]
