"""Configuration module for motionrig."""

from motionrig.config.settings import (
    Settings,
    ExpressionConfig,
    EyeConfig,
    MouthConfig,
    BrowConfig,
    CompositeConfig,
    SmoothingConfig,
    CalibrationConfig,
    RetargetConfig,
    SchedulerConfig,
    LoggingConfig,
)

__all__ = [
    "Settings",
    "ExpressionConfig",
    "EyeConfig",
    "MouthConfig",
    "BrowConfig",
    "CompositeConfig",
    "SmoothingConfig",
    "CalibrationConfig",
    "RetargetConfig",
    "SchedulerConfig",
    "LoggingConfig",
]
