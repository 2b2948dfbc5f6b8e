"""
Motion-to-rig engine.

Orchestrates all components to provide the complete retargeting pipeline:
- Landmark intake from an external detector (single-slot handoff)
- Baseline calibration at the start of each tracking session
- Expression and gesture analysis
- Capability-gated binding of the attached asset
- Frame-rate gated retargeting onto the scene graph
"""

import logging
from threading import Event, Lock, Thread
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from motionrig.config.settings import Settings
from motionrig.core.calibration import CalibrationState
from motionrig.core.expression import ExpressionAnalyzer
from motionrig.core.gesture import GestureAnalyzer
from motionrig.core.landmarks import LandmarkFrame
from motionrig.core.session import TrackingSession
from motionrig.core.signals import ExpressionSignal, SignalBundle
from motionrig.errors import MalformedLandmarks, SceneUnavailable
from motionrig.pipeline.scheduler import AnimationScheduler
from motionrig.rig.capability import BONE_PRIORITY, MORPH_PRIORITY, CapabilityBudget, CapabilityGate
from motionrig.rig.resolver import BoneMorphResolver, RigBinding
from motionrig.rig.retarget import BONE_GROUPS, ApplyReport, RetargetingEngine, morph_groups
from motionrig.rig.scene import has_bones

logger = logging.getLogger(__name__)


@runtime_checkable
class LandmarkSource(Protocol):
    """External landmark detector."""

    def open(self) -> None:
        ...

    def read(self) -> Optional[LandmarkFrame]:
        """Next frame, or None when none is available yet."""
        ...

    def close(self) -> None:
        ...


class MotionRigEngine:
    """
    Drives an attached avatar from a landmark stream.

    Usage:
        engine = MotionRigEngine(Settings(plan="spartan"))
        engine.attach_scene(scene, "avatar-42")
        with engine:
            engine.start(detector)
            ...
        # or, synchronously:
        bundles = engine.process_frames(recording)

    Attributes:
        budget: Capability budget of the session's plan
        binding: Channel bindings of the attached asset
        session: Tracking session state, None while stopped
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        budget: Optional[CapabilityBudget] = None,
    ):
        self.settings = settings or Settings()
        self.gate = CapabilityGate()
        self.budget = budget or self.gate.allocate(self.settings.plan)
        for warning in self.gate.validate_budget(self.budget):
            logger.warning(f"Capability budget: {warning}")

        self.expression_analyzer = ExpressionAnalyzer(self.settings.expression, self.settings.smoothing)
        self.gesture_analyzer = GestureAnalyzer()
        self.resolver = BoneMorphResolver()
        self.retargeter = RetargetingEngine(self.budget, self.settings.retarget, self.settings.expression.eyes)

        frame_rate = self.budget.max_frame_rate
        if self.settings.scheduler.max_frame_rate is not None:
            frame_rate = min(frame_rate, self.settings.scheduler.max_frame_rate)
        self.scheduler = AnimationScheduler(
            self.tick,
            max_frame_rate=frame_rate,
            host_refresh_hz=self.settings.scheduler.host_refresh_hz,
            join_timeout_s=self.settings.scheduler.join_timeout_s,
        )

        self.session: Optional[TrackingSession] = None
        self.binding: Optional[RigBinding] = None
        self.placeholders: Dict[str, object] = {}
        self.last_report: Optional[ApplyReport] = None

        self._pending: Optional[LandmarkFrame] = None
        self._pending_lock = Lock()
        self._latest: Optional[SignalBundle] = None

        self._source: Optional[LandmarkSource] = None
        self._capture_thread: Optional[Thread] = None
        self._stop_event = Event()
        self._is_running = False

    # ------------------------------------------------------------------
    # Scene lifecycle
    # ------------------------------------------------------------------

    def attach_scene(self, scene, asset_id: Optional[str] = None) -> RigBinding:
        """
        Bind a newly loaded asset.

        Placeholder bones are synthesized when the asset has no rig.

        Args:
            scene: Scene root of the asset
            asset_id: Asset identifier used for caching

        Returns:
            RigBinding of the asset

        Raises:
            SceneUnavailable: if scene is None
        """
        if scene is None:
            raise SceneUnavailable("attach_scene() needs a scene")

        if self.binding is not None:
            self.detach_scene()

        asset_id = asset_id or getattr(scene, "name", "") or "asset"
        self.resolver.invalidate(asset_id)

        self.placeholders = {}
        if not has_bones(scene):
            self.placeholders = self.gate.synthesize_placeholder_bones(scene, self.budget)

        features = self.budget.features
        bone_channels = list(self.resolver.claim_bones(
            scene,
            [name for name in BONE_PRIORITY if all(getattr(features, group) for group in BONE_GROUPS[name])],
            asset_id,
        ))
        morph_channels = [
            name for name in MORPH_PRIORITY
            if all(getattr(features, group) for group in morph_groups(name))
            and self.resolver.resolve_morph(scene, name, asset_id) is not None
        ]

        self.binding = self.resolver.bind(
            scene,
            self.gate.select_bones(bone_channels, self.budget),
            self.gate.select_morphs(morph_channels, self.budget),
            asset_id,
        )
        return self.binding

    def detach_scene(self):
        """Release the attached asset; ticks become no-ops until the next attach."""
        if self.binding is None:
            return
        self.binding.detach()
        self.resolver.invalidate(self.binding.asset_id)
        self.binding = None
        self.placeholders = {}

    # ------------------------------------------------------------------
    # Frame intake and ticking
    # ------------------------------------------------------------------

    def submit(self, frame: LandmarkFrame):
        """Detector callback; a newer frame replaces one not yet consumed."""
        with self._pending_lock:
            if self._pending is not None and self.session is not None:
                self.session.frames_dropped += 1
            self._pending = frame

    def tick(self) -> Optional[SignalBundle]:
        """
        Consume the pending frame and animate the scene.

        Returns:
            Published SignalBundle, or None if there was no frame or the
            frame went to calibration
        """
        with self._pending_lock:
            frame, self._pending = self._pending, None
        if frame is None:
            return None

        if self.session is None:
            self.session = self._create_session()
        session = self.session
        session.frames_seen += 1

        if session.calibrating:
            try:
                session.calibrator.accumulate(frame)
            except MalformedLandmarks as e:
                logger.debug(f"Calibration frame rejected: {e}")
            return None

        try:
            expression = self.expression_analyzer.analyze(frame, session.baseline, session.smoother)
            gesture = self.gesture_analyzer.analyze(frame)
            bundle = SignalBundle(expression, gesture, session.calibration, frame.timestamp)
        except MalformedLandmarks as e:
            logger.debug(f"Malformed frame at {frame.timestamp:.3f}s: {e}")
            bundle = SignalBundle(ExpressionSignal.zero(), calibration=session.calibration, timestamp=frame.timestamp)

        self._latest = bundle

        try:
            if self.binding is None:
                raise SceneUnavailable("No scene attached")
            self.last_report = self.retargeter.apply(bundle, self.binding)
        except SceneUnavailable as e:
            logger.debug(f"Tick not applied: {e}")

        return bundle

    @property
    def latest(self) -> Optional[SignalBundle]:
        """Most recently published signal bundle."""
        return self._latest

    @property
    def calibration(self) -> Optional[CalibrationState]:
        return self.session.calibration if self.session is not None else None

    # ------------------------------------------------------------------
    # Tracking lifecycle
    # ------------------------------------------------------------------

    def start(self, source: Optional[LandmarkSource] = None):
        """
        Start a tracking session.

        Args:
            source: Optional detector to pull frames from on a capture
                thread; without one, frames are pushed through submit()
        """
        if self._is_running:
            self.stop()

        self.session = self._create_session()
        with self._pending_lock:
            self._pending = None
        self._stop_event.clear()

        if source is not None:
            self._source = source
            try:
                source.open()
            except Exception:
                self._release_source()
                self.session = None
                raise
            self._capture_thread = Thread(target=self._capture_loop, name="motionrig-capture", daemon=True)
            self._capture_thread.start()

        self.scheduler.reset()
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Tracking started ({self.scheduler.max_frame_rate:g} fps budget)")

    def stop(self):
        """Stop ticking, release the detector and destroy the session."""
        try:
            self.scheduler.stop()
            self._stop_event.set()
            if self._capture_thread is not None:
                self._capture_thread.join(timeout=self.settings.scheduler.join_timeout_s)
                self._capture_thread = None
        finally:
            self._release_source()
            with self._pending_lock:
                self._pending = None
            if self._is_running:
                logger.info("Tracking stopped")
            self.session = None
            self._is_running = False

    def process_frames(self, frames: Iterable[LandmarkFrame]) -> List[SignalBundle]:
        """
        Synchronously push every frame through the pipeline.

        Args:
            frames: Landmark frames in capture order

        Returns:
            Bundles published after calibration completed
        """
        if self.session is None:
            self.session = self._create_session()

        bundles = []
        for frame in frames:
            self.submit(frame)
            bundle = self.tick()
            if bundle is not None:
                bundles.append(bundle)
        return bundles

    @property
    def is_running(self) -> bool:
        return self._is_running

    def _create_session(self) -> TrackingSession:
        return TrackingSession.create(self.settings.calibration, self.settings.smoothing)

    def _capture_loop(self):
        source = self._source
        try:
            while not self._stop_event.is_set():
                frame = source.read()
                if frame is None:
                    if getattr(source, "exhausted", False):
                        logger.info("Landmark source exhausted")
                        break
                    self._stop_event.wait(0.005)
                    continue
                self.submit(frame)
        except Exception:
            logger.exception("Landmark source failed")

    def _release_source(self):
        source, self._source = self._source, None
        if source is not None:
            source.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()
        return False
