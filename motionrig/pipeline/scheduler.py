"""
Frame-rate gated animation scheduler.

The rendering host calls on_frame() once per display refresh. A tick
only runs when at least one frame interval of the plan's maximum frame
rate has elapsed; refreshes in between are dropped, never queued.

Without a host, start() runs a background driver thread that plays the
host's per-frame callback at a fixed refresh rate.
"""

import logging
import threading
import time
from threading import Event, Thread
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AnimationScheduler:
    """
    Gates ticks to the budget frame rate.

    Exactly one tick runs at a time: a refresh that arrives while a tick
    is still executing is counted as skipped.

    Example:
        >>> scheduler = AnimationScheduler(engine.tick, max_frame_rate=30)
        >>> scheduler.on_frame(now_ms)  # from the host's render loop
    """

    def __init__(
        self,
        tick: Callable[[], object],
        max_frame_rate: float,
        host_refresh_hz: float = 60.0,
        join_timeout_s: float = 2.0,
    ):
        if max_frame_rate <= 0:
            raise ValueError(f"max_frame_rate must be positive, got {max_frame_rate}")

        self._tick = tick
        self.max_frame_rate = max_frame_rate
        self.host_refresh_hz = host_refresh_hz
        self.join_timeout_s = join_timeout_s

        self._lock = threading.Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

        self._last_tick_ms: Optional[float] = None
        self._first_tick_ms: Optional[float] = None
        self.ticks_run = 0
        self.ticks_skipped = 0

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.max_frame_rate

    def on_frame(self, now_ms: Optional[float] = None) -> bool:
        """
        Host refresh callback.

        Args:
            now_ms: Host timestamp in milliseconds; defaults to a monotonic clock

        Returns:
            True if a tick ran
        """
        if now_ms is None:
            now_ms = time.perf_counter() * 1000.0

        if not self._lock.acquire(blocking=False):
            self.ticks_skipped += 1
            logger.debug("Frame skipped: previous tick still running")
            return False

        try:
            if self._last_tick_ms is not None and now_ms - self._last_tick_ms < self.frame_interval_ms:
                self.ticks_skipped += 1
                return False

            self._last_tick_ms = now_ms
            if self._first_tick_ms is None:
                self._first_tick_ms = now_ms
            self.ticks_run += 1
            self._tick()
            return True
        finally:
            self._lock.release()

    @property
    def effective_rate(self) -> float:
        """Observed ticks per second between the first and the latest tick."""
        if self.ticks_run < 2 or self._first_tick_ms is None:
            return 0.0
        elapsed_ms = self._last_tick_ms - self._first_tick_ms
        if elapsed_ms <= 0:
            return 0.0
        return (self.ticks_run - 1) * 1000.0 / elapsed_ms

    def start(self):
        """Start the background driver thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = Thread(target=self._run, name="motionrig-scheduler", daemon=True)
        self._thread.start()
        logger.debug(
            f"Scheduler started at {self.max_frame_rate:g} fps "
            f"(host refresh {self.host_refresh_hz:g} Hz)"
        )

    def stop(self):
        """Stop the driver thread and wait for the running tick to finish."""
        self._stop_event.set()

        if self._thread is not None:
            self._thread.join(timeout=self.join_timeout_s)
            if self._thread.is_alive():
                logger.warning("Scheduler thread did not stop within timeout")
            self._thread = None

    def reset(self):
        """Clear timing state and statistics."""
        self._last_tick_ms = None
        self._first_tick_ms = None
        self.ticks_run = 0
        self.ticks_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        period = 1.0 / self.host_refresh_hz
        while not self._stop_event.is_set():
            try:
                self.on_frame()
            except Exception:
                logger.exception("Animation tick failed")
            self._stop_event.wait(period)
