import time
from collections.abc import Callable

from logly import logger
from PySide6.QtCore import QObject, QTimer, Signal


class WakeDetector(QObject):
    """Emits `woke` when the wall clock jumps further than a heartbeat allows.

    Qt has no portable suspend/resume notification, but timers do not run while the
    machine sleeps, so a heartbeat that finds much more wall time elapsed than it
    was armed for means the system was suspended in between.
    """

    woke = Signal(float)  # seconds spent asleep (approximate)

    def __init__(
        self,
        heartbeat_ms: int = 30_000,
        threshold_sec: float = 60.0,
        clock: Callable[[], float] = time.time,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._heartbeat_sec = heartbeat_ms / 1000
        self._threshold_sec = threshold_sec
        self._clock = clock
        self._last_tick = clock()
        self._timer = QTimer(self)
        self._timer.setInterval(heartbeat_ms)
        self._timer.timeout.connect(self._on_tick)

    def start(self) -> None:
        self._last_tick = self._clock()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def _on_tick(self) -> None:
        now = self._clock()
        gap = now - self._last_tick
        self._last_tick = now
        slept = gap - self._heartbeat_sec
        if slept > self._threshold_sec:
            logger.info(f"System woke from sleep (~{int(slept)}s)")
            self.woke.emit(slept)
