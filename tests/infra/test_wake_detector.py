from brewtray.infra.wake_detector import WakeDetector


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_regular_heartbeat_does_not_emit(qapp) -> None:
    clock = _Clock()
    detector = WakeDetector(heartbeat_ms=30_000, threshold_sec=60, clock=clock)
    woke: list[float] = []
    detector.woke.connect(woke.append)

    clock.now += 31
    detector._on_tick()
    clock.now += 45
    detector._on_tick()

    assert woke == []


def test_large_wall_clock_gap_emits_woke(qapp) -> None:
    clock = _Clock()
    detector = WakeDetector(heartbeat_ms=30_000, threshold_sec=60, clock=clock)
    woke: list[float] = []
    detector.woke.connect(woke.append)

    clock.now += 30 + 3600
    detector._on_tick()
    clock.now += 30
    detector._on_tick()

    assert woke == [3600.0]
