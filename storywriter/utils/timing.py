"""Wall-clock timing helpers shared by the task graph and the agents."""

import time
from typing import Optional


def now() -> float:
    """Monotonic timestamp in seconds."""
    return time.perf_counter()


def elapsed_ms(started_at: float, finished_at: Optional[float] = None) -> int:
    """
    Whole milliseconds between two timestamps taken with now().

    Durations are floored so that the sum of disjoint intervals never exceeds
    the duration of an interval containing them.
    """
    if finished_at is None:
        finished_at = now()
    return max(0, int((finished_at - started_at) * 1000))


class Stopwatch:
    """
    Measure one span of work.

    Usage:
        with Stopwatch() as sw:
            do_work()
        sw.duration_ms
    """

    def __init__(self):
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    def start(self) -> "Stopwatch":
        self.started_at = now()
        self.finished_at = None
        return self

    def stop(self) -> int:
        if self.started_at is None:
            raise RuntimeError("Stopwatch was never started")
        self.finished_at = now()
        return self.duration_ms

    @property
    def duration_ms(self) -> int:
        if self.started_at is None:
            return 0
        return elapsed_ms(self.started_at, self.finished_at)

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
