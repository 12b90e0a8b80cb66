from __future__ import annotations


class FixedStepClock:
    """Turns variable host frame time into a whole number of fixed steps.

    Time that would need more than ``max_steps_per_advance`` steps is dropped,
    so a slow host loses wall-clock time instead of queueing simulation work.
    """

    def __init__(self, dt: float, max_steps_per_advance: int = 5):
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        if max_steps_per_advance < 1:
            raise ValueError("max_steps_per_advance must be at least 1")
        self._dt = dt
        self._max_steps = max_steps_per_advance
        self._accumulator = 0.0
        self.dropped_seconds = 0.0

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def pending(self) -> float:
        return self._accumulator

    def reset(self) -> None:
        self._accumulator = 0.0
        self.dropped_seconds = 0.0

    def advance(self, elapsed: float) -> int:
        if elapsed < 0.0:
            raise ValueError(f"elapsed time must be non-negative, got {elapsed}")
        self._accumulator += elapsed
        steps = int(self._accumulator // self._dt)
        if steps > self._max_steps:
            self.dropped_seconds += (steps - self._max_steps) * self._dt
            steps = self._max_steps
            self._accumulator = self._accumulator % self._dt
        else:
            self._accumulator -= steps * self._dt
        return steps
