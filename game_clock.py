# -*- coding: utf-8 -*-
########################
# game_clock.py
########################
# Purpose:
# - Deterministic playback clock for one session: IDLE -> COUNTDOWN -> RUNNING -> STOPPED | COMPLETE.
# - Clock time is the gameplay source of truth; it is never read back from audio playback.
#
# Design notes:
# - No Qt usage. Every method takes the caller's monotonic "now" so tests drive time by hand.
# - Clock time starts at 0 on the first RUNNING tick and advances by the delta between ticks.
# - A "now" earlier than the previous tick never moves the clock backwards.
#
########################
# Interfaces:
# Public enums:
# - class ClockState(enum.Enum): IDLE | COUNTDOWN | RUNNING | STOPPED | COMPLETE
#
# Public exceptions:
# - class ClockStateError(RuntimeError)
#
# Public classes:
# - class PlaybackClock
#   - __init__(countdown_seconds: int = 3)
#   - state -> ClockState
#   - clock_time_seconds -> float
#   - countdown_value -> Optional[int]
#   - is_running -> bool
#   - start(now: float) -> None
#   - tick(now: float) -> float
#   - time_at(now: float) -> float
#   - stop() -> None
#   - complete() -> None
#
########################

from __future__ import annotations

import enum
import math
from typing import Optional


class ClockState(enum.Enum):
    IDLE = "IDLE"
    COUNTDOWN = "COUNTDOWN"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    COMPLETE = "COMPLETE"


class ClockStateError(RuntimeError):
    """Raised when a clock transition is requested from a state that does not allow it."""


class PlaybackClock:
    def __init__(self, countdown_seconds: int = 3) -> None:
        self._countdown_seconds = max(0, int(countdown_seconds))
        self._state = ClockState.IDLE
        self._countdown_started: Optional[float] = None
        self._countdown_elapsed = 0.0
        self._clock_time_seconds = 0.0
        self._last_tick: Optional[float] = None

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def clock_time_seconds(self) -> float:
        return float(self._clock_time_seconds)

    @property
    def is_running(self) -> bool:
        return self._state is ClockState.RUNNING

    @property
    def is_finished(self) -> bool:
        return self._state in (ClockState.STOPPED, ClockState.COMPLETE)

    @property
    def countdown_value(self) -> Optional[int]:
        if self._state is not ClockState.COUNTDOWN:
            return None
        remaining = self._countdown_seconds - int(math.floor(self._countdown_elapsed))
        return max(1, remaining)

    def start(self, now: float) -> None:
        if self._state is not ClockState.IDLE:
            raise ClockStateError(f"Cannot start clock from state {self._state.value}")
        if self._countdown_seconds == 0:
            self._enter_running(float(now))
            return
        self._state = ClockState.COUNTDOWN
        self._countdown_started = float(now)
        self._countdown_elapsed = 0.0

    def _enter_running(self, now: float) -> None:
        self._state = ClockState.RUNNING
        self._clock_time_seconds = 0.0
        self._last_tick = now

    def tick(self, now: float) -> float:
        current = float(now)

        if self._state is ClockState.COUNTDOWN:
            assert self._countdown_started is not None
            self._countdown_elapsed = max(0.0, current - self._countdown_started)
            if self._countdown_elapsed >= self._countdown_seconds:
                self._enter_running(current)
            return self.clock_time_seconds

        if self._state is ClockState.RUNNING:
            assert self._last_tick is not None
            delta = current - self._last_tick
            if delta > 0.0:
                self._clock_time_seconds += delta
                self._last_tick = current

        return self.clock_time_seconds

    def time_at(self, now: float) -> float:
        if self._state is not ClockState.RUNNING or self._last_tick is None:
            return self.clock_time_seconds
        return self._clock_time_seconds + max(0.0, float(now) - self._last_tick)

    def stop(self) -> None:
        if self._state is ClockState.COMPLETE:
            return
        self._state = ClockState.STOPPED

    def complete(self) -> None:
        if self._state is not ClockState.RUNNING:
            raise ClockStateError(f"Cannot complete clock from state {self._state.value}")
        self._state = ClockState.COMPLETE


def _run_unit_tests() -> None:
    clock = PlaybackClock(countdown_seconds=3)
    clock.start(10.0)
    assert clock.countdown_value == 3
    clock.tick(11.2)
    assert clock.countdown_value == 2
    clock.tick(13.0)
    assert clock.is_running
    assert clock.clock_time_seconds == 0.0
    clock.tick(13.5)
    assert abs(clock.clock_time_seconds - 0.5) < 1e-9
    assert abs(clock.time_at(13.6) - 0.6) < 1e-9
    clock.stop()
    assert clock.state is ClockState.STOPPED


if __name__ == "__main__":
    _run_unit_tests()
    print("game_clock.py: ok")
