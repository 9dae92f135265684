# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Compare externally reported audio playback positions with the game clock.
# - Converts clock time into song time by applying a configurable AV offset.
#
# Design notes:
# - The game clock stays the gameplay source of truth. This model only observes and reports drift.
# - No Qt usage. Keep this module pure and deterministic.
# - Drift is playback_time - clock_time; positive means audio is ahead of the notes.
#
########################
# Interfaces:
# Public dataclasses:
# - TimingSnapshot(clock_time_seconds: float, av_offset_seconds: float, song_time_seconds: float,
#                  last_drift_seconds: Optional[float], mean_drift_seconds: Optional[float], sample_count: int)
#
# Public classes:
# - class TimingModel
#   - __init__(av_offset_seconds: float = 0.0, history_size: int = 32)
#   - av_offset_seconds() -> float
#   - set_av_offset_seconds(av_offset_seconds: float) -> None
#   - song_time_seconds(clock_time_seconds: float) -> float
#   - record_playback_position(*, clock_time_seconds: float, playback_time_seconds: float) -> float
#   - last_drift_seconds() -> Optional[float]
#   - mean_drift_seconds() -> Optional[float]
#   - snapshot(clock_time_seconds: float) -> TimingSnapshot
#   - reset() -> None
#
# Inputs:
# - clock_time_seconds from PlaybackClock, playback_time_seconds from the audio backend.
#
# Outputs:
# - Drift figures for logging and the AV offset applied for display.
#
########################

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional


@dataclass(frozen=True)
class TimingSnapshot:
    clock_time_seconds: float
    av_offset_seconds: float
    song_time_seconds: float
    last_drift_seconds: Optional[float]
    mean_drift_seconds: Optional[float]
    sample_count: int


class TimingModel:
    def __init__(self, av_offset_seconds: float = 0.0, history_size: int = 32) -> None:
        self._av_offset_seconds = float(av_offset_seconds)
        self._drifts: Deque[float] = deque(maxlen=max(1, int(history_size)))
        self._sample_count = 0

    def av_offset_seconds(self) -> float:
        return float(self._av_offset_seconds)

    def set_av_offset_seconds(self, av_offset_seconds: float) -> None:
        self._av_offset_seconds = float(av_offset_seconds)

    def song_time_seconds(self, clock_time_seconds: float) -> float:
        # AV offset may be negative, so song time may be negative near start.
        return float(clock_time_seconds) + float(self._av_offset_seconds)

    def record_playback_position(self, *, clock_time_seconds: float, playback_time_seconds: float) -> float:
        drift = max(0.0, float(playback_time_seconds)) - float(clock_time_seconds)
        self._drifts.append(drift)
        self._sample_count += 1
        return drift

    def last_drift_seconds(self) -> Optional[float]:
        if not self._drifts:
            return None
        return float(self._drifts[-1])

    def mean_drift_seconds(self) -> Optional[float]:
        if not self._drifts:
            return None
        return float(sum(self._drifts) / len(self._drifts))

    def reset(self) -> None:
        self._drifts.clear()
        self._sample_count = 0

    def snapshot(self, clock_time_seconds: float) -> TimingSnapshot:
        return TimingSnapshot(
            clock_time_seconds=float(clock_time_seconds),
            av_offset_seconds=self.av_offset_seconds(),
            song_time_seconds=self.song_time_seconds(clock_time_seconds),
            last_drift_seconds=self.last_drift_seconds(),
            mean_drift_seconds=self.mean_drift_seconds(),
            sample_count=int(self._sample_count),
        )


def _run_unit_tests() -> None:
    model = TimingModel(av_offset_seconds=-0.2)
    assert abs(model.song_time_seconds(0.0) - (-0.2)) < 1e-9
    assert model.last_drift_seconds() is None

    model.record_playback_position(clock_time_seconds=1.0, playback_time_seconds=1.03)
    model.record_playback_position(clock_time_seconds=2.0, playback_time_seconds=2.01)
    assert abs(model.last_drift_seconds() - 0.01) < 1e-9
    assert abs(model.mean_drift_seconds() - 0.02) < 1e-9

    snap = model.snapshot(1.5)
    assert abs(snap.song_time_seconds - 1.3) < 1e-9
    assert snap.sample_count == 2


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
