# -*- coding: utf-8 -*-
########################
# onset_selector.py
########################
# Purpose:
# - Pick musically salient instants (Candidates) out of a stream of FeatureFrames.
# - Stage 1 (streaming): adaptive energy threshold over a ring buffer plus an RMS gate.
# - Stage 2 (after the pass): keep candidates that are locally prominent or sit on the beat grid.
#
# Design notes:
# - No Qt usage. Pure analysis logic.
# - Callback driven: the generator pushes frames through on_frame() and calls finish() once.
# - The first and last pooled candidates are never kept; they lack a neighbour on one side.
# - "Strong" means rms > 0.2 or energy > 1.3x the mean energy of the whole candidate pool.
#
########################
# Interfaces:
# Public dataclasses:
# - SelectionResult(pool: tuple[Candidate, ...], selected: tuple[Candidate, ...], pool_mean_energy: float)
#
# Public classes:
# - class OnsetSelector
#   - __init__(*, history_size=50, threshold_multiplier=1.5, min_rms=0.15)
#   - on_frame(frame: FeatureFrame) -> Optional[Candidate]
#   - finish(tempo_bpm: float) -> SelectionResult
#
# Public functions:
# - filter_candidates(pool: Sequence[Candidate], tempo_bpm: float) -> tuple[list[Candidate], float]
#
########################

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple

from analysis_models import Candidate, FeatureFrame
from beat_grid import is_near_beat_grid


PROMINENCE_RATIO = 1.1
STRONG_RMS = 0.2
STRONG_ENERGY_RATIO = 1.3


@dataclass(frozen=True)
class SelectionResult:
    pool: Tuple[Candidate, ...]
    selected: Tuple[Candidate, ...]
    pool_mean_energy: float


def _is_strong(candidate: Candidate, pool_mean_energy: float) -> bool:
    return candidate.rms > STRONG_RMS or candidate.energy > pool_mean_energy * STRONG_ENERGY_RATIO


def _is_prominent(candidate: Candidate, previous: Candidate, following: Candidate) -> bool:
    return (
        candidate.energy > previous.energy * PROMINENCE_RATIO
        and candidate.energy > following.energy * PROMINENCE_RATIO
    )


def filter_candidates(pool: Sequence[Candidate], tempo_bpm: float) -> Tuple[List[Candidate], float]:
    if not pool:
        return [], 0.0

    pool_mean_energy = sum(candidate.energy for candidate in pool) / float(len(pool))
    selected: List[Candidate] = []

    for index in range(1, len(pool) - 1):
        candidate = pool[index]
        if not _is_strong(candidate, pool_mean_energy):
            continue
        if _is_prominent(candidate, pool[index - 1], pool[index + 1]):
            selected.append(candidate)
        elif is_near_beat_grid(candidate.time_seconds, tempo_bpm):
            selected.append(candidate)

    return selected, pool_mean_energy


class OnsetSelector:
    def __init__(
        self,
        *,
        history_size: int = 50,
        threshold_multiplier: float = 1.5,
        min_rms: float = 0.15,
    ) -> None:
        self._history: Deque[float] = deque(maxlen=int(history_size))
        self._history_sum = 0.0
        self._threshold_multiplier = float(threshold_multiplier)
        self._min_rms = float(min_rms)
        self._pool: List[Candidate] = []
        self._frames_seen = 0

    @property
    def frames_seen(self) -> int:
        return self._frames_seen

    def _push_energy(self, energy: float) -> float:
        if len(self._history) == self._history.maxlen:
            self._history_sum -= self._history[0]
        self._history.append(energy)
        self._history_sum += energy
        # Re-sum occasionally so float drift from the running total never accumulates.
        if self._frames_seen % 1024 == 0:
            self._history_sum = float(sum(self._history))
        return self._history_sum / float(len(self._history))

    def on_frame(self, frame: FeatureFrame) -> Optional[Candidate]:
        self._frames_seen += 1
        mean_energy = self._push_energy(float(frame.energy))
        threshold = mean_energy * self._threshold_multiplier

        if frame.energy > threshold and frame.rms > self._min_rms:
            candidate = Candidate(frame=frame, threshold=threshold)
            self._pool.append(candidate)
            return candidate
        return None

    def finish(self, tempo_bpm: float) -> SelectionResult:
        selected, pool_mean_energy = filter_candidates(self._pool, tempo_bpm)
        return SelectionResult(
            pool=tuple(self._pool),
            selected=tuple(selected),
            pool_mean_energy=float(pool_mean_energy),
        )
