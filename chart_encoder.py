# -*- coding: utf-8 -*-
########################
# chart_encoder.py
########################
# Purpose:
# - Turn selected Candidates into spaced, lane-assigned, optionally quantized Notes.
# - Produces the immutable Chart handed to the playback engine.
#
# Design notes:
# - No Qt usage. Pure logic.
# - Randomness only comes from the injected random.Random, so a seed reproduces a chart exactly.
# - Lane follows the candidate's energy percentile within the whole candidate pool:
#     >= p90        UP
#     [p75, p90)    UP or RIGHT
#     [p50, p75)    RIGHT or DOWN
#     [p25, p50)    DOWN or LEFT
#     <  p25        LEFT
# - A lane equal to the previous note's lane is redrawn from the other three,
#   so consecutive notes never share a lane.
# - Quantization keeps the raw time whenever the snapped time would break spacing.
#
########################
# Interfaces:
# Public dataclasses:
# - EnergyPercentiles(p25: float, p50: float, p75: float, p90: float)
#   - from_energies(energies: Sequence[float]) -> EnergyPercentiles
#
# Public functions:
# - lane_choices_for_energy(energy: float, percentiles: EnergyPercentiles) -> tuple[Lane, ...]
# - choose_lane(energy, percentiles, previous_lane, rng) -> Lane
# - note_velocity(rms: float, energy: float) -> int
# - encode_chart(selected, pool, *, tempo_bpm, rng, ...) -> Chart
#
########################

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from analysis_models import Candidate
from beat_grid import nearest_grid_time
from gameplay_models import DEFAULT_MIN_GAP_SECONDS, DEFAULT_TIME_SIGNATURE, Chart, Lane, Note


@dataclass(frozen=True)
class EnergyPercentiles:
    p25: float
    p50: float
    p75: float
    p90: float

    @classmethod
    def from_energies(cls, energies: Sequence[float]) -> "EnergyPercentiles":
        if len(energies) == 0:
            return cls(p25=0.0, p50=0.0, p75=0.0, p90=0.0)
        values = np.percentile(np.asarray(energies, dtype=np.float64), [25.0, 50.0, 75.0, 90.0])
        return cls(p25=float(values[0]), p50=float(values[1]), p75=float(values[2]), p90=float(values[3]))


def lane_choices_for_energy(energy: float, percentiles: EnergyPercentiles) -> Tuple[Lane, ...]:
    if energy >= percentiles.p90:
        return (Lane.UP,)
    if energy >= percentiles.p75:
        return (Lane.UP, Lane.RIGHT)
    if energy >= percentiles.p50:
        return (Lane.RIGHT, Lane.DOWN)
    if energy >= percentiles.p25:
        return (Lane.DOWN, Lane.LEFT)
    return (Lane.LEFT,)


def choose_lane(
    energy: float,
    percentiles: EnergyPercentiles,
    previous_lane: Optional[Lane],
    rng: random.Random,
) -> Lane:
    choices = lane_choices_for_energy(energy, percentiles)
    lane = choices[0] if len(choices) == 1 else rng.choice(choices)
    if previous_lane is not None and lane == previous_lane:
        remaining = [item for item in Lane if item != previous_lane]
        lane = rng.choice(remaining)
    return lane


def note_velocity(rms: float, energy: float) -> int:
    value = int(round(float(rms) * float(energy) * 127.0))
    return max(0, min(127, value))


def _quantized_time(
    raw_time: float,
    *,
    tempo_bpm: int,
    max_shift_seconds: float,
    previous_time: Optional[float],
    min_gap_seconds: float,
) -> float:
    snapped = nearest_grid_time(raw_time, tempo_bpm)
    if abs(snapped - raw_time) >= max_shift_seconds or snapped < 0.0:
        return raw_time
    if previous_time is not None and snapped - previous_time < min_gap_seconds:
        return raw_time
    return snapped


def encode_chart(
    selected: Sequence[Candidate],
    pool: Sequence[Candidate],
    *,
    tempo_bpm: int,
    rng: random.Random,
    min_gap_seconds: float = DEFAULT_MIN_GAP_SECONDS,
    quantize: bool = True,
    quantize_max_shift_seconds: float = 0.1,
    note_duration_seconds: float = 0.1,
    duration_seconds: Optional[float] = None,
    seed: Optional[int] = None,
    generator_version: Optional[str] = None,
) -> Chart:
    percentiles = EnergyPercentiles.from_energies([candidate.energy for candidate in pool])
    ordered = sorted(selected, key=lambda item: item.time_seconds)

    notes: List[Note] = []
    last_accepted_time: Optional[float] = None
    previous_lane: Optional[Lane] = None

    for candidate in ordered:
        raw_time = float(candidate.time_seconds)
        if last_accepted_time is not None and raw_time - last_accepted_time < min_gap_seconds:
            continue

        lane = choose_lane(candidate.energy, percentiles, previous_lane, rng)

        note_time = raw_time
        if quantize:
            note_time = _quantized_time(
                raw_time,
                tempo_bpm=tempo_bpm,
                max_shift_seconds=float(quantize_max_shift_seconds),
                previous_time=last_accepted_time,
                min_gap_seconds=float(min_gap_seconds),
            )

        notes.append(
            Note(
                time_seconds=note_time,
                lane=lane,
                duration_seconds=float(note_duration_seconds),
                velocity=note_velocity(candidate.rms, candidate.energy),
            )
        )
        last_accepted_time = note_time
        previous_lane = lane

    return Chart(
        tempo_bpm=int(tempo_bpm),
        notes=tuple(notes),
        time_signature=DEFAULT_TIME_SIGNATURE,
        min_gap_seconds=float(min_gap_seconds),
        duration_seconds=duration_seconds,
        seed=seed,
        generator_version=generator_version,
    )
