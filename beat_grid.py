# -*- coding: utf-8 -*-
########################
# beat_grid.py
########################
# Purpose:
# - Quarter-beat grid math shared by the onset selector (grid proximity) and the chart encoder (snapping).
#
# Design notes:
# - No Qt usage. Pure functions.
# - The grid is anchored at t=0; the tempo estimate carries no beat phase.
#
########################
# Interfaces:
# Public functions:
# - beats_at(time_seconds: float, tempo_bpm: float) -> float
# - nearest_grid_beat(beats: float, subdivision: int = 4) -> float
# - beat_grid_offset_beats(time_seconds: float, tempo_bpm: float) -> float
# - is_near_beat_grid(time_seconds: float, tempo_bpm: float, tolerance_beats: float = 0.1) -> bool
# - nearest_grid_time(time_seconds: float, tempo_bpm: float) -> float
#
########################

from __future__ import annotations


QUARTER_BEAT_SUBDIVISION = 4
DEFAULT_GRID_TOLERANCE_BEATS = 0.1


def beats_at(time_seconds: float, tempo_bpm: float) -> float:
    return float(time_seconds) * float(tempo_bpm) / 60.0


def nearest_grid_beat(beats: float, subdivision: int = QUARTER_BEAT_SUBDIVISION) -> float:
    return round(float(beats) * subdivision) / float(subdivision)


def beat_grid_offset_beats(time_seconds: float, tempo_bpm: float) -> float:
    beats = beats_at(time_seconds, tempo_bpm)
    return abs(beats - nearest_grid_beat(beats))


def is_near_beat_grid(
    time_seconds: float,
    tempo_bpm: float,
    tolerance_beats: float = DEFAULT_GRID_TOLERANCE_BEATS,
) -> bool:
    return beat_grid_offset_beats(time_seconds, tempo_bpm) < float(tolerance_beats)


def nearest_grid_time(time_seconds: float, tempo_bpm: float) -> float:
    beats = nearest_grid_beat(beats_at(time_seconds, tempo_bpm))
    return beats * 60.0 / float(tempo_bpm)
