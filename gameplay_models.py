# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core gameplay data models shared by the chart generator and the playback engine.
# - Defines Lane, Note, the immutable Chart, and the per-session value types
#   (HitEffect, HitOutcome, NotePosition, RenderState).
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain dataclasses.
# - Chart validates its invariants at construction; an invalid Chart cannot exist.
#
########################
# Interfaces:
# Public enums:
# - class Lane(enum.IntEnum): LEFT=0 | UP=1 | DOWN=2 | RIGHT=3
# - class Judgement(enum.Enum): PERFECT | GOOD | MISS | IGNORED
#
# Public exceptions:
# - class ChartValidationError(ValueError)
#
# Public dataclasses:
# - Note(time_seconds: float, lane: Lane, duration_seconds: float, velocity: int)
# - Chart(tempo_bpm: int, notes: tuple[Note, ...], time_signature: tuple[int, int], ...)
# - InputEvent(time_seconds: float, lane: Lane)
# - HitEffect(lane: Lane, start_time_seconds: float, judgement: Optional[Judgement], ttl_seconds: float)
# - HitOutcome(lane, judgement, score_delta, distance, note, time_seconds)
# - NotePosition(note: Note, y: float)
# - RenderState(note_positions, score, combo, hit_effects, clock_state, countdown, clock_time_seconds, customization)
#
########################

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple


MIN_TEMPO_BPM = 60
MAX_TEMPO_BPM = 200
DEFAULT_TEMPO_BPM = 120
DEFAULT_TIME_SIGNATURE: Tuple[int, int] = (4, 4)
DEFAULT_MIN_GAP_SECONDS = 0.4

# Slack for the minimum gap check. MIDI stores times on a tick grid, which can pull two notes
# together by up to two ticks (about 4.2 ms at 480 ticks per beat and 60 BPM). The generator
# itself never places notes closer than min_gap_seconds.
GAP_TOLERANCE_SECONDS = 0.005


class Lane(enum.IntEnum):
    LEFT = 0
    UP = 1
    DOWN = 2
    RIGHT = 3


class Judgement(enum.Enum):
    PERFECT = "perfect"
    GOOD = "good"
    MISS = "miss"
    IGNORED = "ignored"


class ChartValidationError(ValueError):
    """Raised when a Chart would violate ordering, spacing or tempo invariants."""


@dataclass(frozen=True)
class Note:
    time_seconds: float
    lane: Lane
    duration_seconds: float = 0.1
    velocity: int = 100

    def __post_init__(self) -> None:
        if not math.isfinite(self.time_seconds) or self.time_seconds < 0.0:
            raise ChartValidationError(f"Note time must be finite and >= 0, got {self.time_seconds!r}")
        if not math.isfinite(self.duration_seconds) or self.duration_seconds < 0.0:
            raise ChartValidationError(f"Note duration must be finite and >= 0, got {self.duration_seconds!r}")
        if not 0 <= int(self.velocity) <= 127:
            raise ChartValidationError(f"Note velocity must be in 0..127, got {self.velocity!r}")
        object.__setattr__(self, "lane", Lane(self.lane))
        object.__setattr__(self, "velocity", int(self.velocity))


@dataclass(frozen=True)
class Chart:
    tempo_bpm: int
    notes: Tuple[Note, ...]
    time_signature: Tuple[int, int] = DEFAULT_TIME_SIGNATURE
    min_gap_seconds: float = DEFAULT_MIN_GAP_SECONDS
    duration_seconds: Optional[float] = None
    seed: Optional[int] = None
    generator_version: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "notes", tuple(self.notes))
        object.__setattr__(self, "time_signature", tuple(self.time_signature))

        if not isinstance(self.tempo_bpm, int) or isinstance(self.tempo_bpm, bool):
            raise ChartValidationError(f"tempo_bpm must be an int, got {self.tempo_bpm!r}")
        if not MIN_TEMPO_BPM <= self.tempo_bpm <= MAX_TEMPO_BPM:
            raise ChartValidationError(
                f"tempo_bpm must be in [{MIN_TEMPO_BPM}, {MAX_TEMPO_BPM}], got {self.tempo_bpm}"
            )
        if len(self.time_signature) != 2 or min(self.time_signature) <= 0:
            raise ChartValidationError(f"Invalid time signature: {self.time_signature!r}")
        if not float(self.min_gap_seconds) >= DEFAULT_MIN_GAP_SECONDS:
            raise ChartValidationError(
                f"min_gap_seconds must be >= {DEFAULT_MIN_GAP_SECONDS}, got {self.min_gap_seconds!r}"
            )

        _validate_note_spacing(self.notes, float(self.min_gap_seconds))

    @property
    def seconds_per_beat(self) -> float:
        return 60.0 / float(self.tempo_bpm)

    def last_note_time(self) -> float:
        if not self.notes:
            return 0.0
        return float(self.notes[-1].time_seconds)


def _validate_note_spacing(notes: Sequence[Note], min_gap_seconds: float) -> None:
    for index in range(1, len(notes)):
        previous_time = float(notes[index - 1].time_seconds)
        current_time = float(notes[index].time_seconds)
        if current_time <= previous_time:
            raise ChartValidationError(
                f"Notes must be strictly ascending by time (index {index}: {current_time} <= {previous_time})"
            )
        if current_time - previous_time < min_gap_seconds - GAP_TOLERANCE_SECONDS:
            raise ChartValidationError(
                f"Notes closer than {min_gap_seconds}s at index {index}: {previous_time} -> {current_time}"
            )


def clamp_tempo(tempo_bpm: Optional[float]) -> int:
    """Return a tempo usable by Chart, falling back to 120 when missing or out of range."""
    if tempo_bpm is None:
        return DEFAULT_TEMPO_BPM
    rounded = int(round(float(tempo_bpm)))
    if MIN_TEMPO_BPM <= rounded <= MAX_TEMPO_BPM:
        return rounded
    return DEFAULT_TEMPO_BPM


@dataclass(frozen=True)
class InputEvent:
    time_seconds: float
    lane: Lane


@dataclass(frozen=True)
class HitEffect:
    lane: Lane
    start_time_seconds: float
    judgement: Optional[Judgement]
    ttl_seconds: float

    @property
    def is_key_pulse(self) -> bool:
        return self.judgement is None

    def is_expired(self, clock_time_seconds: float) -> bool:
        return float(clock_time_seconds) - float(self.start_time_seconds) >= float(self.ttl_seconds)


@dataclass(frozen=True)
class HitOutcome:
    lane: Lane
    judgement: Judgement
    score_delta: int
    time_seconds: float
    distance: Optional[float] = None
    note: Optional[Note] = None

    @property
    def was_scored(self) -> bool:
        return self.judgement is not Judgement.IGNORED


@dataclass(frozen=True)
class NotePosition:
    note: Note
    y: float


@dataclass(frozen=True)
class RenderState:
    note_positions: Tuple[NotePosition, ...]
    score: int
    combo: int
    hit_effects: Tuple[HitEffect, ...]
    clock_state: str
    countdown: Optional[int]
    clock_time_seconds: float
    customization: Any = field(default=None, compare=False)
