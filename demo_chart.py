# demo_chart.py
from __future__ import annotations

from typing import List

from gameplay_models import DEFAULT_TEMPO_BPM, Chart, Lane, Note


DEMO_DIFFICULTIES = ("easy", "medium", "hard")


def build_demo_chart(*, difficulty: str = "easy") -> Chart:
    """Deterministic hand-made chart for trying the engine without analysing audio."""
    normalized_difficulty = (difficulty or "easy").strip().lower() or "easy"

    if normalized_difficulty == "hard":
        step_interval_seconds = 0.40
        total_notes = 32
    elif normalized_difficulty == "medium":
        step_interval_seconds = 0.55
        total_notes = 24
    else:
        normalized_difficulty = "easy"
        step_interval_seconds = 0.75
        total_notes = 16

    lead_in_seconds = 2.5

    # Covers all lanes and never repeats a lane back to back, including across the wrap.
    lane_pattern = [
        Lane.LEFT, Lane.UP, Lane.DOWN, Lane.RIGHT,
        Lane.UP, Lane.LEFT, Lane.RIGHT, Lane.DOWN,
        Lane.LEFT, Lane.DOWN, Lane.UP, Lane.RIGHT,
        Lane.DOWN, Lane.RIGHT, Lane.LEFT, Lane.UP,
    ]

    notes: List[Note] = []
    for note_index in range(total_notes):
        time_seconds = round(lead_in_seconds + note_index * step_interval_seconds, 6)
        notes.append(Note(time_seconds=time_seconds, lane=lane_pattern[note_index % len(lane_pattern)]))

    duration_seconds = max(10.0, notes[-1].time_seconds + 3.0)

    return Chart(
        tempo_bpm=DEFAULT_TEMPO_BPM,
        notes=tuple(notes),
        duration_seconds=duration_seconds,
        generator_version=f"demo_{normalized_difficulty}",
    )
