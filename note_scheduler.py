# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Own the pending (not yet judged) notes of one session, split per lane.
# - Project notes to screen positions and expire notes that scrolled past the bottom.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Notes fall downward: y grows with clock time and equals judge_line_y at the note's time.
# - A note leaves the scheduler exactly once: judged (remove) or scrolled off (drop_scrolled_off).
#
########################
# Interfaces:
# Public dataclasses:
# - Playfield(judge_line_y: float, fall_speed: float, screen_height: float,
#             offscreen_margin: float, visible_margin: float)
#   - from_config(session_config: SessionConfig) -> Playfield
#   - note_y(note_time_seconds: float, clock_time_seconds: float) -> float
#   - distance(note_time_seconds: float, clock_time_seconds: float) -> float
#
# Public classes:
# - class NoteScheduler
#   - __init__(chart: Chart, playfield: Playfield)
#   - pending_count() -> int
#   - pending_notes() -> list[Note]
#   - last_note_time() -> Optional[float]
#   - find_nearest_pending_note(*, lane: Lane, clock_time_seconds: float, max_distance: float)
#       -> Optional[tuple[Note, float]]
#   - remove(note: Note) -> None
#   - drop_scrolled_off(clock_time_seconds: float) -> list[Note]
#   - visible_positions(clock_time_seconds: float) -> list[NotePosition]
#   - reset() -> None
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import gameplay_models
from config import SessionConfig


@dataclass(frozen=True)
class Playfield:
    judge_line_y: float
    fall_speed: float
    screen_height: float
    offscreen_margin: float = 100.0
    visible_margin: float = 50.0

    @classmethod
    def from_config(cls, session_config: SessionConfig) -> "Playfield":
        return cls(
            judge_line_y=float(session_config.screen_height) * float(session_config.judge_line_ratio),
            fall_speed=float(session_config.fall_speed),
            screen_height=float(session_config.screen_height),
            offscreen_margin=float(session_config.offscreen_margin),
            visible_margin=float(session_config.visible_margin),
        )

    def note_y(self, note_time_seconds: float, clock_time_seconds: float) -> float:
        return self.judge_line_y + (float(clock_time_seconds) - float(note_time_seconds)) * self.fall_speed

    def distance(self, note_time_seconds: float, clock_time_seconds: float) -> float:
        return abs(float(clock_time_seconds) - float(note_time_seconds)) * self.fall_speed

    @property
    def drop_y(self) -> float:
        return self.screen_height + self.offscreen_margin

    def is_visible(self, y: float) -> bool:
        return -self.visible_margin < y < self.screen_height + self.visible_margin


class NoteScheduler:
    def __init__(self, chart: gameplay_models.Chart, playfield: Playfield) -> None:
        self._chart = chart
        self._playfield = playfield
        self._lanes: Dict[gameplay_models.Lane, List[gameplay_models.Note]] = {}
        self.reset()

    def chart(self) -> gameplay_models.Chart:
        return self._chart

    def playfield(self) -> Playfield:
        return self._playfield

    def reset(self) -> None:
        self._lanes = {lane: [] for lane in gameplay_models.Lane}
        # Chart notes are already in time order, so every lane list is too.
        for note in self._chart.notes:
            self._lanes[note.lane].append(note)

    def pending_count(self) -> int:
        return sum(len(lane_notes) for lane_notes in self._lanes.values())

    def pending_notes(self) -> List[gameplay_models.Note]:
        notes = [note for lane_notes in self._lanes.values() for note in lane_notes]
        notes.sort(key=lambda item: float(item.time_seconds))
        return notes

    def last_note_time(self) -> Optional[float]:
        if not self._chart.notes:
            return None
        return self._chart.last_note_time()

    def find_nearest_pending_note(
        self,
        *,
        lane: gameplay_models.Lane,
        clock_time_seconds: float,
        max_distance: float,
    ) -> Optional[Tuple[gameplay_models.Note, float]]:
        best_note: Optional[gameplay_models.Note] = None
        best_distance = 0.0

        for note in self._lanes.get(gameplay_models.Lane(lane), []):
            distance = self._playfield.distance(note.time_seconds, clock_time_seconds)
            if distance >= float(max_distance):
                if note.time_seconds > clock_time_seconds:
                    break
                continue
            # Strict comparison keeps the earlier note on a tie.
            if best_note is None or distance < best_distance:
                best_note = note
                best_distance = distance

        if best_note is None:
            return None
        return best_note, best_distance

    def remove(self, note: gameplay_models.Note) -> None:
        lane_notes = self._lanes.get(note.lane, [])
        if note in lane_notes:
            lane_notes.remove(note)

    def drop_scrolled_off(self, clock_time_seconds: float) -> List[gameplay_models.Note]:
        dropped: List[gameplay_models.Note] = []
        drop_y = self._playfield.drop_y
        for lane in gameplay_models.Lane:
            lane_notes = self._lanes[lane]
            keep_from = 0
            while keep_from < len(lane_notes):
                if self._playfield.note_y(lane_notes[keep_from].time_seconds, clock_time_seconds) < drop_y:
                    break
                keep_from += 1
            if keep_from:
                dropped.extend(lane_notes[:keep_from])
                del lane_notes[:keep_from]
        dropped.sort(key=lambda item: float(item.time_seconds))
        return dropped

    def visible_positions(self, clock_time_seconds: float) -> List[gameplay_models.NotePosition]:
        positions: List[gameplay_models.NotePosition] = []
        for note in self.pending_notes():
            y = self._playfield.note_y(note.time_seconds, clock_time_seconds)
            if self._playfield.is_visible(y):
                positions.append(gameplay_models.NotePosition(note=note, y=y))
        return positions


def _run_unit_tests() -> None:
    chart = gameplay_models.Chart(
        tempo_bpm=120,
        notes=(
            gameplay_models.Note(time_seconds=0.5, lane=gameplay_models.Lane.DOWN),
            gameplay_models.Note(time_seconds=1.0, lane=gameplay_models.Lane.LEFT),
            gameplay_models.Note(time_seconds=1.5, lane=gameplay_models.Lane.LEFT),
        ),
    )
    playfield = Playfield(judge_line_y=600.0, fall_speed=300.0, screen_height=800.0)
    scheduler = NoteScheduler(chart, playfield)

    nearest = scheduler.find_nearest_pending_note(
        lane=gameplay_models.Lane.LEFT, clock_time_seconds=1.05, max_distance=50.0
    )
    assert nearest is not None
    assert nearest[0].time_seconds == 1.0
    assert abs(nearest[1] - 15.0) < 1e-9

    dropped = scheduler.drop_scrolled_off(clock_time_seconds=1.5)
    assert [note.time_seconds for note in dropped] == [0.5]
    assert scheduler.pending_count() == 2


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
