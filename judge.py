# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Matches a lane input to the nearest pending note within the outer hit window.
# - Produces a HitOutcome plus the HitEffect the renderer should show.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Windows are measured in screen units: |clock_time - note_time| * fall_speed.
# - Scheduler owns the pending notes; JudgeEngine removes judged notes via the scheduler boundary.
# - Per-lane refractory window: an input closer than refractory_seconds to the last evaluated
#   input in that lane is IGNORED, shows a key pulse, and does not move the refractory origin.
# - Score never drops below zero.
#
########################
# Interfaces:
# Public dataclasses:
# - JudgementWindows(perfect: float, good: float, hit: float)
#   - classify(distance: float) -> Judgement
# - ScorePoints(perfect: int, good: int, miss: int)
#   - delta_for(judgement: Judgement) -> int
# - ScoreState(score, combo, max_combo, perfect_count, good_count, miss_count, scrolled_count)
#   - apply_judgement(judgement: Judgement, delta: int) -> int
#
# Public classes:
# - class JudgeEngine
#   - __init__(note_scheduler, *, windows, points, refractory_seconds, hit_effect_ttl_seconds, key_pulse_ttl_seconds)
#   - from_config(note_scheduler, session_config) -> JudgeEngine
#   - score_state() -> ScoreState
#   - handle_input(lane: Lane, clock_time_seconds: float) -> tuple[HitOutcome, HitEffect]
#   - apply_scrolled_notes(notes, *, penalize: bool) -> int
#   - reset() -> None
#
# Inputs:
# - Lane and clock time (from PlaybackClock.time_at).
#
# Outputs:
# - HitOutcome for callers, HitEffect for the session's effect list.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import gameplay_models
import note_scheduler
from config import SessionConfig


@dataclass(frozen=True)
class JudgementWindows:
    perfect: float = 20.0
    good: float = 35.0
    hit: float = 50.0

    def classify(self, distance: float) -> gameplay_models.Judgement:
        value = abs(float(distance))
        if value < float(self.perfect):
            return gameplay_models.Judgement.PERFECT
        if value < float(self.good):
            return gameplay_models.Judgement.GOOD
        return gameplay_models.Judgement.MISS


@dataclass(frozen=True)
class ScorePoints:
    perfect: int = 100
    good: int = 50
    miss: int = -10

    def delta_for(self, judgement: gameplay_models.Judgement) -> int:
        if judgement is gameplay_models.Judgement.PERFECT:
            return int(self.perfect)
        if judgement is gameplay_models.Judgement.GOOD:
            return int(self.good)
        if judgement is gameplay_models.Judgement.MISS:
            return int(self.miss)
        return 0


@dataclass
class ScoreState:
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    perfect_count: int = 0
    good_count: int = 0
    miss_count: int = 0
    scrolled_count: int = 0

    def apply_judgement(self, judgement: gameplay_models.Judgement, delta: int) -> int:
        """Apply one judged outcome and return the score change actually applied."""
        if judgement is gameplay_models.Judgement.PERFECT:
            self.combo += 1
            self.perfect_count += 1
        elif judgement is gameplay_models.Judgement.GOOD:
            self.combo += 1
            self.good_count += 1
        elif judgement is gameplay_models.Judgement.MISS:
            self.combo = 0
            self.miss_count += 1
        else:
            # IGNORED inputs do not mutate score state.
            return 0

        if self.combo > self.max_combo:
            self.max_combo = self.combo

        previous_score = self.score
        self.score = max(0, self.score + int(delta))
        return self.score - previous_score


class JudgeEngine:
    def __init__(
        self,
        note_scheduler_obj: note_scheduler.NoteScheduler,
        *,
        windows: JudgementWindows,
        points: ScorePoints,
        refractory_seconds: float = 0.15,
        hit_effect_ttl_seconds: float = 0.5,
        key_pulse_ttl_seconds: float = 0.1,
    ) -> None:
        self._note_scheduler = note_scheduler_obj
        self._windows = windows
        self._points = points
        self._refractory_seconds = float(refractory_seconds)
        self._hit_effect_ttl_seconds = float(hit_effect_ttl_seconds)
        self._key_pulse_ttl_seconds = float(key_pulse_ttl_seconds)
        self._score_state = ScoreState()
        self._last_evaluated: Dict[gameplay_models.Lane, float] = {}

    @classmethod
    def from_config(
        cls,
        note_scheduler_obj: note_scheduler.NoteScheduler,
        session_config: SessionConfig,
    ) -> "JudgeEngine":
        return cls(
            note_scheduler_obj,
            windows=JudgementWindows(
                perfect=session_config.perfect_window,
                good=session_config.good_window,
                hit=session_config.hit_window,
            ),
            points=ScorePoints(
                perfect=session_config.perfect_points,
                good=session_config.good_points,
                miss=session_config.miss_points,
            ),
            refractory_seconds=session_config.refractory_seconds,
            hit_effect_ttl_seconds=session_config.hit_effect_ttl_seconds,
            key_pulse_ttl_seconds=session_config.key_pulse_ttl_seconds,
        )

    def score_state(self) -> ScoreState:
        return self._score_state

    def windows(self) -> JudgementWindows:
        return self._windows

    def reset(self) -> None:
        self._score_state = ScoreState()
        self._last_evaluated.clear()

    def _in_refractory(self, lane: gameplay_models.Lane, clock_time_seconds: float) -> bool:
        last_time = self._last_evaluated.get(lane)
        if last_time is None:
            return False
        return clock_time_seconds - last_time < self._refractory_seconds

    def handle_input(
        self,
        lane: gameplay_models.Lane,
        clock_time_seconds: float,
    ) -> Tuple[gameplay_models.HitOutcome, gameplay_models.HitEffect]:
        lane_value = gameplay_models.Lane(lane)
        now = float(clock_time_seconds)

        if self._in_refractory(lane_value, now):
            outcome = gameplay_models.HitOutcome(
                lane=lane_value,
                judgement=gameplay_models.Judgement.IGNORED,
                score_delta=0,
                time_seconds=now,
            )
            pulse = gameplay_models.HitEffect(
                lane=lane_value,
                start_time_seconds=now,
                judgement=None,
                ttl_seconds=self._key_pulse_ttl_seconds,
            )
            return outcome, pulse

        self._last_evaluated[lane_value] = now

        match = self._note_scheduler.find_nearest_pending_note(
            lane=lane_value,
            clock_time_seconds=now,
            max_distance=float(self._windows.hit),
        )

        if match is None:
            judgement = gameplay_models.Judgement.MISS
            note = None
            distance = None
        else:
            note, distance = match
            judgement = self._windows.classify(distance)
            self._note_scheduler.remove(note)

        applied_delta = self._score_state.apply_judgement(judgement, self._points.delta_for(judgement))

        outcome = gameplay_models.HitOutcome(
            lane=lane_value,
            judgement=judgement,
            score_delta=applied_delta,
            time_seconds=now,
            distance=distance,
            note=note,
        )
        effect = gameplay_models.HitEffect(
            lane=lane_value,
            start_time_seconds=now,
            judgement=judgement,
            ttl_seconds=self._hit_effect_ttl_seconds,
        )
        return outcome, effect

    def apply_scrolled_notes(self, notes: Sequence[gameplay_models.Note], *, penalize: bool) -> int:
        """Account for notes that scrolled off unhit. Returns the total score change."""
        total_delta = 0
        for _note in notes:
            self._score_state.scrolled_count += 1
            if penalize:
                total_delta += self._score_state.apply_judgement(
                    gameplay_models.Judgement.MISS,
                    self._points.delta_for(gameplay_models.Judgement.MISS),
                )
        return total_delta


def _run_unit_tests() -> None:
    chart = gameplay_models.Chart(
        tempo_bpm=120,
        notes=(gameplay_models.Note(time_seconds=1.0, lane=gameplay_models.Lane.LEFT),),
    )
    playfield = note_scheduler.Playfield(judge_line_y=600.0, fall_speed=300.0, screen_height=800.0)
    scheduler = note_scheduler.NoteScheduler(chart, playfield)
    engine = JudgeEngine(scheduler, windows=JudgementWindows(), points=ScorePoints())

    hit, effect = engine.handle_input(gameplay_models.Lane.LEFT, 1.0)
    assert hit.judgement is gameplay_models.Judgement.PERFECT
    assert effect.ttl_seconds == 0.5
    assert engine.score_state().score == 100

    ignored, pulse = engine.handle_input(gameplay_models.Lane.LEFT, 1.1)
    assert ignored.judgement is gameplay_models.Judgement.IGNORED
    assert pulse.is_key_pulse

    stray, _ = engine.handle_input(gameplay_models.Lane.UP, 1.0)
    assert stray.judgement is gameplay_models.Judgement.MISS
    assert engine.score_state().score == 90
    assert engine.score_state().combo == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
