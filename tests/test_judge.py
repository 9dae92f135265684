import pytest

from conftest import chart_with_notes
from gameplay_models import Chart, Judgement, Lane, Note
from judge import JudgeEngine, JudgementWindows, ScorePoints, ScoreState
from note_scheduler import NoteScheduler, Playfield


PLAYFIELD = Playfield(judge_line_y=600.0, fall_speed=300.0, screen_height=800.0)


def _engine(*notes, refractory_seconds=0.15):
    scheduler = NoteScheduler(chart_with_notes(*notes), PLAYFIELD)
    engine = JudgeEngine(
        scheduler,
        windows=JudgementWindows(),
        points=ScorePoints(),
        refractory_seconds=refractory_seconds,
    )
    return engine, scheduler


@pytest.mark.parametrize(
    "distance, expected",
    [
        (0.0, Judgement.PERFECT),
        (19.9, Judgement.PERFECT),
        (20.0, Judgement.GOOD),
        (34.9, Judgement.GOOD),
        (35.0, Judgement.MISS),
        (49.9, Judgement.MISS),
    ],
)
def test_classification_boundaries(distance, expected):
    assert JudgementWindows().classify(distance) is expected


@pytest.mark.parametrize(
    "offset_seconds, judgement, delta",
    [
        (0.05, Judgement.PERFECT, 100),
        (-0.05, Judgement.PERFECT, 100),
        (0.1, Judgement.GOOD, 50),
        (0.15, Judgement.MISS, 0),
    ],
)
def test_hit_inside_outer_window_removes_note(offset_seconds, judgement, delta):
    engine, scheduler = _engine((1.0, Lane.LEFT))
    outcome, effect = engine.handle_input(Lane.LEFT, 1.0 + offset_seconds)
    assert outcome.judgement is judgement
    assert outcome.score_delta == delta
    assert outcome.note is not None
    assert outcome.distance == pytest.approx(abs(offset_seconds) * 300.0)
    assert scheduler.pending_count() == 0
    assert effect.judgement is judgement
    assert effect.ttl_seconds == 0.5


def test_press_beyond_outer_window_is_miss_without_removal():
    engine, scheduler = _engine((1.0, Lane.LEFT))
    engine.score_state().score = 30
    outcome, _effect = engine.handle_input(Lane.LEFT, 1.2)
    assert outcome.judgement is Judgement.MISS
    assert outcome.note is None
    assert outcome.score_delta == -10
    assert engine.score_state().score == 20
    assert scheduler.pending_count() == 1


def test_score_never_goes_negative():
    engine, _scheduler = _engine((5.0, Lane.UP))
    for index in range(5):
        outcome, _effect = engine.handle_input(Lane(index % 4), 0.2 * index)
        assert outcome.judgement is Judgement.MISS
        assert engine.score_state().score == 0
    assert engine.score_state().miss_count == 5


def test_refractory_inputs_are_judged_once():
    engine, scheduler = _engine((1.0, Lane.LEFT), (1.5, Lane.RIGHT))
    first, _ = engine.handle_input(Lane.LEFT, 1.0)
    second, pulse = engine.handle_input(Lane.LEFT, 1.1)
    assert first.judgement is Judgement.PERFECT
    assert second.judgement is Judgement.IGNORED
    assert not second.was_scored
    assert pulse.is_key_pulse
    assert pulse.ttl_seconds == pytest.approx(0.1)
    assert engine.score_state().score == 100
    assert engine.score_state().miss_count == 0


def test_ignored_input_does_not_move_refractory_origin():
    engine, _scheduler = _engine((1.0, Lane.LEFT))
    engine.handle_input(Lane.LEFT, 0.0)
    assert engine.handle_input(Lane.LEFT, 0.1)[0].judgement is Judgement.IGNORED
    # 0.16 s after the evaluated press, 0.06 s after the ignored one
    assert engine.handle_input(Lane.LEFT, 0.16)[0].judgement is Judgement.MISS


def test_refractory_is_per_lane():
    engine, _scheduler = _engine((1.0, Lane.LEFT), (1.5, Lane.UP))
    assert engine.handle_input(Lane.LEFT, 1.0)[0].judgement is Judgement.PERFECT
    assert engine.handle_input(Lane.UP, 1.05)[0].judgement is Judgement.MISS


def test_nearest_note_wins_and_ties_go_to_earlier():
    chart = Chart(
        tempo_bpm=120,
        notes=(Note(time_seconds=1.0, lane=Lane.LEFT), Note(time_seconds=1.5, lane=Lane.LEFT)),
    )
    scheduler = NoteScheduler(chart, PLAYFIELD)

    tie = scheduler.find_nearest_pending_note(lane=Lane.LEFT, clock_time_seconds=1.25, max_distance=100.0)
    assert tie is not None
    assert tie[0].time_seconds == 1.0
    assert tie[1] == 75.0

    later = scheduler.find_nearest_pending_note(lane=Lane.LEFT, clock_time_seconds=1.3, max_distance=100.0)
    assert later[0].time_seconds == 1.5


def test_combo_and_stats():
    engine, _scheduler = _engine((1.0, Lane.LEFT), (1.5, Lane.UP), (2.0, Lane.LEFT))
    engine.handle_input(Lane.LEFT, 1.0)
    engine.handle_input(Lane.UP, 1.6)
    assert engine.score_state().combo == 2
    engine.handle_input(Lane.DOWN, 1.8)
    state = engine.score_state()
    assert state.combo == 0
    assert state.max_combo == 2
    assert (state.perfect_count, state.good_count, state.miss_count) == (1, 1, 1)


def test_scrolled_notes_only_cost_points_when_penalized():
    engine, _scheduler = _engine((1.0, Lane.LEFT))
    engine.handle_input(Lane.LEFT, 1.0)
    notes = chart_with_notes((3.0, Lane.UP), (3.5, Lane.DOWN)).notes

    assert engine.apply_scrolled_notes(notes, penalize=False) == 0
    assert engine.score_state().score == 100
    assert engine.score_state().combo == 1

    assert engine.apply_scrolled_notes(notes, penalize=True) == -20
    assert engine.score_state().score == 80
    assert engine.score_state().combo == 0
    assert engine.score_state().scrolled_count == 4


def test_score_state_floor():
    state = ScoreState()
    assert state.apply_judgement(Judgement.MISS, -10) == 0
    assert state.score == 0
    assert state.apply_judgement(Judgement.IGNORED, 0) == 0
    assert state.miss_count == 1
