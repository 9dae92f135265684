import random

import pytest

from chart_encoder import EnergyPercentiles, choose_lane, encode_chart, lane_choices_for_energy, note_velocity
from conftest import make_candidate
from gameplay_models import Lane


PERCENTILES = EnergyPercentiles.from_energies([float(value) for value in range(1, 11)])


def _spread_candidates(count, *, spacing=0.5, start=0.25):
    return [
        make_candidate(index, start + index * spacing, energy=float((index * 7) % 11 + 1), rms=0.4)
        for index in range(count)
    ]


def test_percentiles_use_linear_interpolation():
    assert PERCENTILES.p25 == pytest.approx(3.25)
    assert PERCENTILES.p50 == pytest.approx(5.5)
    assert PERCENTILES.p75 == pytest.approx(7.75)
    assert PERCENTILES.p90 == pytest.approx(9.1)


@pytest.mark.parametrize(
    "energy, expected",
    [
        (9.5, (Lane.UP,)),
        (8.0, (Lane.UP, Lane.RIGHT)),
        (6.0, (Lane.RIGHT, Lane.DOWN)),
        (4.0, (Lane.DOWN, Lane.LEFT)),
        (2.0, (Lane.LEFT,)),
    ],
)
def test_lane_choices_follow_energy_percentile(energy, expected):
    assert lane_choices_for_energy(energy, PERCENTILES) == expected


def test_repeated_lane_is_redrawn():
    rng = random.Random(3)
    for _ in range(50):
        assert choose_lane(9.5, PERCENTILES, Lane.UP, rng) is not Lane.UP


def test_velocity_is_clamped_midi_range():
    assert note_velocity(0.1, 1.0) == 13
    assert note_velocity(0.5, 2.0) == 127
    assert note_velocity(2.0, 2.0) == 127
    assert note_velocity(0.0, 5.0) == 0


def test_min_gap_and_lane_alternation():
    candidates = [make_candidate(index, index * 0.13, energy=9.5, rms=0.4) for index in range(40)]
    chart = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(0), quantize=False)

    times = [note.time_seconds for note in chart.notes]
    assert times == sorted(times)
    assert all(later - earlier >= 0.4 - 1e-9 for earlier, later in zip(times, times[1:]))
    lanes = [note.lane for note in chart.notes]
    assert all(first != second for first, second in zip(lanes, lanes[1:]))


def test_same_seed_reproduces_chart():
    candidates = _spread_candidates(30)
    first = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(42))
    second = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(42))
    assert first.notes == second.notes


def test_quantize_snaps_to_quarter_beat():
    candidates = [make_candidate(0, 1.03, energy=5.0)]
    snapped = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(0))
    raw = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(0), quantize=False)
    assert snapped.notes[0].time_seconds == pytest.approx(1.0)
    assert raw.notes[0].time_seconds == pytest.approx(1.03)


def test_quantize_keeps_raw_time_when_snap_breaks_gap():
    candidates = [make_candidate(0, 0.0, energy=5.0), make_candidate(1, 0.41, energy=6.0)]
    chart = encode_chart(candidates, candidates, tempo_bpm=120, rng=random.Random(0))
    assert [note.time_seconds for note in chart.notes] == pytest.approx([0.0, 0.41])


def test_far_from_grid_is_not_snapped():
    # At 100 BPM quarter beats are 0.15 s apart; 0.825 s sits 0.075 s from both 0.75 and 0.9.
    candidates = [make_candidate(0, 0.825, energy=5.0)]
    chart = encode_chart(
        candidates, candidates, tempo_bpm=100, rng=random.Random(0), quantize_max_shift_seconds=0.05
    )
    assert chart.notes[0].time_seconds == pytest.approx(0.825)


def test_empty_selection_gives_empty_chart():
    chart = encode_chart([], [], tempo_bpm=120, rng=random.Random(0))
    assert chart.notes == ()
    assert chart.tempo_bpm == 120
