from conftest import make_candidate, make_frame
from onset_selector import OnsetSelector, filter_candidates


def test_frame_must_beat_adaptive_threshold_and_rms_gate():
    selector = OnsetSelector(history_size=50, threshold_multiplier=1.5, min_rms=0.15)
    for index in range(10):
        assert selector.on_frame(make_frame(index, index * 0.01, energy=1.0, rms=0.5)) is None

    loud_but_quiet_rms = make_frame(10, 0.10, energy=10.0, rms=0.1)
    assert selector.on_frame(loud_but_quiet_rms) is None

    accepted = selector.on_frame(make_frame(11, 0.11, energy=10.0, rms=0.5))
    assert accepted is not None
    assert accepted.frame.index == 11
    assert accepted.threshold > 1.5


def test_ring_includes_current_frame():
    selector = OnsetSelector(history_size=2, threshold_multiplier=1.5, min_rms=0.0)
    selector.on_frame(make_frame(0, 0.0, energy=1.0))
    # mean(1, 3) * 1.5 == 3, and the comparison is strict
    assert selector.on_frame(make_frame(1, 0.01, energy=3.0)) is None


def test_ring_forgets_old_frames():
    selector = OnsetSelector(history_size=2, threshold_multiplier=1.1, min_rms=0.0)
    selector.on_frame(make_frame(0, 0.0, energy=100.0))
    selector.on_frame(make_frame(1, 0.01, energy=1.0))
    # ring is now (1, 2): threshold 1.65
    assert selector.on_frame(make_frame(2, 0.02, energy=2.0)) is not None


def test_first_and_last_pooled_candidates_are_never_kept():
    pool = [
        make_candidate(0, 0.0, energy=50.0, rms=0.9),
        make_candidate(1, 0.19, energy=10.0, rms=0.9),
        make_candidate(2, 0.5, energy=50.0, rms=0.9),
    ]
    selected, _mean = filter_candidates(pool, 120)
    assert [candidate.frame.index for candidate in selected] == []


def test_prominent_strong_candidate_is_kept_off_grid():
    # 0.19 s at 120 BPM is 0.38 beats, 0.12 from the nearest quarter beat.
    pool = [
        make_candidate(0, 0.0, energy=1.0),
        make_candidate(1, 0.19, energy=10.0, rms=0.5),
        make_candidate(2, 0.7, energy=1.0),
    ]
    selected, mean_energy = filter_candidates(pool, 120)
    assert [candidate.frame.index for candidate in selected] == [1]
    assert mean_energy == 4.0


def test_on_grid_strong_candidate_is_kept_without_prominence():
    pool = [
        make_candidate(0, 0.0, energy=5.0),
        make_candidate(1, 0.5, energy=5.0, rms=0.5),
        make_candidate(2, 0.9, energy=5.0),
    ]
    selected, _mean = filter_candidates(pool, 120)
    assert [candidate.frame.index for candidate in selected] == [1]


def test_off_grid_flat_candidate_is_dropped():
    pool = [
        make_candidate(0, 0.0, energy=5.0),
        make_candidate(1, 0.19, energy=5.0, rms=0.5),
        make_candidate(2, 0.9, energy=5.0),
    ]
    selected, _mean = filter_candidates(pool, 120)
    assert selected == []


def test_weak_candidate_is_dropped_even_when_prominent():
    # rms 0.18 is not strong and 2.0 is below 1.3x the pool mean energy.
    pool = [
        make_candidate(0, 0.0, energy=1.0, rms=0.18),
        make_candidate(1, 0.5, energy=2.0, rms=0.18),
        make_candidate(2, 0.9, energy=1.0, rms=0.18),
        make_candidate(3, 1.3, energy=10.0, rms=0.18),
    ]
    selected, _mean = filter_candidates(pool, 120)
    assert 1 not in [candidate.frame.index for candidate in selected]


def test_finish_reports_pool_and_selection():
    selector = OnsetSelector(history_size=4, threshold_multiplier=1.0, min_rms=0.0)
    energies = [0.1, 5.0, 0.1, 20.0, 0.1, 10.0]
    for index, energy in enumerate(energies):
        selector.on_frame(make_frame(index, index * 0.19, energy=energy))
    result = selector.finish(120)
    assert [candidate.frame.index for candidate in result.pool] == [1, 3, 5]
    assert [candidate.frame.index for candidate in result.selected] == [3]
    assert selector.frames_seen == 6
