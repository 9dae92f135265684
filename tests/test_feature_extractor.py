import math

import numpy as np
import pytest

from analysis_models import AnalysisError, AudioBuffer
from feature_extractor import compute_frame_features, extract, frame_count


def test_frame_count_is_ceiling_of_windows():
    buffer = AudioBuffer.from_mono(np.zeros(1025), 8000)
    assert frame_count(buffer, 512) == 3
    assert len(list(extract(buffer, 512))) == 3


def test_frames_are_ordered_and_timed_at_window_start(sine_buffer):
    frames = list(extract(sine_buffer, 512))
    assert [frame.index for frame in frames] == list(range(len(frames)))
    for frame in frames:
        assert frame.time_seconds == pytest.approx(frame.index * 512 / 8000)


def test_sine_features(sine_buffer):
    frame = next(extract(sine_buffer, 512))
    assert frame.rms == pytest.approx(0.5 / math.sqrt(2.0), abs=0.01)
    assert frame.energy == pytest.approx(frame.rms ** 2 * 512)
    assert frame.spectral_centroid == pytest.approx(1000.0, abs=50.0)
    # 1 kHz at 8 kHz: two sign changes every eight samples.
    assert frame.zero_crossing_rate == pytest.approx(0.25, abs=0.01)


def test_silent_window_has_zero_features():
    frame = compute_frame_features(np.zeros(512), sample_rate=44100, index=0, time_seconds=0.0)
    assert frame.energy == 0.0
    assert frame.rms == 0.0
    assert frame.spectral_centroid == 0.0
    assert frame.zero_crossing_rate == 0.0


def test_final_partial_window_is_zero_padded():
    samples = np.ones(600)
    frames = list(extract(AudioBuffer.from_mono(samples, 8000), 512))
    assert len(frames) == 2
    # 88 real samples of 1.0 padded to 512
    assert frames[1].energy == pytest.approx(88.0)
    assert frames[1].rms == pytest.approx(math.sqrt(88.0 / 512.0))


def test_stereo_is_mixed_down():
    left = np.full(512, 0.5)
    right = np.full(512, -0.5)
    buffer = AudioBuffer(sample_rate=8000, samples=np.vstack([left, right]))
    frame = next(extract(buffer, 512))
    assert buffer.channel_count == 2
    assert frame.energy == 0.0


def test_extract_is_rederivable(sine_buffer):
    assert list(extract(sine_buffer, 256)) == list(extract(sine_buffer, 256))


def test_audio_buffer_rejects_non_finite_samples():
    with pytest.raises(AnalysisError):
        AudioBuffer.from_mono(np.array([0.0, np.nan]), 8000)


def test_audio_buffer_is_read_only(sine_buffer):
    with pytest.raises(ValueError):
        sine_buffer.samples[0, 0] = 1.0
