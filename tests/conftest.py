import numpy as np
import pytest

from analysis_models import AudioBuffer, Candidate, FeatureFrame
from gameplay_models import Chart, Lane, Note


def make_frame(index, time_seconds, *, energy, rms=0.5, centroid=1000.0, zcr=0.1):
    return FeatureFrame(
        index=index,
        time_seconds=time_seconds,
        rms=rms,
        energy=energy,
        spectral_centroid=centroid,
        zero_crossing_rate=zcr,
    )


def make_candidate(index, time_seconds, *, energy, rms=0.5, threshold=0.0):
    return Candidate(frame=make_frame(index, time_seconds, energy=energy, rms=rms), threshold=threshold)


def chart_with_notes(*notes, tempo_bpm=120):
    """Chart from (time, lane) pairs."""
    return Chart(
        tempo_bpm=tempo_bpm,
        notes=tuple(Note(time_seconds=t, lane=Lane(lane)) for t, lane in notes),
    )


@pytest.fixture
def silent_buffer():
    """Five seconds of digital silence at 44.1 kHz."""
    return AudioBuffer.from_mono(np.zeros(5 * 44100), 44100)


@pytest.fixture
def burst_buffer():
    """Two seconds at 44.1 kHz, silent except for a steady 0.8 amplitude 1 kHz tone from 0.9 s to 1.1 s."""
    sample_rate = 44100
    t = np.arange(2 * sample_rate) / sample_rate
    samples = np.where((t >= 0.9) & (t < 1.1), 0.8 * np.sin(2.0 * np.pi * 1000.0 * t), 0.0)
    return AudioBuffer.from_mono(samples, sample_rate)


@pytest.fixture
def peaked_burst_buffer():
    """
    Same span as burst_buffer, but the envelope peaks sharply at 1.0 s so the loudest frame
    sits at the centre of the burst rather than at its onset.
    """
    sample_rate = 44100
    t = np.arange(2 * sample_rate) / sample_rate
    envelope = np.exp(-np.abs(t - 1.0) / 0.015)
    envelope[(t < 0.9) | (t > 1.1)] = 0.0
    samples = envelope * np.sin(2.0 * np.pi * 1000.0 * t)
    return AudioBuffer.from_mono(samples, sample_rate)


@pytest.fixture
def sine_buffer():
    sample_rate = 8000
    t = np.arange(sample_rate) / sample_rate
    return AudioBuffer.from_mono(0.5 * np.sin(2.0 * np.pi * 1000.0 * t), sample_rate)


@pytest.fixture
def pulsed_noise_buffer():
    """
    20480 Hz so one 2048-sample tempo window lasts 0.1 s.
    White noise fills every sixth window (0.6 s apart, 100 BPM); the rest is silent.
    """
    sample_rate = 20480
    window = 2048
    rng = np.random.default_rng(1234)
    samples = np.zeros(30 * window)
    for window_index in range(0, 30, 6):
        start = window_index * window
        samples[start:start + window] = rng.uniform(-0.5, 0.5, size=window)
    return AudioBuffer.from_mono(samples, sample_rate)


@pytest.fixture
def qt_app():
    from PyQt6.QtCore import QCoreApplication

    return QCoreApplication.instance() or QCoreApplication([])
