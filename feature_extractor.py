# -*- coding: utf-8 -*-
########################
# feature_extractor.py
########################
# Purpose:
# - Window an AudioBuffer into fixed-size frames and compute per-frame signal features.
#
# Design notes:
# - No Qt usage. numpy only.
# - extract() is a generator: forward-only, and re-derivable by calling it again on the same buffer.
# - The final partial window is zero-padded to full length, so every frame covers window_size samples.
#   Frame count is always ceil(length / window_size).
# - Frame time is the start of its window.
#
########################
# Interfaces:
# Public functions:
# - frame_count(buffer: AudioBuffer, window_size: int) -> int
# - compute_frame_features(window: numpy.ndarray, *, sample_rate: int, index: int, time_seconds: float) -> FeatureFrame
# - extract(buffer: AudioBuffer, window_size: int = 512) -> Iterator[FeatureFrame]
#
########################

from __future__ import annotations

import math
from typing import Iterator

import numpy as np

from analysis_models import AudioBuffer, FeatureFrame


DEFAULT_WINDOW_SIZE = 512


def frame_count(buffer: AudioBuffer, window_size: int) -> int:
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size!r}")
    return int(math.ceil(buffer.length / float(window_size)))


def _spectral_centroid(window: np.ndarray, sample_rate: int) -> float:
    spectrum = np.fft.rfft(window * np.hanning(len(window)))
    power = np.abs(spectrum) ** 2
    total_power = float(power.sum())
    if total_power <= 0.0:
        return 0.0
    frequencies = np.fft.rfftfreq(len(window), d=1.0 / float(sample_rate))
    return float((frequencies * power).sum() / total_power)


def _zero_crossing_rate(window: np.ndarray) -> float:
    if len(window) < 2:
        return 0.0
    signs = np.signbit(window)
    crossings = int(np.count_nonzero(signs[1:] != signs[:-1]))
    return float(crossings) / float(len(window))


def compute_frame_features(window: np.ndarray, *, sample_rate: int, index: int, time_seconds: float) -> FeatureFrame:
    squared = window * window
    energy = float(squared.sum())
    rms = float(math.sqrt(energy / float(len(window)))) if len(window) else 0.0
    return FeatureFrame(
        index=int(index),
        time_seconds=float(time_seconds),
        rms=rms,
        energy=energy,
        spectral_centroid=_spectral_centroid(window, sample_rate),
        zero_crossing_rate=_zero_crossing_rate(window),
    )


def extract(buffer: AudioBuffer, window_size: int = DEFAULT_WINDOW_SIZE) -> Iterator[FeatureFrame]:
    """Yield one FeatureFrame per window of the buffer's mono mixdown."""
    total_frames = frame_count(buffer, window_size)
    mono = buffer.mono()
    sample_rate = buffer.sample_rate

    for index in range(total_frames):
        start = index * window_size
        window = mono[start:start + window_size]
        if len(window) < window_size:
            window = np.pad(window, (0, window_size - len(window)))
        yield compute_frame_features(
            window,
            sample_rate=sample_rate,
            index=index,
            time_seconds=float(start) / float(sample_rate),
        )


def _run_unit_tests() -> None:
    sample_rate = 8000
    tone = 0.5 * np.sin(2.0 * np.pi * 1000.0 * np.arange(1000) / sample_rate)
    buffer = AudioBuffer.from_mono(tone, sample_rate)

    frames = list(extract(buffer, 256))
    assert len(frames) == 4
    assert frames[1].time_seconds == 256 / sample_rate
    assert abs(frames[0].rms - 0.5 / math.sqrt(2.0)) < 0.01
    assert abs(frames[0].spectral_centroid - 1000.0) < 50.0

    silent = list(extract(AudioBuffer.from_mono(np.zeros(300), sample_rate), 256))
    assert len(silent) == 2
    assert silent[0].energy == 0.0 and silent[0].spectral_centroid == 0.0


if __name__ == "__main__":
    _run_unit_tests()
    print("feature_extractor.py: ok")
