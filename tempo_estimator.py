# -*- coding: utf-8 -*-
########################
# tempo_estimator.py
########################
# Purpose:
# - Cheap BPM guess from the opening seconds of a track.
# - Marks coarse windows whose spectrum is both spread out and noise-like, then averages the gaps
#   between marked windows.
#
# Design notes:
# - No Qt usage. numpy only.
# - This is not beat tracking. Quantization downstream only needs an approximate grid.
# - Any failure to produce a usable interval, or a BPM outside [60, 200], yields 120.
#   The fallback is a documented default, never an error.
#
########################
# Interfaces:
# Public dataclasses:
# - TempoEstimate(bpm: int, candidate_positions: tuple[int, ...], raw_bpm: Optional[float], used_fallback: bool)
#
# Public functions:
# - perceptual_spread(amplitude_spectrum: numpy.ndarray, sample_rate: int, window_size: int) -> float
# - spectral_flatness(amplitude_spectrum: numpy.ndarray) -> float
# - estimate_tempo(buffer: AudioBuffer, *, window_size: int = 2048, scan_seconds: float = 10.0) -> TempoEstimate
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from analysis_models import AudioBuffer
from gameplay_models import DEFAULT_TEMPO_BPM, MAX_TEMPO_BPM, MIN_TEMPO_BPM
from logging_utils import get_tag_logger


DEFAULT_TEMPO_WINDOW_SIZE = 2048
DEFAULT_SCAN_SECONDS = 10.0
SPREAD_THRESHOLD = 0.5
FLATNESS_THRESHOLD = 0.3
BARK_BAND_COUNT = 24
SPECIFIC_LOUDNESS_EXPONENT = 0.23


_log = get_tag_logger("Tempo")


@dataclass(frozen=True)
class TempoEstimate:
    bpm: int
    candidate_positions: Tuple[int, ...]
    raw_bpm: Optional[float]
    used_fallback: bool


def _amplitude_spectrum(window: np.ndarray) -> np.ndarray:
    return np.abs(np.fft.rfft(window * np.hanning(len(window))))


def _bark_band_indices(bin_count: int, sample_rate: int, window_size: int) -> np.ndarray:
    frequencies = np.arange(bin_count, dtype=np.float64) * float(sample_rate) / float(window_size)
    bark = 13.0 * np.arctan(frequencies / 1315.8) + 3.5 * np.arctan((frequencies / 7518.0) ** 2)
    top = float(bark[-1]) if bin_count else 0.0
    if top <= 0.0:
        return np.zeros(bin_count, dtype=np.int64)
    bands = np.floor(bark / (top / BARK_BAND_COUNT)).astype(np.int64)
    return np.clip(bands, 0, BARK_BAND_COUNT - 1)


def perceptual_spread(amplitude_spectrum: np.ndarray, sample_rate: int, window_size: int) -> float:
    """Spread of specific loudness over Bark bands, 0 (one band dominates) to 1 (flat)."""
    bands = _bark_band_indices(len(amplitude_spectrum), sample_rate, window_size)
    band_sums = np.bincount(bands, weights=amplitude_spectrum, minlength=BARK_BAND_COUNT)
    specific = band_sums ** SPECIFIC_LOUDNESS_EXPONENT
    total = float(specific.sum())
    if total <= 0.0:
        return 0.0
    return float(((total - float(specific.max())) / total) ** 2)


def spectral_flatness(amplitude_spectrum: np.ndarray) -> float:
    """Geometric over arithmetic mean of the spectrum; 0 for silence or any empty bin."""
    if len(amplitude_spectrum) == 0:
        return 0.0
    arithmetic_mean = float(amplitude_spectrum.mean())
    if arithmetic_mean <= 0.0 or float(amplitude_spectrum.min()) <= 0.0:
        return 0.0
    geometric_mean = float(np.exp(np.log(amplitude_spectrum).mean()))
    return geometric_mean / arithmetic_mean


def _candidate_positions(buffer: AudioBuffer, window_size: int, scan_seconds: float) -> List[int]:
    mono = buffer.mono()
    sample_length = min(int(round(scan_seconds * buffer.sample_rate)), buffer.length)
    positions: List[int] = []

    for position in range(0, sample_length, window_size):
        window = mono[position:position + window_size]
        if len(window) < window_size:
            window = np.pad(window, (0, window_size - len(window)))
        spectrum = _amplitude_spectrum(window)
        spread = perceptual_spread(spectrum, buffer.sample_rate, window_size)
        flatness = spectral_flatness(spectrum)
        if spread > SPREAD_THRESHOLD and flatness > FLATNESS_THRESHOLD:
            positions.append(position)

    return positions


def estimate_tempo(
    buffer: AudioBuffer,
    *,
    window_size: int = DEFAULT_TEMPO_WINDOW_SIZE,
    scan_seconds: float = DEFAULT_SCAN_SECONDS,
) -> TempoEstimate:
    positions = _candidate_positions(buffer, int(window_size), float(scan_seconds))
    gaps = [current - previous for previous, current in zip(positions, positions[1:])]

    raw_bpm: Optional[float] = None
    if gaps:
        average_gap_samples = float(sum(gaps)) / float(len(gaps))
        raw_bpm = 60.0 / (average_gap_samples / float(buffer.sample_rate))

    bpm = DEFAULT_TEMPO_BPM
    used_fallback = True
    if raw_bpm is not None:
        rounded = int(round(raw_bpm))
        if MIN_TEMPO_BPM <= rounded <= MAX_TEMPO_BPM:
            bpm = rounded
            used_fallback = False

    if used_fallback:
        _log.debug("Tempo fallback applied", candidates=len(positions), raw_bpm=raw_bpm)

    return TempoEstimate(
        bpm=int(bpm),
        candidate_positions=tuple(positions),
        raw_bpm=raw_bpm,
        used_fallback=used_fallback,
    )
