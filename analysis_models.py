# -*- coding: utf-8 -*-
########################
# analysis_models.py
########################
# Purpose:
# - Data models for the audio analysis side of chart generation.
# - AudioBuffer is the decoded input; FeatureFrame and Candidate are per-window analysis results.
#
# Design notes:
# - No Qt usage. Plain dataclasses over numpy arrays.
# - AudioBuffer never copies into mutable state owned by analysis: samples are made read-only.
#
########################
# Interfaces:
# Public exceptions:
# - class AnalysisError(Exception)
# - class AnalysisCancelledError(AnalysisError)
# - class EmptyChartError(AnalysisError)
#
# Public dataclasses:
# - AudioBuffer(sample_rate: int, samples: numpy.ndarray[channels, n])
#   - channel_count, length, duration_seconds, mono()
#   - from_mono(samples, sample_rate) -> AudioBuffer
# - FeatureFrame(index: int, time_seconds: float, rms: float, energy: float,
#                spectral_centroid: float, zero_crossing_rate: float)
# - Candidate(frame: FeatureFrame, threshold: float)
#
########################

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


class AnalysisError(Exception):
    """Raised when audio cannot be decoded or analysed; chart generation rejects with it."""


class AnalysisCancelledError(AnalysisError):
    """Raised when a caller cancels chart generation mid-analysis."""


class EmptyChartError(AnalysisError):
    """Raised when no notes survive analysis and the caller asked for a non-empty chart."""


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    sample_rate: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise AnalysisError(f"sample_rate must be positive, got {self.sample_rate!r}")
        data = np.asarray(self.samples, dtype=np.float64)
        if data.ndim == 1:
            data = data.reshape(1, -1)
        if data.ndim != 2 or data.shape[0] < 1:
            raise AnalysisError(f"samples must be shaped (channels, n), got {data.shape!r}")
        if not np.all(np.isfinite(data)):
            raise AnalysisError("samples contain NaN or infinite values")
        data = data.copy()
        data.setflags(write=False)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))
        object.__setattr__(self, "samples", data)

    @classmethod
    def from_mono(cls, samples: np.ndarray, sample_rate: int) -> "AudioBuffer":
        return cls(sample_rate=int(sample_rate), samples=np.asarray(samples, dtype=np.float64).reshape(1, -1))

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def length(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        return float(self.length) / float(self.sample_rate)

    def mono(self) -> np.ndarray:
        if self.channel_count == 1:
            return self.samples[0]
        return self.samples.mean(axis=0)


@dataclass(frozen=True)
class FeatureFrame:
    index: int
    time_seconds: float
    rms: float
    energy: float
    spectral_centroid: float
    zero_crossing_rate: float


@dataclass(frozen=True)
class Candidate:
    frame: FeatureFrame
    threshold: float

    @property
    def time_seconds(self) -> float:
        return self.frame.time_seconds

    @property
    def energy(self) -> float:
        return self.frame.energy

    @property
    def rms(self) -> float:
        return self.frame.rms
