# -*- coding: utf-8 -*-
########################
# audio_io.py
########################
# Purpose:
# - Decode an audio file on disk into an AudioBuffer for chart generation.
#
# Design notes:
# - Decoding is delegated to soundfile (libsndfile). This module only adapts its output.
# - Every read or decode failure surfaces as AnalysisError so callers have one error to handle.
#
########################
# Interfaces:
# Public functions:
# - load_audio_file(audio_path: pathlib.Path | str) -> AudioBuffer
# - write_audio_file(output_path: pathlib.Path | str, buffer: AudioBuffer) -> None
#
########################

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf

from analysis_models import AnalysisError, AudioBuffer


def load_audio_file(audio_path: Union[Path, str]) -> AudioBuffer:
    resolved_path = Path(audio_path).expanduser()
    if not resolved_path.exists():
        raise AnalysisError(f"Audio file not found: {resolved_path}")

    try:
        data, sample_rate = sf.read(str(resolved_path), dtype="float64", always_2d=True)
    except (RuntimeError, sf.LibsndfileError, OSError) as exc:
        raise AnalysisError(f"Failed to decode audio file {resolved_path}: {exc}") from exc

    if data.size == 0:
        raise AnalysisError(f"Audio file contains no samples: {resolved_path}")

    # soundfile returns (frames, channels); AudioBuffer stores (channels, frames).
    return AudioBuffer(sample_rate=int(sample_rate), samples=np.ascontiguousarray(data.T))


def write_audio_file(output_path: Union[Path, str], buffer: AudioBuffer) -> None:
    resolved_path = Path(output_path).expanduser()
    resolved_path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(resolved_path), buffer.samples.T, buffer.sample_rate, subtype="FLOAT")
