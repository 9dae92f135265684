# -*- coding: utf-8 -*-
########################
# chart_generator.py
########################
# Purpose:
# - Audio to chart pipeline: tempo pre-pass, one forward feature pass feeding the onset selector,
#   then lane encoding into an immutable Chart.
#
# Design notes:
# - No Qt usage. Single threaded and blocking.
# - Either a complete Chart is returned or AnalysisError is raised. No partial chart escapes.
# - The seed is derived from the audio content, so regenerating the same track yields the same chart.
# - Cancellation is cooperative: set the cancel_event and the pass stops at the next frame.
#
########################
# Interfaces:
# Public dataclasses:
# - GeneratedChart(chart: Chart, tempo: TempoEstimate, frame_count: int, pool_size: int,
#                  selected_count: int, seed: int, generator_version: str)
#
# Public functions:
# - seed_for_buffer(buffer: AudioBuffer, generator_version: str = GENERATOR_VERSION) -> int
# - generate_chart_report(buffer, *, analysis_config=None, seed=None, on_progress=None, cancel_event=None) -> GeneratedChart
# - generate_chart(buffer, **kwargs) -> Chart
#
# Inputs:
# - AudioBuffer (decoded elsewhere, see audio_io.py).
#
# Outputs:
# - Chart for the playback engine and chart_store.py.
#
########################

from __future__ import annotations

import hashlib
import random
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from analysis_models import AnalysisCancelledError, AnalysisError, AudioBuffer, EmptyChartError
from chart_encoder import encode_chart
from config import AnalysisConfig
from feature_extractor import extract, frame_count
from gameplay_models import Chart, ChartValidationError
from logging_utils import get_tag_logger
from onset_selector import OnsetSelector
from tempo_estimator import TempoEstimate, estimate_tempo


_log = get_tag_logger("Generator")


GENERATOR_VERSION = "onset_v1"

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class GeneratedChart:
    chart: Chart
    tempo: TempoEstimate
    frame_count: int
    pool_size: int
    selected_count: int
    seed: int
    generator_version: str


def seed_for_buffer(buffer: AudioBuffer, generator_version: str = GENERATOR_VERSION) -> int:
    digest = hashlib.sha256()
    digest.update(f"{buffer.sample_rate}|{buffer.channel_count}|{generator_version}|".encode("utf-8"))
    digest.update(buffer.samples.tobytes())
    return int.from_bytes(digest.digest()[:8], byteorder="big", signed=False)


def _report_progress(on_progress: Optional[ProgressCallback], value: float) -> None:
    if on_progress is not None:
        on_progress(float(value))


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelledError("Chart generation cancelled")


def generate_chart_report(
    buffer: AudioBuffer,
    *,
    analysis_config: Optional[AnalysisConfig] = None,
    seed: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> GeneratedChart:
    settings = analysis_config if analysis_config is not None else AnalysisConfig()
    effective_seed = int(seed) if seed is not None else seed_for_buffer(buffer)

    try:
        _report_progress(on_progress, 5.0)
        tempo = estimate_tempo(
            buffer,
            window_size=settings.tempo_window_size,
            scan_seconds=settings.tempo_scan_seconds,
        )
        _log.info("Tempo estimated", bpm=tempo.bpm, fallback=tempo.used_fallback)
        _report_progress(on_progress, 10.0)

        total_frames = frame_count(buffer, settings.window_size)
        selector = OnsetSelector(
            history_size=settings.history_size,
            threshold_multiplier=settings.threshold_multiplier,
            min_rms=settings.min_candidate_rms,
        )

        for frame in extract(buffer, settings.window_size):
            _check_cancelled(cancel_event)
            selector.on_frame(frame)
            if on_progress is not None and total_frames:
                _report_progress(on_progress, min(85.0, 10.0 + 75.0 * (frame.index + 1) / float(total_frames)))

        _report_progress(on_progress, 90.0)
        selection = selector.finish(tempo.bpm)
        _log.info(
            "Candidates filtered",
            pool=len(selection.pool),
            selected=len(selection.selected),
        )
        _report_progress(on_progress, 95.0)

        chart = encode_chart(
            selection.selected,
            selection.pool,
            tempo_bpm=tempo.bpm,
            rng=random.Random(effective_seed),
            min_gap_seconds=settings.min_gap_seconds,
            quantize=settings.quantize_to_grid,
            quantize_max_shift_seconds=settings.quantize_max_shift_seconds,
            note_duration_seconds=settings.note_duration_seconds,
            duration_seconds=buffer.duration_seconds,
            seed=effective_seed,
            generator_version=GENERATOR_VERSION,
        )

        if not chart.notes:
            if settings.require_notes:
                raise EmptyChartError("No notes survived analysis")
            _log.warning("Chart has no notes", duration=round(buffer.duration_seconds, 3))

        _log.info("Chart generated", notes=len(chart.notes), tempo=chart.tempo_bpm)
        _report_progress(on_progress, 100.0)
    except AnalysisError:
        raise
    except (ChartValidationError, ValueError, ArithmeticError, MemoryError) as exc:
        raise AnalysisError(f"Audio analysis failed: {exc}") from exc
    except Exception as exc:
        # Progress callbacks are caller code and may raise anything.
        raise AnalysisError(f"Analysis callback failed: {exc}") from exc

    return GeneratedChart(
        chart=chart,
        tempo=tempo,
        frame_count=int(total_frames),
        pool_size=len(selection.pool),
        selected_count=len(selection.selected),
        seed=int(effective_seed),
        generator_version=GENERATOR_VERSION,
    )


def generate_chart(
    buffer: AudioBuffer,
    *,
    analysis_config: Optional[AnalysisConfig] = None,
    seed: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Chart:
    return generate_chart_report(
        buffer,
        analysis_config=analysis_config,
        seed=seed,
        on_progress=on_progress,
        cancel_event=cancel_event,
    ).chart
