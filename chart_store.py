# -*- coding: utf-8 -*-
########################
# chart_store.py
########################
# Purpose:
# - Serialize and persist Charts.
# - JSON: the canonical self-contained record, lossless round trip.
# - MIDI: Standard MIDI File export/import. Lane is the note number modulo 4.
# - StepMania .sm: export only, dance-single, 16th-note rows.
#
# Design notes:
# - No Qt usage. Pure serialization.
# - Loading never silently accepts an invalid chart: malformed input raises ChartFormatError.
# - MIDI note_on with velocity 0 means note_off, so velocity 0 notes are written as velocity 1.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartFormatError(ValueError)
#
# Public functions:
# - chart_to_dict(chart: Chart) -> dict
# - chart_from_dict(payload: dict) -> Chart
# - save_chart_json(output_path: pathlib.Path, chart: Chart) -> None
# - load_chart_json(input_path: pathlib.Path) -> Chart
# - chart_to_midi(chart: Chart) -> mido.MidiFile
# - chart_from_midi(midi_file: mido.MidiFile, *, min_gap_seconds: float = 0.4) -> Chart
# - save_chart_midi(output_path: pathlib.Path, chart: Chart) -> None
# - load_chart_midi(input_path: pathlib.Path, *, min_gap_seconds: float = 0.4) -> Chart
# - save_chart_as_sm(output_path: pathlib.Path, *, chart: Chart, title: str, offset_seconds: float = 0.0) -> None
#
########################

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

import mido

from gameplay_models import (
    DEFAULT_MIN_GAP_SECONDS,
    Chart,
    ChartValidationError,
    Lane,
    Note,
)


FORMAT_NAME = "beatlane-chart"
FORMAT_VERSION = 1

MIDI_TICKS_PER_BEAT = 480
MIDI_LANE_NOTE_BASE = 36

# StepMania dance-single column order is Left, Down, Up, Right.
_SM_COLUMN_FOR_LANE = {
    Lane.LEFT: 0,
    Lane.DOWN: 1,
    Lane.UP: 2,
    Lane.RIGHT: 3,
}


class ChartFormatError(ValueError):
    """Raised when a serialized chart cannot be parsed into a valid Chart."""


# ----------------------------------------------------------------------
# JSON
# ----------------------------------------------------------------------

def chart_to_dict(chart: Chart) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "tempoBpm": int(chart.tempo_bpm),
        "timeSignature": [int(chart.time_signature[0]), int(chart.time_signature[1])],
        "minGap": float(chart.min_gap_seconds),
        "notes": [
            {
                "time": float(note.time_seconds),
                "lane": int(note.lane),
                "duration": float(note.duration_seconds),
                "velocity": int(note.velocity),
            }
            for note in chart.notes
        ],
    }
    if chart.duration_seconds is not None:
        payload["durationSeconds"] = float(chart.duration_seconds)
    if chart.seed is not None:
        payload["seed"] = int(chart.seed)
    if chart.generator_version is not None:
        payload["generatorVersion"] = str(chart.generator_version)
    return payload


def _require(payload: Dict[str, Any], key: str) -> Any:
    if key not in payload:
        raise ChartFormatError(f"Missing required field: {key!r}")
    return payload[key]


def _parse_note(raw_note: Any, index: int) -> Note:
    if not isinstance(raw_note, dict):
        raise ChartFormatError(f"Note {index} must be an object")
    try:
        lane_value = int(_require(raw_note, "lane"))
        if lane_value not in (0, 1, 2, 3):
            raise ChartFormatError(f"Note {index} lane must be 0..3, got {lane_value}")
        return Note(
            time_seconds=float(_require(raw_note, "time")),
            lane=Lane(lane_value),
            duration_seconds=float(raw_note.get("duration", 0.1)),
            velocity=int(raw_note.get("velocity", 100)),
        )
    except ChartFormatError:
        raise
    except (TypeError, ValueError) as exc:
        raise ChartFormatError(f"Invalid note {index}: {exc}") from exc


def chart_from_dict(payload: Dict[str, Any]) -> Chart:
    if not isinstance(payload, dict):
        raise ChartFormatError("Chart payload root must be an object")

    format_name = payload.get("format", FORMAT_NAME)
    if format_name != FORMAT_NAME:
        raise ChartFormatError(f"Unsupported chart format: {format_name!r}")
    version = payload.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ChartFormatError(f"Unsupported chart format version: {version!r}")

    raw_notes = _require(payload, "notes")
    if not isinstance(raw_notes, list):
        raise ChartFormatError("notes must be a list")
    notes = [_parse_note(raw_note, index) for index, raw_note in enumerate(raw_notes)]

    min_gap_value = payload.get("minGap", DEFAULT_MIN_GAP_SECONDS)
    is_number = isinstance(min_gap_value, (int, float)) and not isinstance(min_gap_value, bool)
    if not is_number or not min_gap_value >= DEFAULT_MIN_GAP_SECONDS:
        raise ChartFormatError(f"minGap must be a number >= {DEFAULT_MIN_GAP_SECONDS}, got {min_gap_value!r}")

    raw_signature = payload.get("timeSignature", [4, 4])
    try:
        time_signature = (int(raw_signature[0]), int(raw_signature[1]))
        duration_value = payload.get("durationSeconds")
        seed_value = payload.get("seed")
        return Chart(
            tempo_bpm=int(_require(payload, "tempoBpm")),
            notes=tuple(notes),
            time_signature=time_signature,
            min_gap_seconds=float(min_gap_value),
            duration_seconds=float(duration_value) if duration_value is not None else None,
            seed=int(seed_value) if seed_value is not None else None,
            generator_version=payload.get("generatorVersion"),
        )
    except (TypeError, IndexError, ValueError) as exc:
        if isinstance(exc, ChartFormatError):
            raise
        raise ChartFormatError(f"Invalid chart: {exc}") from exc


def save_chart_json(output_path: Path, chart: Chart) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(chart_to_dict(chart), indent=2), encoding="utf-8")


def load_chart_json(input_path: Path) -> Chart:
    input_path = Path(input_path)
    try:
        raw_text = input_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ChartFormatError(f"Chart file is not valid UTF-8: {input_path}") from exc
    except OSError as exc:
        raise ChartFormatError(f"Failed to read chart file: {input_path}") from exc

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ChartFormatError(f"Chart file is not valid JSON: {input_path}. Error: {exc}") from exc

    return chart_from_dict(payload)


# ----------------------------------------------------------------------
# MIDI
# ----------------------------------------------------------------------

def chart_to_midi(chart: Chart) -> mido.MidiFile:
    midi_file = mido.MidiFile(ticks_per_beat=MIDI_TICKS_PER_BEAT)
    track = mido.MidiTrack()
    midi_file.tracks.append(track)

    tempo = int(mido.bpm2tempo(chart.tempo_bpm))
    numerator, denominator = chart.time_signature
    track.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
    track.append(mido.MetaMessage("time_signature", numerator=numerator, denominator=denominator, time=0))

    # (tick, order, message); note_off sorts before note_on at the same tick.
    events: List[Tuple[int, int, mido.Message]] = []
    for note in chart.notes:
        note_number = MIDI_LANE_NOTE_BASE + int(note.lane)
        start_tick = int(round(mido.second2tick(note.time_seconds, MIDI_TICKS_PER_BEAT, tempo)))
        end_tick = int(round(mido.second2tick(note.time_seconds + note.duration_seconds, MIDI_TICKS_PER_BEAT, tempo)))
        end_tick = max(end_tick, start_tick + 1)
        velocity = max(1, int(note.velocity))
        events.append((start_tick, 1, mido.Message("note_on", channel=0, note=note_number, velocity=velocity)))
        events.append((end_tick, 0, mido.Message("note_off", channel=0, note=note_number, velocity=0)))

    events.sort(key=lambda item: (item[0], item[1]))
    previous_tick = 0
    for tick, _order, message in events:
        track.append(message.copy(time=tick - previous_tick))
        previous_tick = tick

    track.append(mido.MetaMessage("end_of_track", time=0))
    return midi_file


def chart_from_midi(midi_file: mido.MidiFile, *, min_gap_seconds: float = DEFAULT_MIN_GAP_SECONDS) -> Chart:
    ticks_per_beat = int(midi_file.ticks_per_beat)
    tempo = int(mido.bpm2tempo(120))
    time_signature = (4, 4)
    open_notes: Dict[int, Tuple[float, int]] = {}
    notes: List[Note] = []

    # A single tempo is assumed; the first set_tempo wins.
    tempo_seen = False
    for track in midi_file.tracks:
        for message in track:
            if message.is_meta and message.type == "set_tempo" and not tempo_seen:
                tempo = int(message.tempo)
                tempo_seen = True
            elif message.is_meta and message.type == "time_signature":
                time_signature = (int(message.numerator), int(message.denominator))

    for track in midi_file.tracks:
        absolute_ticks = 0
        for message in track:
            absolute_ticks += int(message.time)
            if message.is_meta:
                continue
            seconds = float(mido.tick2second(absolute_ticks, ticks_per_beat, tempo))
            if message.type == "note_on" and message.velocity > 0:
                open_notes[message.note] = (seconds, int(message.velocity))
            elif message.type in ("note_off", "note_on") and message.note in open_notes:
                start_seconds, velocity = open_notes.pop(message.note)
                notes.append(
                    Note(
                        time_seconds=round(start_seconds, 6),
                        lane=Lane(message.note % 4),
                        duration_seconds=round(max(0.0, seconds - start_seconds), 6),
                        velocity=velocity,
                    )
                )

    notes.sort(key=lambda note: (note.time_seconds, int(note.lane)))
    try:
        return Chart(
            tempo_bpm=int(round(mido.tempo2bpm(tempo))),
            notes=tuple(notes),
            time_signature=time_signature,
            min_gap_seconds=float(min_gap_seconds),
        )
    except ChartValidationError as exc:
        raise ChartFormatError(f"MIDI does not form a valid chart: {exc}") from exc


def save_chart_midi(output_path: Path, chart: Chart) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    chart_to_midi(chart).save(str(output_path))


def load_chart_midi(input_path: Path, *, min_gap_seconds: float = DEFAULT_MIN_GAP_SECONDS) -> Chart:
    try:
        midi_file = mido.MidiFile(str(input_path))
    except (OSError, EOFError, ValueError) as exc:
        raise ChartFormatError(f"Failed to read MIDI file {input_path}: {exc}") from exc
    return chart_from_midi(midi_file, min_gap_seconds=min_gap_seconds)


# ----------------------------------------------------------------------
# StepMania
# ----------------------------------------------------------------------

def _build_notes_text_from_chart(chart: Chart) -> str:
    seconds_per_beat = chart.seconds_per_beat
    beats_per_measure = float(chart.time_signature[0])
    rows_per_measure = 16
    beats_per_row = beats_per_measure / float(rows_per_measure)

    # Convert times to beat positions and map to (measure_index, row_index).
    placements: List[Tuple[int, int, int]] = []
    for note in chart.notes:
        beat_value = note.time_seconds / seconds_per_beat
        measure_index = int(beat_value // beats_per_measure)
        beat_in_measure = beat_value - (float(measure_index) * beats_per_measure)
        row_index = int(round(beat_in_measure / beats_per_row))
        if row_index >= rows_per_measure:
            measure_index += 1
            row_index = 0
        placements.append((measure_index, row_index, _SM_COLUMN_FOR_LANE[note.lane]))

    last_measure_index = 0
    if placements:
        last_measure_index = max(item[0] for item in placements)
    measures_count = max(1, last_measure_index + 1)

    measure_rows = [[["0", "0", "0", "0"] for _ in range(rows_per_measure)] for _ in range(measures_count)]
    for measure_index, row_index, column_index in placements:
        measure_rows[measure_index][row_index][column_index] = "1"

    output_lines: List[str] = []
    for measure_index, rows in enumerate(measure_rows):
        for row in rows:
            output_lines.append("".join(row))
        if measure_index != len(measure_rows) - 1:
            output_lines.append(",")

    return "\n".join(output_lines) + "\n"


def save_chart_as_sm(
    output_path: Path,
    *,
    chart: Chart,
    title: str,
    offset_seconds: float = 0.0,
) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    lines: List[str] = []
    lines.append(f"#TITLE:{str(title or 'Untitled')};")
    lines.append(f"#OFFSET:{float(offset_seconds):.6f};")
    lines.append(f"#BPMS:0.000={float(chart.tempo_bpm):.3f};")
    if chart.generator_version is not None:
        lines.append(f"#BEATLANE_GENERATOR_VERSION:{chart.generator_version};")
    if chart.seed is not None:
        lines.append(f"#BEATLANE_SEED:{int(chart.seed)};")
    lines.append("")
    lines.append("#NOTES:")
    lines.append("     dance-single:")
    lines.append("     :")
    lines.append("     Medium:")
    lines.append("     1:")
    lines.append("     0.000,0.000,0.000,0.000,0.000:")
    lines.append(_build_notes_text_from_chart(chart).rstrip("\n"))
    lines.append(";")
    lines.append("")

    output_path.write_text("\n".join(lines), encoding="utf-8")
