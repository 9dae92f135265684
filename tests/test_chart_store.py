import json

import mido
import pytest

from chart_store import (
    ChartFormatError,
    chart_from_dict,
    chart_from_midi,
    chart_to_dict,
    chart_to_midi,
    load_chart_json,
    load_chart_midi,
    save_chart_as_sm,
    save_chart_json,
    save_chart_midi,
)
from demo_chart import build_demo_chart
from gameplay_models import Chart, ChartValidationError, Lane, Note


def _metadata_chart():
    return Chart(
        tempo_bpm=128,
        notes=(
            Note(time_seconds=0.5, lane=Lane.UP, duration_seconds=0.1, velocity=64),
            Note(time_seconds=1.0, lane=Lane.RIGHT, duration_seconds=0.25, velocity=0),
            Note(time_seconds=1.4, lane=Lane.LEFT, duration_seconds=0.1, velocity=127),
        ),
        duration_seconds=3.5,
        seed=123456789,
        generator_version="onset_v1",
    )


def test_json_round_trip_is_lossless(tmp_path):
    chart = _metadata_chart()
    path = tmp_path / "charts" / "song.json"
    save_chart_json(path, chart)
    loaded = load_chart_json(path)
    assert loaded == chart
    assert loaded.notes == chart.notes


def test_json_record_shape():
    payload = chart_to_dict(_metadata_chart())
    assert payload["tempoBpm"] == 128
    assert payload["timeSignature"] == [4, 4]
    assert payload["notes"][0] == {"time": 0.5, "lane": 1, "duration": 0.1, "velocity": 64}


def test_minimal_record_uses_defaults():
    chart = chart_from_dict({"tempoBpm": 120, "notes": [{"time": 1.0, "lane": 3}]})
    assert chart.notes == (Note(time_seconds=1.0, lane=Lane.RIGHT),)
    assert chart.time_signature == (4, 4)
    assert chart.seed is None


@pytest.mark.parametrize(
    "payload",
    [
        {"tempoBpm": 120},
        {"tempoBpm": 120, "notes": "nope"},
        {"tempoBpm": 120, "notes": [{"time": 1.0, "lane": 7}]},
        {"tempoBpm": 120, "notes": [{"time": "soon", "lane": 0}]},
        {"tempoBpm": 120, "notes": [{"time": 1.0, "lane": 0}, {"time": 1.1, "lane": 1}]},
        {"tempoBpm": 250, "notes": []},
        {"format": "other", "tempoBpm": 120, "notes": []},
        {"tempoBpm": 120, "minGap": 0.0001, "notes": [{"time": t, "lane": 0} for t in (1.0, 1.01, 1.02)]},
        {"tempoBpm": 120, "minGap": "0.5", "notes": []},
        {"tempoBpm": 120, "notes": [{"time": float("nan"), "lane": 0}, {"time": 1.0, "lane": 1}]},
        {"tempoBpm": 120, "notes": [{"time": float("inf"), "lane": 0}]},
        {"tempoBpm": 120, "notes": [{"time": 1.0, "lane": 0, "duration": float("nan")}]},
        {"tempoBpm": 120, "notes": [{"time": 1.0, "lane": 0, "duration": -0.1}]},
        ["not", "an", "object"],
    ],
)
def test_malformed_records_raise_format_error(payload):
    with pytest.raises(ChartFormatError):
        chart_from_dict(payload)


def test_invalid_json_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{ not json", encoding="utf-8")
    with pytest.raises(ChartFormatError):
        load_chart_json(path)


def test_missing_json_file(tmp_path):
    with pytest.raises(ChartFormatError):
        load_chart_json(tmp_path / "absent.json")


def test_midi_layout():
    midi_file = chart_to_midi(_metadata_chart())
    messages = list(midi_file.tracks[0])
    tempo_messages = [message for message in messages if message.type == "set_tempo"]
    assert tempo_messages[0].tempo == mido.bpm2tempo(128)
    note_ons = [message for message in messages if message.type == "note_on"]
    assert [message.note % 4 for message in note_ons] == [Lane.UP, Lane.RIGHT, Lane.LEFT]
    # velocity 0 would read back as a note_off, so it is written as 1
    assert [message.velocity for message in note_ons] == [64, 1, 127]


def test_midi_round_trip_keeps_lanes_and_times(tmp_path):
    chart = build_demo_chart(difficulty="hard")
    path = tmp_path / "demo.mid"
    save_chart_midi(path, chart)
    loaded = load_chart_midi(path)

    tick_seconds = mido.tick2second(1, 480, mido.bpm2tempo(chart.tempo_bpm))
    assert loaded.tempo_bpm == chart.tempo_bpm
    assert [note.lane for note in loaded.notes] == [note.lane for note in chart.notes]
    for written, restored in zip(chart.notes, loaded.notes):
        assert restored.time_seconds == pytest.approx(written.time_seconds, abs=tick_seconds)


def test_midi_file_with_notes_too_close_is_rejected():
    midi_file = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    midi_file.tracks.append(track)
    track.append(mido.Message("note_on", note=36, velocity=100, time=0))
    track.append(mido.Message("note_off", note=36, velocity=0, time=10))
    track.append(mido.Message("note_on", note=37, velocity=100, time=10))
    track.append(mido.Message("note_off", note=37, velocity=0, time=10))
    with pytest.raises(ChartFormatError):
        chart_from_midi(midi_file)


def test_unreadable_midi_file(tmp_path):
    path = tmp_path / "garbage.mid"
    path.write_bytes(b"definitely not midi")
    with pytest.raises(ChartFormatError):
        load_chart_midi(path)


def test_sm_export(tmp_path):
    chart = build_demo_chart()
    path = tmp_path / "demo.sm"
    save_chart_as_sm(path, chart=chart, title="demo")
    text = path.read_text(encoding="utf-8")

    assert "#TITLE:demo;" in text
    assert "#BPMS:0.000=120.000;" in text
    rows = [line for line in text.splitlines() if len(line) == 4 and set(line) <= {"0", "1"}]
    assert sum(row.count("1") for row in rows) == len(chart.notes)
    # 2.5 s at 120 BPM is beat 5: second measure, fifth sixteenth row, Left column.
    assert rows[16 + 4] == "1000"


def test_chart_refuses_a_gap_below_the_floor():
    with pytest.raises(ChartValidationError):
        Chart(
            tempo_bpm=120,
            notes=(Note(time_seconds=1.0, lane=Lane.LEFT), Note(time_seconds=1.25, lane=Lane.LEFT)),
            min_gap_seconds=0.25,
        )


def test_wider_gap_in_record_is_kept():
    chart = chart_from_dict(
        {"tempoBpm": 120, "minGap": 0.5, "notes": [{"time": 1.0, "lane": 0}, {"time": 1.5, "lane": 1}]}
    )
    assert chart.min_gap_seconds == 0.5
    with pytest.raises(ChartFormatError):
        chart_from_dict({"tempoBpm": 120, "minGap": 0.5, "notes": [{"time": 1.0, "lane": 0}, {"time": 1.45, "lane": 1}]})


def test_midi_import_can_be_saved_as_json(tmp_path):
    midi_path = tmp_path / "demo.mid"
    save_chart_midi(midi_path, build_demo_chart(difficulty="hard"))
    loaded = load_chart_midi(midi_path)
    assert loaded.min_gap_seconds == 0.4

    json_path = tmp_path / "demo.json"
    save_chart_json(json_path, loaded)
    assert load_chart_json(json_path) == loaded
