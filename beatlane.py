"""
beatlane.py

Command line entrypoint.

Subcommands
- generate AUDIO -o OUT   analyse an audio file and write the chart (json, midi or sm)
- inspect CHART           summarise a chart file (json or midi)
- demo -o OUT             write the built-in demo chart
- autoplay CHART          play a chart with the Qt game loop and a perfect autoplayer
- config                  print the effective configuration

Every subcommand prints one JSON object and returns 0 on success, 2 on failure.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

import chart_store
import config as config_module
from analysis_models import AnalysisError
from audio_io import load_audio_file
from chart_generator import generate_chart_report
from demo_chart import DEMO_DIFFICULTIES, build_demo_chart
from gameplay_models import Chart, ChartValidationError, Lane
from logging_utils import get_tag_logger, set_log_level


_log = get_tag_logger("CLI")

_CHART_FORMATS = ("json", "midi", "sm")


def _print_payload(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _fail(message: str) -> int:
    _print_payload({"ok": False, "error": str(message)})
    return 2


def _load_app_config(config_path: Optional[str]) -> config_module.AppConfig:
    app_config, _resolved = config_module.load_config(Path(config_path) if config_path else None)
    set_log_level(app_config.logging.level)
    return app_config


def _format_from_suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in (".mid", ".midi"):
        return "midi"
    if suffix == ".sm":
        return "sm"
    return "json"


def load_chart_file(path: Path) -> Chart:
    if _format_from_suffix(path) == "midi":
        return chart_store.load_chart_midi(path)
    return chart_store.load_chart_json(path)


def save_chart_file(path: Path, chart: Chart, *, chart_format: str, title: str) -> None:
    if chart_format == "midi":
        chart_store.save_chart_midi(path, chart)
    elif chart_format == "sm":
        chart_store.save_chart_as_sm(path, chart=chart, title=title)
    else:
        chart_store.save_chart_json(path, chart)


def summarize_chart(chart: Chart) -> Dict[str, Any]:
    lane_counts = Counter(note.lane for note in chart.notes)
    times: List[float] = [note.time_seconds for note in chart.notes]
    gaps = [later - earlier for earlier, later in zip(times, times[1:])]
    return {
        "tempo_bpm": chart.tempo_bpm,
        "time_signature": list(chart.time_signature),
        "note_count": len(chart.notes),
        "lanes": {lane.name: int(lane_counts.get(lane, 0)) for lane in Lane},
        "first_note_seconds": times[0] if times else None,
        "last_note_seconds": times[-1] if times else None,
        "min_gap_seconds": round(min(gaps), 6) if gaps else None,
        "duration_seconds": chart.duration_seconds,
        "seed": chart.seed,
        "generator_version": chart.generator_version,
    }


def _cmd_generate(args: argparse.Namespace) -> int:
    app_config = _load_app_config(args.config)
    audio_path = Path(args.audio)
    output_path = Path(args.output)
    chart_format = args.format or _format_from_suffix(output_path)

    def on_progress(percent: float) -> None:
        _log.debug("Progress", percent=round(percent, 1))

    try:
        buffer = load_audio_file(audio_path)
        report = generate_chart_report(
            buffer,
            analysis_config=app_config.analysis,
            seed=args.seed,
            on_progress=on_progress,
        )
        save_chart_file(output_path, report.chart, chart_format=chart_format, title=args.title or audio_path.stem)
    except (AnalysisError, OSError) as exc:
        return _fail(str(exc))

    _print_payload(
        {
            "ok": True,
            "output": str(output_path),
            "format": chart_format,
            "frames": report.frame_count,
            "candidates": report.pool_size,
            "selected": report.selected_count,
            "tempo_fallback": report.tempo.used_fallback,
            "chart": summarize_chart(report.chart),
        }
    )
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    try:
        chart = load_chart_file(Path(args.chart))
    except (chart_store.ChartFormatError, ChartValidationError) as exc:
        return _fail(str(exc))
    _print_payload({"ok": True, "chart": summarize_chart(chart)})
    return 0


def _cmd_demo(args: argparse.Namespace) -> int:
    output_path = Path(args.output)
    chart = build_demo_chart(difficulty=args.difficulty)
    try:
        save_chart_file(output_path, chart, chart_format=args.format or _format_from_suffix(output_path), title="demo")
    except OSError as exc:
        return _fail(str(exc))
    _print_payload({"ok": True, "output": str(output_path), "chart": summarize_chart(chart)})
    return 0


def _cmd_autoplay(args: argparse.Namespace) -> int:
    from PyQt6.QtCore import QCoreApplication, QTimer

    from game_loop import AutoPlayer, GameLoop

    app_config = _load_app_config(args.config)
    try:
        chart = load_chart_file(Path(args.chart)) if args.chart else build_demo_chart()
    except (chart_store.ChartFormatError, ChartValidationError) as exc:
        return _fail(str(exc))

    qt_application = QCoreApplication.instance() or QCoreApplication(sys.argv)
    game_loop = GameLoop(chart, app_config)
    autoplayer = AutoPlayer(game_loop)
    failures: List[str] = []

    game_loop.sessionFinished.connect(lambda _state: qt_application.quit())
    game_loop.loopFailed.connect(lambda message: (failures.append(message), qt_application.quit()))

    session_config = app_config.session
    budget_seconds = (
        chart.last_note_time() + session_config.countdown_seconds + session_config.completion_tail_seconds + 5.0
    )
    QTimer.singleShot(int(budget_seconds * 1000), qt_application.quit)

    game_loop.start_loop()
    qt_application.exec()
    game_loop.stop_loop()

    if failures:
        return _fail(failures[0])

    stats = game_loop.session().judge.score_state()
    _print_payload(
        {
            "ok": True,
            "state": game_loop.session().state.value,
            "presses": autoplayer.presses,
            "score": stats.score,
            "max_combo": stats.max_combo,
            "perfect": stats.perfect_count,
            "good": stats.good_count,
            "miss": stats.miss_count,
            "scrolled": stats.scrolled_count,
        }
    )
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    return config_module.main(Path(args.config) if args.config else None)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="beatlane", description="Audio to rhythm chart generator and player")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser("generate", help="Analyse an audio file into a chart.")
    generate_parser.add_argument("audio", help="Audio file readable by libsndfile (wav, flac, ogg, ...).")
    generate_parser.add_argument("-o", "--output", required=True, help="Chart output path.")
    generate_parser.add_argument("--format", choices=_CHART_FORMATS, help="Defaults to the output suffix.")
    generate_parser.add_argument("--seed", type=int, default=None, help="Lane seed. Defaults to a hash of the audio.")
    generate_parser.add_argument("--title", default=None, help="Title written to .sm output.")
    generate_parser.add_argument("--config", default=None, help="Config file path.")
    generate_parser.set_defaults(handler=_cmd_generate)

    inspect_parser = subparsers.add_parser("inspect", help="Summarise a chart file.")
    inspect_parser.add_argument("chart", help="Chart file (.json or .mid).")
    inspect_parser.set_defaults(handler=_cmd_inspect)

    demo_parser = subparsers.add_parser("demo", help="Write the built-in demo chart.")
    demo_parser.add_argument("-o", "--output", required=True)
    demo_parser.add_argument("--difficulty", choices=DEMO_DIFFICULTIES, default="easy")
    demo_parser.add_argument("--format", choices=_CHART_FORMATS)
    demo_parser.set_defaults(handler=_cmd_demo)

    autoplay_parser = subparsers.add_parser("autoplay", help="Run a chart through the game loop with an autoplayer.")
    autoplay_parser.add_argument("chart", nargs="?", default=None, help="Chart file. Defaults to the demo chart.")
    autoplay_parser.add_argument("--config", default=None, help="Config file path.")
    autoplay_parser.set_defaults(handler=_cmd_autoplay)

    config_parser = subparsers.add_parser("config", help="Print the effective configuration.")
    config_parser.add_argument("--config", default=None, help="Config file path.")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argument_parser().parse_args(argv)
    try:
        return int(args.handler(args))
    except (OSError, ValueError) as exc:
        # Config file problems surface here before any subcommand work starts.
        return _fail(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
