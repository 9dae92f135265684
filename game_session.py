# -*- coding: utf-8 -*-
########################
# game_session.py
########################
# Purpose:
# - One play-through of a Chart: clock, pending notes, judge, hit effects and drift monitor.
# - Engine API used by the game loop, the CLI and tests:
#   new_session, start, tick, handle_input, stop.
#
# Design notes:
# - No Qt usage. Every call takes the caller's monotonic "now"; nothing reads a real timer.
# - GameSession is an explicit owned record; update functions receive it by reference.
# - Customization is validated once here and passed through untouched in every RenderState.
# - Nothing is processed in IDLE or COUNTDOWN. Inputs outside RUNNING are IGNORED without effects.
# - Exceptions raised while ticking propagate; game_loop.py decides how to stop.
#
########################
# Interfaces:
# Public dataclasses:
# - GameSession(chart, config, clock, scheduler, judge, timing, hit_effects)
#
# Public functions:
# - new_session(chart: Chart, config: AppConfig | Mapping | None = None) -> GameSession
# - start(session: GameSession, now: float) -> None
# - tick(session: GameSession, now: float) -> RenderState
# - handle_input(session: GameSession, lane: Lane | int, now: float) -> HitOutcome
# - stop(session: GameSession) -> None
# - report_playback_position(session: GameSession, playback_time_seconds: float, now: float) -> Optional[float]
# - render_state(session: GameSession) -> RenderState
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

import gameplay_models
import note_scheduler
from config import AppConfig, CustomizationConfig, SessionConfig
from game_clock import ClockState, PlaybackClock
from judge import JudgeEngine
from logging_utils import get_tag_logger
from timing_model import TimingModel


_session_log = get_tag_logger("Session")
_judge_log = get_tag_logger("Judge")
_timing_log = get_tag_logger("Timing")


@dataclass
class GameSession:
    chart: gameplay_models.Chart
    config: AppConfig
    clock: PlaybackClock
    scheduler: note_scheduler.NoteScheduler
    judge: JudgeEngine
    timing: TimingModel
    hit_effects: List[gameplay_models.HitEffect] = field(default_factory=list)

    @property
    def session_config(self) -> SessionConfig:
        return self.config.session

    @property
    def customization(self) -> CustomizationConfig:
        return self.config.customization

    @property
    def state(self) -> ClockState:
        return self.clock.state

    @property
    def score(self) -> int:
        return self.judge.score_state().score

    @property
    def combo(self) -> int:
        return self.judge.score_state().combo

    @property
    def clock_time_seconds(self) -> float:
        return self.clock.clock_time_seconds


def _validated_config(config: Union[AppConfig, Mapping[str, Any], None]) -> AppConfig:
    if config is None:
        return AppConfig()
    raw = config.model_dump() if isinstance(config, AppConfig) else dict(config)
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exception:
        raise ValueError(f"Session config validation failed:\n{exception}") from exception


def new_session(
    chart: gameplay_models.Chart,
    config: Union[AppConfig, Mapping[str, Any], None] = None,
) -> GameSession:
    app_config = _validated_config(config)
    session_config = app_config.session

    playfield = note_scheduler.Playfield.from_config(session_config)
    scheduler = note_scheduler.NoteScheduler(chart, playfield)
    session = GameSession(
        chart=chart,
        config=app_config,
        clock=PlaybackClock(countdown_seconds=session_config.countdown_seconds),
        scheduler=scheduler,
        judge=JudgeEngine.from_config(scheduler, session_config),
        timing=TimingModel(av_offset_seconds=session_config.av_offset_seconds),
    )
    _session_log.debug("Session created", notes=len(chart.notes), tempo=chart.tempo_bpm)
    return session


def start(session: GameSession, now: float) -> None:
    session.clock.start(now)
    _session_log.info("Session started", state=session.clock.state.value)


def stop(session: GameSession) -> None:
    if session.clock.is_finished:
        return
    session.clock.stop()
    _session_log.info("Session stopped", score=session.score)


def _prune_effects(session: GameSession, clock_time_seconds: float) -> None:
    session.hit_effects = [
        effect for effect in session.hit_effects if not effect.is_expired(clock_time_seconds)
    ]


def _check_complete(session: GameSession, clock_time_seconds: float) -> None:
    if session.scheduler.pending_count() > 0:
        return
    last_note_time = session.scheduler.last_note_time() or 0.0
    if clock_time_seconds > last_note_time + float(session.session_config.completion_tail_seconds):
        session.clock.complete()
        stats = session.judge.score_state()
        _session_log.info(
            "Session complete",
            score=stats.score,
            max_combo=stats.max_combo,
            perfect=stats.perfect_count,
            good=stats.good_count,
            miss=stats.miss_count,
            scrolled=stats.scrolled_count,
        )


def tick(session: GameSession, now: float) -> gameplay_models.RenderState:
    previous_state = session.clock.state
    clock_time = session.clock.tick(now)
    if previous_state is not session.clock.state:
        _session_log.info("Clock state changed", state=session.clock.state.value)

    if session.clock.is_running:
        dropped = session.scheduler.drop_scrolled_off(clock_time)
        if dropped:
            session.judge.apply_scrolled_notes(
                dropped,
                penalize=bool(session.session_config.penalize_scrolled_notes),
            )
            _session_log.debug("Notes scrolled off", count=len(dropped))
        _prune_effects(session, clock_time)
        _check_complete(session, clock_time)

    return render_state(session)


def handle_input(session: GameSession, lane: Union[gameplay_models.Lane, int], now: float) -> gameplay_models.HitOutcome:
    lane_value = gameplay_models.Lane(lane)
    if not session.clock.is_running:
        return gameplay_models.HitOutcome(
            lane=lane_value,
            judgement=gameplay_models.Judgement.IGNORED,
            score_delta=0,
            time_seconds=session.clock.clock_time_seconds,
        )

    clock_time = session.clock.time_at(now)
    outcome, effect = session.judge.handle_input(lane_value, clock_time)
    session.hit_effects.append(effect)
    _judge_log.debug(
        "Input judged",
        lane=lane_value.name,
        judgement=outcome.judgement.value,
        delta=outcome.score_delta,
        score=session.score,
    )
    return outcome


def report_playback_position(session: GameSession, playback_time_seconds: float, now: float) -> Optional[float]:
    """Record where the audio backend says playback is. Returns the drift, or None when not running."""
    if not session.clock.is_running:
        return None
    drift = session.timing.record_playback_position(
        clock_time_seconds=session.clock.time_at(now),
        playback_time_seconds=playback_time_seconds,
    )
    if abs(drift) > float(session.session_config.drift_warning_seconds):
        _timing_log.warning("Audio drift above threshold", drift=round(drift, 4))
    return drift


def render_state(session: GameSession) -> gameplay_models.RenderState:
    clock_time = session.clock.clock_time_seconds
    positions = session.scheduler.visible_positions(clock_time) if session.clock.state is not ClockState.IDLE else []
    return gameplay_models.RenderState(
        note_positions=tuple(positions),
        score=session.score,
        combo=session.combo,
        hit_effects=tuple(session.hit_effects),
        clock_state=session.clock.state.value,
        countdown=session.clock.countdown_value,
        clock_time_seconds=clock_time,
        customization=session.customization,
    )
