# -*- coding: utf-8 -*-
########################
# game_loop.py
########################
# Purpose:
# - Qt driver for one GameSession: a QTimer ticks the session at display cadence,
#   keyboard input reaches the judge through InputRouter.
# - Stops on fatal errors and reports them so the application can offer a restart.
#
# Design notes:
# - Single threaded. Ticks and inputs run on the Qt thread, in arrival order.
# - The monotonic time source is injected; step(now) is the whole per-frame body so tests
#   can drive the loop without a running event loop.
# - A tick that raises stops the timer, marks the session STOPPED, logs, and emits loopFailed.
# - restart() always builds a fresh session from the same chart and config.
#
########################
# Interfaces:
# Public classes:
# - class GameLoop(PyQt6.QtCore.QObject)
#   - Signals:
#     - renderStateUpdated(RenderState)
#     - sessionFinished(RenderState)
#     - loopFailed(str)
#   - Methods:
#     - session() -> GameSession
#     - router() -> InputRouter
#     - begin(now: Optional[float] = None) -> None
#     - start_loop() -> None
#     - stop_loop() -> None
#     - restart(*, start: bool = True) -> None
#     - step(now: Optional[float] = None) -> Optional[RenderState]
#     - handle_input(lane: Lane, now: Optional[float] = None) -> HitOutcome
#     - report_playback_position(playback_time_seconds: float, now: Optional[float] = None) -> Optional[float]
#
# - class AutoPlayer(PyQt6.QtCore.QObject)
#   - Presses every note's lane as soon as the note reaches the judge line.
#
########################

from __future__ import annotations

import time
from typing import Callable, Optional

from PyQt6.QtCore import QEvent, QObject, QTimer, pyqtSignal
from PyQt6.QtGui import QKeyEvent

import game_session
import gameplay_models
from config import AppConfig
from game_clock import ClockState
from input_router import InputRouter
from logging_utils import get_tag_logger


_log = get_tag_logger("Loop")


class GameLoop(QObject):
    renderStateUpdated = pyqtSignal(object)
    sessionFinished = pyqtSignal(object)
    loopFailed = pyqtSignal(str)

    def __init__(
        self,
        chart: gameplay_models.Chart,
        config: Optional[AppConfig] = None,
        *,
        time_source: Optional[Callable[[], float]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._chart = chart
        self._time_source: Callable[[], float] = time_source if time_source is not None else time.monotonic
        self._session = game_session.new_session(chart, config)
        self._timer: Optional[QTimer] = None
        self._last_error: str = ""

        self._router = InputRouter(self._time_source, parent=self)
        self._router.inputEvent.connect(self._on_input_event)

    def session(self) -> game_session.GameSession:
        return self._session

    def router(self) -> InputRouter:
        return self._router

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def is_active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def _now(self, now: Optional[float]) -> float:
        return float(now) if now is not None else float(self._time_source())

    # -----------------
    # Lifecycle
    # -----------------

    def begin(self, now: Optional[float] = None) -> None:
        game_session.start(self._session, self._now(now))

    def start_loop(self) -> None:
        if self._session.state is ClockState.IDLE:
            self.begin()
        if self._timer is None:
            self._timer = QTimer(self)
            self._timer.timeout.connect(self._on_timeout)
        self._timer.setInterval(int(self._session.session_config.tick_interval_ms))
        self._timer.start()
        _log.info("Loop started", interval_ms=self._timer.interval())

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    def stop_loop(self) -> None:
        self._stop_timer()
        game_session.stop(self._session)
        _log.info("Loop stopped", state=self._session.state.value)

    def restart(self, *, start: bool = True) -> None:
        self._stop_timer()
        self._session = game_session.new_session(self._chart, self._session.config)
        self._router.clear_pressed_keys()
        self._last_error = ""
        _log.info("Session restarted")
        if start:
            self.start_loop()

    # -----------------
    # Per frame
    # -----------------

    def _on_timeout(self) -> None:
        self.step()

    def step(self, now: Optional[float] = None) -> Optional[gameplay_models.RenderState]:
        try:
            state = game_session.tick(self._session, self._now(now))
        except Exception as exc:
            self._fail(exc)
            return None

        self.renderStateUpdated.emit(state)
        if self._session.state is ClockState.COMPLETE:
            self._stop_timer()
            self.sessionFinished.emit(state)
        return state

    def _fail(self, exc: Exception) -> None:
        self._stop_timer()
        game_session.stop(self._session)
        self._last_error = f"{type(exc).__name__}: {exc}"
        _log.error("Tick failed, loop stopped", error=self._last_error)
        self.loopFailed.emit(self._last_error)

    # -----------------
    # Input path
    # -----------------

    def handle_input(self, lane: gameplay_models.Lane, now: Optional[float] = None) -> gameplay_models.HitOutcome:
        return game_session.handle_input(self._session, lane, self._now(now))

    def report_playback_position(self, playback_time_seconds: float, now: Optional[float] = None) -> Optional[float]:
        return game_session.report_playback_position(self._session, playback_time_seconds, self._now(now))

    def _on_input_event(self, input_event: gameplay_models.InputEvent) -> None:
        self.handle_input(input_event.lane, input_event.time_seconds)

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802
        if event.type() == QEvent.Type.KeyPress and isinstance(event, QKeyEvent):
            if self._router.handle_key_press(event):
                return True
        if event.type() == QEvent.Type.KeyRelease and isinstance(event, QKeyEvent):
            if self._router.handle_key_release(event):
                return True
        if event.type() in (QEvent.Type.WindowDeactivate, QEvent.Type.FocusOut):
            self._router.clear_pressed_keys()
        return super().eventFilter(watched, event)


class AutoPlayer(QObject):
    """Plays a session by itself. Used by `beatlane autoplay` to check a chart end to end."""

    def __init__(self, game_loop: GameLoop, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._game_loop = game_loop
        self._presses = 0
        game_loop.renderStateUpdated.connect(self._on_render_state)

    @property
    def presses(self) -> int:
        return self._presses

    def _on_render_state(self, state: gameplay_models.RenderState) -> None:
        if state.clock_state != ClockState.RUNNING.value:
            return
        session = self._game_loop.session()
        playfield = session.scheduler.playfield()
        hit_window = float(session.session_config.hit_window)
        for note in session.scheduler.pending_notes():
            if note.time_seconds > state.clock_time_seconds:
                break
            # Past the hit window after a stall.
            if playfield.distance(note.time_seconds, state.clock_time_seconds) >= hit_window:
                continue
            self._game_loop.handle_input(note.lane)
            self._presses += 1
