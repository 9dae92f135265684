# -*- coding: utf-8 -*-
########################
# input_router.py
########################
# Purpose:
# - Single keyboard listener for gameplay lane input.
# - Translates QKeyEvent into gameplay_models.InputEvent and emits a Qt signal.
#
# Design notes:
# - This must be the only lane input source. No duplicate key mapping elsewhere.
# - A lane key produces one event per physical press: auto repeat and presses of a
#   key that is already held are swallowed and counted as ignored.
# - Time source is injected as a callable returning monotonic seconds; the session
#   projects that instant onto clock time itself.
#
########################
# Interfaces:
# Public classes:
# - class InputRouter(PyQt6.QtCore.QObject)
#   - Signals:
#     - inputEvent(gameplay_models.InputEvent)
#   - Methods:
#     - handle_key_press(event: QKeyEvent) -> bool
#     - handle_key_release(event: QKeyEvent) -> bool
#     - clear_pressed_keys() -> None
#     - held_lanes() -> Set[Lane]
#     - reset_stats() -> None
#
# Inputs:
# - Raw QKeyEvent from the Qt event loop (anything exposing key() and isAutoRepeat()).
#
# Outputs:
# - Normalized lane input events consumed by game_loop.GameLoop.
#
########################

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Set

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QKeyEvent

import gameplay_models


def build_default_key_to_lane_map() -> Dict[int, gameplay_models.Lane]:
    """Arrow keys and WASD, both in playfield order LEFT, UP, DOWN, RIGHT."""
    Lane = gameplay_models.Lane
    return {
        int(Qt.Key.Key_Left): Lane.LEFT,
        int(Qt.Key.Key_Up): Lane.UP,
        int(Qt.Key.Key_Down): Lane.DOWN,
        int(Qt.Key.Key_Right): Lane.RIGHT,
        int(Qt.Key.Key_A): Lane.LEFT,
        int(Qt.Key.Key_W): Lane.UP,
        int(Qt.Key.Key_S): Lane.DOWN,
        int(Qt.Key.Key_D): Lane.RIGHT,
    }


class InputRouter(QObject):
    """Turns key presses into lane InputEvents stamped with the injected monotonic time. Never judges."""

    inputEvent = pyqtSignal(object)

    def __init__(
        self,
        time_provider: Optional[Callable[[], float]] = None,
        parent: Optional[QObject] = None,
        key_to_lane_map: Optional[Dict[int, gameplay_models.Lane]] = None,
    ) -> None:
        super().__init__(parent)

        # Same clock GameLoop ticks with, so press times and tick times are comparable.
        self._time_provider: Callable[[], float] = time_provider if time_provider is not None else time.monotonic
        self._key_to_lane: Dict[int, gameplay_models.Lane] = (
            {int(key): gameplay_models.Lane(lane) for key, lane in key_to_lane_map.items()}
            if key_to_lane_map is not None
            else build_default_key_to_lane_map()
        )

        self._held_keys: Set[int] = set()
        self._total_presses: int = 0
        self._ignored_presses: int = 0

    # ------------------------------------------------------------------
    # Called from GameLoop.eventFilter
    # ------------------------------------------------------------------

    def handle_key_press(self, event: QKeyEvent) -> bool:
        """Returns True when the key is a lane key and the event was consumed."""
        key_code = int(event.key())
        lane = self._key_to_lane.get(key_code)
        if lane is None:
            return False

        if event.isAutoRepeat() or key_code in self._held_keys:
            self._ignored_presses += 1
            return True

        self._held_keys.add(key_code)
        self._total_presses += 1
        self.inputEvent.emit(
            gameplay_models.InputEvent(time_seconds=float(self._time_provider()), lane=lane)
        )
        return True

    def handle_key_release(self, event: QKeyEvent) -> bool:
        key_code = int(event.key())
        if key_code not in self._key_to_lane:
            return False
        if not event.isAutoRepeat():
            self._held_keys.discard(key_code)
        return True

    def clear_pressed_keys(self) -> None:
        """Forget held keys. Release events are lost when the window loses focus."""
        self._held_keys.clear()

    def held_lanes(self) -> Set[gameplay_models.Lane]:
        return {self._key_to_lane[key_code] for key_code in self._held_keys}

    def reset_stats(self) -> None:
        self._total_presses = 0
        self._ignored_presses = 0

    @property
    def key_to_lane_map(self) -> Dict[int, gameplay_models.Lane]:
        return dict(self._key_to_lane)

    @property
    def total_presses(self) -> int:
        return self._total_presses

    @property
    def ignored_presses(self) -> int:
        return self._ignored_presses


def _run_unit_tests() -> None:
    router = InputRouter(lambda: 1.25)
    lanes = router.key_to_lane_map

    for key_constant, lane in (
        (Qt.Key.Key_A, gameplay_models.Lane.LEFT),
        (Qt.Key.Key_Left, gameplay_models.Lane.LEFT),
        (Qt.Key.Key_W, gameplay_models.Lane.UP),
        (Qt.Key.Key_S, gameplay_models.Lane.DOWN),
        (Qt.Key.Key_Right, gameplay_models.Lane.RIGHT),
    ):
        assert lanes[int(key_constant)] is lane
    assert int(Qt.Key.Key_Space) not in lanes


if __name__ == "__main__":
    _run_unit_tests()
    print("input_router.py: ok")
