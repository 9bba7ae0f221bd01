# recognition/state.py
"""Навигация по экранам: текущий экран хранится в сессии, переходы по таблице."""
from __future__ import annotations

import enum
import logging
from typing import Dict, FrozenSet

logger = logging.getLogger("app")

SESSION_KEY = "screen"


class Screen(str, enum.Enum):
    HOME = "home"
    CAMERA = "camera"
    UPLOAD = "upload"
    PROCESSING = "processing"
    RESULTS = "results"
    PRIVACY = "privacy"


# Назад на главную можно с любого экрана, повтор текущего экрана тоже разрешён
TRANSITIONS: Dict[Screen, FrozenSet[Screen]] = {
    Screen.HOME: frozenset({Screen.CAMERA, Screen.UPLOAD, Screen.PRIVACY}),
    Screen.CAMERA: frozenset({Screen.PROCESSING}),
    Screen.UPLOAD: frozenset({Screen.PROCESSING}),
    Screen.PROCESSING: frozenset({Screen.RESULTS}),
    Screen.RESULTS: frozenset(),
    Screen.PRIVACY: frozenset(),
}


class InvalidTransition(Exception):
    def __init__(self, current: Screen, target: Screen):
        super().__init__(f"{current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: Screen, target: Screen) -> bool:
    return target == Screen.HOME or target == current or target in TRANSITIONS[current]


class ScreenFlow:
    def __init__(self, session):
        self.session = session

    @property
    def current(self) -> Screen:
        try:
            return Screen(self.session.get(SESSION_KEY, Screen.HOME.value))
        except ValueError:
            return Screen.HOME

    def go(self, target: Screen) -> Screen:
        current = self.current
        if not can_transition(current, target):
            raise InvalidTransition(current, target)
        if current != target:
            logger.info("screen: %s -> %s", current.value, target.value)
        self.session[SESSION_KEY] = target.value
        self.session.modified = True
        return target

    def reset(self) -> None:
        self.session[SESSION_KEY] = Screen.HOME.value
        self.session.modified = True
