"""Tagged console logging for beatlane.

Every module asks for one TagLogger named after its area ("Generator", "Session",
"Loop", ...) and logs through it. Lines print as
``[LEVEL][Tag] message | key=value ...`` so generator and game loop output can be
told apart in one console.

    _log = get_tag_logger("Session")
    _log.info("Session started", state="COUNTDOWN")
"""
from __future__ import annotations

import logging
from typing import Any, Dict, MutableMapping, Tuple

_logger = logging.getLogger("beatlane")
if not _logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s][%(tag)s] %(message)s")
    handler.setFormatter(formatter)
    _logger.addHandler(handler)
    _logger.setLevel(logging.INFO)

# Keyword arguments the stdlib logger understands; anything else is a key=value field.
_LOGGING_KEYWORDS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


def _level_value(level: str) -> int:
    return getattr(logging, (level or "INFO").upper(), logging.INFO)


class TagLogger(logging.LoggerAdapter):
    """Adapter with a fixed tag that turns extra keyword arguments into ``| k=v`` suffixes."""

    def __init__(self, tag: str) -> None:
        super().__init__(_logger, {"tag": tag})

    @property
    def tag(self) -> str:
        return str(self.extra["tag"])

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KEYWORDS}
        if fields:
            msg = f"{msg} | " + " ".join(f"{key}={value}" for key, value in fields.items())
        kwargs["extra"] = {**kwargs.get("extra", {}), "tag": self.tag}
        return msg, kwargs


_tag_loggers: Dict[str, TagLogger] = {}


def get_tag_logger(tag: str) -> TagLogger:
    tag_logger = _tag_loggers.get(tag)
    if tag_logger is None:
        tag_logger = TagLogger(tag)
        _tag_loggers[tag] = tag_logger
    return tag_logger


def set_log_level(level: str) -> None:
    """Set global log level (DEBUG/INFO/WARNING/ERROR)."""
    _logger.setLevel(_level_value(level))


def get_log_level() -> str:
    return logging.getLevelName(_logger.level)


def get_logger() -> logging.Logger:
    """Underlying logger, for tests that attach caplog handlers."""
    return _logger
