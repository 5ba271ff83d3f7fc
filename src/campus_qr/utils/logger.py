"""
src/campus_qr/utils/logger.py
Console logging for campus-qr: every record carries a ``layer`` that picks its
console icon (step, success, warning, error, debug). Verbosity comes from
LOG_PROFILE / LOG_LEVEL, an optional LOG_FILE gets timestamped records and
NO_COLOR disables ANSI styling.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional

from rich.console import Console
from rich.status import Status

__all__ = [
    "logger",
    "step",
    "success",
    "debug_detail",
    "get_logger",
    "spinner",
    "set_log_profile",
]

ROOT_LOGGER_NAME = "campus_qr"

_PROFILE_LEVELS: Dict[str, int] = {
    "quiet": logging.WARNING,
    "user": logging.INFO,
    "debug": logging.DEBUG,
    "verbose": logging.DEBUG,
}


class _Layer(NamedTuple):
    icon: str
    ansi: str


_LAYERS: Dict[str, _Layer] = {
    "step": _Layer("▶", "\033[1;34m"),
    "success": _Layer("✓", "\033[1;32m"),
    "warning": _Layer("!", "\033[1;33m"),
    "error": _Layer("✗", "\033[1;31m"),
    "debug": _Layer("·", "\033[2m"),
    "user": _Layer("•", ""),
}
_RESET = "\033[0m"


@dataclass(frozen=True)
class LogSettings:
    profile: str = "user"
    level_override: Optional[str] = None
    log_file: Optional[str] = None
    color: bool = True

    @classmethod
    def from_env(cls) -> "LogSettings":
        return cls(
            profile=(os.getenv("LOG_PROFILE") or "user").lower(),
            level_override=os.getenv("LOG_LEVEL") or None,
            log_file=os.getenv("LOG_FILE") or None,
            color=os.getenv("NO_COLOR") is None,
        )

    @property
    def console_level(self) -> int:
        if self.level_override:
            override = getattr(logging, self.level_override.upper(), None)
            if isinstance(override, int):
                return override
        return _PROFILE_LEVELS.get(self.profile, logging.INFO)


SETTINGS = LogSettings.from_env()


class LayeredFormatter(logging.Formatter):
    """Prefix each console line with the icon of its layer."""

    def __init__(self, color: bool = True) -> None:
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        layer = _LAYERS.get(getattr(record, "layer", "user"), _LAYERS["user"])
        icon = layer.icon
        if self.color and layer.ansi:
            icon = f"{layer.ansi}{icon}{_RESET}"
        return f"{icon} {super().format(record)}"


class LayeredAdapter(logging.LoggerAdapter):
    """Adapter accepting ``layer=`` on every call; warnings and errors pick their own layer."""

    _LEVEL_LAYERS = {logging.WARNING: "warning", logging.ERROR: "error", logging.CRITICAL: "error"}

    def __init__(self, logger: logging.Logger, default_layer: str = "user"):
        super().__init__(logger, {"layer": default_layer})

    def log(self, level: int, msg: Any, *args, layer: Optional[str] = None, **kwargs) -> None:
        if not self.isEnabledFor(level):
            return
        if layer is None:
            layer = self._LEVEL_LAYERS.get(level, self.extra["layer"])
        kwargs.setdefault("extra", {}).setdefault("layer", layer)
        self.logger.log(level, msg, *args, **kwargs)


def _console_handler(settings: LogSettings) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(settings.console_level)
    handler.setFormatter(LayeredFormatter(color=settings.color))
    return handler


def _file_handler(path: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    return handler


def _configure(settings: LogSettings) -> LayeredAdapter:
    base = logging.getLogger(ROOT_LOGGER_NAME)
    adapter = LayeredAdapter(base)
    if base.handlers:
        return adapter

    base.setLevel(logging.DEBUG)
    base.addHandler(_console_handler(settings))
    if settings.log_file:
        try:
            base.addHandler(_file_handler(settings.log_file))
        except OSError as exc:
            adapter.warning("Failed to open log file %s: %s", settings.log_file, exc)
    return adapter


logger = _configure(SETTINGS)


def step(message: str) -> None:
    logger.log(logging.INFO, message, layer="step")


def success(message: str) -> None:
    logger.log(logging.INFO, message, layer="success")


def debug_detail(message: str) -> None:
    """Debug line shown only with LOG_PROFILE=debug (e.g. HTTP request traces)."""
    logger.log(logging.DEBUG, message, layer="debug")


def get_logger(name: str, *, layer: str = "user") -> LayeredAdapter:
    return LayeredAdapter(logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}"), default_layer=layer)


class _Spinner:
    """Rich status line while a backend call runs; logs how it ended.

    The animation only runs on a terminal. ``warn`` marks a degraded but
    usable result (e.g. falling back to cached data) and replaces the
    success line with a warning.
    """

    def __init__(self, message: str, console: Optional[Console] = None):
        self.message = message
        self._console = console or Console()
        self._status: Optional[Status] = None
        self._warning: Optional[str] = None

    async def __aenter__(self) -> "_Spinner":
        if self._console.is_terminal:
            self._status = self._console.status(self.message, spinner="dots")
            self._status.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._status is not None:
            self._status.stop()
            self._status = None
        if exc_type is not None:
            logger.error("%s failed: %s", self.message, exc)
        elif self._warning is not None:
            logger.warning("%s: %s", self.message, self._warning)
        else:
            success(self.message)
        return False

    def warn(self, reason: str) -> None:
        self._warning = reason


def spinner(message: str) -> _Spinner:
    """Async context manager showing ``message`` with a spinner."""
    return _Spinner(message)


def set_log_profile(profile: str) -> None:
    """Change console verbosity at runtime (``--log-profile``)."""
    global SETTINGS
    profile = (profile or "user").lower()
    SETTINGS = LogSettings(
        profile=profile, level_override=None, log_file=SETTINGS.log_file, color=SETTINGS.color
    )
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(SETTINGS.console_level)
    os.environ["LOG_PROFILE"] = profile
