"""Per-stage log channels for the analyzer.

Every stage (parser, model, scheduler, anomaly, scan, store) logs under
``simlint.<stage>``. A channel can be switched off in settings.json so a
large scan does not drown in per-file parser chatter; warnings on a
disabled channel are dropped too.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from simlint.engine.config import read_settings

ROOT_LOGGER_NAME = "simlint"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_HANDLER_NAME = "simlint-stderr"

DEFAULT_CHANNELS = {
    "parser": False,
    "model": False,
    "scheduler": False,
    "anomaly": True,
    "scan": True,
    "store": True,
}


def _level_from_name(value: Any) -> int:
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else logging.INFO


def _channel_flags(overrides: Any) -> Dict[str, bool]:
    channels = DEFAULT_CHANNELS.copy()
    if isinstance(overrides, Mapping):
        channels.update({str(name): bool(flag) for name, flag in overrides.items()})
    return channels


@dataclass
class LoggerConfig:
    level: int = logging.INFO
    channels: Dict[str, bool] = field(default_factory=DEFAULT_CHANNELS.copy)

    @classmethod
    def from_settings(cls, settings_path: Path) -> "LoggerConfig":
        """Read ``logLevel`` and ``logChannels``; anything unreadable keeps the defaults."""

        data = read_settings(settings_path)
        return cls(
            level=_level_from_name(data.get("logLevel", "INFO")),
            channels=_channel_flags(data.get("logChannels")),
        )

    def verbose(self) -> "LoggerConfig":
        return replace(self, level=logging.DEBUG, channels={name: True for name in self.channels})


class ChannelLogger:
    """A ``logging.Logger`` gated by its channel switch."""

    def __init__(self, name: str, logger: logging.Logger, enabled: bool) -> None:
        self.name = name
        self.enabled = enabled
        self._logger = logger

    def is_enabled_for(self, level: int) -> bool:
        return self.enabled and self._logger.isEnabledFor(level)

    def log(self, level: int, msg: str, *args, **kwargs) -> None:
        if self.is_enabled_for(level):
            self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


def _install_stderr_handler(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME and isinstance(handler, logging.StreamHandler):
            handler.setStream(sys.stderr)
            return
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


class ScanLogger:
    """Hands out one ``ChannelLogger`` per stage, created on first use.

    ``configure_root`` attaches a stderr handler to the ``simlint`` logger;
    tests pass ``False`` and read records through ``caplog`` instead.
    """

    def __init__(self, config: LoggerConfig, *, configure_root: bool = True) -> None:
        self._config = config
        self._root = logging.getLogger(ROOT_LOGGER_NAME)
        self._root.setLevel(config.level)
        if configure_root:
            _install_stderr_handler(self._root)
        self._channels: Dict[str, ChannelLogger] = {}
        for name in config.channels:
            self.channel(name)

    def channel(self, name: str) -> ChannelLogger:
        channel = self._channels.get(name)
        if channel is None:
            # channels missing from the config stay off until switched on
            channel = ChannelLogger(
                name,
                self._root.getChild(name),
                bool(self._config.channels.get(name, False)),
            )
            self._channels[name] = channel
        return channel

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.channel(name).enabled = enabled

    def channels(self) -> Iterable[str]:
        return self._channels.keys()


def channel_of(logger: Optional[ScanLogger], name: str) -> Optional[ChannelLogger]:
    return logger.channel(name) if logger is not None else None


def init_logger(settings_path: Optional[Path] = None, *, verbose: bool = False) -> ScanLogger:
    config = LoggerConfig.from_settings(settings_path or Path("settings.json"))
    return ScanLogger(config.verbose() if verbose else config)


__all__ = [
    "DEFAULT_CHANNELS",
    "ChannelLogger",
    "LoggerConfig",
    "ScanLogger",
    "channel_of",
    "init_logger",
]
