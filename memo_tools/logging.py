"""
Log level handling for memoized functions, and logging setup for scripts that want to watch cache activity.

Cache hits and stores are logged at :data:`CACHE_LEVEL` (``9``, named ``MEMO``) unless a different level is configured
(see :class:`memo_tools.config.MemoizeConfig`).  That is below ``logging.DEBUG``, so :func:`init_logging` only shows
those messages on stdout when ``verbosity`` is high enough to reach the configured level.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from logging import Formatter, Handler, LogRecord, Filter
from pathlib import Path
from typing import Optional, Union, Collection

from tzlocal import get_localzone

__all__ = ['CACHE_LEVEL', 'to_log_level', 'init_logging', 'stdout_level', 'DatetimeFormatter', 'ENTRY_FMT_DETAILED']
log = logging.getLogger(__name__)

ENTRY_FMT_DETAILED = '%(asctime)s %(levelname)s %(threadName)s %(name)s %(lineno)d %(message)s'
CACHE_LEVEL = 9
LEVEL_NAMES = {CACHE_LEVEL: 'MEMO', 19: 'VERBOSE'}

PathLike = Union[Path, str]


def _register_level_names():
    for level, name in LEVEL_NAMES.items():
        if logging.getLevelName(level) == f'Level {level}':
            logging.addLevelName(level, name)


_register_level_names()


def to_log_level(value: Union[str, int]) -> int:
    """
    :param value: A log level, either as an int, a numeric string, or the name of a registered level (such as ``DEBUG``
      or ``MEMO``), case-insensitive
    :return: The numeric log level
    """
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return int(value)
        level = logging.getLevelName(value.upper())  # Returns the number for registered names
        if not isinstance(level, int):
            raise ValueError(f'Unknown log level={value!r}')
        return level
    elif isinstance(value, bool):
        raise TypeError(f'Invalid log level={value!r}')
    return int(value)


def init_logging(
    verbosity: int = 0,
    *,
    log_path: PathLike | None = None,
    names: Collection[str] | str | None = ('memo_tools', '__main__'),
    millis: bool = False,
    file_lvl: int = logging.DEBUG,
) -> Optional[Path]:
    """
    Configures stream handlers so that logs below ``logging.WARNING`` are sent to stdout, and ``logging.WARNING`` and
    above are sent to stderr.  If a ``log_path`` is provided, then a file handler will be added as well.

    The stdout level depends on verbosity:
    - 0: logging.INFO (default)
    - 1: logging.DEBUG
    - 2: the memoized function log level (``config.log_level``), so cache hits and stores are shown

    :param verbosity: Higher values increase stdout output verbosity
    :param log_path: The path where logs should be written, or None (default) to prevent logging to file.  Any missing
      parent directories will be created.
    :param names: The names of the loggers that should be configured, or None to configure the root logger.  Existing
      handlers on those loggers are replaced.
    :param millis: Include milliseconds in timestamps
    :param file_lvl: The minimum log level that should be written to the log file, if configured.
    :return: The path to which logs are being written, or None if no file handler was configured.
    """
    loggers = [logging.getLogger(name) for name in _logger_names(names)]
    date_fmt = '%Y-%m-%d %H:%M:%S.%f %Z' if millis else '%Y-%m-%d %H:%M:%S %Z'
    handlers = _stream_handlers(verbosity, date_fmt)
    if log_path is not None:
        log_path = Path(log_path).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_file_handler(log_path, date_fmt, file_lvl))

    min_level = min(handler.level for handler in handlers)
    for logger in loggers:
        logger.setLevel(min_level)  # Handlers filter further
        logger.handlers = list(handlers)

    if log_path is not None:
        log.debug(f'Logging to {log_path}')
    return log_path


def stdout_level(verbosity: int) -> int:
    if not verbosity:
        return logging.INFO
    elif verbosity == 1:
        return logging.DEBUG

    from .config import config

    return min(config.log_level, logging.DEBUG)


def _logger_names(names: Collection[str] | str | None) -> set[Optional[str]]:
    if names is None or isinstance(names, str):
        return {names}
    return set(names) or {None}


def _stream_handlers(verbosity: int, date_fmt: str) -> list[Handler]:
    entry_fmt = ENTRY_FMT_DETAILED if verbosity > 1 else '%(message)s'
    formatter = DatetimeFormatter(entry_fmt, date_fmt)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(stdout_level(verbosity))
    stdout_handler.addFilter(LevelRangeFilter(below=logging.WARNING))
    stdout_handler.name = 'stdout'

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.name = 'stderr'

    for handler in (stdout_handler, stderr_handler):
        handler.setFormatter(formatter)
    return [stdout_handler, stderr_handler]


def _file_handler(log_path: Path, date_fmt: str, file_lvl: int) -> Handler:
    from logging.handlers import TimedRotatingFileHandler

    handler = TimedRotatingFileHandler(log_path.as_posix(), when='midnight', backupCount=7, encoding='utf-8')
    handler.setLevel(file_lvl)
    handler.setFormatter(DatetimeFormatter(ENTRY_FMT_DETAILED, date_fmt))
    handler.name = log_path.as_posix()
    return handler


class LevelRangeFilter(Filter):
    def __init__(self, below: int):
        super().__init__()
        self.below = below

    def filter(self, record: LogRecord) -> bool:
        return record.levelno < self.below


class DatetimeFormatter(Formatter):
    """Enables use of ``%f`` (micro/milliseconds) in datetime formats, and renders times in the local time zone."""
    _local_tz = get_localzone()

    def formatTime(self, record: LogRecord, datefmt: str = None) -> str:
        dt = datetime.fromtimestamp(record.created, self._local_tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            return self.default_msec_format % (dt.strftime(self.default_time_format), record.msecs)
