"""Levelled logging to standard error and an optional append-only file."""

from __future__ import annotations

import enum
import sys
import traceback
from datetime import datetime
from typing import IO, Optional


class Level(enum.IntEnum):
    """Logging levels; a message is written when its level is at most the threshold."""

    PANIC = 0
    ERROR = 1
    VERBOSE = 2
    DEBUG = 3
    MAX = 4
    UNKNOWN = 5

    def __str__(self) -> str:
        if self <= Level.DEBUG:
            return self.name.lower()
        return "unknown"


_LEVELS_BY_NAME = {
    "debug": Level.DEBUG,
    "verbose": Level.VERBOSE,
    "error": Level.ERROR,
    "panic": Level.PANIC,
}


def parse_level(level_name: str) -> Level:
    """Return the level named *level_name* (case-insensitive), or Level.UNKNOWN."""
    level = _LEVELS_BY_NAME.get(level_name.lower())
    if level is None:
        sys.stderr.write(f"logging: cannot set logging level to {level_name}\n")
        return Level.UNKNOWN
    return level


def _timestamp() -> str:
    stamp = datetime.now().astimezone().isoformat(timespec="seconds")
    return stamp.replace("+00:00", "Z")


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


class Logger:
    """Writes timestamped, levelled lines to standard error and/or a file."""

    def __init__(
        self,
        level: Level = Level.DEBUG,
        to_stderr: bool = True,
        file: Optional[IO[str]] = None,
    ) -> None:
        self.level = Level(level)
        self.to_stderr = to_stderr
        self.file = file

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def printf(self, level: Level, message: str, *args) -> None:
        """Write *message* % *args* if *level* passes the threshold."""
        level = Level(level)
        if level > self.level:
            return
        line = f"{_timestamp()} [{str(level)}] {_format(message, args)}\n"
        if self.to_stderr:
            sys.stderr.write(line)
        if self.file is not None:
            self.file.write(line)
            self.file.flush()

    def debug(self, message: str, *args) -> None:
        self.printf(Level.DEBUG, message, *args)

    def verbose(self, message: str, *args) -> None:
        self.printf(Level.VERBOSE, message, *args)

    def error(self, message: str, *args) -> RuntimeError:
        """Log at error level and return an exception carrying the same text."""
        self.printf(Level.ERROR, message, *args)
        return RuntimeError(_format(message, args))

    def panic(self, message: str, *args) -> None:
        """Log at panic level followed by the current stack."""
        self.printf(Level.PANIC, message, *args)
        self.printf(Level.PANIC, "========= Stack trace output ========")
        stack = "".join(traceback.format_stack()).rstrip()
        self.printf(Level.PANIC, "%s", "IPAM panic\n" + stack)
        self.printf(Level.PANIC, "========= Stack trace output end ========")

    def set_level(self, level_name: str) -> None:
        """Set the threshold by name; unknown names leave it unchanged."""
        level = parse_level(level_name)
        if level < Level.MAX:
            self.level = level

    def set_stderr(self, enable: bool) -> None:
        self.to_stderr = enable

    def set_file(self, filename: str) -> None:
        """Append log lines to *filename*; an empty name changes nothing."""
        if not filename:
            return
        self.close()
        try:
            self.file = open(filename, "a", encoding="utf-8")
        except OSError:
            self.file = None
            sys.stderr.write(f"logging: cannot open {filename}")

    def close(self) -> None:
        """Close the log file, if one is open."""
        if self.file is not None:
            self.file.close()
            self.file = None


_default = Logger()


def debug(message: str, *args) -> None:
    _default.debug(message, *args)


def verbose(message: str, *args) -> None:
    _default.verbose(message, *args)


def error(message: str, *args) -> RuntimeError:
    return _default.error(message, *args)


def panic(message: str, *args) -> None:
    _default.panic(message, *args)


def set_log_level(level_name: str) -> None:
    _default.set_level(level_name)


def set_log_stderr(enable: bool) -> None:
    _default.set_stderr(enable)


def set_log_file(filename: str) -> None:
    _default.set_file(filename)


def get_logging_level() -> Level:
    return _default.level