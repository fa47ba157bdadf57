"""Levelled, timestamped console logging with syslog-style priorities."""

import sys
import time
from enum import IntEnum

LOG_BUFFER_SIZE = 2048


class LogLevel(IntEnum):
    """Syslog priorities; a lower value is more severe."""

    EMERG = 0
    ALERT = 1
    CRIT = 2
    ERR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


_LEVEL_NAMES = {
    LogLevel.EMERG: "emerge!",
    LogLevel.ALERT: "alert!",
    LogLevel.CRIT: "critical!",
    LogLevel.ERR: "error!",
    LogLevel.WARNING: "warn!",
    LogLevel.NOTICE: "notice:",
    LogLevel.INFO: "info:",
    LogLevel.DEBUG: "debug:",
}

_level = LogLevel.INFO


def set_loglevel(level=LogLevel.DEBUG):
    """Set the most verbose level that is still written."""
    global _level
    _level = LogLevel(level)


def log(level, file_name, line_num, fmt, *args):
    """Write one log line to stdout and return it, or None if filtered out."""
    level = LogLevel(level)
    if level > _level:
        return None
    stamp = time.strftime("[ %x %X ] ", time.localtime())[: LOG_BUFFER_SIZE - 1]
    message = (fmt % args if args else fmt)[: LOG_BUFFER_SIZE - 1]
    line = f"{stamp}{file_name}:{line_num:04d} {_LEVEL_NAMES[level]} {message}"
    sys.stdout.write(line + "\n")
    sys.stdout.flush()
    return line