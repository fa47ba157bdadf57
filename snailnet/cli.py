"""Command line entry point of the load balancer."""

import getopt
import inspect
import os
import socket
import sys

from snailnet.config import ConfigError, parse_config
from snailnet.log import LogLevel, log, set_loglevel
from snailnet.processpool import ProcessPool

VERSION = "1.0"

_FILE = os.path.basename(__file__)


def _line():
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    return caller.f_lineno if caller is not None else 0


def _usage(prog):
    log(LogLevel.INFO, _FILE, _line(), "usage: %s [-h] [-v] [-f config_file]", prog)


def main(argv=None):
    """Parse options, read the configuration and run the balancer; return the exit code."""
    args = sys.argv[1:] if argv is None else list(argv)
    prog = sys.argv[0] if sys.argv and sys.argv[0] else "snailnet"

    try:
        opts, _ = getopt.getopt(args, "f:xvh")
    except getopt.GetoptError as exc:
        log(LogLevel.ERR, _FILE, _line(), "un-recognized option %s", exc.opt or "?")
        _usage(os.path.basename(prog))
        return 1

    cfg_file = ""
    for option, value in opts:
        if option == "-x":
            set_loglevel(LogLevel.DEBUG)
        elif option == "-v":
            log(LogLevel.INFO, _FILE, _line(), "%s %s", prog, VERSION)
            return 0
        elif option == "-h":
            _usage(os.path.basename(prog))
            return 0
        elif option == "-f":
            cfg_file = value

    if not cfg_file:
        log(LogLevel.ERR, _FILE, _line(), "%s", "please specifiy the config file")
        return 1

    try:
        with open(cfg_file, "rb") as handle:
            text = handle.read().decode("latin-1")
    except OSError as exc:
        log(LogLevel.ERR, _FILE, _line(), "read config file met error: %s",
            exc.strerror or str(exc))
        return 1

    try:
        balance, logical = parse_config(text)
    except ConfigError as exc:
        log(LogLevel.ERR, _FILE, _line(), "%s", str(exc))
        return 1

    listen_host = balance[0]
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind((listen_host.hostname, listen_host.port))
        listener.listen(5)
        pool = ProcessPool.create(listener, len(logical))
        pool.run(logical)
    return 0