"""Result codes and helpers for registering sockets with a selector."""

import selectors
from enum import IntEnum


class RetCode(IntEnum):
    """Outcome of a buffered read or write on a proxied connection."""

    OK = 0
    NOTHING = 1
    IOERR = -1
    CLOSED = -2
    BUFFER_FULL = -3
    BUFFER_EMPTY = -4
    TRY_AGAIN = -5


class OpType(IntEnum):
    """Kind of readiness being handled."""

    READ = 0
    WRITE = 1
    ERROR = 2


def set_nonblocking(sock):
    """Make the socket non-blocking and return whether it was blocking before."""
    old = sock.getblocking()
    sock.setblocking(False)
    return old


def _add(selector, sock, events):
    try:
        selector.register(sock, events)
    except KeyError:
        pass
    set_nonblocking(sock)


def add_read_fd(selector, sock):
    """Watch the socket for readability; an existing registration is kept."""
    _add(selector, sock, selectors.EVENT_READ)


def add_write_fd(selector, sock):
    """Watch the socket for writability; an existing registration is kept."""
    _add(selector, sock, selectors.EVENT_WRITE)


def remove_fd(selector, sock):
    """Stop watching the socket, if it is watched."""
    try:
        selector.unregister(sock)
    except (KeyError, ValueError):
        pass


def close_fd(selector, sock):
    """Stop watching the socket and close it."""
    remove_fd(selector, sock)
    sock.close()


def mod_fd(selector, sock, events):
    """Change the events watched for a registered socket; otherwise do nothing."""
    try:
        selector.modify(sock, events)
    except (KeyError, ValueError):
        pass