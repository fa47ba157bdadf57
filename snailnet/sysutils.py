"""Process-level helpers: byte order, user ids, privilege drop, detaching."""

import contextlib
import os
import struct
import sys


def byteorder():
    """Print and return the host byte order as seen in a native short."""
    raw = struct.pack("=h", 0x0102)
    if raw == b"\x01\x02":
        result = "big endian"
    elif raw == b"\x02\x01":
        result = "little endian"
    else:
        result = "unknown..."
    print(result)
    return result


def user_ids():
    """Return the real and effective user ids."""
    return os.getuid(), os.geteuid()


def switch_to_user(user_id, group_id):
    """Switch from root to the given user and group; return whether it worked."""
    if user_id == 0 and group_id == 0:
        return False
    gid = os.getgid()
    uid = os.getuid()
    if (gid != 0 or uid != 0) and (gid != group_id or uid != user_id):
        return False
    if uid != 0:
        return True
    try:
        os.setgid(group_id)
        os.setuid(user_id)
    except OSError:
        return False
    return True


def daemonize():
    """Detach the current process from its terminal with stdio on /dev/null.

    The process starts a new session in place, so it must not already lead
    a process group; returns False when any step fails.
    """
    os.umask(0)
    try:
        os.setsid()
        os.chdir("/")
    except OSError:
        return False

    with contextlib.suppress(Exception):
        sys.stdout.flush()
        sys.stderr.flush()
    for fd in (0, 1, 2):
        with contextlib.suppress(OSError):
            os.close(fd)
    os.open(os.devnull, os.O_RDONLY)
    os.open(os.devnull, os.O_RDWR)
    os.open(os.devnull, os.O_RDWR)
    return True