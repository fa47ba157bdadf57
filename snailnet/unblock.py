"""Connecting with a timeout through a non-blocking connect."""

import errno
import os
import select
import socket
import sys
import time

from snailnet.fdwrapper import set_nonblocking

CONNECT_TIMEOUT = 10
SEND_DELAY = 200


def unblock_connect(ip, port, timeout):
    """Connect to ip:port, waiting at most ``timeout`` seconds.

    Returns the connected socket with its original blocking mode restored.
    Raises TimeoutError when the wait runs out and OSError (with the
    socket's error number) when the connection fails.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        was_blocking = set_nonblocking(sock)
        err = sock.connect_ex((ip, port))
        if err == 0:
            print("connect with server immediately")
            sock.setblocking(was_blocking)
            return sock
        if err != errno.EINPROGRESS:
            print("unblock connect not support")
            raise OSError(err, "unblock connect not support")

        _, writable, _ = select.select([], [sock], [], timeout)
        if not writable:
            print("connection time out")
            raise TimeoutError("connection time out")

        error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if error != 0:
            print(f"connection failed after select with the error: {error} ")
            raise OSError(error, os.strerror(error))

        print(f"connection ready after select with the socket: {sock.fileno()} ")
        sock.setblocking(was_blocking)
        return sock
    except BaseException:
        sock.close()
        raise


def main(argv=None):
    """Connect, shut down the write side, wait, then try to send; return the exit code."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "unblock"
        print(f"usage: {prog} ip_address port_number")
        return 1
    try:
        sock = unblock_connect(args[0], int(args[1]), CONNECT_TIMEOUT)
    except OSError:
        return 1
    with sock:
        sock.shutdown(socket.SHUT_WR)
        time.sleep(SEND_DELAY)
        print("send data out")
        try:
            sock.send(b"abc")
        except OSError:
            pass
    return 0