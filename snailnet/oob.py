"""Out-of-band TCP data and redirecting stdout into a connection."""

import os
import socket
import sys

BUF_SIZE = 1024
NORMAL_DATA = b"123"
OOB_DATA = b"abc"


def _serve_one(ip, port):
    """Listen, accept one connection and return (listener, conn, client); conn may be None."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.bind((ip, port))
        listener.listen(5)
        conn, client = listener.accept()
    except OSError as exc:
        listener.close()
        if exc.errno is None:
            raise
        print(f"errno is: {exc.errno}")
        return None, None
    listener.close()
    return conn, client


def send_oob(ip, port):
    """Send normal, urgent and normal data to a server; return whether it connected."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.connect((ip, port))
        except OSError:
            print("connection failed")
            return False
        print("send oob data out")
        sock.send(NORMAL_DATA)
        sock.send(OOB_DATA, socket.MSG_OOB)
        sock.send(NORMAL_DATA)
        return True


def _recv(conn, flags=0):
    try:
        data = conn.recv(BUF_SIZE - 1, flags)
    except OSError:
        return -1, b""
    return len(data), data


def receive_oob(ip, port):
    """Accept one connection and read normal, urgent, then normal data.

    Returns three (byte count, data) pairs; a failed read gives (-1, b"").
    Returns None when no connection could be accepted.
    """
    conn, _ = _serve_one(ip, port)
    if conn is None:
        return None
    results = []
    with conn:
        for flags, kind in ((0, "normal"), (socket.MSG_OOB, "oob"), (0, "normal")):
            count, data = _recv(conn, flags)
            print(f"got {count} bytes of {kind} data '{data.decode('latin-1')}'")
            results.append((count, data))
    return results


def serve_dup(ip, port):
    """Accept one connection and write 'abcd' to it through standard output.

    Standard output is restored afterwards. Returns the peer address.
    """
    conn, client = _serve_one(ip, port)
    if conn is None:
        return None
    with conn:
        sys.stdout.flush()
        saved = os.dup(1)
        try:
            os.dup2(conn.fileno(), 1)
            os.write(1, b"abcd\n")
        finally:
            os.dup2(saved, 1)
            os.close(saved)
    return client