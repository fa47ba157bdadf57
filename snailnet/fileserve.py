"""Serving a file over one TCP connection, and zero-copy style pipe transfers."""

import os
import socket
import stat

PIPE_CHUNK = 32768
STATUS_LINE = ("200 OK", "500 Internal server error")


def _accept_one(ip, port):
    """Listen on ip:port and accept one connection; return it or None."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind((ip, port))
        listener.listen(5)
        try:
            conn, _ = listener.accept()
        except OSError as exc:
            print(f"errno is: {exc.errno}")
            return None
    return conn


def _read_served_file(path):
    """Return (size, content) of a regular, other-readable file, or None."""
    try:
        info = os.stat(path)
    except OSError:
        return None
    if stat.S_ISDIR(info.st_mode) or not info.st_mode & stat.S_IROTH:
        return None
    try:
        with open(path, "rb") as handle:
            content = handle.read(info.st_size)
    except OSError:
        return None
    return info.st_size, content


def build_file_response(path):
    """Build the HTTP response for a file as (header bytes, body bytes).

    A missing, directory or not world-readable file gives a 500 header
    and an empty body.
    """
    served = _read_served_file(path)
    if served is None:
        header = f"HTTP/1.1 {STATUS_LINE[1]}\r\n\r\n"
        return header.encode("latin-1"), b""
    size, content = served
    header = f"HTTP/1.1 {STATUS_LINE[0]}\r\nContent-Length: {size}\r\n\r\n"
    return header.encode("latin-1"), content


def serve_file_writev(ip, port, path):
    """Answer one connection with the file's HTTP response; return bytes sent."""
    conn = _accept_one(ip, port)
    if conn is None:
        return None
    header, body = build_file_response(path)
    with conn:
        if body:
            return conn.sendmsg([header, body])
        return conn.send(header)


def serve_file_sendfile(ip, port, path):
    """Send the raw file to one connection; return bytes sent.

    The file is opened before listening, so a missing file raises first.
    """
    with open(path, "rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        conn = _accept_one(ip, port)
        if conn is None:
            return None
        with conn:
            if size == 0:
                return 0
            return conn.sendfile(handle, 0, size)


def _write_all(fd, data):
    with memoryview(data) as view:
        while view:
            written = os.write(fd, view)
            view = view[written:]


def splice_echo(ip, port):
    """Echo up to 32768 bytes of one connection back to it through a pipe.

    Returns the number of bytes echoed.
    """
    conn = _accept_one(ip, port)
    if conn is None:
        return None
    with conn:
        if not hasattr(os, "splice"):
            data = conn.recv(PIPE_CHUNK)
            conn.sendall(data)
            return len(data)
        flags = os.SPLICE_F_MORE | os.SPLICE_F_MOVE
        read_end, write_end = os.pipe()
        try:
            count = os.splice(conn.fileno(), write_end, PIPE_CHUNK, flags=flags)
            remaining = count
            while remaining:
                remaining -= os.splice(read_end, conn.fileno(), remaining, flags=flags)
        finally:
            os.close(read_end)
            os.close(write_end)
        return count


def tee_stdin(path, stdin_fd=0, stdout_fd=1):
    """Copy one read of up to 32768 bytes from stdin to both a file and stdout.

    The file is created or truncated. Returns the bytes copied.
    """
    filefd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o666)
    try:
        data = os.read(stdin_fd, PIPE_CHUNK)
        _write_all(filefd, data)
        _write_all(stdout_fd, data)
    finally:
        os.close(filefd)
    return data