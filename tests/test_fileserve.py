import os
import socket
import threading
import time

import pytest

from snailnet import fileserve

ERROR_HEADER = b"HTTP/1.1 500 Internal server error\r\n\r\n"


class _Runner(threading.Thread):
    def __init__(self, func):
        super().__init__(daemon=True)
        self.func = func
        self.result = None
        self.error = None

    def run(self):
        try:
            self.result = self.func()
        except BaseException as exc:
            self.error = exc


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _connect(port, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        try:
            return socket.create_connection(("127.0.0.1", port), timeout=2)
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.02)


def _read_all(sock):
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            return b"".join(chunks)
        chunks.append(data)


@pytest.fixture
def public_file(tmp_path):
    path = tmp_path / "index.html"
    path.write_bytes(b"<html>hello</html>")
    path.chmod(0o644)
    return path


def test_build_file_response_for_readable_file(public_file):
    content = public_file.read_bytes()
    header, body = fileserve.build_file_response(str(public_file))
    assert header == f"HTTP/1.1 200 OK\r\nContent-Length: {len(content)}\r\n\r\n".encode()
    assert body == content


def test_build_file_response_missing_file(tmp_path):
    assert fileserve.build_file_response(str(tmp_path / "missing")) == (ERROR_HEADER, b"")


def test_build_file_response_directory(tmp_path):
    assert fileserve.build_file_response(str(tmp_path)) == (ERROR_HEADER, b"")


def test_build_file_response_private_file(tmp_path):
    path = tmp_path / "private"
    path.write_bytes(b"hidden")
    path.chmod(0o600)
    assert fileserve.build_file_response(str(path)) == (ERROR_HEADER, b"")


def test_serve_file_writev_sends_header_and_body(public_file):
    port = _free_port()
    runner = _Runner(
        lambda: fileserve.serve_file_writev("127.0.0.1", port, str(public_file)))
    runner.start()
    client = _connect(port)
    data = _read_all(client)
    client.close()
    runner.join(5)
    assert runner.error is None
    header, body = fileserve.build_file_response(str(public_file))
    assert data == header + body
    assert runner.result == len(data)


def test_serve_file_writev_error_response(tmp_path):
    port = _free_port()
    missing = str(tmp_path / "none")
    runner = _Runner(lambda: fileserve.serve_file_writev("127.0.0.1", port, missing))
    runner.start()
    client = _connect(port)
    data = _read_all(client)
    client.close()
    runner.join(5)
    assert data == ERROR_HEADER
    assert runner.result == len(ERROR_HEADER)


def test_serve_file_sendfile_sends_raw_content(public_file):
    port = _free_port()
    runner = _Runner(
        lambda: fileserve.serve_file_sendfile("127.0.0.1", port, str(public_file)))
    runner.start()
    client = _connect(port)
    data = _read_all(client)
    client.close()
    runner.join(5)
    assert runner.error is None
    assert data == public_file.read_bytes()
    assert runner.result == len(data)


def test_serve_file_sendfile_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        fileserve.serve_file_sendfile("127.0.0.1", _free_port(), str(tmp_path / "none"))


def test_splice_echo_returns_data_to_sender():
    port = _free_port()
    runner = _Runner(lambda: fileserve.splice_echo("127.0.0.1", port))
    runner.start()
    client = _connect(port)
    client.sendall(b"ping")
    data = _read_all(client)
    client.close()
    runner.join(5)
    assert runner.error is None
    assert data == b"ping"
    assert runner.result == len(data)


def test_tee_stdin_copies_to_file_and_stdout(tmp_path):
    payload = b"abc\n"
    in_read, in_write = os.pipe()
    out_read, out_write = os.pipe()
    os.write(in_write, payload)
    os.close(in_write)
    target = tmp_path / "copy.txt"
    target.write_bytes(b"old contents that must be truncated")
    try:
        result = fileserve.tee_stdin(str(target), in_read, out_write)
        os.close(out_write)
        echoed = os.read(out_read, 1024)
    finally:
        os.close(in_read)
        os.close(out_read)
    assert result == payload
    assert echoed == payload
    assert target.read_bytes() == payload