import socket
import threading
import time
from unittest import mock

import pytest

from snailnet import sockopts


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
            return socket.create_connection(("127.0.0.1", port), timeout=1)
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.02)


def test_set_send_buffer_matches_socket_option():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        result = sockopts.set_send_buffer(sock, 65536)
        assert result == sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF)
        assert result >= 65536


def test_set_recv_buffer_matches_socket_option():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        result = sockopts.set_recv_buffer(sock, 65536)
        assert result == sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
        assert result >= 65536


@pytest.mark.parametrize("reuse", [False, True])
def test_accept_one_returns_peer_address(reuse, capsys):
    port = _free_port()
    runner = _Runner(lambda: sockopts.accept_one("127.0.0.1", port, reuse))
    runner.start()
    client = _connect(port)
    client_address = client.getsockname()
    runner.join(5)
    client.close()
    assert runner.error is None
    assert runner.result == client_address
    assert f"and port: {client_address[1]}" in capsys.readouterr().out


def test_listen_until_stopped_accepts_into_backlog_until_stopped():
    port = _free_port()
    stop = threading.Event()
    runner = _Runner(lambda: sockopts.listen_until_stopped("127.0.0.1", port, 5, stop))
    runner.start()
    client = _connect(port)
    assert runner.is_alive()
    stop.set()
    runner.join(5)
    client.close()
    assert runner.error is None
    assert runner.result == ("127.0.0.1", port)


def test_send_and_receive_with_buffer_transfer_512_bytes():
    port = _free_port()
    runner = _Runner(lambda: sockopts.receive_with_buffer("127.0.0.1", port, 4096))
    runner.start()
    deadline = time.monotonic() + 5
    while True:
        sendbuf, sent = sockopts.send_with_buffer("127.0.0.1", port, 4096)
        if sent or time.monotonic() > deadline:
            break
        time.sleep(0.02)
    runner.join(5)
    assert runner.error is None
    assert sent == sockopts.SEND_SIZE
    assert sendbuf > 0
    recvbuf, data = runner.result
    assert recvbuf > 0
    assert data == b"a" * sockopts.SEND_SIZE


def test_send_with_buffer_without_listener_sends_nothing():
    sendbuf, sent = sockopts.send_with_buffer("127.0.0.1", _free_port(), 4096)
    assert sent == 0
    assert sendbuf > 0


def test_daytime_reads_server_answer(capsys):
    answer = b"Thu Jan  1 00:00:00 1970\r\n"
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]

        def serve():
            conn, _ = server.accept()
            with conn:
                conn.sendall(answer)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        with mock.patch("socket.getservbyname", return_value=port):
            text = sockopts.daytime("127.0.0.1")
        thread.join(5)
    assert text == answer.decode()
    assert f"daytime port is {port}" in capsys.readouterr().out


def test_daytime_refused_raises():
    port = _free_port()
    with mock.patch("socket.getservbyname", return_value=port):
        with pytest.raises(ConnectionRefusedError):
            sockopts.daytime("127.0.0.1")