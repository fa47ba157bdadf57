import socket

import pytest

from snailnet.stress import REQUEST, StressClient, read_once, write_nbytes


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(5)
    yield sock
    sock.close()


def _recv_exact(sock, size):
    buf = b""
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


def test_request_is_an_http_get():
    assert REQUEST.startswith(b"GET http://localhost/index.html HTTP/1.1\r\n")


def test_write_nbytes_delivers_everything():
    a, b = socket.socketpair()
    with a, b:
        assert write_nbytes(a, b"hello") is True
        assert b.recv(64) == b"hello"


def test_write_nbytes_fails_on_closed_peer():
    a, b = socket.socketpair()
    b.close()
    with a:
        assert write_nbytes(a, b"hello") is False


def test_read_once_returns_data_then_none_after_close():
    a, b = socket.socketpair()
    with b:
        a.sendall(b"abc")
        assert read_once(b) == b"abc"
        a.close()
        assert read_once(b) is None


def test_start_conn_counts_failed_connections_out():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    client = StressClient("127.0.0.1", port, 2, delay=0)
    try:
        assert client.start_conn() == 0
        assert client.connections == 0
    finally:
        client.close()


def test_request_and_response_cycle(listener):
    port = listener.getsockname()[1]
    client = StressClient("127.0.0.1", port, 1, delay=0)
    try:
        assert client.start_conn() == 1
        server, _ = listener.accept()
        with server:
            server.settimeout(2)
            for _ in range(20):
                client.poll_once(0.1)
                if client.requests_sent:
                    break
            assert client.requests_sent == 1
            assert _recv_exact(server, len(REQUEST)) == REQUEST
            reply = b"HTTP/1.1 200 OK\r\n\r\n"
            server.sendall(reply)
            for _ in range(20):
                client.poll_once(0.1)
                if client.responses_read:
                    break
            assert client.responses_read == 1
            assert client.last_response == reply
            for _ in range(20):
                client.poll_once(0.1)
                if client.requests_sent == 2:
                    break
            assert _recv_exact(server, len(REQUEST)) == REQUEST
    finally:
        client.close()


def test_closed_server_connection_is_dropped(listener):
    port = listener.getsockname()[1]
    client = StressClient("127.0.0.1", port, 1, delay=0)
    try:
        assert client.start_conn() == 1
        server, _ = listener.accept()
        for _ in range(20):
            client.poll_once(0.1)
            if client.requests_sent:
                break
        server.close()
        for _ in range(20):
            client.poll_once(0.1)
            if client.connections == 0:
                break
        assert client.connections == 0
        assert client.responses_read == 0
    finally:
        client.close()