import socket

import pytest

from snailnet.multiport import UDP_BUFFER_SIZE, MultiPortEchoServer


@pytest.fixture
def server():
    srv = MultiPortEchoServer("127.0.0.1", 0)
    yield srv
    srv.close()


def test_tcp_and_udp_share_port(server):
    assert server.udp.getsockname()[1] == server.address[1]


def test_tcp_echo(server):
    with socket.create_connection(server.address, timeout=5) as client:
        server.serve_once(2)
        client.sendall(b"ping")
        server.serve_once(2)
        assert client.recv(100) == b"ping"


def test_udp_echo_is_zero_padded(server):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
        client.settimeout(5)
        client.sendto(b"hello", ("127.0.0.1", server.address[1]))
        server.serve_once(2)
        reply, _ = client.recvfrom(4096)
    assert len(reply) == UDP_BUFFER_SIZE - 1
    assert reply.startswith(b"hello")
    assert reply[5:] == bytes(len(reply) - 5)


def test_closed_tcp_client_is_unwatched(server):
    client = socket.create_connection(server.address, timeout=5)
    server.serve_once(2)
    assert len(server.selector.get_map()) == 3
    client.close()
    server.serve_once(2)
    assert len(server.selector.get_map()) == 2


def test_serve_once_times_out_without_events(server):
    assert server.serve_once(0.05) == 0