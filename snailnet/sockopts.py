"""TCP socket demonstrations: buffer sizes, listen backlog, address reuse, daytime."""

import socket

SEND_SIZE = 512
RECV_SIZE = 1024
DAYTIME_SIZE = 128


def _listener(ip, port, backlog=5, reuse=False):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if reuse:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((ip, port))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    return sock


def _accept(listener):
    """Accept one connection; print the errno and return (None, None) on failure."""
    try:
        return listener.accept()
    except OSError as exc:
        print(f"errno is: {exc.errno}")
        return None, None


def set_send_buffer(sock, size):
    """Request a TCP send buffer size; return the size the kernel settled on."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, size)
    return sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF)


def set_recv_buffer(sock, size):
    """Request a TCP receive buffer size; return the size the kernel settled on."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)
    return sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)


def listen_until_stopped(ip, port, backlog, stop):
    """Listen with the given backlog, never accepting, until the stop event is set.

    Returns the address that was listened on.
    """
    with _listener(ip, port, backlog) as sock:
        address = sock.getsockname()
        while not stop.wait(1):
            continue
    return address


def accept_one(ip, port, reuse=False):
    """Accept a single connection, report the peer and close it; return the peer address."""
    with _listener(ip, port, reuse=reuse) as sock:
        conn, client = _accept(sock)
        if conn is None:
            return None
        with conn:
            print(f"connected with ip: {client[0]} and port: {client[1]}")
        return client


def send_with_buffer(ip, port, size):
    """Connect with a sized send buffer and send 512 bytes of 'a'.

    Returns (effective buffer size, bytes sent); bytes sent is 0 when the
    connection could not be made.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sendbuf = set_send_buffer(sock, size)
        print(f"the tcp send buffer size after setting is {sendbuf}")
        try:
            sock.connect((ip, port))
        except OSError:
            return sendbuf, 0
        return sendbuf, sock.send(b"a" * SEND_SIZE)


def receive_with_buffer(ip, port, size):
    """Listen with a sized receive buffer and drain one connection.

    Returns (effective buffer size, received bytes or None if accept failed).
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        recvbuf = set_recv_buffer(sock, size)
        print(f"the receive buffer size after settting is {recvbuf}")
        sock.bind((ip, port))
        sock.listen(5)
        conn, _ = _accept(sock)
        if conn is None:
            return recvbuf, None
        chunks = []
        with conn:
            while True:
                try:
                    data = conn.recv(RECV_SIZE - 1)
                except OSError:
                    break
                if not data:
                    break
                chunks.append(data)
        return recvbuf, b"".join(chunks)


def daytime(host):
    """Ask the host's TCP daytime service for the time and return its answer."""
    address = socket.gethostbyname(host)
    port = socket.getservbyname("daytime", "tcp")
    print(f"daytime port is {port}")
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.connect((address, port))
        data = sock.recv(DAYTIME_SIZE)
    if not data:
        raise ConnectionError("daytime server sent nothing")
    text = data.decode("latin-1")
    print(f"the day time is: {text}", end="")
    return text