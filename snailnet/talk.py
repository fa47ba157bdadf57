"""A chat room server that relays each message to every other user, and its client."""

import os
import selectors
import socket
import sys
from dataclasses import dataclass

from snailnet.fdwrapper import add_read_fd, close_fd, mod_fd

USER_LIMIT = 5
BUFFER_SIZE = 64
PIPE_CHUNK = 32768
TOO_MANY_USERS = b"too many users\n"


@dataclass
class _User:
    sock: socket.socket
    address: tuple
    write_buf: bytes | None = None


class TalkServer:
    """Accepts up to ``user_limit`` users and relays what one sends to the others.

    Each user holds only the latest message still to be delivered to it.
    """

    def __init__(self, ip, port, user_limit=USER_LIMIT):
        self.user_limit = user_limit
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.listener.bind((ip, port))
            self.listener.listen(5)
        except OSError:
            self.listener.close()
            raise
        self.address = self.listener.getsockname()
        self.selector = selectors.DefaultSelector()
        self.selector.register(self.listener, selectors.EVENT_READ)
        self.users = {}

    @property
    def user_count(self):
        """Number of connected users."""
        return len(self.users)

    def poll_once(self, timeout=None):
        """Wait up to ``timeout`` seconds and handle what is ready.

        Returns the messages received, as (fd, bytes) pairs.
        """
        received = []
        for key, mask in self.selector.select(timeout):
            if key.fileobj is self.listener:
                self._accept()
                continue
            fd = key.fd
            if mask & selectors.EVENT_READ and fd in self.users:
                data = self._read(fd, self.users[fd])
                if data:
                    received.append((fd, data))
            if mask & selectors.EVENT_WRITE and fd in self.users:
                self._write(fd, self.users[fd])
        return received

    def _accept(self):
        try:
            conn, client = self.listener.accept()
        except OSError as exc:
            print(f"errno is: {exc.errno}")
            return
        if len(self.users) >= self.user_limit:
            print(TOO_MANY_USERS.decode("latin-1"), end="")
            try:
                conn.send(TOO_MANY_USERS)
            except OSError:
                pass
            conn.close()
            return
        add_read_fd(self.selector, conn)
        self.users[conn.fileno()] = _User(conn, client)
        print(f"comes a new user, now have {len(self.users)} users")

    def _drop(self, fd):
        user = self.users.pop(fd)
        close_fd(self.selector, user.sock)

    def _read(self, fd, user):
        try:
            data = user.sock.recv(BUFFER_SIZE - 1)
        except BlockingIOError:
            return None
        except OSError:
            self._drop(fd)
            return None
        if not data:
            self._drop(fd)
            print("a client left")
            return None
        print(f"get {len(data)} bytes of client data {data.decode('latin-1')} from {fd}")
        for other_fd, other in self.users.items():
            if other_fd == fd:
                continue
            other.write_buf = data
            mod_fd(self.selector, other.sock, selectors.EVENT_READ | selectors.EVENT_WRITE)
        return data

    def _write(self, fd, user):
        if user.write_buf is None:
            mod_fd(self.selector, user.sock, selectors.EVENT_READ)
            return
        try:
            user.sock.send(user.write_buf)
        except BlockingIOError:
            return
        except OSError:
            self._drop(fd)
            return
        user.write_buf = None
        mod_fd(self.selector, user.sock, selectors.EVENT_READ)

    def run(self):
        """Serve until waiting for events fails."""
        while True:
            try:
                self.poll_once()
            except OSError:
                print("poll failure")
                break

    def close(self):
        """Close every user connection, the listener and the selector."""
        for fd in list(self.users):
            self._drop(fd)
        self.selector.unregister(self.listener)
        self.listener.close()
        self.selector.close()


def talk_client(ip, port, stdin=None, stdout=None):
    """Send what arrives on ``stdin`` to the server and print what it sends.

    ``stdin`` is a file descriptor or an object with ``fileno()``. Returns 1
    when the connection cannot be made, 0 once the server closes it.
    """
    out = sys.stdout if stdout is None else stdout
    source = sys.stdin if stdin is None else stdin
    in_fd = source if isinstance(source, int) else source.fileno()

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((ip, port))
    except OSError:
        print("connection failed", file=out)
        sock.close()
        return 1

    with sock, selectors.DefaultSelector() as selector:
        selector.register(sock, selectors.EVENT_READ)
        selector.register(in_fd, selectors.EVENT_READ)
        while True:
            try:
                events = selector.select()
            except OSError:
                print("poll failure", file=out)
                return 0
            for key, _ in events:
                if key.fileobj is sock:
                    try:
                        data = sock.recv(BUFFER_SIZE - 1)
                    except OSError:
                        data = b""
                    if not data:
                        print("server close the connection", file=out)
                        return 0
                    print(data.decode("latin-1"), file=out)
                else:
                    data = os.read(in_fd, PIPE_CHUNK)
                    if not data:
                        selector.unregister(in_fd)
                        continue
                    sock.sendall(data)