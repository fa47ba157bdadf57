"""A load generator that keeps many connections sending one request after another."""

import selectors
import socket
import time

from snailnet.fdwrapper import add_write_fd, close_fd, mod_fd

REQUEST = (
    b"GET http://localhost/index.html HTTP/1.1\r\n"
    b"Connection: keep-alive\r\n\r\nxxxxxxxxxxxx"
)
READ_SIZE = 2048
WAIT_TIMEOUT = 2.0


def write_nbytes(sock, data):
    """Send all of data; return False as soon as a send fails or sends nothing."""
    print(f"write out {len(data)} bytes to socket {sock.fileno()}")
    offset = 0
    while offset < len(data):
        try:
            sent = sock.send(data[offset:])
        except OSError:
            return False
        if sent == 0:
            return False
        offset += sent
    return True


def read_once(sock, size=READ_SIZE):
    """Receive once; return the bytes, or None on error or a closed peer."""
    try:
        data = sock.recv(size)
    except OSError:
        return None
    if not data:
        return None
    print(f"read in {len(data)} bytes from socket {sock.fileno()} "
          f"with content: {data.decode('latin-1')}")
    return data


class StressClient:
    """Opens ``count`` connections and alternates writing a request and reading a reply."""

    def __init__(self, ip, port, count, delay=1.0):
        self.address = (ip, port)
        self.count = count
        self.delay = delay
        self.selector = selectors.DefaultSelector()
        self.requests_sent = 0
        self.responses_read = 0
        self.last_response = None

    @property
    def connections(self):
        """Number of connections still open."""
        return len(self.selector.get_map())

    def start_conn(self):
        """Open the connections, pausing ``delay`` seconds before each; return how many succeeded."""
        built = 0
        for index in range(self.count):
            time.sleep(self.delay)
            try:
                sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            except OSError:
                sock = None
            print("create 1 sock")
            if sock is None:
                continue
            try:
                sock.connect(self.address)
            except OSError:
                sock.close()
                continue
            print(f"build connection {index}")
            add_write_fd(self.selector, sock)
            built += 1
        return built

    def poll_once(self, timeout=WAIT_TIMEOUT):
        """Wait up to ``timeout`` seconds and service ready connections; return the event count."""
        events = self.selector.select(timeout)
        for key, mask in events:
            sock = key.fileobj
            if mask & selectors.EVENT_READ:
                data = read_once(sock)
                if data is None:
                    close_fd(self.selector, sock)
                    continue
                self.responses_read += 1
                self.last_response = data
                mod_fd(self.selector, sock, selectors.EVENT_WRITE)
            elif mask & selectors.EVENT_WRITE:
                if not write_nbytes(sock, REQUEST):
                    close_fd(self.selector, sock)
                    continue
                self.requests_sent += 1
                mod_fd(self.selector, sock, selectors.EVENT_READ)
        return len(events)

    def run(self):
        """Keep the connections busy forever."""
        while True:
            self.poll_once()

    def close(self):
        """Close every connection and the selector."""
        for key in list(self.selector.get_map().values()):
            close_fd(self.selector, key.fileobj)
        self.selector.close()