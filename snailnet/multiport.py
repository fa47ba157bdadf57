"""An echo server answering TCP and UDP on the same port."""

import selectors
import socket

from snailnet.fdwrapper import add_read_fd, close_fd, remove_fd

TCP_BUFFER_SIZE = 512
UDP_BUFFER_SIZE = 1024


class MultiPortEchoServer:
    """Echoes TCP streams and UDP datagrams received on one port number.

    UDP replies are always UDP_BUFFER_SIZE - 1 bytes long, the datagram
    followed by zero bytes.
    """

    def __init__(self, ip, port):
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self.listener.bind((ip, port))
            self.listener.listen(5)
            self.address = self.listener.getsockname()
            self.udp.bind((ip, self.address[1]))
        except OSError:
            self.listener.close()
            self.udp.close()
            raise
        self.selector = selectors.DefaultSelector()
        add_read_fd(self.selector, self.listener)
        add_read_fd(self.selector, self.udp)

    def serve_once(self, timeout=None):
        """Wait up to ``timeout`` seconds and handle what is ready; return the event count."""
        events = self.selector.select(timeout)
        for key, mask in events:
            sock = key.fileobj
            if sock is self.listener:
                self._accept()
            elif sock is self.udp:
                self._echo_datagram()
            elif mask & selectors.EVENT_READ:
                self._echo_stream(sock)
            else:
                print("something else happened ")
        return len(events)

    def _accept(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        add_read_fd(self.selector, conn)

    def _echo_datagram(self):
        try:
            data, client = self.udp.recvfrom(UDP_BUFFER_SIZE - 1)
        except OSError:
            return
        if data:
            try:
                self.udp.sendto(data.ljust(UDP_BUFFER_SIZE - 1, b"\0"), client)
            except OSError:
                pass

    def _echo_stream(self, sock):
        while True:
            try:
                data = sock.recv(TCP_BUFFER_SIZE - 1)
            except BlockingIOError:
                break
            except OSError:
                close_fd(self.selector, sock)
                break
            if not data:
                close_fd(self.selector, sock)
                break
            try:
                sock.send(data)
            except BlockingIOError:
                pass
            except OSError:
                close_fd(self.selector, sock)
                break

    def run(self):
        """Serve until waiting for events fails."""
        while True:
            try:
                self.serve_once()
            except OSError:
                print("epoll failure")
                break

    def close(self):
        """Close every socket and the selector."""
        for key in list(self.selector.get_map().values()):
            remove_fd(self.selector, key.fileobj)
            key.fileobj.close()
        self.selector.close()