"""Servers that multiplex sockets with select and a readiness selector."""

import queue
import select
import selectors
import socket
import sys
import threading
import time

from snailnet.fdwrapper import add_read_fd, close_fd, remove_fd

SELECT_BUFFER_SIZE = 1024
ECHO_BUFFER_SIZE = 10
ONESHOT_BUFFER_SIZE = 1024


def _listener(ip, port):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((ip, port))
        sock.listen(5)
    except OSError:
        sock.close()
        raise
    return sock


def select_server(ip, port, output=None):
    """Accept one connection and report its normal and urgent data until it ends.

    Messages go to ``output`` (standard output by default). Returns the
    received pieces as (kind, bytes) pairs, kind being "normal" or "oob",
    or None when no connection was accepted.
    """
    out = sys.stdout if output is None else output
    print(f"ip is {ip} and port is {port}", file=out)
    with _listener(ip, port) as listener:
        try:
            conn, client = listener.accept()
        except OSError as exc:
            print(f"errno is: {exc.errno}", file=out)
            return None

    received = []
    with conn:
        print(f"connected with ip: {client[0]} and port: {client[1]}", file=out)
        conn.setsockopt(socket.SOL_SOCKET, socket.SO_OOBINLINE, 1)
        while True:
            try:
                readable, _, exceptional = select.select([conn], [], [conn])
                failed = False
            except OSError:
                readable, exceptional, failed = [], [], True
            print("select one", file=out)
            if failed:
                print("selection failure", file=out)
                break
            if readable:
                kind, flags = "normal", 0
            elif exceptional:
                kind, flags = "oob", socket.MSG_OOB
            else:
                continue
            try:
                data = conn.recv(SELECT_BUFFER_SIZE - 1, flags)
            except OSError:
                break
            if not data:
                break
            print(f"get {len(data)} bytes of {kind} data: {data.decode('latin-1')}",
                  file=out)
            received.append((kind, data))
    return received


class EchoLogServer:
    """Accepts connections and logs what they send, level- or edge-style.

    In level mode each readiness event reads one small chunk; in edge mode
    the socket is drained until it would block.
    """

    def __init__(self, ip, port, edge_triggered=False):
        self.edge_triggered = edge_triggered
        self.listener = _listener(ip, port)
        self.address = self.listener.getsockname()
        self.selector = selectors.DefaultSelector()
        add_read_fd(self.selector, self.listener)

    def handle_events(self, events):
        """Handle (key, mask) pairs from the selector; return (fd, bytes) received."""
        received = []
        for key, mask in events:
            sock = key.fileobj
            if sock is self.listener:
                try:
                    conn, _ = self.listener.accept()
                except OSError:
                    continue
                add_read_fd(self.selector, conn)
            elif mask & selectors.EVENT_READ:
                print("event trigger once")
                if self.edge_triggered:
                    received.extend(self._drain(sock))
                else:
                    received.extend(self._read_once(sock))
            else:
                print("something else happened ")
        return received

    def _read_once(self, sock):
        fd = sock.fileno()
        try:
            data = sock.recv(ECHO_BUFFER_SIZE - 1)
        except BlockingIOError:
            return []
        except OSError:
            data = b""
        if not data:
            close_fd(self.selector, sock)
            return []
        print(f"get {len(data)} bytes of content: {data.decode('latin-1')}")
        return [(fd, data)]

    def _drain(self, sock):
        fd = sock.fileno()
        chunks = []
        while True:
            try:
                data = sock.recv(ECHO_BUFFER_SIZE - 1)
            except BlockingIOError:
                print("read later")
                break
            except OSError:
                close_fd(self.selector, sock)
                break
            if not data:
                close_fd(self.selector, sock)
                break
            print(f"get {len(data)} bytes of content: {data.decode('latin-1')}")
            chunks.append((fd, data))
        return chunks

    def run(self):
        """Serve until waiting for events fails."""
        while True:
            try:
                events = self.selector.select()
            except OSError:
                print("epoll failure")
                break
            self.handle_events(events)

    def close(self):
        """Close every watched socket and the selector."""
        for key in list(self.selector.get_map().values()):
            remove_fd(self.selector, key.fileobj)
            key.fileobj.close()
        self.selector.close()


def _oneshot_worker(sock, delay, results, rearm, notify):
    fd = sock.fileno()
    print(f"start new thread to receive data on fd: {fd}")
    while True:
        try:
            data = sock.recv(ONESHOT_BUFFER_SIZE - 1)
        except BlockingIOError:
            rearm.put(sock)
            notify()
            print("read later")
            break
        except OSError:
            sock.close()
            break
        if not data:
            sock.close()
            print("foreiner closed the connection")
            break
        print(f"get content: {data.decode('latin-1')}")
        results.put((fd, data))
        notify()
        time.sleep(delay)
    print(f"end thread receiving data on fd: {fd}")


def _drain_queue(items):
    while True:
        try:
            yield items.get_nowait()
        except queue.Empty:
            return


def oneshot_server(ip, port, delay=5.0):
    """Serve connections, handing each readable socket to one worker thread at a time.

    A socket is not watched while its worker reads it and is watched again
    once the worker finds nothing more to read. Workers pause ``delay``
    seconds after each chunk. Yields (fd, bytes) for every chunk received;
    closing the generator stops the server.
    """
    listener = _listener(ip, port)
    selector = selectors.DefaultSelector()
    wake_read, wake_write = socket.socketpair()
    results = queue.Queue()
    rearm = queue.Queue()

    def notify():
        try:
            wake_write.send(b"\0")
        except OSError:
            pass

    try:
        add_read_fd(selector, listener)
        add_read_fd(selector, wake_read)
        while True:
            try:
                events = selector.select()
            except OSError:
                print("epoll failure")
                return
            for key, mask in events:
                sock = key.fileobj
                if sock is listener:
                    try:
                        conn, _ = listener.accept()
                    except OSError:
                        continue
                    add_read_fd(selector, conn)
                elif sock is wake_read:
                    try:
                        while wake_read.recv(1024):
                            pass
                    except OSError:
                        pass
                elif mask & selectors.EVENT_READ:
                    remove_fd(selector, sock)
                    threading.Thread(
                        target=_oneshot_worker,
                        args=(sock, delay, results, rearm, notify),
                        daemon=True,
                    ).start()
                else:
                    print("something else happened ")
            for sock in _drain_queue(rearm):
                if sock.fileno() != -1:
                    add_read_fd(selector, sock)
            yield from _drain_queue(results)
    finally:
        selector.close()
        listener.close()
        wake_read.close()
        wake_write.close()