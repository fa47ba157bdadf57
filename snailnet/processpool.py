"""A pool of workers that share one listening socket.

The dispatcher runs in the calling thread and hands each new connection to
the least busy worker; every worker runs its own event loop in a thread.
"""

import inspect
import os
import selectors
import signal
import socket
import threading
from dataclasses import dataclass, field
from typing import Optional

from snailnet.fdwrapper import OpType, RetCode, add_read_fd, close_fd, set_nonblocking
from snailnet.log import LogLevel, log
from snailnet.mgr import Mgr

MAX_PROCESS_NUMBER = 16
USER_PER_PROCESS = 65536
MAX_EVENT_NUMBER = 10000
EPOLL_WAIT_TIME = 5.0

_FILE = os.path.basename(__file__)
_NEW_CONN = (1).to_bytes(4, "little")


def _line():
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    return caller.f_lineno if caller is not None else 0


def most_free_index(busy_ratios):
    """Index of the first smallest busy ratio."""
    ratios = list(busy_ratios)
    if not ratios:
        raise ValueError("no processes to choose from")
    best = 0
    for index, ratio in enumerate(ratios):
        if ratio < ratios[best]:
            best = index
    return best


@dataclass
class Process:
    """One worker: its load, its channel ends and its thread."""

    busy_ratio: int = 0
    pipe: Optional[socket.socket] = None
    child_pipe: Optional[socket.socket] = None
    thread: Optional[threading.Thread] = None
    joined: bool = False
    stopping: threading.Event = field(default_factory=threading.Event)


class ProcessPool:
    """A dispatcher that hands accepted connections to the least busy worker."""

    manager_class = Mgr
    _instance = None

    def __init__(self, listen_sock, process_number=8):
        if not 0 < process_number <= MAX_PROCESS_NUMBER:
            raise ValueError(
                f"process number must be between 1 and {MAX_PROCESS_NUMBER}")
        self.listen_sock = listen_sock
        self.process_number = process_number
        self._stop = False
        self._selector = None
        self._sig_read = None
        self._sig_write = None
        self.sub_process = []
        for _ in range(process_number):
            parent_end, child_end = socket.socketpair()
            self.sub_process.append(Process(pipe=parent_end, child_pipe=child_end))

    @classmethod
    def create(cls, listen_sock, process_number=8):
        """Return the pool, building it on first use."""
        if cls._instance is None:
            cls._instance = cls(listen_sock, process_number)
        return cls._instance

    def run(self, hosts):
        """Start one worker per host and dispatch connections until stopped."""
        hosts = list(hosts)
        if len(hosts) < self.process_number:
            raise ValueError(
                f"{self.process_number} workers need as many hosts, got {len(hosts)}")
        self._stop = False
        self._selector = selectors.DefaultSelector()
        self._sig_read, self._sig_write = socket.socketpair()
        set_nonblocking(self._sig_write)
        add_read_fd(self._selector, self._sig_read)
        previous = self._install_signals()
        try:
            for index, proc in enumerate(self.sub_process):
                proc.thread = threading.Thread(
                    target=self._run_child,
                    args=(proc, hosts[index]),
                    name=f"worker-{index}",
                    daemon=True,
                )
                proc.thread.start()
            self._run_parent()
        finally:
            self._stop_children()
            for proc in self.sub_process:
                if proc.thread is not None:
                    proc.thread.join()
            self._restore_signals(previous)
            for proc in self.sub_process:
                if not proc.joined:
                    close_fd(self._selector, proc.pipe)
                    proc.joined = True
            self._selector.close()
            self._sig_read.close()
            self._sig_write.close()

    def get_most_free_srv(self):
        """Index of the live worker reporting the fewest used connections."""
        candidates = [index for index, proc in enumerate(self.sub_process)
                      if not proc.joined]
        if not candidates:
            raise ValueError("no processes to choose from")
        best = most_free_index(self.sub_process[index].busy_ratio
                               for index in candidates)
        return candidates[best]

    def _install_signals(self):
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}
        for signum in (signal.SIGTERM, signal.SIGINT):
            previous[signum] = signal.signal(signum, self._on_signal)
        previous[signal.SIGPIPE] = signal.signal(signal.SIGPIPE, signal.SIG_IGN)
        return previous

    @staticmethod
    def _restore_signals(previous):
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)

    def _on_signal(self, signum, frame):
        try:
            self._sig_write.send(bytes([signum & 0xFF]))
        except OSError:
            pass

    def _read_signals(self):
        try:
            return self._sig_read.recv(1024)
        except OSError:
            return b""

    @staticmethod
    def _notify_parent_busy_ratio(pipe, manager):
        try:
            pipe.send(bytes([manager.get_used_conn_cnt() & 0xFF]))
        except OSError:
            pass

    def _stop_children(self):
        for proc in self.sub_process:
            if proc.joined or proc.stopping.is_set():
                continue
            proc.stopping.set()
            try:
                proc.pipe.shutdown(socket.SHUT_WR)
            except OSError:
                pass

    def _run_child(self, proc, host):
        pipe = proc.child_pipe
        selector = selectors.DefaultSelector()
        try:
            add_read_fd(selector, pipe)
            manager = self.manager_class(selector, host)
            while not proc.stopping.is_set():
                try:
                    events = selector.select(EPOLL_WAIT_TIME)
                except OSError:
                    log(LogLevel.ERR, _FILE, _line(), "%s", "epoll failure")
                    break
                if not events:
                    manager.recycle_conns()
                    continue
                for key, mask in events:
                    sock = key.fileobj
                    if sock is pipe and mask & selectors.EVENT_READ:
                        self._child_accept(selector, proc, manager)
                    elif mask & selectors.EVENT_READ:
                        if manager.process(sock, OpType.READ) == RetCode.CLOSED:
                            self._notify_parent_busy_ratio(pipe, manager)
                    elif mask & selectors.EVENT_WRITE:
                        if manager.process(sock, OpType.WRITE) == RetCode.CLOSED:
                            self._notify_parent_busy_ratio(pipe, manager)
        finally:
            selector.close()
            pipe.close()

    def _child_accept(self, selector, proc, manager):
        pipe = proc.child_pipe
        try:
            data = pipe.recv(4)
        except BlockingIOError:
            data = None
        except OSError:
            return
        if data == b"":
            proc.stopping.set()
            return
        try:
            connsock, client_address = self.listen_sock.accept()
        except OSError as exc:
            log(LogLevel.ERR, _FILE, _line(), "errno: %s", exc.strerror or str(exc))
            return
        add_read_fd(selector, connsock)
        connection = manager.pick_conn(connsock)
        if connection is None:
            close_fd(selector, connsock)
            return
        connection.init_clt(connsock, client_address)
        self._notify_parent_busy_ratio(pipe, manager)

    def _run_parent(self):
        for proc in self.sub_process:
            add_read_fd(self._selector, proc.pipe)
        add_read_fd(self._selector, self.listen_sock)

        while not self._stop:
            try:
                events = self._selector.select(EPOLL_WAIT_TIME)
            except OSError:
                log(LogLevel.ERR, _FILE, _line(), "%s", "epoll failure")
                break
            for key, mask in events:
                sock = key.fileobj
                if sock is self.listen_sock:
                    self._dispatch()
                elif sock is self._sig_read and mask & selectors.EVENT_READ:
                    self._parent_signals()
                elif mask & selectors.EVENT_READ:
                    self._update_busy_ratio(sock)

    def _dispatch(self):
        try:
            idx = self.get_most_free_srv()
        except ValueError:
            self._stop = True
            return
        try:
            self.sub_process[idx].pipe.send(_NEW_CONN)
        except OSError:
            pass
        log(LogLevel.INFO, _FILE, _line(), "send request to child %d", idx)

    def _update_busy_ratio(self, sock):
        try:
            data = sock.recv(4)
        except BlockingIOError:
            data = b"\0"
        except OSError:
            return
        if not data:
            self._child_joined(sock)
            return
        busy_ratio = int.from_bytes(data, "little")
        for proc in self.sub_process:
            if proc.pipe is sock:
                proc.busy_ratio = busy_ratio
                break

    def _child_joined(self, sock):
        for index, proc in enumerate(self.sub_process):
            if proc.pipe is sock and not proc.joined:
                log(LogLevel.INFO, _FILE, _line(), "child %d join", index)
                close_fd(self._selector, proc.pipe)
                proc.joined = True
        self._stop = all(proc.joined for proc in self.sub_process)

    def _parent_signals(self):
        for signum in self._read_signals():
            if signum in (signal.SIGTERM, signal.SIGINT):
                log(LogLevel.INFO, _FILE, _line(), "%s", "kill all the clild now")
                self._stop_children()