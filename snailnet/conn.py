"""One proxied client/server socket pair with a buffer in each direction."""

import inspect
import os

from snailnet.fdwrapper import RetCode
from snailnet.log import LogLevel, log

_FILE = os.path.basename(__file__)


def _line():
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    return caller.f_lineno if caller is not None else 0


def _receive(sock, buf, read_idx, full_msg, closed_msg):
    """Read into buf until the socket would block; return (status or None, read_idx)."""
    with memoryview(buf) as view:
        while True:
            if read_idx >= len(buf):
                log(LogLevel.ERR, _FILE, _line(), "%s", full_msg)
                return RetCode.BUFFER_FULL, read_idx
            try:
                count = sock.recv_into(view[read_idx:])
            except BlockingIOError:
                return None, read_idx
            except OSError:
                return RetCode.IOERR, read_idx
            if count == 0:
                if closed_msg:
                    log(LogLevel.ERR, _FILE, _line(), "%s", closed_msg)
                return RetCode.CLOSED, read_idx
            read_idx += count


def _send(sock, buf, write_idx, read_idx, peer):
    """Send buf[write_idx:read_idx]; return (status, write_idx)."""
    while True:
        if read_idx <= write_idx:
            return RetCode.BUFFER_EMPTY, write_idx
        try:
            count = sock.send(buf[write_idx:read_idx])
        except BlockingIOError:
            return RetCode.TRY_AGAIN, write_idx
        except OSError as exc:
            log(LogLevel.ERR, _FILE, _line(), "write %s socket failed, %s",
                peer, exc.strerror or str(exc))
            return RetCode.IOERR, write_idx
        if count == 0:
            return RetCode.CLOSED, write_idx
        write_idx += count


class Conn:
    """Buffers data read from a client for its server and back again."""

    BUF_SIZE = 2048

    def __init__(self):
        self.clt_buf = bytearray(self.BUF_SIZE)
        self.srv_buf = bytearray(self.BUF_SIZE)
        self.clt_address = None
        self.srv_address = None
        self.srv_sock = None
        self.reset()

    def init_clt(self, sock, address):
        self.clt_sock = sock
        self.clt_address = address

    def init_srv(self, sock, address):
        self.srv_sock = sock
        self.srv_address = address

    def reset(self):
        """Empty both buffers and forget the client socket."""
        self.clt_read_idx = 0
        self.clt_write_idx = 0
        self.srv_read_idx = 0
        self.srv_write_idx = 0
        self.srv_closed = False
        self.clt_sock = None
        self.clt_buf[:] = bytes(self.BUF_SIZE)
        self.srv_buf[:] = bytes(self.BUF_SIZE)

    def read_clt(self):
        """Read what the client has sent into the client buffer."""
        status, self.clt_read_idx = _receive(
            self.clt_sock, self.clt_buf, self.clt_read_idx,
            "the client read buffer is full, let server write", None)
        if status is not None:
            return status
        return RetCode.OK if self.clt_read_idx > self.clt_write_idx else RetCode.NOTHING

    def read_srv(self):
        """Read what the server has sent into the server buffer."""
        status, self.srv_read_idx = _receive(
            self.srv_sock, self.srv_buf, self.srv_read_idx,
            "the server read buffer is full, let client write",
            "the server should not close the persist connection")
        if status is not None:
            return status
        return RetCode.OK if self.srv_read_idx > self.srv_write_idx else RetCode.NOTHING

    def write_srv(self):
        """Send buffered client data to the server."""
        status, self.clt_write_idx = _send(
            self.srv_sock, self.clt_buf, self.clt_write_idx, self.clt_read_idx, "server")
        if status is RetCode.BUFFER_EMPTY:
            self.clt_read_idx = 0
            self.clt_write_idx = 0
        return status

    def write_clt(self):
        """Send buffered server data to the client."""
        status, self.srv_write_idx = _send(
            self.clt_sock, self.srv_buf, self.srv_write_idx, self.srv_read_idx, "client")
        if status is RetCode.BUFFER_EMPTY:
            self.srv_read_idx = 0
            self.srv_write_idx = 0
        return status