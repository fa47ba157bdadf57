"""Pool of persistent connections to one backend server, bound to clients."""

import inspect
import os
import selectors
import socket
import time

from snailnet.conn import Conn
from snailnet.fdwrapper import OpType, RetCode, add_read_fd, close_fd, mod_fd
from snailnet.log import LogLevel, log

_FILE = os.path.basename(__file__)


def _line():
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    return caller.f_lineno if caller is not None else 0


def _fileno(sock):
    if sock is None:
        return -1
    if isinstance(sock, int):
        return sock
    return sock.fileno()


def _text(buf):
    return bytes(buf).split(b"\0", 1)[0].decode("latin-1")


def conn2srv(address):
    """Open a blocking TCP connection to address; return the socket or None."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError:
        return None
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        return None
    return sock


class Mgr:
    """Holds idle, in-use and broken server connections for one backend."""

    def __init__(self, selector, srv):
        self.selector = selector
        self.logic_srv = srv
        self.conns = {}
        self.used = {}
        self.freed = {}
        address = (srv.hostname, srv.port)
        log(LogLevel.INFO, _FILE, _line(), "logcial srv host info: (%s, %d)",
            srv.hostname, srv.port)
        for i in range(srv.conncnt):
            time.sleep(1)
            sock = conn2srv(address)
            if sock is None:
                log(LogLevel.ERR, _FILE, _line(), "build connection %d failed", i)
                continue
            log(LogLevel.INFO, _FILE, _line(), "build connection %d to server success", i)
            connection = Conn()
            connection.init_srv(sock, address)
            self.conns[sock.fileno()] = connection

    def get_used_conn_cnt(self):
        """Number of sockets, client and server, currently bound."""
        return len(self.used)

    def pick_conn(self, cltsock):
        """Bind an idle server connection to the client socket; None if none is idle."""
        if not self.conns:
            log(LogLevel.ERR, _FILE, _line(), "%s", "not enough srv connections to server")
            return None
        srvfd = min(self.conns)
        connection = self.conns.pop(srvfd)
        cltfd = cltsock.fileno()
        self.used[cltfd] = connection
        self.used[srvfd] = connection
        add_read_fd(self.selector, cltsock)
        add_read_fd(self.selector, connection.srv_sock)
        log(LogLevel.INFO, _FILE, _line(), "bind client sock %d with server sock %d",
            cltfd, srvfd)
        return connection

    def free_conn(self, connection):
        """Close both sides of a bound connection and queue it for reconnection."""
        cltfd = _fileno(connection.clt_sock)
        srvfd = _fileno(connection.srv_sock)
        for sock in (connection.clt_sock, connection.srv_sock):
            if sock is not None:
                close_fd(self.selector, sock)
        self.used.pop(cltfd, None)
        self.used.pop(srvfd, None)
        connection.reset()
        self.freed[srvfd] = connection

    def recycle_conns(self):
        """Reconnect freed connections to the server and make them idle again."""
        if not self.freed:
            return
        for key in sorted(self.freed):
            time.sleep(1)
            connection = self.freed[key]
            sock = conn2srv(connection.srv_address)
            if sock is None:
                log(LogLevel.ERR, _FILE, _line(), "%s", "fix connection failed")
            else:
                log(LogLevel.INFO, _FILE, _line(), "%s", "fix connection success")
                connection.init_srv(sock, connection.srv_address)
                self.conns[sock.fileno()] = connection
        self.freed.clear()

    def process(self, fd, op):
        """Handle readiness of a bound socket; return RetCode.CLOSED if the pair was freed."""
        fd = _fileno(fd)
        connection = self.used.get(fd)
        if connection is None:
            return RetCode.NOTHING
        op = OpType(op)
        if _fileno(connection.clt_sock) == fd:
            return self._process_client(connection, op)
        if _fileno(connection.srv_sock) == fd:
            self._process_server(connection, op)
            return RetCode.OK
        return RetCode.NOTHING

    def _process_client(self, connection, op):
        clt = connection.clt_sock
        srv = connection.srv_sock
        if op is OpType.READ:
            res = connection.read_clt()
            if res == RetCode.OK:
                log(LogLevel.DEBUG, _FILE, _line(), "content read from client: %s",
                    _text(connection.clt_buf))
            if res in (RetCode.OK, RetCode.BUFFER_FULL):
                mod_fd(self.selector, srv, selectors.EVENT_WRITE)
            elif res in (RetCode.IOERR, RetCode.CLOSED):
                self.free_conn(connection)
                return RetCode.CLOSED
        elif op is OpType.WRITE:
            res = connection.write_clt()
            if res == RetCode.TRY_AGAIN:
                mod_fd(self.selector, clt, selectors.EVENT_WRITE)
            elif res == RetCode.BUFFER_EMPTY:
                mod_fd(self.selector, srv, selectors.EVENT_READ)
                mod_fd(self.selector, clt, selectors.EVENT_READ)
            elif res in (RetCode.IOERR, RetCode.CLOSED):
                self.free_conn(connection)
                return RetCode.CLOSED
        else:
            log(LogLevel.ERR, _FILE, _line(), "%s", "other operation not support yet")
            return RetCode.OK
        if connection.srv_closed:
            self.free_conn(connection)
            return RetCode.CLOSED
        return RetCode.OK

    def _process_server(self, connection, op):
        clt = connection.clt_sock
        srv = connection.srv_sock
        if op is OpType.READ:
            res = connection.read_srv()
            if res == RetCode.OK:
                log(LogLevel.DEBUG, _FILE, _line(), "content read from server: %s",
                    _text(connection.srv_buf))
            if res in (RetCode.OK, RetCode.BUFFER_FULL):
                mod_fd(self.selector, clt, selectors.EVENT_WRITE)
            elif res in (RetCode.IOERR, RetCode.CLOSED):
                mod_fd(self.selector, clt, selectors.EVENT_WRITE)
                connection.srv_closed = True
        elif op is OpType.WRITE:
            res = connection.write_srv()
            if res == RetCode.TRY_AGAIN:
                mod_fd(self.selector, srv, selectors.EVENT_WRITE)
            elif res == RetCode.BUFFER_EMPTY:
                mod_fd(self.selector, clt, selectors.EVENT_READ)
                mod_fd(self.selector, srv, selectors.EVENT_READ)
            elif res in (RetCode.IOERR, RetCode.CLOSED):
                mod_fd(self.selector, clt, selectors.EVENT_WRITE)
                connection.srv_closed = True
        else:
            log(LogLevel.ERR, _FILE, _line(), "%s", "other operation not support yet")