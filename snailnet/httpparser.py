"""Incremental parser for HTTP GET request heads, with a one-shot server."""

import os
import socket
import sys
from enum import Enum

BUFFER_SIZE = 4096
_CR = 13
_LF = 10
_BLANKS = " \t"
_REPLY_OK = b"I get a correct result\n"
_REPLY_BAD = b"Something wrong\n"


class CheckState(Enum):
    REQUESTLINE = 0
    HEADER = 1
    CONTENT = 2


class LineStatus(Enum):
    OK = 0
    BAD = 1
    OPEN = 2


class HttpCode(Enum):
    NO_REQUEST = 0
    GET_REQUEST = 1
    BAD_REQUEST = 2
    FORBIDDEN_REQUEST = 3
    INTERNAL_ERROR = 4
    CLOSED_CONNECTION = 5


def parse_line(buffer, checked_index):
    """Scan for a CRLF from checked_index; return (LineStatus, new checked index)."""
    end = len(buffer)
    index = checked_index
    while index < end:
        byte = buffer[index]
        if byte == _CR:
            if index + 1 == end:
                return LineStatus.OPEN, index
            if buffer[index + 1] == _LF:
                return LineStatus.OK, index + 2
            return LineStatus.BAD, index
        if byte == _LF:
            if index > 1 and buffer[index - 1] == _CR:
                return LineStatus.OK, index + 1
            return LineStatus.BAD, index
        index += 1
    return LineStatus.OPEN, index


def _split_at_blank(text):
    positions = [pos for pos in (text.find(" "), text.find("\t")) if pos >= 0]
    if not positions:
        return None
    cut = min(positions)
    return text[:cut], text[cut + 1:]


def parse_requestline(line):
    """Check a GET request line; return (HttpCode, url or None)."""
    parts = _split_at_blank(line)
    if parts is None:
        return HttpCode.BAD_REQUEST, None
    method, rest = parts
    if method.lower() != "get":
        return HttpCode.BAD_REQUEST, None
    print("The request method is GET")

    parts = _split_at_blank(rest.lstrip(_BLANKS))
    if parts is None:
        return HttpCode.BAD_REQUEST, None
    url, version = parts
    if version.lstrip(_BLANKS).lower() != "http/1.1":
        return HttpCode.BAD_REQUEST, None

    if url[:7].lower() == "http://":
        url = url[7:]
        slash = url.find("/")
        url = url[slash:] if slash >= 0 else None

    if not url or url[0] != "/":
        return HttpCode.BAD_REQUEST, None
    print(f"The request URL is: {url}")
    return HttpCode.NO_REQUEST, url


def parse_headers(line):
    """Handle one header line; return (HttpCode, host or None)."""
    if not line:
        return HttpCode.GET_REQUEST, None
    if line[:5].lower() == "host:":
        host = line[5:].lstrip(_BLANKS)
        print(f"the request host is: {host}")
        return HttpCode.NO_REQUEST, host
    print("I can not handle this header")
    return HttpCode.NO_REQUEST, None


class HttpRequestParser:
    """Accumulates bytes of a request head and parses complete lines."""

    def __init__(self):
        self._buffer = bytearray()
        self._checked_index = 0
        self._start_line = 0
        self.state = CheckState.REQUESTLINE
        self.url = None
        self.host = None

    @property
    def remaining(self):
        """How many more bytes the buffer can take."""
        return BUFFER_SIZE - len(self._buffer)

    def feed(self, data):
        """Add received bytes and parse what is complete; return the HttpCode."""
        if len(data) > self.remaining:
            raise ValueError("request head exceeds the buffer size")
        self._buffer.extend(data)
        while True:
            status, self._checked_index = parse_line(self._buffer, self._checked_index)
            if status is not LineStatus.OK:
                break
            raw = bytes(self._buffer[self._start_line:self._checked_index])
            self._start_line = self._checked_index
            line = raw.removesuffix(b"\r\n").decode("latin-1")
            if self.state is CheckState.REQUESTLINE:
                code, url = parse_requestline(line)
                if code is HttpCode.BAD_REQUEST:
                    return code
                self.url = url
                self.state = CheckState.HEADER
            elif self.state is CheckState.HEADER:
                code, host = parse_headers(line)
                if host is not None:
                    self.host = host
                if code in (HttpCode.BAD_REQUEST, HttpCode.GET_REQUEST):
                    return code
            else:
                return HttpCode.INTERNAL_ERROR
        if status is LineStatus.OPEN:
            return HttpCode.NO_REQUEST
        return HttpCode.BAD_REQUEST


def serve(ip, port):
    """Accept one connection, parse its request and answer it; return the HttpCode."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind((ip, port))
        listener.listen(5)
        try:
            conn, _ = listener.accept()
        except OSError as exc:
            print(f"errno is: {exc.errno}")
            return None
        with conn:
            parser = HttpRequestParser()
            while True:
                try:
                    data = conn.recv(parser.remaining)
                except OSError:
                    print("reading failed")
                    return None
                if not data:
                    print("remote client has closed the connection")
                    return None
                result = parser.feed(data)
                if result is HttpCode.NO_REQUEST:
                    continue
                conn.sendall(_REPLY_OK if result is HttpCode.GET_REQUEST else _REPLY_BAD)
                return result


def main(argv=None):
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print(f"usage: {os.path.basename(sys.argv[0])} ip_address port_number")
        return 1
    serve(args[0], int(args[1]))
    return 0