# snailnet

A small TCP load balancer, plus a set of compact socket servers and clients
for exploring how sockets, `select`, readiness selectors and level- or
edge-style reading behave on POSIX systems.

It uses only the Python standard library and runs on Linux and other POSIX
systems.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## The load balancer

`snailnet` listens on one address and hands each accepted client to one of
several workers. Each worker holds a pool of persistent connections to one
back-end server (`snailnet.mgr.Mgr`) and relays bytes in both directions
between the client and the back end through a pair of 2048-byte buffers
(`snailnet.conn.Conn`). When a client leaves, its back-end connection is
closed, and when the worker is next idle for five seconds it reconnects and
returns it to the pool. The dispatcher sends each new client to the worker
that reports the fewest sockets in use (`snailnet.processpool.ProcessPool`).

The workers run as threads inside the one balancer process, each with its
own event loop; they are not separate operating-system processes.

### Configuration

The configuration file is line oriented; only lines ending in a newline are
read. A `Listen` line gives the address to accept clients on; each
`<logical_host>` block describes one back end and how many persistent
connections to keep open to it. One worker is started for each block.

```
Listen 127.0.0.1:8080
<logical_host>
    <name>127.0.0.1</name>
    <port>9001</port>
    <conns>5</conns>
</logical_host>
<logical_host>
    <name>127.0.0.1</name>
    <port>9002</port>
    <conns>5</conns>
</logical_host>
```

A field left out of a block keeps the value from the block before it. A
file without a `Listen` line or without any completed `<logical_host>` block
is rejected, as is a `<logical_host>` opened inside another, a
`</logical_host>` with no open block, a `Listen` line without a colon, and a
`<name>`, `<port>` or `<conns>` tag not closed on its own line. From code,
`snailnet.config.parse_config(text)` returns the listen hosts and the
logical hosts as `Host` objects, or raises `ConfigError`.

### Running

```
snailnet -f balancer.conf
```

Options:

- `-f FILE` – the configuration file (required)
- `-x` – log at debug level, including relayed content
- `-v` – print the version and exit
- `-h` – print usage and exit

`SIGTERM` or `SIGINT` stops every worker; the balancer exits once all of
them have finished.

Log lines go to standard output in the form

```
[ 06/01/24 12:00:00 ] mgr.py:0042 info: build connection 0 to server success
```

## The HTTP request parser

`snailnet-httpparser` accepts one connection, reads an HTTP/1.1 `GET`
request head incrementally and answers with a one-line verdict
(`I get a correct result` or `Something wrong`):

```
snailnet-httpparser 127.0.0.1 8000
```

The same parser is available as a library:

```python
from snailnet.httpparser import HttpRequestParser, HttpCode

parser = HttpRequestParser()
assert parser.feed(b"GET /index.html HTTP/1.1\r\n") is HttpCode.NO_REQUEST
assert parser.feed(b"Host: localhost\r\n\r\n") is HttpCode.GET_REQUEST
assert parser.url == "/index.html"
assert parser.host == "localhost"
```

Only `GET` with version `HTTP/1.1` is accepted; the request head may be at
most 4096 bytes.

## Non-blocking connect

`snailnet-unblock` connects to a server without blocking, waiting at most
ten seconds for the connection to complete; it then shuts down its write
side, waits 200 seconds and tries to send `abc`:

```
snailnet-unblock 127.0.0.1 8000
```

From code, `snailnet.unblock.unblock_connect(ip, port, timeout)` returns a
connected socket, raises `TimeoutError` when the wait runs out, or raises an
`OSError` carrying the socket's error number when the connection fails.

## Library modules

- `snailnet.sockopts` – socket buffer sizes, `SO_REUSEADDR`, a listener
  that waits to be stopped, and a `daytime` client.
- `snailnet.oob` – sending and receiving TCP urgent (out-of-band) data, and
  writing to a connection through redirected standard output.
- `snailnet.fileserve` – building and serving an HTTP file response with a
  gathered write, serving a raw file with `sendfile`, echoing a connection
  through a pipe, and copying standard input to a file and to standard
  output.
- `snailnet.multiplex` – a `select` server that tells normal from urgent
  data, `EchoLogServer` reading level- or edge-style, and `oneshot_server`,
  which hands each readable socket to one worker thread at a time.
- `snailnet.multiport` – `MultiPortEchoServer`, one TCP and one UDP echo
  service on the same port.
- `snailnet.talk` – `TalkServer`, a small chat server relaying each message
  to every other user, and `talk_client`.
- `snailnet.stress` – `StressClient`, which opens many keep-alive
  connections and alternates sending a request and reading a reply on them.
- `snailnet.sysutils` – byte order, user ids, dropping privileges and
  detaching from the terminal.
- `snailnet.log` – the levelled, timestamped logger used throughout.

## What it does not do

- The balancer's workers are threads in one process, so a crash in one
  worker is not isolated from the others.
- `sysutils.daemonize` does not fork: it starts a new session in the
  current process, which must not already lead a process group.
- `fileserve.tee_stdin` copies with an ordinary read and two writes rather
  than a kernel-side pipe duplication.
- Only IPv4 addresses are used.