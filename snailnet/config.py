"""Parser for the load balancer's configuration file."""

import re
from dataclasses import dataclass, replace

_PARSE_FAILED = "parse config file failed"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class Host:
    """An address to listen on or a backend server to keep connections to."""

    hostname: str = ""
    port: int = 0
    conncnt: int = 0


class ConfigError(ValueError):
    """Raised when configuration text cannot be parsed."""


def _leading_int(text):
    """Parse a leading decimal integer the lenient way; 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _tag_value(line, open_tag, close_tag):
    start = line.find(open_tag) + len(open_tag)
    value = line[start:]
    end = value.find(close_tag)
    if end < 0:
        raise ConfigError(_PARSE_FAILED)
    return value[:end]


def parse_config(text):
    """Parse configuration text; return (listen hosts, logical hosts).

    Only lines that end in a newline are read. Fields not given inside a
    ``<logical_host>`` block keep the value from the previous block.
    """
    balance = []
    logical = []
    current = Host()
    open_tag = False

    for line in text.split("\n")[:-1]:
        if "<logical_host>" in line:
            if open_tag:
                raise ConfigError(_PARSE_FAILED)
            open_tag = True
        elif "</logical_host>" in line:
            if not open_tag:
                raise ConfigError(_PARSE_FAILED)
            logical.append(replace(current))
            current.hostname = ""
            open_tag = False
        elif "<name>" in line:
            current.hostname = _tag_value(line, "<name>", "</name>")
        elif "<port>" in line:
            current.port = _leading_int(_tag_value(line, "<port>", "</port>"))
        elif "<conns>" in line:
            current.conncnt = _leading_int(_tag_value(line, "<conns>", "</conns>"))
        elif "Listen" in line:
            rest = line[line.find("Listen") + len("Listen"):]
            colon = rest.find(":")
            if colon < 0:
                raise ConfigError(_PARSE_FAILED)
            current.port = _leading_int(rest[colon + 1:])
            current.hostname = rest[:colon].strip(" \t")
            balance.append(replace(current))
            current.hostname = ""

    if not balance or not logical:
        raise ConfigError(_PARSE_FAILED)
    return balance, logical