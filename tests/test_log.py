import pytest

from snailnet.log import LOG_BUFFER_SIZE, LogLevel, log, set_loglevel


@pytest.fixture(autouse=True)
def default_level():
    set_loglevel(LogLevel.INFO)
    yield
    set_loglevel(LogLevel.INFO)


def test_error_line_is_written(capsys):
    line = log(LogLevel.ERR, "conn.cpp", 12, "value %d", 5)
    out = capsys.readouterr().out
    assert out == line + "\n"
    assert line.endswith("conn.cpp:0012 error! value 5")
    assert line.startswith("[ ")


def test_debug_is_filtered_at_info(capsys):
    assert log(LogLevel.DEBUG, "x", 1, "hidden") is None
    assert capsys.readouterr().out == ""


def test_set_loglevel_default_enables_debug(capsys):
    set_loglevel()
    line = log(LogLevel.DEBUG, "x", 3, "%s", "shown")
    assert line.endswith("debug: shown")
    assert "shown" in capsys.readouterr().out


def test_format_without_args_is_literal():
    line = log(LogLevel.INFO, "f", 1, "100%")
    assert line.endswith("info: 100%")


def test_message_is_truncated():
    line = log(LogLevel.WARNING, "f", 1, "%s", "a" * (LOG_BUFFER_SIZE * 2))
    message = line.split(" warn! ", 1)[1]
    assert len(message) == LOG_BUFFER_SIZE - 1


def test_raising_level_filters_info(capsys):
    set_loglevel(LogLevel.ERR)
    assert log(LogLevel.INFO, "f", 1, "quiet") is None
    assert log(LogLevel.CRIT, "f", 1, "loud").endswith("critical! loud")
    assert "quiet" not in capsys.readouterr().out