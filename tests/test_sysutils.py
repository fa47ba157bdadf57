import sys
from unittest import mock

import pytest

from snailnet.sysutils import byteorder, daemonize, switch_to_user, user_ids


def test_byteorder_matches_interpreter(capsys):
    expected = {"little": "little endian", "big": "big endian"}[sys.byteorder]
    assert byteorder() == expected
    assert capsys.readouterr().out == expected + "\n"


@mock.patch("os.geteuid", return_value=0)
@mock.patch("os.getuid", return_value=1000)
def test_user_ids(_getuid, _geteuid):
    assert user_ids() == (1000, 0)


def test_switch_to_root_is_refused():
    assert switch_to_user(0, 0) is False


@mock.patch("os.getgid", return_value=1000)
@mock.patch("os.getuid", return_value=1000)
def test_non_root_same_user(_getuid, _getgid):
    assert switch_to_user(1000, 1000) is True
    assert switch_to_user(2000, 2000) is False


@mock.patch("os.setuid")
@mock.patch("os.setgid")
@mock.patch("os.getgid", return_value=0)
@mock.patch("os.getuid", return_value=0)
def test_root_switches(_getuid, _getgid, setgid, setuid):
    assert switch_to_user(1000, 1001) is True
    setgid.assert_called_once_with(1001)
    setuid.assert_called_once_with(1000)


@mock.patch("os.setuid")
@mock.patch("os.setgid", side_effect=PermissionError)
@mock.patch("os.getgid", return_value=0)
@mock.patch("os.getuid", return_value=0)
def test_root_switch_failure(_getuid, _getgid, _setgid, setuid):
    assert switch_to_user(1000, 1001) is False
    setuid.assert_not_called()


@mock.patch("os.fork", side_effect=OSError)
def test_daemonize_fork_failure(_fork):
    assert daemonize() is False


@mock.patch("os.setsid", side_effect=PermissionError)
@mock.patch("os.umask")
@mock.patch("os.fork", return_value=0)
def test_daemonize_setsid_failure(_fork, umask, _setsid):
    assert daemonize() is False
    umask.assert_called_once_with(0)


@mock.patch("os.chdir", side_effect=OSError)
@mock.patch("os.setsid")
@mock.patch("os.umask")
@mock.patch("os.fork", return_value=0)
def test_daemonize_chdir_failure(_fork, _umask, _setsid, chdir):
    assert daemonize() is False
    chdir.assert_called_once_with("/")