import re
from unittest.mock import patch

import pytest

from melisai.progress import Progress


def test_log_enabled(capsys):
    p = Progress(True)
    p.log("hello %s", "world")
    err = capsys.readouterr().err
    assert "hello world" in err


def test_log_disabled(capsys):
    p = Progress(False)
    p.log("should not appear")
    assert capsys.readouterr().err == ""


def test_verbose_debug(capsys):
    p = Progress(True, True)
    p.debug("debug info %d", 42)
    assert "DEBUG: debug info 42" in capsys.readouterr().err


def test_debug_hidden_when_not_verbose(capsys):
    p = Progress(True, False)
    p.debug("should not appear")
    assert "should not appear" not in capsys.readouterr().err


def test_verbose_implies_enabled(capsys):
    p = Progress(False, True)
    p.log("visible despite enabled=false")
    assert "visible despite enabled=false" in capsys.readouterr().err


def test_log_line_shape(capsys):
    Progress(True).log("plain message")
    err = capsys.readouterr().err
    match = re.fullmatch(r"\[([0-9hms.]+)\] (.*)\n", err)
    assert bool(match) is True
    assert match.group(2) == "plain message"


def test_message_without_args_is_not_formatted(capsys):
    Progress(True).log("100% done")
    assert "100% done" in capsys.readouterr().err


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (0.0, "[0s]"),
        (0.012, "[12ms]"),
        (1.5, "[1.5s]"),
        (2.0, "[2s]"),
        (61.25, "[1m1.25s]"),
        (3600.0, "[1h0m0s]"),
    ],
)
def test_elapsed_prefix(capsys, elapsed, expected):
    with patch("melisai.progress.time") as fake_time:
        fake_time.monotonic.side_effect = [100.0, 100.0 + elapsed]
        Progress(True).log("tick")
    assert capsys.readouterr().err == f"{expected} tick\n"