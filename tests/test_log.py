import io
import re

import pytest

from gander.log import Logger, NopLogger, StdLogger, get_logger, nop_logger, set_logger


@pytest.fixture
def restore_logger():
    previous = get_logger()
    yield
    set_logger(previous)


def test_printf_formats_and_timestamps():
    stream = io.StringIO()
    StdLogger(stream).printf("applied %s in %d ms", "up", 5)
    out = stream.getvalue()
    assert out.endswith("applied up in 5 ms\n")
    assert re.match(r"^\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} ", out)


def test_printf_without_args_keeps_percent():
    stream = io.StringIO()
    StdLogger(stream).printf("100%")
    assert stream.getvalue().endswith("100%\n")


def test_fatalf_writes_and_exits():
    stream = io.StringIO()
    with pytest.raises(SystemExit) as info:
        StdLogger(stream).fatalf("boom: %s", "bad")
    assert info.value.code == 1
    assert stream.getvalue().endswith("boom: bad\n")


def test_nop_logger_does_not_exit():
    logger = nop_logger()
    assert isinstance(logger, NopLogger)
    assert logger.fatalf("boom") is None
    assert logger.printf("hello %s", "x") is None


def test_set_and_get_logger(restore_logger):
    logger = nop_logger()
    set_logger(logger)
    assert get_logger() is logger


def test_logger_is_abstract():
    with pytest.raises(TypeError):
        Logger()