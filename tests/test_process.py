"""Tests for the external process runner"""

import logging
import sys

import pytest
from trackplug.process import (
    ProcessError,
    ProcessStartError,
    execute_command,
    start_external_process,
)


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def show_message(self, message):
        self.messages.append(message)


def _python(code):
    return [sys.executable, "-c", code]


# TEST070: Test execute_command returns stdout lines each terminated by a newline
def test_execute_command_output():
    output = execute_command(_python("print('a'); print('b', end='')"))
    assert output == "a\nb\n"


# TEST071: Test execute_command feeds input to stdin and closes it
def test_execute_command_input():
    code = "import sys; sys.stdout.write(sys.stdin.read().upper())"
    assert execute_command(_python(code), input=b"chr1\t1\t2\n") == "CHR1\t1\t2\n"


# TEST072: Test large output does not deadlock when waiting for exit first
def test_execute_command_large_output():
    code = "import sys\nfor i in range(50000): sys.stdout.write('chr1\\t%d\\t%d\\n' % (i, i + 1))"
    output = execute_command(_python(code), wait_for=True)
    assert output.count("\n") == 50000


# TEST073: Test only the first stderr line containing "error" reaches the notifier
def test_error_drain_notifies_once(caplog):
    notifier = RecordingNotifier()
    code = (
        "import sys\n"
        "sys.stderr.write('warning: low memory\\n')\n"
        "sys.stderr.write('ERROR: bad input\\n')\n"
        "sys.stderr.write('another error\\n')\n"
    )

    with caplog.at_level(logging.ERROR, logger="trackplug.process"):
        execute_command(_python(code), notifier=notifier)

    assert notifier.messages == ["ERROR: bad input\nSee the log for more details"]
    assert "warning: low memory" in caplog.text
    assert "another error" in caplog.text


# TEST074: Test a non-zero exit status is logged as a warning, not raised
def test_nonzero_exit_is_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="trackplug.process"):
        output = execute_command(_python("import sys; print('partial'); sys.exit(3)"))

    assert output == "partial\n"
    assert "exited with status 3" in caplog.text


# TEST075: Test an unstartable command raises ProcessStartError, an OSError
def test_start_failure():
    with pytest.raises(ProcessStartError, match="Failed to start") as exc_info:
        start_external_process(["/nonexistent/trackplug-plugin"])
    assert isinstance(exc_info.value, ProcessError)
    assert isinstance(exc_info.value, OSError)

    with pytest.raises(ProcessStartError):
        start_external_process([])


# TEST076: Test the watchdog kills a process that outlives its timeout
def test_watchdog_timeout():
    process = start_external_process(_python("import time; time.sleep(30)"), timeout=0.5)
    try:
        returncode = process.wait(timeout=20)
        assert returncode != 0
        assert process.timed_out
    finally:
        process.close()


# TEST077: Test close kills a running process and reaps it
def test_close_running_process():
    with start_external_process(_python("import time; time.sleep(30)")) as process:
        assert process.is_running()
    assert process.returncode is not None
    assert not process.timed_out


# TEST078: Test a child that exits without reading its input still yields its output
def test_execute_command_unread_input():
    output = execute_command(_python("print('hi')"), input=b"x" * 2_000_000)
    assert output == "hi\n"


# TEST079: Test large input echoed back does not deadlock on either pipe
def test_execute_command_echo_large_input():
    data = b"chr1\t1\t2\n" * 200_000
    code = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"
    output = execute_command(_python(code), input=data)
    assert output.count("\n") == 200_000
