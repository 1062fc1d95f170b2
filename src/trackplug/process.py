"""External process runner

Starts plugin commands (argv-style, no shell) and drains their stderr on a
daemon thread so a chatty plugin can never block on a full error pipe while
the caller is reading stdout. Every stderr line is logged; the first line
mentioning "error" is also shown to the user once per process through an
injected Notifier.

Usage:
```python
from trackplug.process import start_external_process

proc = start_external_process(["bedtools", "intersect", "-a", a, "-b", b])
for line in proc.stdout:
    ...
proc.wait()
proc.check_exit()
```
"""

import logging
import subprocess
import threading
from typing import Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class ProcessError(OSError):
    """Base error for external processes"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProcessStartError(ProcessError):
    """The command could not be started"""

    def __init__(self, command: Sequence[str], cause: Exception):
        program = command[0] if command else "<empty command>"
        super().__init__(f"Failed to start {program}: {cause}")
        self.command = list(command)
        self.cause = cause


class Notifier(Protocol):
    """Fire-and-forget channel for messages meant for the user"""

    def show_message(self, message: str) -> None:
        ...


class LogNotifier:
    """Notifier that only logs; used when no UI is attached"""

    def show_message(self, message: str) -> None:
        logger.warning("%s", message)


class ExternalProcess:
    """A running plugin command

    stdout is left to the caller; stderr is consumed by the drain thread.
    """

    def __init__(self, popen: subprocess.Popen, command: Sequence[str], notifier: Optional[Notifier] = None):
        self._popen = popen
        self.command = list(command)
        self.notifier = notifier or LogNotifier()
        self.notified = False
        self.timed_out = False
        self._watchdog: Optional[threading.Timer] = None
        self._drain_thread: Optional[threading.Thread] = None

    @property
    def stdin(self):
        return self._popen.stdin

    @property
    def stdout(self):
        return self._popen.stdout

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._popen.returncode

    def poll(self) -> Optional[int]:
        return self._popen.poll()

    def is_running(self) -> bool:
        return self._popen.poll() is None

    def start_error_drain(self) -> None:
        """Start the stderr drain thread (idempotent)"""
        if self._drain_thread is not None or self._popen.stderr is None:
            return
        self._drain_thread = threading.Thread(
            target=self._drain_errors,
            name=f"stderr-drain-{self._popen.pid}",
            daemon=True,
        )
        self._drain_thread.start()

    def _drain_errors(self) -> None:
        """Drain thread: log each stderr line, notify on the first "error" line"""
        stream = self._popen.stderr
        try:
            for raw in stream:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                logger.error("%s", line)
                if not self.notified and "error" in line.lower():
                    self.notified = True
                    try:
                        self.notifier.show_message(f"{line}\nSee the log for more details")
                    except Exception:
                        logger.exception("Notifier failed")
        except (OSError, ValueError) as e:
            # ValueError: stream closed underneath us by close()
            logger.debug("stderr drain for %s stopped: %s", self.command[0], e)
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def start_watchdog(self, timeout: float) -> None:
        """Kill the process if it is still running after `timeout` seconds"""
        if self._watchdog is not None:
            return
        self._watchdog = threading.Timer(timeout, self._on_timeout)
        self._watchdog.daemon = True
        self._watchdog.start()

    def _on_timeout(self) -> None:
        if self.is_running():
            logger.warning("Killing %s after timeout (pid %d)", self.command[0], self.pid)
            self.timed_out = True
            self.kill()

    def cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()

    def wait(self, timeout: Optional[float] = None) -> int:
        """Wait for exit and return the exit status"""
        returncode = self._popen.wait(timeout=timeout)
        self.cancel_watchdog()
        return returncode

    def join_error_drain(self, timeout: Optional[float] = None) -> None:
        if self._drain_thread is not None:
            self._drain_thread.join(timeout)

    def kill(self) -> None:
        if self._popen.poll() is None:
            try:
                self._popen.kill()
            except ProcessLookupError:
                pass

    def check_exit(self) -> Optional[int]:
        """Log a warning for a non-zero exit status; never raises"""
        returncode = self._popen.poll()
        if returncode is not None and returncode != 0:
            logger.warning("%s exited with status %d", " ".join(self.command), returncode)
        return returncode

    def close(self) -> None:
        """Kill if still running, close pipes and reap the process"""
        self.cancel_watchdog()
        self.kill()
        for stream in (self._popen.stdin, self._popen.stdout):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass
        self._popen.wait()
        self.join_error_drain(timeout=5.0)

    def __enter__(self) -> "ExternalProcess":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ExternalProcess(pid={self.pid}, command={self.command!r}, returncode={self.returncode!r})"


def start_external_process(
    command: Sequence[str],
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    timeout: Optional[float] = None,
) -> ExternalProcess:
    """Start a command and begin draining its error stream

    Args:
        command: argv-style tokens; the first is the executable
        env: Environment for the child; None inherits the current environment
        cwd: Working directory; None inherits the current one
        notifier: Receives the first "error" line from stderr
        timeout: Seconds after which the process is killed

    Raises:
        ProcessStartError: If the process cannot be spawned
    """
    command = [str(token) for token in command]
    if not command:
        raise ProcessStartError(command, ValueError("empty command"))

    logger.debug("Starting %s", command)
    try:
        popen = subprocess.Popen(
            command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            cwd=cwd,
        )
    except (OSError, ValueError) as e:
        raise ProcessStartError(command, e) from e

    process = ExternalProcess(popen, command, notifier)
    process.start_error_drain()
    if timeout is not None:
        process.start_watchdog(timeout)
    return process


def _feed_input(process: ExternalProcess, input: Optional[bytes]) -> None:
    """Write input to the child's stdin, then close it"""
    if process.stdin is None:
        return
    try:
        if input:
            process.stdin.write(input)
        process.stdin.close()
    except BrokenPipeError:
        # The child exited without reading all of its input
        logger.debug("%s closed its input early", process.command[0])
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass


def execute_command(
    command: Sequence[str],
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    wait_for: bool = True,
    input: Optional[bytes] = None,
    notifier: Optional[Notifier] = None,
) -> str:
    """Run a command to completion and return its stdout

    Input (if any) is written to stdin, which is then closed. With `wait_for`,
    the process exit is awaited before stdout is collected. Lines are returned
    joined with newlines. If anything fails, the process is killed and reaped.
    """
    process = start_external_process(command, env=env, cwd=cwd, notifier=notifier)
    try:
        # stdout is read on a thread so neither a large input nor a full
        # stdout pipe can stall the child
        chunks: List[bytes] = []
        reader = threading.Thread(target=lambda: chunks.append(process.stdout.read()), daemon=True)
        reader.start()
        _feed_input(process, input)
        if wait_for:
            process.wait()
        reader.join()
        process.wait()
    except BaseException:
        process.close()
        raise

    process.stdout.close()
    process.join_error_drain(timeout=5.0)
    process.check_exit()

    lines = b"".join(chunks).decode("utf-8", errors="replace").splitlines()
    return "".join(line + "\n" for line in lines)
