"""Command execution on top of invoke, with merged output capture."""

from __future__ import annotations

import contextlib
import io
import os
import platform
import threading
from dataclasses import dataclass
from pathlib import Path

from invoke import Context
from invoke.exceptions import CommandTimedOut, UnexpectedExit

from untwine.core.errors import CommandCancelledError, CommandTimeoutError
from untwine.core.log import logger


@dataclass
class CommandResult:
    """Exit status and output of one command."""

    command: str
    exited: int
    output: str
    stdout: str = ""
    stderr: str = ""
    log_file: Path | None = None

    @property
    def ok(self) -> bool:
        return self.exited == 0


class _LineCollector:
    """Write-only stream handed to invoke for stdout or stderr.

    invoke drains each pipe on its own thread and writes arbitrary
    chunks; collectors for both pipes share a lock and emit complete
    lines in the order they were finished.
    """

    def __init__(self, name: str, lock: threading.Lock, on_line):
        self.name = name
        self._lock = lock
        self._on_line = on_line
        self._partial = ""

    def write(self, data: str) -> int:
        with self._lock:
            self._partial += data
            *complete, self._partial = self._partial.split("\n")
            for line in complete:
                self._on_line(self.name, line.rstrip("\r"))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        with self._lock:
            if self._partial:
                self._on_line(self.name, self._partial.rstrip("\r"))
                self._partial = ""


def _kill(runner) -> None:
    """Kill invoke's subprocess.

    invoke's Local.kill() sends signal.SIGKILL, which the signal
    module does not define on Windows. There os.kill() hands the
    number to TerminateProcess() instead, so 9 works on both.
    """
    if platform.system() == "Windows":
        pid = runner.pid if runner.using_pty else runner.process.pid
        with contextlib.suppress(ProcessLookupError):
            os.kill(pid, 9)
        return
    with contextlib.suppress(ProcessLookupError):
        runner.kill()


class Runner(Context):
    """invoke.Context with an execute() that merges stdout and stderr
    line by line, writes a log file and supports cancellation."""

    def __init__(self, *args, log=logger, **kwargs):
        super().__init__(*args, **kwargs)
        # Context overrides __setattr__ to store into its config
        object.__setattr__(self, "_log", log)

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        stdin: str | None = None,
        log_file: Path | None = None,
        log_level: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
        poll_interval: float = 0.1,
    ) -> CommandResult:
        """Run command and wait for it.

        Args:
            command: Shell command line
            cwd: Working directory
            timeout: Seconds before the process is killed
            stdin: Text fed to the process
            log_file: Where to write the merged output
            log_level: Level for logging each output line as it
                arrives (None to stay quiet)
            check: Raise on non-zero exit
            env: Extra environment variables (merged into os.environ)
            cancel: Kills the process when set
            poll_interval: How often cancel is checked, in seconds

        Raises:
            CommandTimeoutError: If timeout elapses
            CommandCancelledError: If cancel is set before exit
            invoke.UnexpectedExit: If check and the exit code is
                non-zero
        """
        lines: list[str] = []
        lock = threading.Lock()
        log = self._log

        def on_line(stream, line):
            lines.append(line)
            if log_level:
                log.log(log_level, "{stream}: {line}", stream=stream, line=line)

        out = _LineCollector("stdout", lock, on_line)
        err = _LineCollector("stderr", lock, on_line)

        kwargs = {
            "hide": False,  # must be False for out_stream to be written
            "warn": not check,
            "in_stream": io.StringIO(stdin) if stdin else False,
            "out_stream": out,
            "err_stream": err,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        log.debug("Running {command}", command=command, cwd=str(cwd or ""))
        cancelled = False
        timed_out = None
        try:
            with self.cd(str(cwd)) if cwd else contextlib.nullcontext():
                if cancel is None:
                    result = self.run(command, **kwargs)
                else:
                    promise = self.run(command, asynchronous=True, **kwargs)
                    while not promise.runner.process_is_finished:
                        if cancel.wait(poll_interval):
                            cancelled = True
                            _kill(promise.runner)
                            break
                    try:
                        result = promise.join()
                    except UnexpectedExit as e:
                        if not cancelled:
                            raise
                        result = e.result
        except CommandTimedOut as e:
            timed_out = e
        finally:
            output = self._finish(out, err, lines, log_file)

        if timed_out is not None:
            raise CommandTimeoutError(command, timeout, output) from timed_out
        if cancelled:
            raise CommandCancelledError(command, output)

        log.debug(
            "Command exited with {exited}",
            command=command,
            exited=result.exited,
        )
        return CommandResult(
            command=command,
            exited=result.exited,
            output=output,
            stdout=result.stdout,
            stderr=result.stderr,
            log_file=log_file,
        )

    @staticmethod
    def _finish(out, err, lines, log_file) -> str:
        out.close()
        err.close()
        output = "\n".join(lines)
        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(output + "\n" if output else "", encoding="utf-8")
        return output
