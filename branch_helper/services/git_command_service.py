from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import subprocess
import tempfile
import time
from typing import IO

from branch_helper.core.config import settings

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.05


@dataclass(frozen=True)
class CommandOutcome:
    stdout: str
    stderr: str
    command: str


class GitCommandError(Exception):
    """Raw git failure. Never leaves the service layer untranslated."""

    def __init__(
        self,
        command: str,
        cwd: Path,
        returncode: int | None,
        stdout: str = '',
        stderr: str = '',
        timed_out: bool = False,
        output_limit_exceeded: bool = False,
        executable: str = 'git',
        timeout_seconds: float | None = None,
        max_output_bytes: int | None = None,
    ) -> None:
        super().__init__(f'Git command failed: {command}')
        self.command = command
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        self.output_limit_exceeded = output_limit_exceeded
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self.max_output_bytes = max_output_bytes

    @property
    def reason(self) -> str:
        return (self.stderr or self.stdout or 'git command failed').strip()


class GitCommandRunner:
    """Runs one git subcommand per call with a hard timeout and output cap.

    The command is always an argument list handed straight to the OS, so a
    branch name is a single literal argv entry on every platform and no shell
    ever sees it.
    """

    def __init__(
        self,
        git_executable: str = 'git',
        timeout_seconds: float = 30.0,
        max_output_bytes: int = 1024 * 1024,
    ) -> None:
        self._git_executable = git_executable
        self._timeout_seconds = timeout_seconds
        self._max_output_bytes = max_output_bytes

    @property
    def git_executable(self) -> str:
        return self._git_executable

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def max_output_bytes(self) -> int:
        return self._max_output_bytes

    def run(self, args: list[str], cwd: Path) -> CommandOutcome:
        argv = [self._git_executable, *args]
        command = shlex.join(argv)
        logger.debug('git run cwd=%s command=%s', cwd, command)

        # Spool to disk so a runaway command cannot grow process memory.
        with tempfile.TemporaryFile() as out_file, tempfile.TemporaryFile() as err_file:
            try:
                process = subprocess.Popen(
                    argv,
                    cwd=str(cwd),
                    stdin=subprocess.DEVNULL,
                    stdout=out_file,
                    stderr=err_file,
                    env=self._process_env(),
                )
            except PermissionError as exc:
                raise self._error(
                    command,
                    cwd,
                    None,
                    stderr=f'permission denied: {exc}',
                ) from exc
            except FileNotFoundError as exc:
                if not cwd.is_dir():
                    reason = f"fatal: cannot change to '{cwd}': No such file or directory"
                else:
                    reason = f'{self._git_executable}: command not found'
                raise self._error(command, cwd, None, stderr=reason) from exc
            except OSError as exc:
                raise self._error(command, cwd, None, stderr=str(exc)) from exc

            returncode, timed_out, over_limit = self._wait(process, out_file, err_file)
            stdout, stdout_exceeded = self._read_capped(out_file)
            stderr, stderr_exceeded = self._read_capped(err_file)

        if timed_out:
            logger.warning(
                'git command timed out cwd=%s command=%s timeout=%s',
                cwd,
                command,
                self._timeout_seconds,
            )
            raise self._error(
                command,
                cwd,
                None,
                stdout=stdout,
                stderr=stderr,
                timed_out=True,
            )

        if over_limit or stdout_exceeded or stderr_exceeded:
            logger.warning(
                'git command output exceeded limit cwd=%s command=%s limit=%s',
                cwd,
                command,
                self._max_output_bytes,
            )
            raise self._error(
                command,
                cwd,
                returncode,
                stdout=stdout,
                stderr=stderr,
                output_limit_exceeded=True,
            )

        if returncode != 0:
            logger.warning(
                'git command failed cwd=%s command=%s returncode=%s stderr=%s',
                cwd,
                command,
                returncode,
                stderr.strip(),
            )
            raise self._error(
                command,
                cwd,
                returncode,
                stdout=stdout,
                stderr=stderr,
            )

        return CommandOutcome(stdout=stdout, stderr=stderr, command=command)

    def _wait(
        self,
        process: subprocess.Popen,
        out_file: IO[bytes],
        err_file: IO[bytes],
    ) -> tuple[int | None, bool, bool]:
        """Wait for the child, killing it on timeout or once output passes the cap.

        Returns (returncode, timed_out, output_limit_exceeded). A killed child
        is always reaped before returning.
        """
        deadline = time.monotonic() + self._timeout_seconds
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                returncode = process.wait(timeout=min(_POLL_INTERVAL_SECONDS, remaining))
                return returncode, False, False
            except subprocess.TimeoutExpired:
                pass
            if self._spooled_bytes(out_file) > self._max_output_bytes or (
                self._spooled_bytes(err_file) > self._max_output_bytes
            ):
                self._kill(process)
                return None, False, True
            if time.monotonic() >= deadline:
                self._kill(process)
                return None, True, False

    def _kill(self, process: subprocess.Popen) -> None:
        process.kill()
        process.wait()

    def _spooled_bytes(self, handle: IO[bytes]) -> int:
        return os.fstat(handle.fileno()).st_size

    def _error(
        self,
        command: str,
        cwd: Path,
        returncode: int | None,
        stdout: str = '',
        stderr: str = '',
        timed_out: bool = False,
        output_limit_exceeded: bool = False,
    ) -> GitCommandError:
        return GitCommandError(
            command,
            cwd,
            returncode,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
            output_limit_exceeded=output_limit_exceeded,
            executable=self._git_executable,
            timeout_seconds=self._timeout_seconds,
            max_output_bytes=self._max_output_bytes,
        )

    def _read_capped(self, handle: IO[bytes]) -> tuple[str, bool]:
        handle.seek(0)
        data = handle.read(self._max_output_bytes + 1)
        exceeded = len(data) > self._max_output_bytes
        text = data[: self._max_output_bytes].decode('utf-8', errors='replace')
        return text.replace('\r\n', '\n'), exceeded

    def _process_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env['GIT_TERMINAL_PROMPT'] = '0'
        env['GCM_INTERACTIVE'] = 'Never'
        # Diagnostics are pattern-matched in English.
        env['LC_ALL'] = 'C'
        return env


git_command_runner = GitCommandRunner(
    git_executable=settings.git_executable,
    timeout_seconds=settings.git_timeout_seconds,
    max_output_bytes=settings.git_max_output_bytes,
)
