"""Invocation of the external ``skills`` packaging CLI."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Callable

from skill_knife.errors import OperationCancelled, SubprocessError
from skill_knife.readers import UNIVERSAL_READER_ID
from skill_knife.types import CancellationToken, Scope

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("npx", "skills")

_ANSI_RE = re.compile(r"[\u001b\u009b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]")

# Lines of output kept for the error payload of a failed streaming run
_TAIL_LINES = 40


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def agent_args(preferred_agents: list[str]) -> list[str]:
    """Build ``--agent`` flags from preferred reader ids.

    The universal reader id is internal and never passed to the CLI. With no
    remaining ids the CLI is told to target every agent.
    """
    agents = [a for a in preferred_agents if a != UNIVERSAL_READER_ID]
    if not agents:
        return ["--all"]
    args: list[str] = []
    for agent in agents:
        args.extend(["--agent", agent])
    return args


def build_add_args(
    source_args: list[str],
    agents: list[str],
    scope: Scope = Scope.PROJECT,
) -> list[str]:
    """Build ``add`` arguments.

    Args:
        source_args: Source locator, optionally followed by ``--skill <name>``.
        agents: Preferred reader ids.
        scope: Target scope.

    Returns:
        Argument vector without the command prefix.
    """
    args = ["add", *source_args, *agent_args(agents)]
    if scope == Scope.GLOBAL:
        args.append("--global")
    args.append("-y")
    return args


def build_remove_args(name: str, agents: list[str], scope: Scope = Scope.PROJECT) -> list[str]:
    """Build ``remove`` arguments for an installed skill."""
    args = ["remove", name, *agent_args(agents)]
    if scope == Scope.GLOBAL:
        args.append("--global")
    args.append("-y")
    return args


class SkillsCli:
    """Runs the packaging CLI as a child process."""

    def __init__(
        self,
        command: tuple[str, ...] | list[str] | str = DEFAULT_COMMAND,
        cwd: Path | None = None,
        poll_interval: float = 0.1,
        kill_timeout: float = 5.0,
    ) -> None:
        """Initialize the runner.

        Args:
            command: Command prefix, as a sequence or a shell-style string.
            cwd: Working directory; project-scope operations run in the project root.
            poll_interval: Seconds between cancellation checks while streaming.
            kill_timeout: Seconds to wait after terminate() before kill().
        """
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        self.cwd = cwd
        self.poll_interval = poll_interval
        self.kill_timeout = kill_timeout

    def _argv(self, args: list[str]) -> list[str]:
        return [*self.command, *args]

    def _cwd(self, cwd: Path | None) -> str:
        return str(cwd or self.cwd or Path.home())

    def run_capture(self, args: list[str], cwd: Path | None = None) -> str:
        """Run the CLI non-interactively and capture its output.

        Args:
            args: Arguments after the command prefix.
            cwd: Working directory override.

        Returns:
            Stdout with ANSI escapes removed.

        Raises:
            SubprocessError: On non-zero exit or if the command cannot start.
        """
        argv = self._argv(args)
        logger.debug("Running %s", shlex.join(argv))
        try:
            completed = subprocess.run(
                argv,
                cwd=self._cwd(cwd),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise SubprocessError(argv, -1, str(e)) from e

        if completed.returncode != 0:
            raise SubprocessError(argv, completed.returncode, strip_ansi(completed.stderr or ""))
        return strip_ansi(completed.stdout or "")

    def run_streaming(
        self,
        args: list[str],
        sink: Callable[[str], None],
        cancel: CancellationToken | None = None,
        cwd: Path | None = None,
    ) -> None:
        """Run the CLI and stream its merged output line by line.

        Cancellation terminates the child process; it does not merely stop
        reading from it.

        Args:
            args: Arguments after the command prefix.
            sink: Receives each output line, ANSI escapes removed.
            cancel: Token checked while the child runs.
            cwd: Working directory override.

        Raises:
            OperationCancelled: If the token was cancelled before exit.
            SubprocessError: On non-zero exit or if the command cannot start.
        """
        argv = self._argv(args)
        sink(f"> Running: {shlex.join(argv)}")
        try:
            process = subprocess.Popen(
                argv,
                cwd=self._cwd(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise SubprocessError(argv, -1, str(e)) from e

        tail: deque[str] = deque(maxlen=_TAIL_LINES)

        def pump() -> None:
            assert process.stdout is not None
            for line in process.stdout:
                clean = strip_ansi(line.rstrip("\n"))
                tail.append(clean)
                sink(clean)

        reader = threading.Thread(target=pump, name="skills-cli-output", daemon=True)
        reader.start()

        while process.poll() is None:
            if cancel is not None and cancel.cancelled:
                self._terminate(process)
                reader.join(timeout=self.kill_timeout)
                sink("Command cancelled.")
                raise OperationCancelled("User cancelled operation")
            try:
                process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                continue

        reader.join()
        if process.returncode != 0:
            sink(f"Command failed with exit code {process.returncode}")
            raise SubprocessError(argv, process.returncode, "\n".join(tail))
        sink("Command finished successfully.")

    def _terminate(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=self.kill_timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
