"""Time-bounded async subprocess execution.

Every external query or package-manager call goes through ``run_command`` so
that a hung process can never stall the conversion pipeline.
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

log = logging.getLogger(__name__)


class CommandTimeout(Exception):
    """The command did not finish within its time budget and was killed."""

    def __init__(self, argv: Sequence[str], timeout: float):
        self.argv = list(argv)
        self.timeout = timeout
        super().__init__(f"{' '.join(argv)} timed out after {timeout:g}s")


class CommandFailed(Exception):
    """The command exited non-zero or could not be started."""

    def __init__(self, argv: Sequence[str], returncode: int | None, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"{' '.join(argv)} failed (code {returncode}): {detail}")


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


# Signature shared by the real runner and test fakes.
CommandRunner = Callable[..., Awaitable[CommandResult]]


async def run_command(
    argv: Sequence[str],
    *,
    timeout: float,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run *argv* and capture its output, killing it after *timeout* seconds.

    Raises ``CommandTimeout`` on timeout and ``CommandFailed`` when the
    executable is missing. A non-zero exit is returned, not raised; use
    ``check_command`` for that.
    """
    merged_env = None
    if env:
        merged_env = {**os.environ, **env}
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            env=merged_env,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise CommandFailed(argv, None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        try:
            await asyncio.wait_for(proc.wait(), timeout=5)
        except asyncio.TimeoutError:
            log.warning("Process %s did not exit after kill", argv[0])
        raise CommandTimeout(argv, timeout)

    return CommandResult(
        argv=tuple(argv),
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def check_command(
    runner: CommandRunner,
    argv: Sequence[str],
    *,
    timeout: float,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Like ``runner(argv)`` but raises ``CommandFailed`` on a non-zero exit."""
    result = await runner(argv, timeout=timeout, env=env)
    if not result.ok:
        raise CommandFailed(argv, result.returncode, result.output)
    return result


async def command_succeeds(runner: CommandRunner, argv: Sequence[str], *, timeout: float = 5) -> bool:
    """True if *argv* runs and exits zero within *timeout*. Never raises."""
    try:
        result = await runner(argv, timeout=timeout)
    except (CommandTimeout, CommandFailed):
        return False
    return result.ok
