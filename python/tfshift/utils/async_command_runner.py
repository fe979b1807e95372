"""
tfshift/utils/async_command_runner.py

Provides the asynchronous command runner every Terraform invocation goes through.

Each call spawns exactly one subprocess. There is no retry here: a
state command either succeeds once or the migration fails, and retries are left to
the caller. Cancelling the awaiting task kills the child process, so a cancelled
pull or plan never leaves a stray Terraform process behind.

Usage example:
    from tfshift.utils.async_command_runner import run_command

    result = await run_command(
        ["terraform", "plan", "-detailed-exitcode"],
        cwd="/work/dir1",
        successful_return_codes=[0, 2],
    )
    changed = result.return_code == 2
"""

from __future__ import annotations

import os
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Dict, List, Optional, Sequence, TypeVar

from tfshift.errors import CLIError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command.

    Attributes:
        return_code (int): The process exit code.
        stdout (str): Decoded standard output.
        stderr (str): Decoded standard error.
    """

    return_code: int
    stdout: str
    stderr: str


async def run_command(
    command: List[str],
    *,
    sensitive: bool = False,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    input_data: Optional[bytes] = None,
    successful_return_codes: Sequence[int] = (0,),
) -> CommandResult:
    """
    Executes a local command in a subprocess, asynchronously.

    If the command exits with a code not in `successful_return_codes` we raise
    CLIError carrying the raw stderr, so the caller can surface Terraform's own
    diagnostic unchanged.

    When `sensitive=True`, the command line is omitted from the error message (the
    stderr text is still kept, as it is the only useful diagnostic).

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides the command line in the raised error.
        env (Optional[Dict[str, str]]):
            Additional environment variables to add or override.
        cwd (Optional[str]):
            Working directory for the command.
        input_data (Optional[bytes]):
            If provided, passed to stdin.
        successful_return_codes (Sequence[int]):
            Which return codes won't be treated as errors. Defaults to (0,).

    Returns:
        CommandResult: The exit code and captured output.

    Raises:
        CLIError: If the command cannot be started or returns a failing code.
        asyncio.CancelledError: If the awaiting task is cancelled. The child is killed.
    """
    proc_env = None
    if env:
        proc_env = os.environ.copy()
        proc_env.update(env)

    stdin = asyncio.subprocess.PIPE if input_data is not None else asyncio.subprocess.DEVNULL

    logger.debug("run: %s (cwd=%s)", "<hidden>" if sensitive else " ".join(command), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=proc_env,
            cwd=cwd,
        )
    except OSError as exc:
        raise CLIError(f"failed to start command {command[0]!r}: {exc}") from exc

    try:
        stdout_bytes, stderr_bytes = await proc.communicate(input=input_data)
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    stdout_str = stdout_bytes.decode(errors="replace")
    stderr_str = stderr_bytes.decode(errors="replace")
    return_code = proc.returncode if proc.returncode is not None else -1

    if return_code not in successful_return_codes:
        shown = "" if sensitive else f": {' '.join(command)}"
        raise CLIError(
            f"command failed with return code {return_code}{shown}\n{stderr_str.strip()}",
            return_code=return_code,
            stderr=stderr_str,
        )

    return CommandResult(return_code=return_code, stdout=stdout_str, stderr=stderr_str)


async def run_to_completion(awaitable: Awaitable[T]) -> T:
    """
    Await a task that must not be interrupted once issued (a remote push, a backend
    restore). If the caller is cancelled meanwhile, the task keeps running until it
    finishes, and only then is the cancellation re-raised.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        if task.done():
            raise
        logger.warning("cancellation requested; waiting for an uninterruptible command to finish")
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                continue
        raise
