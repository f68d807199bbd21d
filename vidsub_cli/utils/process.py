"""
Async helpers for running external media tools (ffmpeg, ffprobe).
"""

import asyncio
import logging
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(args: list[str], timeout: float | None = None) -> CommandResult:
    """
    Runs a command and captures its output without blocking the event loop.

    The child process is killed if the awaiting task is cancelled or the
    timeout expires.

    Raises:
        FileNotFoundError: If the executable does not exist.
        asyncio.TimeoutError: If the command runs longer than `timeout`.
    """
    log.debug(f"Running: {' '.join(args)}")
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except BaseException:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise
    return CommandResult(
        returncode=proc.returncode,
        stdout=stdout.decode(errors="ignore"),
        stderr=stderr.decode(errors="ignore"),
    )
