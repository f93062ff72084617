"""Child process supervision for the two dispatch modes."""
import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass
from typing import Sequence

from guardian.errors import (
    CommandTimeout,
    NonZeroExit,
    OutputLimitExceeded,
    SpawnFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER = 4 * 1024 * 1024  # 4 MiB, shell path only
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class CommandOutput:
    stdout: str
    stderr: str


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the child and its whole process group, then reap it."""
    if proc.returncode is None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            try:
                proc.kill()
            except ProcessLookupError:
                pass
    await proc.wait()


async def _supervise(proc: asyncio.subprocess.Process, pending, timeout: float | None):
    """Await *pending*; on timeout, overflow or cancellation the child is killed first."""
    try:
        return await asyncio.wait_for(pending, timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        logger.warning("Process %s killed after %ss timeout", proc.pid, timeout)
        raise CommandTimeout(timeout) from None
    except (OutputLimitExceeded, asyncio.CancelledError):
        await _kill(proc)
        raise


def _finish(returncode: int | None, stdout: bytes, stderr: bytes) -> CommandOutput:
    out = stdout.decode("utf-8", errors="replace").rstrip()
    err = stderr.decode("utf-8", errors="replace").rstrip()
    if out:
        logger.debug("STDOUT %s", out)
    if err:
        logger.debug("STDERR %s", err)
    if returncode != 0:
        raise NonZeroExit(returncode if returncode is not None else -1, err.strip())
    return CommandOutput(stdout=out, stderr=err)


async def spawn_exec(
    argv: Sequence[str],
    cwd: str,
    timeout: float | None = None,
) -> CommandOutput:
    """
    Run *argv* directly (no shell) in *cwd* and buffer its output.

    Raises SpawnFailure if the program cannot be started, NonZeroExit on a
    non-zero exit code and CommandTimeout if *timeout* seconds elapse.
    """
    argv = list(argv)
    logger.info("EXEC %s (cwd=%s)", _fmt_argv(argv), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        raise SpawnFailure(argv[0], exc.strerror or str(exc)) from exc

    stdout, stderr = await _supervise(proc, proc.communicate(), timeout)
    return _finish(proc.returncode, stdout, stderr)


async def spawn_shell(
    command: str,
    cwd: str,
    timeout: float | None = None,
    max_buffer: int = DEFAULT_MAX_BUFFER,
) -> CommandOutput:
    """
    Delegate *command* to the host shell in *cwd*.

    Combined stdout+stderr is capped at *max_buffer* bytes; a child that
    exceeds it is killed and OutputLimitExceeded is raised.
    """
    logger.info("SHELL %s (cwd=%s)", command, cwd)
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        raise SpawnFailure("shell", exc.strerror or str(exc)) from exc

    stdout = bytearray()
    stderr = bytearray()
    total = 0

    async def drain(stream: asyncio.StreamReader, sink: bytearray) -> None:
        nonlocal total
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            total += len(chunk)
            if total > max_buffer:
                raise OutputLimitExceeded(max_buffer)
            sink.extend(chunk)

    async def collect() -> None:
        readers = [
            asyncio.ensure_future(drain(proc.stdout, stdout)),
            asyncio.ensure_future(drain(proc.stderr, stderr)),
        ]
        try:
            await asyncio.gather(*readers)
        finally:
            for reader in readers:
                if not reader.done():
                    reader.cancel()
        await proc.wait()

    await _supervise(proc, collect(), timeout)
    return _finish(proc.returncode, bytes(stdout), bytes(stderr))
