"""Tests for core.process: child spawning, output capture, timeouts and limits."""
import asyncio
import signal
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.process import CommandOutput, spawn_exec, spawn_shell
from guardian.errors import (
    CommandTimeout,
    NonZeroExit,
    OutputLimitExceeded,
    SpawnFailure,
)

PY = sys.executable


async def test_exec_captures_and_trims_output(tmp_path):
    code = "import sys\nprint('out  ')\nsys.stderr.write('err\\n\\n')"
    result = await spawn_exec([PY, "-c", code], cwd=str(tmp_path))
    assert result == CommandOutput(stdout="out", stderr="err")


async def test_exec_runs_in_cwd(tmp_path):
    result = await spawn_exec([PY, "-c", "import os\nprint(os.getcwd())"], cwd=str(tmp_path))
    assert result.stdout == str(tmp_path.resolve())


async def test_exec_nonzero_exit_carries_stderr(tmp_path):
    code = "import sys\nsys.stderr.write('boom\\n')\nsys.exit(3)"
    with pytest.raises(NonZeroExit, match="boom") as exc_info:
        await spawn_exec([PY, "-c", code], cwd=str(tmp_path))
    assert exc_info.value.returncode == 3
    assert exc_info.value.stderr == "boom"


async def test_exec_nonzero_exit_without_stderr_uses_generic_message(tmp_path):
    with pytest.raises(NonZeroExit, match="Command failed with exit code 2"):
        await spawn_exec([PY, "-c", "raise SystemExit(2)"], cwd=str(tmp_path))


async def test_exec_missing_binary_is_spawn_failure(tmp_path):
    with pytest.raises(SpawnFailure) as exc_info:
        await spawn_exec(["definitely-not-a-real-binary-xyz"], cwd=str(tmp_path))
    assert exc_info.value.program == "definitely-not-a-real-binary-xyz"


async def test_exec_permission_denied_is_spawn_failure(tmp_path):
    script = tmp_path / "script.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    script.chmod(0o644)
    with pytest.raises(SpawnFailure):
        await spawn_exec([str(script)], cwd=str(tmp_path))


async def test_exec_does_not_interpret_shell_syntax(tmp_path):
    result = await spawn_exec(["echo", "$(id)", "&&", "`id`"], cwd=str(tmp_path))
    assert result.stdout == "$(id) && `id`"


async def test_exec_timeout_kills_child(tmp_path):
    with pytest.raises(CommandTimeout, match="timed out after 0.2s"):
        await spawn_exec([PY, "-c", "import time\ntime.sleep(30)"], cwd=str(tmp_path), timeout=0.2)


async def test_exec_cancellation_kills_child(tmp_path):
    proc = AsyncMock()
    proc.returncode = None
    proc.pid = 4242

    async def hang():
        await asyncio.sleep(30)

    proc.communicate = hang
    killpg = MagicMock(side_effect=lambda pid, sig: setattr(proc, "returncode", -9))
    with patch("core.process.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)), \
         patch("core.process.os.killpg", killpg):
        task = asyncio.ensure_future(spawn_exec(["sleep", "30"], cwd=str(tmp_path)))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    killpg.assert_called_once_with(4242, signal.SIGKILL)
    assert proc.returncode == -9
    proc.wait.assert_awaited()


async def test_shell_runs_chain(tmp_path):
    result = await spawn_shell("echo one && echo two", cwd=str(tmp_path))
    assert result.stdout == "one\ntwo"


async def test_shell_nonzero_exit(tmp_path):
    with pytest.raises(NonZeroExit, match="nope") as exc_info:
        await spawn_shell("echo nope >&2; exit 4", cwd=str(tmp_path))
    assert exc_info.value.returncode == 4


async def test_shell_output_limit(tmp_path):
    cmd = f"{PY} -c \"print('x' * 5000)\""
    with pytest.raises(OutputLimitExceeded, match="1024 bytes"):
        await spawn_shell(cmd, cwd=str(tmp_path), max_buffer=1024)


async def test_shell_output_under_limit(tmp_path):
    result = await spawn_shell("echo small", cwd=str(tmp_path), max_buffer=1024)
    assert result.stdout == "small"


async def test_shell_timeout(tmp_path):
    with pytest.raises(CommandTimeout):
        await spawn_shell("sleep 30", cwd=str(tmp_path), timeout=0.2)
