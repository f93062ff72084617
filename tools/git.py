"""Git tool: status, diff, log, branch and commit operations behind the policy gate."""
import logging
import shlex
import time
from pathlib import Path

from core.db import atomic_write
from tools.base import BaseTool, ToolContext

logger = logging.getLogger(__name__)

MAX_LOG_LIMIT = 200
ACTIONS = ("status", "diff", "log", "branches", "checkout", "add", "commit", "apply_patch")


class GitTool(BaseTool):
    tool_name = "git"
    description = "Run a git operation (status, diff, log, branches, checkout, add, commit, apply_patch)"

    async def execute(self, params: dict, context: ToolContext) -> str:
        action = params.get("action", "status")
        if action not in ACTIONS:
            raise ValueError(f"Unknown git action: {action!r}. Available: {list(ACTIONS)}")
        handler = getattr(self, f"_{action}")
        logger.info("Git %s in %s", action, context.cwd)
        return await handler(params, context)

    async def _git(self, args: str, context: ToolContext) -> str:
        return await self.run(f"git {args}", context, "git")

    # ------------------------------------------------------------------

    async def _status(self, params: dict, context: ToolContext) -> str:
        return await self._git("status --short", context)

    async def _diff(self, params: dict, context: ToolContext) -> str:
        return await self._git("diff", context)

    async def _log(self, params: dict, context: ToolContext) -> str:
        limit = max(1, min(MAX_LOG_LIMIT, int(params.get("limit", 20))))
        return await self._git(f"log --oneline -n {limit}", context)

    async def _branches(self, params: dict, context: ToolContext) -> str:
        return await self._git("branch --all", context)

    async def _checkout(self, params: dict, context: ToolContext) -> str:
        branch = str(params.get("branch", "")).strip()
        if not branch:
            raise ValueError("checkout requires a branch")
        return await self._git(f"checkout {shlex.quote(branch)}", context)

    async def _add(self, params: dict, context: ToolContext) -> str:
        files = params.get("files") or ["."]
        quoted = " ".join(shlex.quote(str(f)) for f in files)
        return await self._git(f"add -- {quoted}", context)

    async def _commit(self, params: dict, context: ToolContext) -> str:
        message = str(params.get("message", "update"))
        return await self._git(f"commit -m {shlex.quote(message)}", context)

    async def _apply_patch(self, params: dict, context: ToolContext) -> str:
        """Write the patch to a temp file in the repo, git-apply it, then remove it."""
        patch_file = Path(context.cwd) / f".fusy-patch-{time.time_ns()}.patch"
        atomic_write(patch_file, str(params.get("patch", "")))
        try:
            return await self._git(
                f"apply --whitespace=nowarn {shlex.quote(str(patch_file))}", context
            )
        finally:
            patch_file.unlink(missing_ok=True)
