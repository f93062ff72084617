"""Raw policy-gated command tool."""
import logging

from core.executor import run_command
from tools.base import BaseTool, ToolContext

logger = logging.getLogger(__name__)


class RunCommandTool(BaseTool):
    tool_name = "run_command"
    description = "Run shell command with policy gate"

    async def execute(self, params: dict, context: ToolContext) -> dict:
        command = str(params.get("command", ""))
        logger.debug("run_command tool: %r in %s", command, context.cwd)
        # The caller's policy is used as-is; this is the one tool that is not narrowed.
        result = await run_command(
            command,
            context.policy,
            cwd=context.cwd,
            timeout=context.timeout,
        )
        return {"stdout": result.stdout, "stderr": result.stderr}
