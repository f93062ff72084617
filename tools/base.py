import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from core.executor import run_command
from guardian.policy import CommandPolicy


@dataclass(frozen=True)
class ToolContext:
    cwd: str = field(default_factory=os.getcwd)
    policy: CommandPolicy = field(default_factory=CommandPolicy)
    timeout: float | None = None


class BaseTool(ABC):
    tool_name: str = ""
    description: str = ""

    @abstractmethod
    async def execute(self, params: dict, context: ToolContext) -> Any:
        """Run the tool in *context* and return its result."""

    async def run(self, command: str, context: ToolContext, binary: str) -> str:
        """Run *command* with the context policy narrowed to *binary*; returns stdout."""
        result = await run_command(
            command,
            context.policy.narrowed_to(binary),
            cwd=context.cwd,
            timeout=context.timeout,
        )
        return result.stdout
