"""Package manager tool: install, remove and run scripts via pnpm, npm or yarn."""
import logging
import shlex

from tools.base import BaseTool, ToolContext

logger = logging.getLogger(__name__)

MANAGERS = ("pnpm", "npm", "yarn")

# manager -> (install verb, remove verb)
_VERBS = {
    "pnpm": ("add", "remove"),
    "yarn": ("add", "remove"),
    "npm": ("install", "uninstall"),
}


class PackageTool(BaseTool):
    tool_name = "package"
    description = "Install/remove dependencies or run a package script (lint, typecheck, build, ...)"

    async def execute(self, params: dict, context: ToolContext) -> str:
        manager = params.get("manager", "pnpm")
        if manager not in MANAGERS:
            raise ValueError(f"Unsupported package manager: {manager!r}")
        action = params.get("action", "run_script")

        if action in ("install", "remove"):
            deps = [shlex.quote(str(d)) for d in params.get("deps") or []]
            if not deps:
                raise ValueError(f"{action} requires at least one dependency")
            install_verb, remove_verb = _VERBS[manager]
            verb = install_verb if action == "install" else remove_verb
            command = f"{manager} {verb} {' '.join(deps)}"
        elif action == "run_script":
            script = shlex.quote(str(params.get("script", "build")))
            command = f"npm run {script}" if manager == "npm" else f"{manager} {script}"
        else:
            raise ValueError(f"Unknown package action: {action!r}")

        logger.info("Package %s: %s", action, command)
        return await self.run(command, context, manager)
