"""Deploy tool: Vercel, Netlify and Docker."""
import logging
import shlex

from tools.base import BaseTool, ToolContext

logger = logging.getLogger(__name__)

TARGETS = ("vercel", "netlify", "docker")


class DeployTool(BaseTool):
    tool_name = "deploy"
    description = "Deploy the workspace to Vercel, Netlify, or build and push a Docker image"

    async def execute(self, params: dict, context: ToolContext) -> str:
        target = params.get("target", "")
        if target not in TARGETS:
            raise ValueError(f"Unknown deploy target: {target!r}. Available: {list(TARGETS)}")

        logger.info("Deploying to %s from %s", target, context.cwd)
        if target == "vercel":
            return await self.run("npx vercel deploy --yes", context, "npx")
        if target == "netlify":
            return await self.run("npx netlify deploy --prod", context, "npx")

        image_tag = str(params.get("image_tag", "")).strip()
        if not image_tag:
            raise ValueError("docker deploy requires image_tag")
        tag = shlex.quote(image_tag)
        build = await self.run(f"docker build -t {tag} .", context, "docker")
        push = await self.run(f"docker push {tag}", context, "docker")
        return f"{build}\n{push}".strip()
