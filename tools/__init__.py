"""Auto-collect all BaseTool subclasses into TOOL_REGISTRY at import time."""
import importlib
import pkgutil
from pathlib import Path
from typing import Any

from tools.base import BaseTool, ToolContext

# Import every module in this package so subclasses are registered
_pkg_path = str(Path(__file__).parent)
for _info in pkgutil.iter_modules([_pkg_path]):
    if _info.name not in ("base",):
        importlib.import_module(f"tools.{_info.name}")

TOOL_REGISTRY: dict[str, type[BaseTool]] = {
    cls.tool_name: cls
    for cls in BaseTool.__subclasses__()
    if cls.tool_name
}


async def execute_tool(name: str, params: dict, context: ToolContext) -> Any:
    """Look up *name* in TOOL_REGISTRY and run it; raises KeyError for unknown tools."""
    tool_cls = TOOL_REGISTRY.get(name)
    if tool_cls is None:
        raise KeyError(f"Unknown tool: {name!r}. Available: {list(TOOL_REGISTRY)}")
    return await tool_cls().execute(params, context)


__all__ = ["BaseTool", "TOOL_REGISTRY", "ToolContext", "execute_tool"]
