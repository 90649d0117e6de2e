"""Registry of the tools offered to the reasoning loop."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from .base import Tool

if TYPE_CHECKING:
    from ..dispatcher.core import CommandDispatcher


class ToolRegistry:
    """Name -> tool lookup with error-to-text execution."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        """Run a tool by name.

        Never raises: unknown tools, bad arguments and tool failures come
        back as an ``Error...`` string the model can read.
        """
        tool = self._tools.get(name)
        if not tool:
            return f"Error: Unknown tool '{name}'. Available tools: {', '.join(self._tools)}"

        try:
            params = tool.validate_params(arguments)
            result = await tool.execute(**params)
        except Exception as e:
            error_msg = f"Tool '{name}' error: {type(e).__name__}: {e}"
            logger.error(error_msg)
            return error_msg
        logger.debug(f"Tool {name} executed")
        return result

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


def build_registry(dispatcher: CommandDispatcher) -> ToolRegistry:
    """Tools for the device: its own commands, web search/fetch, email drafts."""
    from .device import DeviceCommandTool
    from .email import DraftEmailTool
    from .web import WebFetchTool, WebSearchTool

    registry = ToolRegistry()
    registry.register(DeviceCommandTool(dispatcher))
    if dispatcher.web_search.configured:
        registry.register(WebSearchTool(dispatcher.web_search))
    registry.register(WebFetchTool())
    registry.register(DraftEmailTool(dispatcher.settings))
    return registry
