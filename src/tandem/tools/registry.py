# registry.py - Tool Catalog
#
# Collects tools, validates names, and produces the descriptor list the
# model receives on every inference call.

from typing import Iterable, Optional, Union

from .base import Tool, BaseTool
from ..core.models import ToolDescriptor

ToolLike = Union[Tool, BaseTool]


def as_tool(obj: ToolLike) -> Tool:
    if isinstance(obj, BaseTool):
        return obj.to_tool()
    if isinstance(obj, Tool):
        return obj
    raise TypeError(
        f"Expected Tool or BaseTool, got {type(obj).__name__}. "
        f"Did you forget to use the @tool decorator?"
    )


class ToolCatalog:
    """
    The set of tools available to one agent.

    Usage:
        catalog = ToolCatalog([get_weather, DatabaseTool(conn)])
        catalog.register(search_tool)
        descriptors = catalog.descriptors()
    """

    def __init__(self, tools: Optional[Iterable[ToolLike]] = None):
        self._tools: dict[str, Tool] = {}
        if tools:
            self.register_many(tools)

    def register(self, tool: ToolLike) -> Tool:
        """Register a tool. Raises if name already taken."""
        tool = as_tool(tool)
        if tool.name in self._tools:
            raise ValueError(
                f"Tool '{tool.name}' is already registered. "
                f"Each tool must have a unique name."
            )
        self._tools[tool.name] = tool
        return tool

    def register_many(self, tools: Iterable[ToolLike]) -> None:
        for t in tools:
            self.register(t)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def descriptors(self) -> list[ToolDescriptor]:
        return [t.descriptor for t in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools.values())
