# __init__.py - Tools package
from .base import tool, Tool, BaseTool, SIGNAL_EXIT_LOOP, SIGNAL_TRANSFER
from .registry import ToolCatalog
from .dispatcher import ToolDispatcher
from .builtin import (
    exit_tool, exit_loop_tool, transfer_tool,
    EXIT_TOOL_NAME, EXIT_LOOP_TOOL_NAME, TRANSFER_TOOL_NAME,
)

__all__ = [
    "tool", "Tool", "BaseTool", "ToolCatalog", "ToolDispatcher",
    "exit_tool", "exit_loop_tool", "transfer_tool",
    "SIGNAL_EXIT_LOOP", "SIGNAL_TRANSFER",
    "EXIT_TOOL_NAME", "EXIT_LOOP_TOOL_NAME", "TRANSFER_TOOL_NAME",
]
