# dispatcher.py - Tool Dispatcher
#
# Resolves a model-emitted tool call against the active catalog, invokes the
# tool and turns the outcome into exactly one tool-role message. Tool
# failures become structured error content so the model can self-correct;
# only an unknown tool name is fatal.

import json
import logging
import time
from typing import Optional

from .registry import ToolCatalog
from ..core.errors import ToolArgumentsError, ToolExecutionError, ToolNotFound
from ..core.invocation import RunContext
from ..core.models import Message, ToolCallRequest
from ..observe.hooks import HookManager

logger = logging.getLogger(__name__)


class ToolDispatcher:

    def __init__(self, hooks: Optional[HookManager] = None, agent_name: str = ""):
        self.hooks = hooks or HookManager()
        self.agent_name = agent_name

    async def dispatch(
        self, ctx: RunContext, call: ToolCallRequest, catalog: ToolCatalog
    ) -> tuple[Message, bool]:
        """
        Invoke one tool call.

        Returns:
            (tool-role message, whether the tool ran successfully)

        Raises:
            ToolNotFound: the call names a tool absent from the catalog
            CancellationError: the run was cancelled while the tool ran
        """
        tool = catalog.get(call.name)
        if tool is None:
            raise ToolNotFound(call.name, catalog.names())

        start = time.time()
        success = True
        try:
            output = await ctx.guard(tool.invoke(call.arguments))
        except ToolArgumentsError as e:
            success = False
            logger.warning("Rejected arguments for tool '%s': %s", call.name, e.details)
            output = _error_payload("invalid_arguments", call.name, details=e.details)
        except ToolExecutionError as e:
            success = False
            logger.warning("%s", e)
            output = _error_payload("tool_execution_failed", call.name, message=str(e))

        await self.hooks.emit("tool_called", {
            "agent": self.agent_name,
            "tool": call.name,
            "call_id": call.id,
            "success": success,
            "output_length": len(output),
            "duration_ms": (time.time() - start) * 1000,
        })
        return Message.tool(output, tool_call_id=call.id, name=call.name), success

    def skip(self, call: ToolCallRequest, reason: str) -> Message:
        """Resolve a call without invoking its tool."""
        logger.debug("Skipping tool call %s (%s): %s", call.id, call.name, reason)
        return Message.tool(
            _error_payload("skipped", call.name, message=reason),
            tool_call_id=call.id,
            name=call.name,
        )


def _error_payload(kind: str, tool_name: str, **extra) -> str:
    return json.dumps(
        {"error": kind, "tool": tool_name, **extra},
        ensure_ascii=False,
        default=str,
    )
