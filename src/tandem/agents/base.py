# base.py - Agent base class
#
# Every agent exposes run(invocation) -> async iterator of Event.
# BaseAgent.run wraps the variant-specific _run with the checks and hooks
# shared by all variants.

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable, Optional

from ..core.events import Event
from ..core.invocation import InvocationContext

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """
    A composable unit of work.

    Subclasses implement _run(). The invocation passed to _run is already
    scoped to this agent (its path ends with self.name).
    """

    def __init__(self, name: str, description: str = ""):
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Agent name must be a non-empty string.")
        if "/" in name:
            raise ValueError(f"Agent name '{name}' cannot contain '/'.")
        self.name = name
        self.description = description

    @property
    def sub_agents(self) -> tuple["BaseAgent", ...]:
        return ()

    async def run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        inv = invocation.for_agent(self.name)
        inv.run.check()
        logger.debug("Agent %s started", inv.key)
        await inv.hooks.emit("agent_start", {"agent": self.name, "path": inv.key})

        async for event in self._run(inv):
            yield event

        logger.debug("Agent %s finished", inv.key)
        await inv.hooks.emit("agent_end", {"agent": self.name, "path": inv.key})

    @abstractmethod
    def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        ...

    def event(self, invocation: InvocationContext, **fields) -> Event:
        return Event(agent_name=self.name, run_path=invocation.path, **fields)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def unique_agents(agents: Iterable[BaseAgent], owner: str) -> tuple[BaseAgent, ...]:
    """Validate a sub-agent list: BaseAgent instances with distinct names."""
    result = []
    seen: set[str] = set()
    for agent in agents:
        if not isinstance(agent, BaseAgent):
            raise TypeError(
                f"Sub-agents of '{owner}' must be agents, got {type(agent).__name__}."
            )
        if agent.name in seen:
            raise ValueError(
                f"Duplicate sub-agent name '{agent.name}' in '{owner}'. "
                f"Names must be unique within a composition."
            )
        seen.add(agent.name)
        result.append(agent)
    if not result:
        raise ValueError(f"'{owner}' needs at least one sub-agent.")
    return tuple(result)


def find_output(invocation: InvocationContext, start: int) -> Optional[str]:
    """Content of the last final answer recorded in the transcript since `start`."""
    for entry in reversed(invocation.transcript[start:]):
        msg = entry.message
        if entry.agent_name and msg.role == "assistant" and not msg.tool_calls:
            return msg.content
    return None
