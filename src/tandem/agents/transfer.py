# transfer.py - TransferAgent (model-decided handoff)
#
# A ChatModelAgent whose catalog includes the transfer_to_agent pseudo-tool.
# The tool's agent_name argument is an enum over the registered sub-agents,
# resolved through an explicit name -> agent registry. When the model calls
# it, the sub-agent continues the run with the full transcript and its
# output becomes this agent's output.

import json
import logging
from typing import AsyncIterator, Iterable, Optional

from .base import BaseAgent, find_output, unique_agents
from .chat_model import ChatModelAgent, Turn
from ..core.context import load_template
from ..core.errors import AgentNotFound
from ..core.events import AgentAction, Event
from ..core.invocation import InvocationContext
from ..tools.base import SIGNAL_EXIT_LOOP, SIGNAL_TRANSFER
from ..tools.builtin import transfer_tool, TRANSFER_TOOL_NAME
from ..tools.registry import ToolLike

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Closed set of transfer targets, keyed by name."""

    def __init__(self, agents: Iterable[BaseAgent], owner: str):
        self._agents = {a.name: a for a in unique_agents(agents, owner)}

    def resolve(self, name: str) -> BaseAgent:
        agent = self._agents.get(name)
        if agent is None:
            raise AgentNotFound(name, self.names())
        return agent

    def names(self) -> list[str]:
        return list(self._agents)

    def descriptions(self) -> dict[str, str]:
        return {name: agent.description for name, agent in self._agents.items()}

    def __iter__(self):
        return iter(self._agents.values())


class TransferAgent(ChatModelAgent):
    """
    Routes the conversation to one of its sub-agents, as chosen by the model.

    Usage:
        general = TransferAgent(
            name="GeneralAgent",
            model=model,
            instruction="Answer simple questions yourself. Hand off the rest.",
            sub_agents=[tech_expert, math_expert],
        )
    """

    def __init__(
        self,
        name: str,
        model,
        sub_agents: Iterable[BaseAgent],
        description: str = "",
        instruction: str = "",
        instruction_file: Optional[str] = None,
        tools: Optional[Iterable[ToolLike]] = None,
        max_iterations: Optional[int] = None,
        output_key: Optional[str] = None,
    ):
        self.registry = AgentRegistry(sub_agents, name)
        if name in self.registry.names():
            raise ValueError(f"TransferAgent '{name}' cannot list itself as a sub-agent.")
        super().__init__(
            name=name,
            model=model,
            description=description,
            instruction=instruction,
            instruction_file=instruction_file,
            tools=list(tools or []) + [transfer_tool(self.registry.descriptions())],
            max_iterations=max_iterations,
            output_key=output_key,
        )
        self.context.extra_sections.append(
            load_template("transfer.j2").render(
                agents=self.registry.descriptions(),
                tool_name=TRANSFER_TOOL_NAME,
            ).strip()
        )

    @property
    def sub_agents(self) -> tuple[BaseAgent, ...]:
        return tuple(self.registry)

    async def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        target_name = invocation.position().get("transfer_to")
        if target_name is None:
            turn = Turn()
            async for event in self._reason(invocation, turn):
                yield event

            if turn.signal == SIGNAL_EXIT_LOOP:
                yield self.event(invocation, action=AgentAction(exit_loop=True))
                return
            if turn.signal != SIGNAL_TRANSFER:
                self._store_output(invocation, turn.result.final.content)
                return

            target_name = json.loads(turn.exit_call.arguments)["agent_name"]
            target = self.registry.resolve(target_name)
            logger.info("[%s] transferring to %s", self.name, target.name)
            invocation.set_position(transfer_to=target.name)
            await invocation.checkpoint()
            yield self.event(invocation, action=AgentAction(transfer_to=target.name))
        else:
            target = self.registry.resolve(target_name)
            logger.info("[%s] resuming transfer to %s", self.name, target.name)

        start = len(invocation.transcript)
        async for event in target.run(invocation):
            yield event
        self._store_output(invocation, find_output(invocation, start))
