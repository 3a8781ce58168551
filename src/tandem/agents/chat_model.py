# chat_model.py - ChatModelAgent
#
# Wraps one ReasoningLoop:
#   1. Render the instruction against current session state
#   2. Build model input from the run transcript
#   3. Run the loop, emitting one event per model reply / tool result
#   4. Record the loop's messages in the transcript
#   5. Write the final answer to state[output_key]

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

from .base import BaseAgent
from ..core.context import ContextConstructor
from ..core.events import AgentAction, Event
from ..core.invocation import InvocationContext
from ..core.loop import LoopResult, ReasoningLoop
from ..core.models import ToolCallRequest
from ..core.stream import MessageStream
from ..tools.base import SIGNAL_EXIT_LOOP
from ..tools.registry import ToolCatalog, ToolLike

logger = logging.getLogger(__name__)


@dataclass
class Turn:
    """Holder for the outcome of one reasoning loop run."""
    result: Optional[LoopResult] = None
    signal: Optional[str] = None

    @property
    def exit_call(self) -> Optional[ToolCallRequest]:
        return self.result.exit_call if self.result else None


class ChatModelAgent(BaseAgent):
    """
    An agent driven by one chat model and an optional tool catalog.

    Args:
        name: Unique name within the composition
        model: Any ChatModel (async generate() / stream())
        description: What the agent does (shown to transferring agents)
        instruction: System instruction template. `{key}` is replaced with
            state[key] when the agent starts.
        instruction_file: Path to a file holding the instruction template
        tools: Tools (@tool functions or BaseTool instances)
        max_iterations: Maximum model calls per invocation (None = no bound)
        output_key: Session key receiving the final answer

    Usage:
        analyzer = ChatModelAgent(
            name="Analyzer",
            model=model,
            instruction="Extract the key requirements from the request.",
            output_key="analysis",
        )
    """

    def __init__(
        self,
        name: str,
        model,
        description: str = "",
        instruction: str = "",
        instruction_file: Optional[str] = None,
        tools: Optional[Iterable[ToolLike]] = None,
        max_iterations: Optional[int] = None,
        output_key: Optional[str] = None,
    ):
        super().__init__(name, description)
        if max_iterations is not None and max_iterations < 1:
            raise ValueError("max_iterations must be at least 1 (or None for no bound).")
        self.model = model
        self.max_iterations = max_iterations
        self.output_key = output_key
        self.catalog = ToolCatalog(tools)
        self.context = ContextConstructor(
            agent_name=name,
            instruction=instruction,
            instruction_file=instruction_file,
        )

    async def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        turn = Turn()
        async for event in self._reason(invocation, turn):
            yield event

        if turn.signal == SIGNAL_EXIT_LOOP:
            yield self.event(invocation, action=AgentAction(exit_loop=True))
        elif turn.signal is None:
            self._store_output(invocation, turn.result.final.content)

    async def _reason(self, invocation: InvocationContext, turn: Turn) -> AsyncIterator[Event]:
        instruction = self.context.render_instruction(invocation.state)
        messages = self.context.build(instruction, invocation.transcript)

        loop = ReasoningLoop(
            model=self.model,
            catalog=self.catalog,
            agent_name=self.name,
            max_iterations=self.max_iterations,
            hooks=invocation.hooks,
        )
        async for step in loop.steps(invocation.run, messages, invocation.enable_streaming):
            if isinstance(step, MessageStream):
                yield self.event(invocation, stream=step)
            else:
                yield self.event(invocation, message=step)

        result = loop.result
        for message in result.messages:
            invocation.record(self.name, message)

        turn.result = result
        if result.exit_call is not None:
            turn.signal = self.catalog.get(result.exit_call.name).signal
            if turn.signal is None:
                # A plain exit tool: its output is the agent's answer
                invocation.record(self.name, result.final)
                yield self.event(invocation, message=result.final)

    def _store_output(self, invocation: InvocationContext, content: Optional[str]) -> None:
        if self.output_key and content is not None:
            invocation.state.set(self.output_key, content)
            logger.debug("[%s] wrote state[%r]", self.name, self.output_key)

