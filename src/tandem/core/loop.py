# loop.py - Reasoning Loop
#
# The single-agent ReAct state machine. This is the HEART of Tandem.
# Each iteration:
#   1. Check cancellation and the iteration bound
#   2. Call the model with the running history and tool catalog
#   3. No tool calls -> DONE, the reply is the final answer
#   4. Otherwise dispatch every tool call, in order, appending one tool
#      message per call, then go back to 1
#   5. A return_directly (exit) tool ends the loop with its output

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import AsyncIterator, Optional, Union

from .errors import InferenceError, MaxIterationsExceeded, TandemError
from .invocation import RunContext
from .models import Message, ToolCallRequest, ASSISTANT
from .stream import MessageStream
from ..observe.hooks import HookManager
from ..tools.dispatcher import ToolDispatcher
from ..tools.registry import ToolCatalog

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    THINKING = "thinking"
    ACTING = "acting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LoopResult:
    """Outcome of a loop that reached DONE."""
    final: Message
    messages: list[Message] = field(default_factory=list)  # appended by this loop
    iterations: int = 0
    exit_call: Optional[ToolCallRequest] = None


class ReasoningLoop:
    """
    One run of the reasoning loop for one agent.

    Usage:
        loop = ReasoningLoop(model, catalog, agent_name="Assistant", max_iterations=10)
        async for step in loop.steps(ctx, messages):
            ...  # Message, or MessageStream when streaming
        loop.result.final.content

    max_iterations bounds the number of model calls (None = unbounded).
    """

    def __init__(
        self,
        model,  # ChatModel (any object with async generate() / stream())
        catalog: ToolCatalog,
        agent_name: str = "",
        max_iterations: Optional[int] = None,
        dispatcher: Optional[ToolDispatcher] = None,
        hooks: Optional[HookManager] = None,
    ):
        if max_iterations is not None and max_iterations < 1:
            raise ValueError("max_iterations must be at least 1 (or None for no bound).")
        self.model = model
        self.catalog = catalog
        self.agent_name = agent_name
        self.max_iterations = max_iterations
        self.hooks = hooks or HookManager()
        self.dispatcher = dispatcher or ToolDispatcher(self.hooks, agent_name)
        self.state = LoopState.THINKING
        self.result: Optional[LoopResult] = None

    async def steps(
        self,
        ctx: RunContext,
        messages: list[Message],
        streaming: bool = False,
    ) -> AsyncIterator[Union[Message, MessageStream]]:
        history = list(messages)
        appended: list[Message] = []
        tools = self.catalog.descriptors() or None
        iterations = 0
        self.state = LoopState.THINKING

        try:
            while True:
                ctx.check()
                if self.max_iterations is not None and iterations >= self.max_iterations:
                    raise MaxIterationsExceeded(self.agent_name, self.max_iterations)
                iterations += 1

                # --- THINKING: call the model ---
                await self.hooks.emit("model_call", {
                    "agent": self.agent_name,
                    "iteration": iterations,
                    "history_length": len(history),
                    "streaming": streaming,
                })
                start = time.time()
                if streaming:
                    stream = MessageStream(self.model.stream(history, tools))
                    yield stream
                    reply = await self._infer(ctx, stream.collect(), stream)
                else:
                    reply = await self._infer(ctx, self.model.generate(history, tools))
                reply = replace(reply, role=ASSISTANT, name=self.agent_name)
                if not streaming:
                    yield reply
                logger.debug(
                    "[%s] iteration %d: %d tool call(s) in %.0f ms",
                    self.agent_name, iterations, len(reply.tool_calls),
                    (time.time() - start) * 1000,
                )
                history.append(reply)
                appended.append(reply)

                if not reply.tool_calls:
                    self._finish(reply, appended, iterations)
                    return

                # --- ACTING: resolve every call of this turn, in order ---
                self.state = LoopState.ACTING
                exit_call = None
                exit_output = None
                for call in reply.tool_calls:
                    if exit_call is not None:
                        result = self.dispatcher.skip(
                            call, f"'{exit_call.name}' ended the turn first"
                        )
                    else:
                        ctx.check()
                        result, ok = await self.dispatcher.dispatch(ctx, call, self.catalog)
                        tool = self.catalog.get(call.name)
                        if ok and tool.return_directly:
                            exit_call = call
                            exit_output = result.content
                    history.append(result)
                    appended.append(result)
                    yield result

                if exit_call is not None:
                    final = Message.assistant(exit_output, name=self.agent_name)
                    self._finish(final, appended, iterations, exit_call)
                    return
                self.state = LoopState.THINKING
        except BaseException:
            self.state = LoopState.FAILED
            raise

    async def _infer(self, ctx: RunContext, call, stream: Optional[MessageStream] = None) -> Message:
        try:
            return await ctx.guard(call)
        except Exception as e:
            if stream is not None:
                await stream.aclose()
            if isinstance(e, TandemError):
                if e.agent_name is None:
                    e.agent_name = self.agent_name
                raise
            raise InferenceError(
                f"Model call failed for agent '{self.agent_name}': {type(e).__name__}: {e}",
                agent_name=self.agent_name,
            ) from e

    def _finish(
        self,
        final: Message,
        appended: list[Message],
        iterations: int,
        exit_call: Optional[ToolCallRequest] = None,
    ) -> None:
        self.state = LoopState.DONE
        self.result = LoopResult(
            final=final,
            messages=appended,
            iterations=iterations,
            exit_call=exit_call,
        )
        logger.debug("[%s] done after %d iteration(s)", self.agent_name, iterations)
