# runner.py - Runner Entry Point
#
# The developer-facing driver for Tandem:
#
#   from tandem import Runner, ChatModelAgent
#   from tandem.llm import OpenAIAdapter, LLMConfig
#
#   agent = ChatModelAgent(
#       name="BookRecommender",
#       model=OpenAIAdapter(LLMConfig.from_env()),
#       instruction="Recommend books matching the user's interests.",
#   )
#   runner = Runner(agent=agent)
#
#   async for event in runner.query("I like science fiction"):
#       if event.message:
#           print(event.message.content)

import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from .agents.base import BaseAgent
from .core.errors import CancellationError, CheckpointError, MaxIterationsExceeded, TandemError
from .core.events import Event
from .core.invocation import InvocationContext, RunContext
from .core.models import Message, TranscriptEntry, ASSISTANT
from .core.state import SessionState
from .observe.hooks import HookManager
from .storage.base import CheckpointStore, RunCheckpoint, encode_checkpoint, decode_checkpoint

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Summary of a drained run, returned by Runner.invoke()."""
    success: bool
    status: str  # "completed", "cancelled", "max_iterations", "error"
    output: Optional[Message]
    events: list[Event] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None


class Runner:
    """
    Top-level driver: starts or resumes a run of one agent and produces its
    events lazily, in execution order.

    Args:
        agent: The root agent (any BaseAgent)
        store: CheckpointStore used when a checkpoint_id is given
        enable_streaming: Emit model replies as MessageStream events

    The event stream ends either by exhaustion (clean completion) or with
    exactly one event whose `error` is set. No event follows an error.
    """

    def __init__(
        self,
        agent: BaseAgent,
        store: Optional[CheckpointStore] = None,
        enable_streaming: bool = False,
    ):
        if not isinstance(agent, BaseAgent):
            raise TypeError(f"Runner needs an agent, got {type(agent).__name__}.")
        self.agent = agent
        self.store = store
        self.enable_streaming = enable_streaming
        self.hooks = HookManager()

    def on(self, event: str):
        """
        Decorator to register lifecycle hooks.

        Usage:
            @runner.on("tool_called")
            async def log_tool(data):
                print(f"{data['agent']} -> {data['tool']}")
        """
        return self.hooks.on(event)

    # ---- Entry points ----

    def query(
        self,
        text: str,
        *,
        checkpoint_id: Optional[str] = None,
        context: Optional[RunContext] = None,
        session_values: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[Event]:
        """
        Run the agent on a single user message.

        Raises:
            TypeError: If text is not a string.
            ValueError: If text is empty or whitespace-only.
        """
        if not isinstance(text, str):
            raise TypeError(f"Query must be a string, got {type(text).__name__}.")
        if not text.strip():
            raise ValueError("Query cannot be empty or whitespace-only.")
        return self.run(
            [Message.user(text.strip())],
            checkpoint_id=checkpoint_id,
            context=context,
            session_values=session_values,
        )

    async def run(
        self,
        messages: list[Message],
        *,
        checkpoint_id: Optional[str] = None,
        context: Optional[RunContext] = None,
        session_values: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[Event]:
        """
        Run the agent on a message history.

        With a checkpoint_id and a store:
            - unfinished checkpoint found: resume it (messages are ignored)
            - completed checkpoint found: continue the conversation, keeping
              transcript and session state
            - nothing found: fresh run, checkpointed under that id
        """
        try:
            invocation = await self._prepare(messages, checkpoint_id, context, session_values)
        except TandemError as e:
            logger.error("Could not start run: %s", e)
            yield Event(agent_name=self.agent.name, error=e)
            return
        except Exception as e:
            logger.exception("Could not start run")
            yield Event(agent_name=self.agent.name, error=e)
            return

        async for event in self._drive(invocation, checkpoint_id):
            yield event

    def resume(
        self, checkpoint_id: str, *, context: Optional[RunContext] = None
    ) -> AsyncIterator[Event]:
        """Resume an unfinished run. Ends with a CheckpointError event if none exists."""
        return self._resume(checkpoint_id, context)

    async def _resume(self, checkpoint_id: str, context: Optional[RunContext]) -> AsyncIterator[Event]:
        checkpoint = None
        try:
            checkpoint = await self.load_checkpoint(checkpoint_id)
        except TandemError as e:
            yield Event(agent_name=self.agent.name, error=e)
            return
        if checkpoint is None or checkpoint.completed:
            error = CheckpointError(f"No unfinished run under checkpoint '{checkpoint_id}'")
            yield Event(agent_name=self.agent.name, error=error)
            return
        async for event in self.run([], checkpoint_id=checkpoint_id, context=context):
            yield event

    async def invoke(
        self,
        messages: list[Message],
        *,
        checkpoint_id: Optional[str] = None,
        context: Optional[RunContext] = None,
        session_values: Optional[dict[str, Any]] = None,
    ) -> RunResult:
        """Drain a run and summarize it. Streamed replies are collected."""
        try:
            invocation = await self._prepare(messages, checkpoint_id, context, session_values)
        except TandemError as e:
            logger.error("Could not start run: %s", e)
            return RunResult(False, "error", None, [Event(self.agent.name, error=e)], {}, e)
        except Exception as e:
            logger.exception("Could not start run")
            return RunResult(False, "error", None, [Event(self.agent.name, error=e)], {}, e)

        events: list[Event] = []
        output = None
        error = None
        async for event in self._drive(invocation, checkpoint_id):
            events.append(event)
            if event.error is not None:
                error = event.error
                continue
            message = event.message
            if event.stream is not None:
                message = await event.stream.collect()
            if message is not None and message.role == ASSISTANT and not message.tool_calls:
                output = message

        return RunResult(
            success=error is None,
            status=_status_of(error),
            output=output,
            events=events,
            state=invocation.state.snapshot(),
            error=error,
        )

    async def load_checkpoint(self, checkpoint_id: str) -> Optional[RunCheckpoint]:
        if self.store is None:
            raise CheckpointError("Runner has no checkpoint store.")
        try:
            data = await self.store.get(checkpoint_id)
        except Exception as e:
            raise CheckpointError(f"Could not read checkpoint '{checkpoint_id}': {e}") from e
        if data is None:
            return None
        return decode_checkpoint(data)

    # ---- Internals ----

    async def _prepare(
        self,
        messages: list[Message],
        checkpoint_id: Optional[str],
        context: Optional[RunContext],
        session_values: Optional[dict[str, Any]],
    ) -> InvocationContext:
        state = SessionState()
        transcript: list[TranscriptEntry] = []
        positions: dict[str, dict[str, Any]] = {}
        resumed = False

        if checkpoint_id is not None and self.store is not None:
            checkpoint = await self.load_checkpoint(checkpoint_id)
            if checkpoint is not None:
                if checkpoint.agent != self.agent.name:
                    raise CheckpointError(
                        f"Checkpoint '{checkpoint_id}' belongs to agent "
                        f"'{checkpoint.agent}', not '{self.agent.name}'"
                    )
                state.update(checkpoint.state)
                transcript.extend(checkpoint.entries())
                if checkpoint.completed:
                    logger.info("Continuing completed run '%s'", checkpoint_id)
                else:
                    positions = checkpoint.positions
                    resumed = True
                    logger.info("Resuming run '%s' at %s", checkpoint_id, positions or "start")
                    if messages:
                        logger.info("Ignoring %d new message(s) while resuming", len(messages))

        if not resumed:
            transcript.extend(TranscriptEntry("", m) for m in messages)
        if session_values:
            state.update(session_values)

        invocation = InvocationContext(
            run=context or RunContext(),
            state=state,
            transcript=transcript,
            positions=positions,
            hooks=self.hooks,
            enable_streaming=self.enable_streaming,
        )
        if checkpoint_id is not None and self.store is not None:
            async def save() -> None:
                await self._save(checkpoint_id, invocation, completed=False)
            invocation.checkpointer = save
        return invocation

    async def _save(self, checkpoint_id: str, invocation: InvocationContext, completed: bool) -> None:
        checkpoint = RunCheckpoint(
            agent=self.agent.name,
            transcript=[entry.to_dict() for entry in invocation.transcript],
            state=invocation.state.snapshot(),
            positions={} if completed else dict(invocation.positions),
            completed=completed,
        )
        data = encode_checkpoint(checkpoint)
        try:
            await self.store.set(checkpoint_id, data)
        except Exception as e:
            raise CheckpointError(f"Could not write checkpoint '{checkpoint_id}': {e}") from e
        await self.hooks.emit("checkpoint_saved", {
            "checkpoint_id": checkpoint_id,
            "completed": completed,
            "positions": checkpoint.positions,
        })

    async def _drive(
        self, invocation: InvocationContext, checkpoint_id: Optional[str]
    ) -> AsyncIterator[Event]:
        start = time.time()
        count = 0
        await self.hooks.emit("run_start", {
            "agent": self.agent.name,
            "checkpoint_id": checkpoint_id,
            "resumed": bool(invocation.positions),
        })

        error: Optional[BaseException] = None
        try:
            async for event in self.agent.run(invocation):
                count += 1
                yield event
            if checkpoint_id is not None and self.store is not None:
                await self._save(checkpoint_id, invocation, completed=True)
        except CancellationError as e:
            error = e
            logger.info("Run of %s cancelled: %s", self.agent.name, e.reason)
        except TandemError as e:
            error = e
            logger.error("Run of %s failed: %s", self.agent.name, e)
        except Exception as e:
            error = e
            logger.exception("Run of %s failed unexpectedly", self.agent.name)

        if error is not None:
            await self.hooks.emit("error", {
                "agent": self.agent.name,
                "error": str(error),
                "type": type(error).__name__,
            })
            yield Event(
                agent_name=getattr(error, "agent_name", None) or self.agent.name,
                error=error,
            )

        await self.hooks.emit("run_end", {
            "agent": self.agent.name,
            "status": _status_of(error),
            "events": count,
            "duration_ms": (time.time() - start) * 1000,
        })


def _status_of(error: Optional[BaseException]) -> str:
    if error is None:
        return "completed"
    if isinstance(error, CancellationError):
        return "cancelled"
    if isinstance(error, MaxIterationsExceeded):
        return "max_iterations"
    return "error"
