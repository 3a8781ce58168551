# invocation.py - Run-scoped context
#
# Provides:
#   - RunContext: the cancellation signal threaded through one run
#   - InvocationContext: everything an agent needs while running
#     (cancellation, session state, transcript, resumption cursor, hooks)

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Iterable, Optional

from .errors import CancellationError
from .models import Message, TranscriptEntry
from .state import SessionState
from ..observe.hooks import HookManager

logger = logging.getLogger(__name__)


class RunContext:
    """
    Cancellation signal for one run.

    cancel() may be called from a hook, a UI handler or another coroutine.
    Agents call check() at every transition, and model/tool calls are
    awaited through guard() so an in-flight call is abandoned on cancel.
    """

    def __init__(self):
        self._cancelled = asyncio.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "run cancelled") -> None:
        if self._cancelled.is_set():
            return
        self._reason = reason
        self._cancelled.set()
        logger.info("Run cancelled: %s", reason)

    def check(self) -> None:
        if self.cancelled:
            raise CancellationError(self._reason)

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """Await `awaitable`, abandoning it with CancellationError on cancel."""
        self.check()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Abandoned call raised while being cancelled", exc_info=True)
        raise CancellationError(self._reason)


@dataclass
class InvocationContext:
    run: RunContext
    state: SessionState
    transcript: list[TranscriptEntry] = field(default_factory=list)
    positions: dict[str, dict[str, Any]] = field(default_factory=dict)
    hooks: HookManager = field(default_factory=HookManager)
    enable_streaming: bool = False
    checkpointer: Optional[Callable[[], Awaitable[None]]] = None
    path: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return "/".join(self.path)

    def for_agent(self, name: str) -> "InvocationContext":
        """Child context for a sub-agent. Shares state, transcript and cursor."""
        return replace(self, path=self.path + (name,))

    def branch(self, restored: Iterable[TranscriptEntry] = ()) -> "InvocationContext":
        """
        Context for a parallel branch with its own copy of the transcript.
        `restored` holds the branch's own messages from a resumed checkpoint.
        """
        return replace(self, transcript=list(self.transcript) + list(restored))

    def record(self, agent_name: str, message: Message) -> None:
        self.transcript.append(TranscriptEntry(agent_name, message))

    # ---- Resumption cursor ----

    def position(self) -> dict[str, Any]:
        return dict(self.positions.get(self.key, {}))

    def set_position(self, **values: Any) -> None:
        self.positions[self.key] = values

    def clear_positions(self, name: Optional[str] = None) -> None:
        """Forget the cursor of this agent (or of child `name`) and everything below it."""
        prefix = self.key if name is None else "/".join(self.path + (name,))
        for key in list(self.positions):
            if key == prefix or key.startswith(prefix + "/"):
                del self.positions[key]

    async def checkpoint(self) -> None:
        if self.checkpointer is not None:
            await self.checkpointer()
