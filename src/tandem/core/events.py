# events.py - Execution events produced by agents and the Runner

from dataclasses import dataclass
from typing import Optional

from .models import Message
from .stream import MessageStream


@dataclass
class AgentAction:
    """
    Control signal attached to an event.

    exit_loop: a sub-agent asked the enclosing LoopAgent to stop. The
        innermost LoopAgent sets handled=True once it has acted on it.
    transfer_to: a TransferAgent handed control to the named sub-agent.
    """
    exit_loop: bool = False
    transfer_to: Optional[str] = None
    handled: bool = False


@dataclass
class Event:
    agent_name: str
    message: Optional[Message] = None
    stream: Optional[MessageStream] = None
    error: Optional[BaseException] = None
    action: Optional[AgentAction] = None
    run_path: tuple[str, ...] = ()

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    @property
    def is_error(self) -> bool:
        return self.error is not None
