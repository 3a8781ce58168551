# models.py - Shared value objects for Tandem
#
# Contains:
#   - ToolCallRequest  (tool call emitted by the model)
#   - ToolDescriptor   (tool entry of the catalog sent to the model)
#   - Message          (role-tagged message of a run's history)
#   - TranscriptEntry  (message + the agent that authored it)

from dataclasses import dataclass
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"
TOOL = "tool"

ROLES = (SYSTEM, USER, ASSISTANT, TOOL)


# ------ LLM INTERFACE STRUCTURES ------
class ToolCallRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"


class ToolDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


# ------ INTERNAL STRUCTURES ------
@dataclass(frozen=True)
class Message:
    role: str
    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(
                f"Unknown message role '{self.role}'. "
                f"Valid roles: {', '.join(ROLES)}"
            )
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.role == TOOL and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id.")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tool_calls: Optional[list[ToolCallRequest]] = None,
        name: Optional[str] = None,
    ) -> "Message":
        return cls(role=ASSISTANT, content=content,
                   tool_calls=tuple(tool_calls or ()), name=name)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: Optional[str] = None) -> "Message":
        return cls(role=TOOL, content=content, tool_call_id=tool_call_id, name=name)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "tool_calls": [call.model_dump() for call in self.tool_calls],
            "tool_call_id": self.tool_call_id,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            tool_calls=tuple(
                ToolCallRequest(**call) for call in data.get("tool_calls") or ()
            ),
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class TranscriptEntry:
    """One message of the run transcript. User input has an empty agent_name."""
    agent_name: str
    message: Message

    def to_dict(self) -> dict:
        return {"agent_name": self.agent_name, "message": self.message.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptEntry":
        return cls(
            agent_name=data.get("agent_name", ""),
            message=Message.from_dict(data["message"]),
        )


def merge_chunks(chunks: list[Message]) -> Message:
    """
    Merge streamed message chunks into one assistant message.

    Content deltas are concatenated in order. Tool calls are collected in
    order of first appearance; a repeated call id appends its arguments.
    """
    content = []
    calls: dict[str, ToolCallRequest] = {}
    name = None
    for chunk in chunks:
        content.append(chunk.content)
        name = name or chunk.name
        for call in chunk.tool_calls:
            previous = calls.get(call.id)
            if previous is None:
                calls[call.id] = call
            else:
                calls[call.id] = previous.model_copy(
                    update={"arguments": previous.arguments + call.arguments}
                )
    return Message.assistant("".join(content), list(calls.values()), name=name)
