# base.py - Chat Model Interface
#
# Defines the protocol (interface) that any model provider must implement.
# Tandem is provider-agnostic: OpenAI, Anthropic, DeepSeek, Ollama - all work.

import os
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from ..core.models import Message, ToolDescriptor


@runtime_checkable
class ChatModel(Protocol):
    """
    Protocol that any model adapter must implement.

    Usage:
        class MyModel:
            async def generate(self, messages, tools=None) -> Message:
                return Message.assistant("hello")

            async def stream(self, messages, tools=None):
                yield Message.assistant("hel")
                yield Message.assistant("lo")

        agent = ChatModelAgent(name="Greeter", model=MyModel())
    """

    async def generate(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDescriptor]] = None,
    ) -> Message:
        """
        Send the history (and tool catalog) to the model and return its reply.

        Raises:
            InferenceError (or a subclass naming the failure kind)
        """
        ...

    def stream(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDescriptor]] = None,
    ) -> AsyncIterator[Message]:
        """
        Stream the reply as assistant chunks. Content arrives as deltas;
        tool calls arrive complete, in a final chunk.
        """
        ...


@dataclass
class LLMConfig:
    """Configuration for model adapters."""
    model: str
    api_key: str = ""
    base_url: str = ""
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout: float = 60.0
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, prefix: str = "", **overrides) -> "LLMConfig":
        """
        Build a config from environment variables.

        Reads {prefix}API_KEY, {prefix}MODEL and {prefix}BASE_URL.
        Keyword overrides win over the environment.
        """
        values = {
            "model": os.environ.get(f"{prefix}MODEL", ""),
            "api_key": os.environ.get(f"{prefix}API_KEY", ""),
            "base_url": os.environ.get(f"{prefix}BASE_URL", ""),
        }
        values.update(overrides)
        if not values["model"]:
            raise ValueError(
                f"No model configured. Set {prefix}MODEL or pass model=..."
            )
        return cls(**values)
