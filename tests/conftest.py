"""
Shared pytest fixtures for Tandem tests.

Provides:
- ScriptedModel: a ChatModel double that replays a fixed list of replies
- call() / tool_reply(): shorthands for model replies carrying tool calls
- drain(): collect every event of a run
"""

import asyncio
import json
import logging
from typing import Optional

import pytest

from tandem.core.models import Message, ToolCallRequest


class ScriptedModel:
    """
    ChatModel double. Each generate()/stream() call consumes the next reply.

    A reply may be:
        - str: an assistant answer
        - Message: returned as is
        - Exception instance: raised
        - callable(messages) -> str | Message
    """

    def __init__(self, replies=None, chunk_size: int = 4, delay: float = 0.0):
        self.replies = list(replies or [])
        self.calls: list[list[Message]] = []
        self.tools: list = []
        self.chunk_size = chunk_size
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None

    def _next(self, messages, tools) -> Message:
        self.calls.append(list(messages))
        self.tools.append(tools)
        if not self.replies:
            raise AssertionError("ScriptedModel ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(messages)
        if isinstance(reply, str):
            reply = Message.assistant(reply)
        return reply

    async def _wait(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.gate is not None:
            await self.gate.wait()

    async def generate(self, messages, tools=None) -> Message:
        await self._wait()
        return self._next(messages, tools)

    async def stream(self, messages, tools=None):
        await self._wait()
        reply = self._next(messages, tools)
        text = reply.content
        for i in range(0, len(text), self.chunk_size):
            yield Message.assistant(text[i:i + self.chunk_size])
        if reply.tool_calls:
            yield Message.assistant("", list(reply.tool_calls))

    @property
    def call_count(self) -> int:
        return len(self.calls)


def call(name: str, args: Optional[dict] = None, call_id: str = "call_1") -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=json.dumps(args or {}))


def tool_reply(*calls: ToolCallRequest, content: str = "") -> Message:
    return Message.assistant(content, list(calls))


async def drain(events) -> list:
    return [event async for event in events]


def contents(messages) -> list[str]:
    return [m.content for m in messages]


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture tandem logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG, logger="tandem")
    return caplog
