# adapters.py - Model Provider Adapters
#
# Concrete implementations of ChatModel for:
#   - OpenAI-compatible APIs (OpenAI, DeepSeek, Together, Groq, vLLM, ...)
#   - Anthropic (Claude)
#
# Uses httpx for async HTTP calls. No SDK dependencies. No retries: provider
# failures are raised as classified InferenceError subclasses.

import json
import logging
from typing import Any, AsyncIterator, Optional

import httpx

from ..core.errors import (
    InferenceError, InferenceTimeoutError, AuthenticationError,
    RateLimitError, MalformedResponseError,
)
from ..core.models import Message, ToolCallRequest, ToolDescriptor, SYSTEM, USER, ASSISTANT, TOOL
from .base import LLMConfig

logger = logging.getLogger(__name__)


def _status_error(provider: str, response: httpx.Response) -> InferenceError:
    status = response.status_code
    message = f"{provider} API error {status}: {response.text[:500]}"
    if status in (401, 403):
        cls = AuthenticationError
    elif status == 429:
        cls = RateLimitError
    elif status in (408, 504):
        cls = InferenceTimeoutError
    else:
        cls = InferenceError
    return cls(message, provider=provider, status_code=status)


class _HTTPAdapter:
    """Shared request plumbing for the HTTP adapters."""

    provider = "provider"
    default_base_url = ""

    def __init__(self, config: LLMConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.timeout, transport=self.transport)

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}{path}", headers=self._headers(), json=payload
                )
        except httpx.TimeoutException as e:
            raise InferenceTimeoutError(
                f"{self.provider} request timed out: {e}", provider=self.provider
            ) from e
        except httpx.HTTPError as e:
            raise InferenceError(
                f"{self.provider} request failed: {e}", provider=self.provider
            ) from e

        if response.status_code != 200:
            raise _status_error(self.provider, response)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.provider} returned invalid JSON", provider=self.provider
            ) from e

    async def _stream_data(self, path: str, payload: dict) -> AsyncIterator[dict]:
        """Yield the decoded `data:` payloads of a server-sent event stream."""
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", f"{self.base_url}{path}", headers=self._headers(), json=payload
                ) as response:
                    if response.status_code != 200:
                        await response.aread()
                        raise _status_error(self.provider, response)
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[5:].strip()
                        if data == "[DONE]":
                            return
                        try:
                            yield json.loads(data)
                        except ValueError as e:
                            raise MalformedResponseError(
                                f"{self.provider} sent an invalid stream chunk",
                                provider=self.provider,
                            ) from e
        except httpx.TimeoutException as e:
            raise InferenceTimeoutError(
                f"{self.provider} stream timed out: {e}", provider=self.provider
            ) from e
        except httpx.HTTPError as e:
            raise InferenceError(
                f"{self.provider} stream failed: {e}", provider=self.provider
            ) from e


class OpenAIAdapter(_HTTPAdapter):
    """
    Adapter for OpenAI-compatible chat completion APIs.

    Usage:
        model = OpenAIAdapter(LLMConfig(
            model="deepseek-chat",
            api_key="sk-...",
            base_url="https://api.deepseek.com",
        ))
        reply = await model.generate([Message.user("Hi")])
    """

    provider = "openai"
    default_base_url = "https://api.openai.com/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list[Message], tools: Optional[list[ToolDescriptor]]) -> dict:
        payload = {
            "model": self.config.model,
            "messages": [_to_openai(m) for m in messages],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            **self.config.extra,
        }
        if tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]
        return payload

    async def generate(
        self, messages: list[Message], tools: Optional[list[ToolDescriptor]] = None
    ) -> Message:
        data = await self._post("/chat/completions", self._payload(messages, tools))
        try:
            reply = data["choices"][0]["message"]
            calls = [
                ToolCallRequest(
                    id=call["id"],
                    name=call["function"]["name"],
                    arguments=call["function"].get("arguments") or "{}",
                )
                for call in reply.get("tool_calls") or []
            ]
            return Message.assistant(reply.get("content") or "", calls)
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(
                f"Unexpected OpenAI response shape: {e!r}", provider=self.provider
            ) from e

    async def stream(
        self, messages: list[Message], tools: Optional[list[ToolDescriptor]] = None
    ) -> AsyncIterator[Message]:
        payload = self._payload(messages, tools)
        payload["stream"] = True

        # Tool call fragments arrive keyed by index; emit them whole at the end
        pending: dict[int, dict[str, str]] = {}
        async for chunk in self._stream_data("/chat/completions", payload):
            choices = chunk.get("choices") or []
            if not choices:
                continue
            delta = choices[0].get("delta") or {}
            if delta.get("content"):
                yield Message.assistant(delta["content"])
            for fragment in delta.get("tool_calls") or []:
                entry = pending.setdefault(
                    fragment.get("index", 0), {"id": "", "name": "", "arguments": ""}
                )
                if fragment.get("id"):
                    entry["id"] = fragment["id"]
                function = fragment.get("function") or {}
                if function.get("name"):
                    entry["name"] = function["name"]
                entry["arguments"] += function.get("arguments") or ""

        if pending:
            yield Message.assistant("", [
                ToolCallRequest(id=e["id"], name=e["name"], arguments=e["arguments"] or "{}")
                for _, e in sorted(pending.items())
            ])


def _to_openai(msg: Message) -> dict:
    if msg.role == TOOL:
        return {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
    data: dict[str, Any] = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        data["content"] = msg.content or None
        data["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments},
            }
            for call in msg.tool_calls
        ]
    return data


class AnthropicAdapter(_HTTPAdapter):
    """
    Adapter for Anthropic's Messages API.
    System prompts go to a separate field; tool calls and results are
    content blocks.

    Usage:
        model = AnthropicAdapter(LLMConfig(
            model="claude-sonnet-4-20250514",
            api_key="sk-ant-...",
        ))
        reply = await model.generate(messages)
    """

    provider = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list[Message], tools: Optional[list[ToolDescriptor]]) -> dict:
        system, converted = _to_anthropic(messages)
        payload = {
            "model": self.config.model,
            "messages": converted,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            **self.config.extra,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
        return payload

    async def generate(
        self, messages: list[Message], tools: Optional[list[ToolDescriptor]] = None
    ) -> Message:
        data = await self._post("/messages", self._payload(messages, tools))
        try:
            text = []
            calls = []
            for block in data["content"]:
                if block["type"] == "text":
                    text.append(block["text"])
                elif block["type"] == "tool_use":
                    calls.append(ToolCallRequest(
                        id=block["id"],
                        name=block["name"],
                        arguments=json.dumps(block.get("input") or {}),
                    ))
            return Message.assistant("".join(text), calls)
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(
                f"Unexpected Anthropic response shape: {e!r}", provider=self.provider
            ) from e

    async def stream(
        self, messages: list[Message], tools: Optional[list[ToolDescriptor]] = None
    ) -> AsyncIterator[Message]:
        payload = self._payload(messages, tools)
        payload["stream"] = True

        pending: dict[int, dict[str, str]] = {}
        async for event in self._stream_data("/messages", payload):
            kind = event.get("type")
            if kind == "content_block_start":
                block = event.get("content_block") or {}
                if block.get("type") == "tool_use":
                    pending[event.get("index", 0)] = {
                        "id": block.get("id", ""), "name": block.get("name", ""), "arguments": "",
                    }
            elif kind == "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield Message.assistant(delta["text"])
                elif delta.get("type") == "input_json_delta":
                    entry = pending.get(event.get("index", 0))
                    if entry is not None:
                        entry["arguments"] += delta.get("partial_json", "")
            elif kind == "error":
                error = event.get("error") or {}
                raise InferenceError(
                    f"anthropic stream error: {error.get('type')}: {error.get('message')}",
                    provider=self.provider,
                )

        if pending:
            yield Message.assistant("", [
                ToolCallRequest(id=e["id"], name=e["name"], arguments=e["arguments"] or "{}")
                for _, e in sorted(pending.items())
            ])


def _parse_input(arguments: str) -> Any:
    try:
        return json.loads(arguments) if arguments else {}
    except ValueError:
        logger.warning("Sending unparsable tool arguments as raw text: %r", arguments[:200])
        return {"raw": arguments}


def _to_anthropic(messages: list[Message]) -> tuple[str, list[dict]]:
    """Split out the system prompt and convert the rest to content blocks."""
    system = []
    converted: list[dict] = []

    for msg in messages:
        if msg.role == SYSTEM:
            system.append(msg.content)
        elif msg.role == USER:
            converted.append({"role": "user", "content": msg.content})
        elif msg.role == ASSISTANT:
            blocks: list[dict] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": _parse_input(call.arguments),
                })
            converted.append({"role": "assistant", "content": blocks or msg.content})
        elif msg.role == TOOL:
            result = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
            # Results of one turn share a single user message
            previous = converted[-1] if converted else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(result)
            else:
                converted.append({"role": "user", "content": [result]})

    return "\n\n".join(system), converted
