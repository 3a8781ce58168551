# __init__.py - LLM package
from .base import ChatModel, LLMConfig
from .adapters import OpenAIAdapter, AnthropicAdapter

__all__ = ["ChatModel", "LLMConfig", "OpenAIAdapter", "AnthropicAdapter"]
