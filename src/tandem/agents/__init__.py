# __init__.py - Agents package
from .base import BaseAgent
from .chat_model import ChatModelAgent
from .transfer import TransferAgent, AgentRegistry
from .workflow import SequentialAgent, ParallelAgent, LoopAgent

__all__ = [
    "BaseAgent", "ChatModelAgent", "TransferAgent", "AgentRegistry",
    "SequentialAgent", "ParallelAgent", "LoopAgent",
]
