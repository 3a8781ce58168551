# __init__.py - Observe package
from .hooks import HookManager

__all__ = ["HookManager"]
