# state.py - Session State
#
# The keyed blackboard shared by every agent of one run. Agents read named
# inputs from it (instruction placeholders) and write named outputs to it
# (output_key). Parallel branches write concurrently, so one lock guards
# the whole map.

import threading
from typing import Any, Optional


class SessionState:
    """
    Mapping from string key to arbitrary value. Last writer wins.

    Usage:
        state = SessionState({"topic": "rust"})
        state.set("analysis", "...")
        value, found = state.lookup("analysis")
    """

    def __init__(self, values: Optional[dict[str, Any]] = None):
        self._values: dict[str, Any] = dict(values or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def lookup(self, key: str) -> tuple[Any, bool]:
        """Return (value, found)."""
        with self._lock:
            if key in self._values:
                return self._values[key], True
            return None, False

    def set(self, key: str, value: Any) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("Session state keys must be non-empty strings.")
        with self._lock:
            self._values[key] = value

    def update(self, values: dict[str, Any]) -> None:
        for key, value in values.items():
            self.set(key, value)

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the current values."""
        with self._lock:
            return dict(self._values)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __repr__(self) -> str:
        return f"SessionState({sorted(self.snapshot())})"
