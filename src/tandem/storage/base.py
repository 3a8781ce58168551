# base.py - Checkpoint Store Protocol & built-in stores
#
# Provides:
#   - CheckpointStore: Protocol that any storage backend must implement
#   - InMemoryCheckpointStore: dict-based store (dev/prototyping/tests)
#   - FileCheckpointStore: one file per checkpoint id in a directory
#   - RunCheckpoint + encode_checkpoint / decode_checkpoint

import asyncio
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError
from pydantic_core import PydanticSerializationError

from ..core.errors import CheckpointError
from ..core.models import TranscriptEntry

CHECKPOINT_VERSION = 1


@runtime_checkable
class CheckpointStore(Protocol):
    """
    Protocol for checkpoint persistence backends.

    A byte-blob key-value contract. The Runner writes under a caller-chosen
    checkpoint id and overwrites on every save (last write wins).

    Developer-provided (examples):
        RedisStore, PostgresStore, S3Store

    Usage:
        store = InMemoryCheckpointStore()
        runner = Runner(agent=..., store=store)
    """

    async def get(self, checkpoint_id: str) -> Optional[bytes]:
        """Return the stored blob, or None if not found."""
        ...

    async def set(self, checkpoint_id: str, data: bytes) -> None:
        """Store a blob. Overwrites if exists."""
        ...


class InMemoryCheckpointStore:
    """
    Dict-based checkpoint store. Zero config, dies with process.

    Safe to share between runners on different threads.
    """

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    async def get(self, checkpoint_id: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(checkpoint_id)

    async def set(self, checkpoint_id: str, data: bytes) -> None:
        with self._lock:
            self._data[checkpoint_id] = bytes(data)

    async def delete(self, checkpoint_id: str) -> None:
        with self._lock:
            self._data.pop(checkpoint_id, None)

    async def list_checkpoints(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())


class FileCheckpointStore:
    """
    Stores each checkpoint as `<directory>/<id>.ckpt`.

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a partial checkpoint.
    """

    SUFFIX = ".ckpt"

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, checkpoint_id: str) -> Path:
        if not checkpoint_id or any(c in checkpoint_id for c in "/\\") or checkpoint_id.startswith("."):
            raise ValueError(f"Invalid checkpoint id: {checkpoint_id!r}")
        return self.directory / f"{checkpoint_id}{self.SUFFIX}"

    async def get(self, checkpoint_id: str) -> Optional[bytes]:
        path = self._path(checkpoint_id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None

    async def set(self, checkpoint_id: str, data: bytes) -> None:
        path = self._path(checkpoint_id)
        await asyncio.to_thread(self._write, path, data)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)

    async def delete(self, checkpoint_id: str) -> None:
        await asyncio.to_thread(self._path(checkpoint_id).unlink, missing_ok=True)

    async def list_checkpoints(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob(f"*{self.SUFFIX}"))


# ---- Serialization ----

class RunCheckpoint(BaseModel):
    """
    Snapshot of a run.

    positions is the resumption cursor: agent path ("Root/Child") ->
    that composite's control position (index, iteration, completed
    branches, transfer target).
    """
    version: int = CHECKPOINT_VERSION
    agent: str
    transcript: list[dict[str, Any]] = Field(default_factory=list)
    state: dict[str, Any] = Field(default_factory=dict)
    positions: dict[str, dict[str, Any]] = Field(default_factory=dict)
    completed: bool = False
    saved_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    def entries(self) -> list[TranscriptEntry]:
        return [TranscriptEntry.from_dict(item) for item in self.transcript]


def encode_checkpoint(checkpoint: RunCheckpoint) -> bytes:
    try:
        return checkpoint.model_dump_json().encode("utf-8")
    except PydanticSerializationError as e:
        raise CheckpointError(
            f"Session state is not JSON-serializable: {e}"
        ) from e


def decode_checkpoint(data: bytes) -> RunCheckpoint:
    try:
        checkpoint = RunCheckpoint.model_validate_json(data)
    except ValidationError as e:
        raise CheckpointError(f"Corrupt checkpoint: {e}") from e
    if checkpoint.version != CHECKPOINT_VERSION:
        raise CheckpointError(
            f"Unsupported checkpoint version {checkpoint.version} "
            f"(expected {CHECKPOINT_VERSION})"
        )
    try:
        checkpoint.entries()
    except (KeyError, TypeError, ValueError) as e:
        raise CheckpointError(f"Corrupt checkpoint transcript: {e}") from e
    return checkpoint
