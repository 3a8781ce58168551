# storage - Checkpoint persistence backends
from .base import (
    CheckpointStore,
    InMemoryCheckpointStore,
    FileCheckpointStore,
    RunCheckpoint,
    encode_checkpoint,
    decode_checkpoint,
)

__all__ = [
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "FileCheckpointStore",
    "RunCheckpoint",
    "encode_checkpoint",
    "decode_checkpoint",
]
