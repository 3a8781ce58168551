# stream.py - Streamed model output
#
# A MessageStream wraps the chunk iterator returned by ChatModel.stream().
# It is handed to exactly one consumer (through an Event) while the
# reasoning loop still needs the merged message. Chunks are buffered, so
# whichever side pulls first drives the model stream and the other side
# replays from the buffer.

import asyncio
import logging
from typing import AsyncIterator, Optional

from .models import Message, merge_chunks

logger = logging.getLogger(__name__)


class StreamConsumedError(RuntimeError):
    """Raised when a MessageStream is iterated a second time."""


class MessageStream:
    """
    Forward-only sequence of message chunks for one consumer.

    Usage:
        async for chunk in event.stream:
            print(chunk.content, end="")

    close() ends the consumer's view early. The runtime keeps draining the
    model stream to complete the turn.
    """

    def __init__(self, source: AsyncIterator[Message]):
        self._source = source
        self._chunks: list[Message] = []
        self._exhausted = False
        self._error: Optional[BaseException] = None
        self._claimed = False
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[Message]:
        if self._claimed:
            raise StreamConsumedError("MessageStream can only be iterated once.")
        self._claimed = True
        return self._reader()

    async def _reader(self) -> AsyncIterator[Message]:
        index = 0
        while not self._closed:
            if index >= len(self._chunks) and not await self._fill(index):
                return
            yield self._chunks[index]
            index += 1

    async def _fill(self, index: int) -> bool:
        """Pull from the source until chunk `index` exists. False at end of stream."""
        async with self._lock:
            while len(self._chunks) <= index:
                if self._error is not None:
                    raise self._error
                if self._exhausted:
                    return False
                try:
                    chunk = await self._source.__anext__()
                except StopAsyncIteration:
                    self._exhausted = True
                    return False
                except Exception as e:
                    self._error = e
                    raise
                self._chunks.append(chunk)
            return True

    async def collect(self) -> Message:
        """Drain the remaining chunks and return the merged message."""
        while await self._fill(len(self._chunks)):
            pass
        return merge_chunks(self._chunks)

    def close(self) -> None:
        self._closed = True

    async def aclose(self) -> None:
        """Close the consumer view and the underlying model stream."""
        self._closed = True
        closer = getattr(self._source, "aclose", None)
        if closer is not None and not self._exhausted:
            await closer()
            self._exhausted = True
            logger.debug("Model stream closed after %d chunks", len(self._chunks))
