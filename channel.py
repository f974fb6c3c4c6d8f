"""Bounded FIFO channel between the command producer and the dispatcher."""

import asyncio
from typing import AsyncIterator, Optional

from exceptions import ChannelClosedError
from models import Command


class _Closed:
    def __init__(self, error: Optional[BaseException] = None):
        self.error = error


class CommandChannel:
    """Single-producer, single-consumer command queue.

    ``send`` suspends while ``maxsize`` commands are waiting. Iterating over
    the channel yields commands in the order they were sent and stops once
    the producer has called ``close`` and every queued command was consumed.
    If the producer calls ``abort`` instead, the consumer gets
    ``ChannelClosedError``. Closing never waits for room in the queue.
    """

    def __init__(self, maxsize: int = 16):
        if maxsize < 1:
            raise ValueError("Channel capacity must be at least 1")
        # Capacity is enforced by the semaphore; the queue itself is unbounded
        # so the close marker can always be appended.
        self._slots = asyncio.Semaphore(maxsize)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def send(self, command: Command) -> None:
        if self._closed:
            raise ChannelClosedError("Cannot send on a closed command channel")
        await self._slots.acquire()
        self._queue.put_nowait(command)

    def close(self) -> None:
        """Signal that no more commands will be sent."""
        self._finish(_Closed())

    def abort(self, error: BaseException) -> None:
        """Signal that the producer failed before sending every command."""
        self._finish(_Closed(error))

    def _finish(self, marker: _Closed) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(marker)

    async def receive(self) -> Optional[Command]:
        """Get the next command, or None once the channel is drained and closed."""
        item = await self._queue.get()
        if isinstance(item, _Closed):
            # Put the marker back so repeated receives see the same outcome
            self._queue.put_nowait(item)
            if item.error is not None:
                raise ChannelClosedError(
                    f"Command channel closed before completion: {item.error}"
                ) from item.error
            return None
        self._slots.release()
        return item

    def __aiter__(self) -> AsyncIterator[Command]:
        return self

    async def __anext__(self) -> Command:
        command = await self.receive()
        if command is None:
            raise StopAsyncIteration
        return command
