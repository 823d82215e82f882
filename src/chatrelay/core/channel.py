"""
Unbounded FIFO channel for chatrelay

Multi-producer channel with explicit sender/receiver handles. Producers
never block; consumers either poll (``try_recv``/``try_iter``) or await
``recv``. The channel is guarded by a thread lock so handles can be shared
between the host thread and asyncio tasks running elsewhere.

Python has no deterministic destructor, so a handle is released by calling
``close()`` (or leaving its ``with`` block). When the last receiver is
closed, sends fail; when the last sender is closed, receivers report
disconnection once the buffer is drained.
"""

import asyncio
import threading
from collections import deque
from typing import Deque, Generic, Iterator, List, Tuple, TypeVar


T = TypeVar('T')


class ChannelClosedError(Exception):
    """The other half of the channel is gone"""
    pass


class SendError(ChannelClosedError):
    """Send attempted with no receiver left"""

    def __init__(self, item, message: str = "channel has no receivers"):
        super().__init__(message)
        self.item = item


class RecvError(ChannelClosedError):
    """Receive attempted on an empty channel with no sender left"""
    pass


class ChannelEmpty(Exception):
    """Non-blocking receive found nothing buffered"""
    pass


class _Channel(Generic[T]):
    """Shared state behind a sender/receiver pair"""

    def __init__(self):
        self.lock = threading.Lock()
        self.items: Deque[T] = deque()
        self.senders = 0
        self.receivers = 0
        self.waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def wake_all(self):
        """Wake every suspended receiver. Caller holds the lock."""
        waiters, self.waiters = self.waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future)
            except RuntimeError:
                # Loop already closed; nobody is left to wake
                pass


def _resolve(future: asyncio.Future):
    if not future.done():
        future.set_result(None)


class Sender(Generic[T]):
    """Producer handle"""

    def __init__(self, channel: _Channel[T]):
        self._channel = channel
        self._closed = False
        with channel.lock:
            channel.senders += 1

    def send(self, item: T) -> None:
        """
        Append an item to the channel.

        Raises:
            SendError: If every receiver is closed or this handle is closed
        """
        channel = self._channel
        with channel.lock:
            if self._closed:
                raise SendError(item, "sender handle is closed")
            if channel.receivers == 0:
                raise SendError(item)
            channel.items.append(item)
            channel.wake_all()

    def clone(self) -> 'Sender[T]':
        """Create another producer handle for the same channel"""
        if self._closed:
            raise ChannelClosedError("cannot clone a closed sender")
        return Sender(self._channel)

    def close(self) -> None:
        channel = self._channel
        with channel.lock:
            if self._closed:
                return
            self._closed = True
            channel.senders -= 1
            if channel.senders == 0:
                channel.wake_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def is_disconnected(self) -> bool:
        """True when no receiver is left to read what is sent"""
        with self._channel.lock:
            return self._channel.receivers == 0

    def same_channel(self, other: 'Sender') -> bool:
        return self._channel is other._channel

    def __enter__(self) -> 'Sender[T]':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Receiver(Generic[T]):
    """Consumer handle"""

    def __init__(self, channel: _Channel[T]):
        self._channel = channel
        self._closed = False
        with channel.lock:
            channel.receivers += 1

    def try_recv(self) -> T:
        """
        Take the oldest buffered item without waiting.

        Raises:
            ChannelEmpty: Nothing is buffered but senders remain
            RecvError: Nothing is buffered and no sender remains
        """
        channel = self._channel
        with channel.lock:
            if self._closed:
                raise RecvError("receiver handle is closed")
            if channel.items:
                return channel.items.popleft()
            if channel.senders == 0:
                raise RecvError("channel has no senders")
        raise ChannelEmpty()

    def try_iter(self) -> Iterator[T]:
        """Yield every item that can be received without waiting"""
        while True:
            try:
                yield self.try_recv()
            except (ChannelEmpty, RecvError):
                return

    async def recv(self) -> T:
        """
        Wait for the next item.

        Raises:
            RecvError: The channel is empty and every sender is closed
        """
        loop = asyncio.get_running_loop()
        channel = self._channel
        while True:
            with channel.lock:
                if self._closed:
                    raise RecvError("receiver handle is closed")
                if channel.items:
                    return channel.items.popleft()
                if channel.senders == 0:
                    raise RecvError("channel has no senders")
                future = loop.create_future()
                channel.waiters.append((loop, future))
            try:
                await future
            finally:
                with channel.lock:
                    channel.waiters = [w for w in channel.waiters if w[1] is not future]

    def is_empty(self) -> bool:
        with self._channel.lock:
            return not self._channel.items

    def __len__(self) -> int:
        with self._channel.lock:
            return len(self._channel.items)

    def is_disconnected(self) -> bool:
        """True when no sender is left"""
        with self._channel.lock:
            return self._channel.senders == 0

    def clone(self) -> 'Receiver[T]':
        if self._closed:
            raise ChannelClosedError("cannot clone a closed receiver")
        return Receiver(self._channel)

    def close(self) -> None:
        channel = self._channel
        with channel.lock:
            if self._closed:
                return
            self._closed = True
            channel.receivers -= 1
            if channel.receivers == 0:
                channel.items.clear()
            channel.wake_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'Receiver[T]':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def unbounded() -> Tuple[Sender, Receiver]:
    """Create an unbounded channel and return its first sender and receiver"""
    channel: _Channel = _Channel()
    return Sender(channel), Receiver(channel)
