"""
Unit tests for the unbounded FIFO channel

Tests ordering, handle closing and async wakeups, including a producer
running on another thread.
"""

import asyncio
import threading

import pytest

from chatrelay.core.channel import (
    ChannelClosedError, ChannelEmpty, RecvError, SendError, unbounded
)


class TestSendReceive:
    """Test basic channel operations"""

    def test_fifo_order(self):
        tx, rx = unbounded()
        for i in range(5):
            tx.send(i)
        assert [rx.try_recv() for _ in range(5)] == [0, 1, 2, 3, 4]

    def test_try_recv_empty(self):
        tx, rx = unbounded()
        with pytest.raises(ChannelEmpty):
            rx.try_recv()

    def test_is_empty_and_len(self):
        tx, rx = unbounded()
        assert rx.is_empty()
        tx.send("a")
        tx.send("b")
        assert not rx.is_empty()
        assert len(rx) == 2

    def test_try_iter_drains_everything(self):
        tx, rx = unbounded()
        for i in range(3):
            tx.send(i)
        assert list(rx.try_iter()) == [0, 1, 2]
        assert rx.is_empty()

    def test_cloned_senders_share_queue(self):
        tx, rx = unbounded()
        other = tx.clone()
        tx.send(1)
        other.send(2)
        assert list(rx.try_iter()) == [1, 2]
        assert tx.same_channel(other)


class TestClosing:
    """Test handle release semantics"""

    def test_send_fails_without_receiver(self):
        tx, rx = unbounded()
        rx.close()
        with pytest.raises(SendError) as exc_info:
            tx.send("lost")
        assert exc_info.value.item == "lost"
        assert tx.is_disconnected()

    def test_send_on_closed_handle_fails(self):
        tx, rx = unbounded()
        tx.close()
        with pytest.raises(SendError):
            tx.send("x")

    def test_buffered_items_survive_last_sender(self):
        tx, rx = unbounded()
        tx.send("kept")
        tx.close()
        assert rx.try_recv() == "kept"
        with pytest.raises(RecvError):
            rx.try_recv()

    def test_disconnect_needs_every_sender_closed(self):
        tx, rx = unbounded()
        clone = tx.clone()
        tx.close()
        assert not rx.is_disconnected()
        with pytest.raises(ChannelEmpty):
            rx.try_recv()
        clone.close()
        assert rx.is_disconnected()

    def test_close_is_idempotent(self):
        tx, rx = unbounded()
        clone = tx.clone()
        tx.close()
        tx.close()
        assert not rx.is_disconnected()
        clone.close()

    def test_last_receiver_close_discards_items(self):
        tx, rx = unbounded()
        tx.send(1)
        other = rx.clone()
        rx.close()
        assert len(other) == 1
        other.close()
        with pytest.raises(SendError):
            tx.send(2)

    def test_clone_closed_sender(self):
        tx, rx = unbounded()
        tx.close()
        with pytest.raises(ChannelClosedError):
            tx.clone()

    def test_context_manager_closes(self):
        tx, rx = unbounded()
        with tx:
            tx.send(1)
        assert tx.closed
        assert rx.is_disconnected()


class TestAsyncReceive:
    """Test awaiting receivers"""

    @pytest.mark.asyncio
    async def test_recv_returns_buffered(self):
        tx, rx = unbounded()
        tx.send("ready")
        assert await rx.recv() == "ready"

    @pytest.mark.asyncio
    async def test_recv_wakes_on_send(self):
        tx, rx = unbounded()
        task = asyncio.create_task(rx.recv())
        await asyncio.sleep(0)
        assert not task.done()

        tx.send("late")
        assert await asyncio.wait_for(task, timeout=1) == "late"

    @pytest.mark.asyncio
    async def test_recv_raises_on_disconnect(self):
        tx, rx = unbounded()
        task = asyncio.create_task(rx.recv())
        await asyncio.sleep(0)

        tx.close()
        with pytest.raises(RecvError):
            await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_recv_from_other_thread(self):
        tx, rx = unbounded()

        def produce():
            for i in range(50):
                tx.send(i)
            tx.close()

        thread = threading.Thread(target=produce)
        thread.start()

        received = []
        while True:
            try:
                received.append(await asyncio.wait_for(rx.recv(), timeout=2))
            except RecvError:
                break
        thread.join()

        assert received == list(range(50))

    @pytest.mark.asyncio
    async def test_cancelled_recv_leaves_no_waiter(self):
        tx, rx = unbounded()
        task = asyncio.create_task(rx.recv())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        tx.send("after")
        assert rx.try_recv() == "after"
