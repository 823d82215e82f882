"""
Periodic host scheduler for chatrelay

Runs registered consumer loops on a fixed interval, the way a game client
tick would: each pass runs only the consumers that have pending work, and
each of those drains its queue completely.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .consumer import ConsumerLoop
from .logging import get_logger


class BridgeScheduler:
    """
    Poll-based scheduler for consumer loops.

    Usage:
        scheduler = BridgeScheduler(poll_interval=0.05)
        scheduler.register(consumer)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, poll_interval: float = 0.05):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self.consumers: List[ConsumerLoop] = []
        self.logger = get_logger('scheduler')

        self._task: Optional[asyncio.Task] = None
        self._shutdown = False

        self.tick_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None
        self.last_tick: Optional[datetime] = None

    def register(self, consumer: ConsumerLoop) -> None:
        self.consumers.append(consumer)
        self.logger.debug(f"Registered consumer for bridge '{consumer.client.name}'")

    def unregister(self, consumer: ConsumerLoop) -> None:
        if consumer in self.consumers:
            self.consumers.remove(consumer)

    def tick(self) -> int:
        """
        Run one scheduling pass.

        Returns:
            Number of events processed across all consumers
        """
        processed = 0
        for consumer in list(self.consumers):
            if not consumer.should_run():
                continue
            try:
                processed += consumer.run_step()
            except Exception as e:
                # One broken bridge must not stall the others
                self.error_count += 1
                self.last_error = str(e)
                self.logger.error(
                    f"Error in consumer for bridge '{consumer.client.name}': {e}",
                    exc_info=True
                )

        self.tick_count += 1
        self.last_tick = datetime.now(timezone.utc)
        return processed

    async def _run(self):
        self.logger.info(f"Scheduler started (interval {self.poll_interval}s)")
        while not self._shutdown:
            try:
                self.tick()
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                self.logger.info("Scheduler cancelled")
                break
        self.logger.debug("Scheduler loop ended")

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._shutdown = False
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._shutdown = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_status(self) -> Dict[str, Any]:
        return {
            'running': self.running,
            'poll_interval': self.poll_interval,
            'consumers': [c.client.name for c in self.consumers],
            'tick_count': self.tick_count,
            'error_count': self.error_count,
            'last_error': self.last_error,
            'last_tick': self.last_tick.isoformat() if self.last_tick else None,
        }
