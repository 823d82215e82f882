"""
Base class for platform adapters

An adapter owns the plugin side of one bridge. It runs two long-lived
tasks: one relays game chat (InboundEvent) to the platform, the other
reads the platform's own network and submits messages for the game.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.bridge import PluginSide
from ..core.channel import RecvError, SendError
from ..core.logging import get_logger
from ..models.events import InboundEvent, PlatformEvent


class PlatformAdapter(ABC):
    """
    Abstract base class for platform adapters.

    Subclasses implement:
    - ``deliver``: send one game chat event to the platform
    - ``listen``: read the platform network until stopped, calling
      ``submit`` for every user message
    """

    platform: str = "unknown"

    def __init__(self, plugin: PluginSide, logger: Optional[logging.Logger] = None):
        self.plugin = plugin
        self.logger = logger or get_logger(f'{self.platform}.{plugin.name}')
        self.running = False
        self._tasks: List[asyncio.Task] = []

        self.stats = {
            'relayed_to_platform': 0,
            'relayed_to_game': 0,
            'delivery_errors': 0,
            'submit_errors': 0,
        }

    @abstractmethod
    async def deliver(self, event: InboundEvent) -> None:
        """Send one game chat event to the platform"""
        pass

    @abstractmethod
    async def listen(self) -> None:
        """Read platform messages until cancelled"""
        pass

    async def setup(self) -> None:
        """Open platform resources before the tasks start"""
        pass

    async def teardown(self) -> None:
        """Release platform resources after the tasks stop"""
        pass

    async def relay_game_events(self) -> None:
        """
        Relay game chat to the platform until the bridge disconnects.

        A failed delivery is logged and dropped; there is no retry queue.
        """
        while True:
            try:
                event = await self.plugin.recv()
            except RecvError:
                self.logger.error(f"{self.platform} game chat listener closed")
                return

            try:
                await self.deliver(event)
                self.stats['relayed_to_platform'] += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.stats['delivery_errors'] += 1
                self.logger.error(f"Unable to send message to {self.platform}: {e}")

    def submit(self, event: PlatformEvent) -> bool:
        """
        Queue a platform message for the game session.

        Returns:
            True if queued, False if the bridge is gone
        """
        try:
            self.plugin.send(event)
        except SendError as e:
            self.stats['submit_errors'] += 1
            self.logger.error(f"{self.platform} unable to send message to game session: {e}")
            return False

        self.stats['relayed_to_game'] += 1
        return True

    async def start(self) -> None:
        """Open resources and start the adapter tasks"""
        if self.running:
            return
        await self.setup()
        self._tasks = [
            asyncio.create_task(self.relay_game_events(), name=f"{self.platform}-relay"),
            asyncio.create_task(self.listen(), name=f"{self.platform}-listen"),
        ]
        self.running = True
        self.logger.info(f"{self.platform} adapter started for bridge '{self.plugin.name}'")

    async def stop(self) -> None:
        """Cancel the adapter tasks and release resources"""
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.teardown()
        self.running = False
        self.logger.info(f"{self.platform} adapter stopped for bridge '{self.plugin.name}'")

    async def wait(self) -> None:
        """Wait until every adapter task has ended"""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def get_status(self) -> Dict[str, Any]:
        return {
            'platform': self.platform,
            'bridge': self.plugin.name,
            'running': self.running,
            'stats': dict(self.stats),
        }
