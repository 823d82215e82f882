"""
Matrix adapter for chatrelay

Runs as an application service. Every game player gets a puppet Matrix
user whose localpart is the namespace prefix followed by the player's UUID
(dashes replaced by underscores), so game chat shows up in the room under
the player's own name. Room messages from real Matrix users are relayed
back to the game.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Tuple

import aiohttp

from ...core.bridge import PluginSide
from ...models.events import InboundEvent
from ..base import PlatformAdapter
from .client import MatrixClient, MatrixError


@dataclass
class MatrixChatEvent:
    """Text message read from the Matrix room"""
    sender_name: str
    body: str

    def sender_and_text(self) -> Tuple[str, str]:
        return self.sender_name, self.body


def localpart_of(user_id: str) -> str:
    """``@name:server`` -> ``name``"""
    return user_id.lstrip('@').split(':', 1)[0]


class MatrixBridgePlugin(PlatformAdapter):
    """
    Matrix platform adapter

    Settings:
        homeserver: Homeserver base URL
        as_token: Application service token
        room_id: Room to bridge
        user_prefix: Localpart prefix reserved for puppet users
        bot_name: Optional display name for the appservice bot
    """

    platform = "matrix"

    def __init__(self, plugin: PluginSide, client: MatrixClient, room_id: str,
                 user_prefix: str, bot_name: Optional[str] = None,
                 sync_timeout_ms: int = 30000, retry_delay: float = 5.0,
                 logger: Optional[logging.Logger] = None):
        super().__init__(plugin, logger)
        self.client = client
        self.room_id = room_id
        self.user_prefix = user_prefix
        self.bot_name = bot_name
        self.sync_timeout_ms = sync_timeout_ms
        self.retry_delay = retry_delay

        self.bot_user_id: Optional[str] = None
        self.server_name: Optional[str] = None
        self.since: Optional[str] = None

        # Puppet state, keyed by full user id
        self._registered: Set[str] = set()
        self._joined: Set[str] = set()
        self._display_names: Dict[str, str] = {}

        # Room member display names seen in sync
        self._members: Dict[str, str] = {}

    @classmethod
    def from_config(cls, plugin: PluginSide, settings: Dict[str, Any], config_manager) -> 'MatrixBridgePlugin':
        as_token = config_manager.resolve_secret(settings, 'as_token')
        homeserver = settings.get('homeserver')
        room_id = settings.get('room_id')
        user_prefix = settings.get('user_prefix')
        if not as_token or not homeserver or not room_id or not user_prefix:
            raise ValueError(
                f"Matrix bridge '{plugin.name}' needs homeserver, as_token, room_id and user_prefix"
            )
        return cls(
            plugin,
            client=MatrixClient(homeserver, as_token),
            room_id=room_id,
            user_prefix=user_prefix,
            bot_name=settings.get('bot_name'),
            sync_timeout_ms=int(settings.get('sync_timeout_ms', 30000)),
            retry_delay=float(settings.get('retry_delay', 5.0)),
        )

    async def setup(self) -> None:
        await self.client.open()
        self.bot_user_id = await self.client.whoami()
        self.server_name = self.bot_user_id.split(':', 1)[1]

        if self.bot_name:
            current = await self.client.get_display_name(self.bot_user_id)
            if current != self.bot_name:
                await self.client.set_display_name(self.bot_user_id, self.bot_name)

        await self.client.join_room(self.room_id)
        self.logger.info(f"Matrix appservice {self.bot_user_id} joined {self.room_id}")

    async def teardown(self) -> None:
        await self.client.close()

    def puppet_user_id(self, event: InboundEvent) -> str:
        """Puppet user for the speaker of a game event (nil UUID for Server)"""
        player_id = event.identity.id if event.identity is not None else None
        player_id = player_id or uuid.UUID(int=0)
        localpart = f"{self.user_prefix}{str(player_id).replace('-', '_')}"
        return f"@{localpart}:{self.server_name}"

    def in_namespace(self, user_id: str) -> bool:
        return localpart_of(user_id).startswith(self.user_prefix)

    async def ensure_puppet(self, user_id: str, display_name: str) -> None:
        """Register the puppet, refresh its display name and join the room"""
        if user_id not in self._registered:
            created = await self.client.register_user(localpart_of(user_id))
            if created:
                self.logger.debug(f"Registered puppet {user_id}")
            self._registered.add(user_id)

        if self._display_names.get(user_id) != display_name:
            await self.client.set_display_name(user_id, display_name)
            self._display_names[user_id] = display_name

        if user_id not in self._joined:
            await self.client.join_room(self.room_id, user_id=user_id)
            self._joined.add(user_id)

    async def deliver(self, event: InboundEvent) -> None:
        user_id = self.puppet_user_id(event)
        await self.ensure_puppet(user_id, event.display_name)
        await self.client.send_text(self.room_id, event.text, user_id=user_id)

    def handle_sync(self, response: Dict[str, Any]) -> int:
        """
        Relay text messages from one sync response.

        Returns:
            Number of messages submitted to the game
        """
        room = response.get('rooms', {}).get('join', {}).get(self.room_id)
        if not room:
            return 0

        for event in room.get('state', {}).get('events', []):
            self._track_member(event)

        submitted = 0
        for event in room.get('timeline', {}).get('events', []):
            if event.get('type') == 'm.room.member':
                self._track_member(event)
                continue
            if event.get('type') != 'm.room.message':
                continue

            content = event.get('content', {})
            if content.get('msgtype') != 'm.text' or not content.get('body'):
                continue

            sender = event.get('sender', '')
            if sender == self.bot_user_id or self.in_namespace(sender):
                continue

            sender_name = self._members.get(sender) or localpart_of(sender)
            if self.submit(MatrixChatEvent(sender_name, content['body'])):
                submitted += 1

        return submitted

    def _track_member(self, event: Dict[str, Any]) -> None:
        if event.get('type') != 'm.room.member' or not event.get('state_key'):
            return
        display_name = event.get('content', {}).get('displayname')
        if display_name:
            self._members[event['state_key']] = display_name
        else:
            self._members.pop(event['state_key'], None)

    async def listen(self) -> None:
        """Long-poll /sync until cancelled"""
        sync_filter = {'room': {'rooms': [self.room_id]}}

        while True:
            try:
                if self.since is None:
                    # Initial sync only records the position, old history is not relayed
                    response = await self.client.sync(timeout_ms=0, sync_filter=sync_filter)
                    room = response.get('rooms', {}).get('join', {}).get(self.room_id, {})
                    for event in room.get('state', {}).get('events', []):
                        self._track_member(event)
                else:
                    response = await self.client.sync(
                        since=self.since, timeout_ms=self.sync_timeout_ms, sync_filter=sync_filter
                    )
                    self.handle_sync(response)
                self.since = response.get('next_batch', self.since)
            except asyncio.CancelledError:
                raise
            except (MatrixError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.warning(f"Matrix sync failed, retrying in {self.retry_delay}s: {e}")
                await asyncio.sleep(self.retry_delay)
