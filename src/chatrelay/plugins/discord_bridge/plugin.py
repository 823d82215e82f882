"""
Discord adapter for chatrelay

Game chat is posted through a channel webhook so each message shows the
game player's name as its author. Messages typed in the configured Discord
channel are relayed back to the game. Bot and webhook authors are skipped,
which also drops the relay's own webhook posts.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import aiohttp
import discord

from ...core.bridge import PluginSide
from ...core.chunker import split_utf8
from ...models.events import InboundEvent
from ..base import PlatformAdapter


# Discord limits
MAX_MESSAGE_LENGTH = 2000
MAX_USERNAME_LENGTH = 80


@dataclass
class DiscordChatEvent:
    """Message read from the Discord channel"""
    author_name: str
    content: str

    def sender_and_text(self) -> Tuple[str, str]:
        return self.author_name, self.content


class DiscordBridgePlugin(PlatformAdapter):
    """
    Discord platform adapter

    Settings:
        token: Bot token (gateway, needs the message content intent)
        channel_id: Channel to listen to
        webhook_url: Webhook used to post game chat
    """

    platform = "discord"

    def __init__(self, plugin: PluginSide, token: str, channel_id: int, webhook_url: str,
                 logger: Optional[logging.Logger] = None):
        super().__init__(plugin, logger)
        self.token = token
        self.channel_id = int(channel_id)
        self.webhook_url = webhook_url

        self.client: Optional[discord.Client] = None
        self.session: Optional[aiohttp.ClientSession] = None
        self.webhook: Optional[discord.Webhook] = None

    @classmethod
    def from_config(cls, plugin: PluginSide, settings: Dict[str, Any], config_manager) -> 'DiscordBridgePlugin':
        token = config_manager.resolve_secret(settings, 'token')
        webhook_url = config_manager.resolve_secret(settings, 'webhook_url')
        if not token or not webhook_url or not settings.get('channel_id'):
            raise ValueError(f"Discord bridge '{plugin.name}' needs token, channel_id and webhook_url")
        return cls(plugin, token=token, channel_id=settings['channel_id'], webhook_url=webhook_url)

    def _build_client(self) -> discord.Client:
        intents = discord.Intents.default()
        intents.message_content = True
        client = discord.Client(intents=intents)

        @client.event
        async def on_ready():
            self.logger.info(f"Discord bot is ready: {client.user}")

        @client.event
        async def on_message(message: discord.Message):
            self.handle_message(message)

        return client

    async def setup(self) -> None:
        self.session = aiohttp.ClientSession()
        self.webhook = discord.Webhook.from_url(self.webhook_url, session=self.session)
        self.client = self._build_client()

    async def teardown(self) -> None:
        if self.client is not None and not self.client.is_closed():
            await self.client.close()
        if self.session is not None and not self.session.closed:
            await self.session.close()

    async def listen(self) -> None:
        """Run the gateway connection"""
        try:
            await self.client.start(self.token)
        except asyncio.CancelledError:
            raise
        except discord.LoginFailure as e:
            self.logger.error(f"Discord login failed: {e}")
        except Exception as e:
            self.logger.error(f"Discord gateway stopped: {e}", exc_info=True)

    def handle_message(self, message: discord.Message) -> bool:
        """
        Relay one gateway message to the game if it belongs to the bridge.

        Returns:
            True if the message was queued for the game
        """
        if message.channel.id != self.channel_id:
            return False

        # Skip bots and webhooks, including our own relayed posts
        if message.author.bot or message.webhook_id is not None:
            return False

        if not message.content:
            return False

        return self.submit(DiscordChatEvent(
            author_name=message.author.display_name,
            content=message.content,
        ))

    async def deliver(self, event: InboundEvent) -> None:
        """Post game chat through the webhook"""
        if not event.text:
            return

        username = event.display_name[:MAX_USERNAME_LENGTH]
        content = discord.utils.escape_markdown(event.text)

        for part in split_utf8(content, MAX_MESSAGE_LENGTH):
            await self.webhook.send(
                content=part,
                username=username,
                allowed_mentions=discord.AllowedMentions.none(),
            )
