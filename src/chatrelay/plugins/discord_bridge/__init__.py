"""
Discord Bridge Plugin

Relays game chat to a Discord channel through a webhook and relays channel
messages back to the game.
"""

from .plugin import DiscordBridgePlugin, DiscordChatEvent

__all__ = ["DiscordBridgePlugin", "DiscordChatEvent"]
