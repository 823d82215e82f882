"""
Data models for chatrelay

Contains the event shapes exchanged between game sessions, bridges and
platform adapters.
"""

from .events import (
    Identity, ChatNotification, InboundEvent, OutboundEvent,
    PlatformEvent, GameSession, SERVER_NAME, UNKNOWN_NAME
)

__all__ = [
    'Identity', 'ChatNotification', 'InboundEvent', 'OutboundEvent',
    'PlatformEvent', 'GameSession', 'SERVER_NAME', 'UNKNOWN_NAME'
]
