"""
Event data models for chatrelay

Defines the normalized shapes that flow through a bridge:
- Identity: who said something on the game side
- ChatNotification: raw chat line observed from a game session
- InboundEvent: game -> platform
- OutboundEvent: platform -> game
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable
import uuid


SERVER_NAME = "Server"
UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class Identity:
    """Game account identity"""
    name: str
    id: Optional[uuid.UUID] = None

    @classmethod
    def unknown(cls, sender_id: uuid.UUID) -> 'Identity':
        """Identity for an id that is not (yet) known to the host"""
        return cls(name=UNKNOWN_NAME, id=sender_id)

    def __str__(self) -> str:
        return self.name


@dataclass
class ChatNotification:
    """
    Chat line observed by a game session.

    ``observer`` is the local identity of the session that saw the line; it
    is only consulted in single-target delivery mode.
    """
    text: str
    sender_id: Optional[uuid.UUID] = None
    sender_name: Optional[str] = None
    observer: Optional[Identity] = None


@dataclass
class InboundEvent:
    """Message flowing from the game session toward a platform"""
    identity: Optional[Identity]
    text: str
    sender_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Name a platform should show as the author"""
        if self.sender_name:
            return self.sender_name
        if self.identity is not None:
            return self.identity.name
        return SERVER_NAME

    @property
    def is_server_message(self) -> bool:
        return self.identity is None


@runtime_checkable
class PlatformEvent(Protocol):
    """Anything a platform adapter can hand to the bridge"""

    def sender_and_text(self) -> Tuple[str, str]: ...


@dataclass
class OutboundEvent:
    """Message flowing from a platform toward the game session"""
    sender_name: str
    text: str

    def sender_and_text(self) -> Tuple[str, str]:
        return self.sender_name, self.text

    @classmethod
    def from_platform(cls, event: PlatformEvent) -> 'OutboundEvent':
        """Normalize a platform-specific event"""
        if isinstance(event, OutboundEvent):
            return event
        sender_name, text = event.sender_and_text()
        return cls(sender_name=sender_name, text=text)


@runtime_checkable
class GameSession(Protocol):
    """
    Game-session collaborator as seen by the bridge.

    ``send_chat`` is fire-and-forget; delivery errors are the session's
    concern.
    """

    identity: Identity

    def send_chat(self, text: str) -> None: ...
