"""
Matrix Bridge Plugin

Application service bridge: game players appear in the Matrix room as
puppet users, and room messages are relayed back to the game.
"""

from .client import MatrixClient, MatrixError
from .plugin import MatrixBridgePlugin, MatrixChatEvent

__all__ = ["MatrixBridgePlugin", "MatrixChatEvent", "MatrixClient", "MatrixError"]
