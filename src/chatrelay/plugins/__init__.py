"""
Platform adapters for chatrelay

Each adapter owns the plugin side of one bridge:
- discord: gateway for reading, webhook for posting
- matrix: application service with one puppet user per game player
"""

from .base import PlatformAdapter

__all__ = ["PlatformAdapter"]
