"""
chatrelay

Relays chat between a game session and auxiliary messaging platforms
(Discord, Matrix) through bidirectional bridges.
"""

__version__ = "0.3.0"
