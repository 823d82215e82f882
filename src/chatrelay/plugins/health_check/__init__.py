"""
Health Check Plugin

Reports per-session keepalive status over HTTP.
"""

from .monitor import KeepaliveMonitor
from .server import HealthCheckServer, create_app

__all__ = ["KeepaliveMonitor", "HealthCheckServer", "create_app"]
