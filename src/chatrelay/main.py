"""
chatrelay Main Application Entry Point

Builds the configured bridges, links them, and runs the platform adapters
and the consumer scheduler until a shutdown signal arrives. Game clients
embed RelayApplication and feed it through ``attach_session`` and
``notify``.
"""

import asyncio
import signal
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .core.bridge import Bridge, DeliveryMode
from .core.config import ConfigurationManager
from .core.consumer import ConsumerLoop
from .core.directory import IdentityDirectory
from .core.logging import get_logger, get_structured_logger, initialize_logging
from .core.producer import ProducerPath
from .core.scheduler import BridgeScheduler
from .models.events import ChatNotification, GameSession, Identity
from .plugins.base import PlatformAdapter
from .plugins.discord_bridge import DiscordBridgePlugin
from .plugins.health_check import HealthCheckServer, KeepaliveMonitor
from .plugins.matrix_bridge import MatrixBridgePlugin


PLATFORM_ADAPTERS = {
    'discord': DiscordBridgePlugin,
    'matrix': MatrixBridgePlugin,
}


@dataclass
class BridgeRuntime:
    """Everything wired for one configured bridge"""
    name: str
    bridge: Bridge
    producer: ProducerPath
    consumer: ConsumerLoop
    adapter: Optional[PlatformAdapter] = None


class RelayApplication:
    """Main chatrelay application"""

    def __init__(self, config_manager: Optional[ConfigurationManager] = None):
        self.config_manager = config_manager
        self.logger = None
        self.events = None

        self.directory = IdentityDirectory()
        self.scheduler: Optional[BridgeScheduler] = None
        self.runtimes: Dict[str, BridgeRuntime] = {}
        self.sessions: List[GameSession] = []

        self.keepalives: Optional[KeepaliveMonitor] = None
        self.health_server: Optional[HealthCheckServer] = None

        self.running = False
        self.shutdown_event = asyncio.Event()

    def initialize(self, with_adapters: bool = True) -> None:
        """Load configuration, set up logging and wire every bridge"""
        if self.config_manager is None:
            self.config_manager = ConfigurationManager()
            self.config_manager.load_config()

        initialize_logging(self.config_manager.config)
        self.logger = get_logger('main')
        self.events = get_structured_logger('events')

        self.scheduler = BridgeScheduler(poll_interval=self.config_manager.get_poll_interval())
        self._build_bridges(with_adapters)
        self._link_bridges()

        if self.config_manager.is_health_enabled():
            self.keepalives = KeepaliveMonitor(
                timeout=self.config_manager.get('health.keepalive_timeout', 15)
            )
            self.health_server = HealthCheckServer(
                self.keepalives,
                host=self.config_manager.get('health.host', '0.0.0.0'),
                port=self.config_manager.get('health.port', 8080),
            )

        self.logger.info(f"Initialized {len(self.runtimes)} bridge(s)")

    def _build_bridges(self, with_adapters: bool) -> None:
        chunk_limit = self.config_manager.get_chunk_limit()
        dedupe = self.config_manager.is_dedupe_enabled()

        for bridge_config in self.config_manager.get_bridge_configs():
            name = bridge_config['name']
            platform = bridge_config['platform']
            mode = bridge_config.get('mode')

            bridge = Bridge(
                ignore_list=bridge_config.get('ignore', []),
                mode=DeliveryMode.single(mode) if mode else DeliveryMode.all(),
                name=name,
            )
            runtime = BridgeRuntime(
                name=name,
                bridge=bridge,
                producer=ProducerPath(bridge.client, self.directory, dedupe=dedupe),
                consumer=ConsumerLoop(bridge.client, chunk_limit=chunk_limit),
            )

            if with_adapters:
                adapter_class = PLATFORM_ADAPTERS[platform]
                runtime.adapter = adapter_class.from_config(
                    bridge.plugin, bridge_config[platform], self.config_manager
                )

            self.scheduler.register(runtime.consumer)
            self.runtimes[name] = runtime
            self.logger.debug(f"Built {platform} bridge {bridge!r}")

    def _link_bridges(self) -> None:
        for first, second in self.config_manager.get_link_pairs():
            self.runtimes[first].bridge.link(self.runtimes[second].bridge)

    def attach_session(self, session: GameSession, bridges: Optional[Iterable[str]] = None) -> None:
        """
        Register a local game session with some or all bridges.

        The session's own account is also added to the identity directory.
        """
        if session.identity.id is not None:
            self.directory.add(session.identity)
        self.sessions.append(session)

        for runtime in self._select(bridges):
            runtime.consumer.add_session(session)
        self.events.info("session_attached", session=session.identity.name)

    def detach_session(self, session: GameSession) -> None:
        for runtime in self.runtimes.values():
            runtime.consumer.remove_session(session)
        if session in self.sessions:
            self.sessions.remove(session)
        if self.keepalives is not None:
            self.keepalives.forget(session.identity.name)
        self.events.info("session_detached", session=session.identity.name)

    def learn_identity(self, identity: Identity) -> None:
        """Record a player seen by a game session"""
        self.directory.add(identity)

    def forget_identity(self, identity: Identity) -> None:
        self.directory.remove(identity.id)

    def notify(self, notification: ChatNotification, bridges: Optional[Iterable[str]] = None) -> int:
        """
        Pass one observed chat line to the producer path of each bridge.

        Returns:
            Number of bridges the line was queued for
        """
        queued = 0
        for runtime in self._select(bridges):
            if runtime.producer.handle(notification) is not None:
                queued += 1
        return queued

    def notify_batch(self, notifications: Iterable[ChatNotification]) -> int:
        """Pass one host tick's worth of chat lines, deduplicated when enabled"""
        batch = list(notifications)
        return sum(runtime.producer.run_step(batch) for runtime in self.runtimes.values())

    def record_keepalive(self, session_name: str) -> None:
        if self.keepalives is not None:
            self.keepalives.record(session_name)

    def _select(self, names: Optional[Iterable[str]]) -> List[BridgeRuntime]:
        if names is None:
            return list(self.runtimes.values())
        return [self.runtimes[name] for name in names]

    async def start_services(self) -> None:
        self.running = True
        if self.health_server is not None:
            await self.health_server.start()

        for runtime in self.runtimes.values():
            if runtime.adapter is None:
                continue
            try:
                await runtime.adapter.start()
            except Exception as e:
                self.logger.error(f"Failed to start adapter for bridge '{runtime.name}': {e}",
                                  exc_info=True)

        await self.scheduler.start()

    async def stop_services(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()

        for runtime in self.runtimes.values():
            if runtime.adapter is not None and runtime.adapter.running:
                await runtime.adapter.stop()

        if self.health_server is not None:
            await self.health_server.stop()

    async def start(self) -> None:
        """Start the application and run until shutdown is requested"""
        if self.scheduler is None:
            self.initialize()

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            await self.start_services()
            self.logger.info("chatrelay is now running")
            await self.shutdown_event.wait()
            self.logger.info("Shutdown signal received")
        except Exception as e:
            self.logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.shutdown()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}")
        self.shutdown_event.set()

    async def shutdown(self) -> None:
        if not self.running:
            return

        self.logger.info("Shutting down chatrelay...")
        self.running = False

        try:
            await self.stop_services()
        except Exception as e:
            self.logger.error(f"Error during shutdown: {e}")

        for runtime in self.runtimes.values():
            runtime.bridge.close()

        self.logger.info("chatrelay shutdown complete")

    def get_system_status(self) -> Dict[str, Any]:
        return {
            'running': self.running,
            'sessions': [s.identity.name for s in self.sessions],
            'known_identities': len(self.directory),
            'scheduler': self.scheduler.get_status() if self.scheduler else None,
            'health': self.keepalives.snapshot() if self.keepalives else None,
            'bridges': {
                name: {
                    'mode': str(runtime.bridge.client.mode),
                    'links': len(runtime.bridge.client.links),
                    'producer': dict(runtime.producer.stats),
                    'consumer': dict(runtime.consumer.stats),
                    'adapter': runtime.adapter.get_status() if runtime.adapter else None,
                }
                for name, runtime in self.runtimes.items()
            },
        }


async def run() -> None:
    app = RelayApplication()
    try:
        await app.start()
    except KeyboardInterrupt:
        print("\nShutdown requested by user")


def main():
    """Console entry point"""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nApplication interrupted")
        sys.exit(0)
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
