"""
Consumer loop: platform adapter -> game session

Drains the bridge's outbound queue. Each platform message is first fanned
out to every linked bridge, then chunked and sent through one local game
session: the first one the bridge's delivery mode allows.
"""

import asyncio
from typing import List, Optional, Sequence

from ..models.events import GameSession, Identity, InboundEvent, OutboundEvent
from .bridge import ClientSide
from .channel import RecvError, SendError
from .chunker import MAX_CHAT_BYTES, chunk_message
from .logging import get_logger


class ConsumerLoop:
    """
    Drain cycle for one bridge's outbound queue.

    Two ways to schedule it:
    - periodic poll: call ``run_step()`` whenever ``should_run()`` is true
    - dedicated task: ``await run()``
    Both drain every buffered event before returning to the scheduler.
    """

    def __init__(self, client: ClientSide, sessions: Sequence[GameSession] = (),
                 chunk_limit: int = MAX_CHAT_BYTES):
        self.client = client
        self.sessions: List[GameSession] = list(sessions)
        self.chunk_limit = chunk_limit
        self.logger = get_logger(f'consumer.{client.name}')

        self.stats = {
            'events_processed': 0,
            'fragments_sent': 0,
            'links_forwarded': 0,
            'link_failures': 0,
            'delivery_errors': 0,
            'events_dropped': 0,
        }

    def add_session(self, session: GameSession) -> None:
        self.sessions.append(session)

    def remove_session(self, session: GameSession) -> None:
        if session in self.sessions:
            self.sessions.remove(session)

    def should_run(self) -> bool:
        """Scheduling guard: run only when platform events are pending"""
        return self.client.has_pending()

    def run_step(self) -> int:
        """
        Process every event currently buffered, in FIFO order.

        Returns:
            Number of events processed
        """
        processed = 0
        for event in self.client.rx.try_iter():
            self._process(event)
            processed += 1
        return processed

    async def run(self) -> None:
        """Process events as they arrive until the outbound channel disconnects"""
        self.logger.info(f"Consumer loop started for bridge '{self.client.name}'")
        while True:
            try:
                event = await self.client.rx.recv()
            except RecvError:
                self.logger.error(f"Platform listener closed for bridge '{self.client.name}'")
                return
            except asyncio.CancelledError:
                self.logger.info(f"Consumer loop cancelled for bridge '{self.client.name}'")
                raise

            self._process(event)
            self.run_step()

    def _eligible_sessions(self) -> List[GameSession]:
        mode = self.client.mode
        return [s for s in self.sessions if mode.permits(s.identity.name)]

    def _fan_out_identity(self) -> Optional[Identity]:
        """Local account shown as the speaker on linked platforms, in any mode"""
        for session in self.sessions:
            if self.client.mode.permits(session.identity.name):
                return session.identity
        return self.sessions[0].identity if self.sessions else None

    def _process(self, event: OutboundEvent) -> None:
        self.stats['events_processed'] += 1

        # Linked platforms see the local game account as the speaker
        self._fan_out(event, self._fan_out_identity())

        sessions = self._eligible_sessions()
        if not sessions:
            self.stats['events_dropped'] += 1
            self.logger.warning(
                f"No game session available for bridge '{self.client.name}' "
                f"(mode {self.client.mode}), dropping message from {event.sender_name}"
            )
            return

        # One session speaks for the whole fleet
        session = sessions[0]
        for fragment in chunk_message(event.sender_name, event.text, self.chunk_limit):
            try:
                session.send_chat(fragment)
                self.stats['fragments_sent'] += 1
            except Exception as e:
                self.stats['delivery_errors'] += 1
                self.logger.error(
                    f"Game session {session.identity.name} failed to send chat: {e}",
                    exc_info=True
                )

    def _fan_out(self, event: OutboundEvent, identity: Optional[Identity]) -> None:
        """Forward a platform message to every linked bridge"""
        links = self.client.links.snapshot()
        if not links:
            return

        text = f"{event.sender_name}: {event.text}"
        for link in links:
            forwarded = InboundEvent(
                identity=identity,
                text=text,
                sender_name=identity.name if identity is not None else None,
            )
            try:
                link.send(forwarded)
                self.stats['links_forwarded'] += 1
            except SendError as e:
                self.stats['link_failures'] += 1
                self.logger.error(f"Unable to send message to linked plugin: {e}")
