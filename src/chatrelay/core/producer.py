"""
Producer path: game chat -> platform adapter

Resolves who sent each chat notification, drops senders on the ignore
list and queues an InboundEvent for the platform adapter.
"""

from typing import Iterable, Optional

from ..models.events import ChatNotification, Identity, InboundEvent
from .bridge import ClientSide
from .channel import SendError
from .directory import IdentityDirectory
from .filters import DuplicateFilter, is_ignored
from .logging import get_logger


class ProducerPath:
    """
    Inline handler for chat notifications observed from game sessions.

    Resolution rules:
    - a sender id found in the directory uses that identity, and only these
      senders are checked against the ignore list
    - an id not in the directory becomes an "Unknown" identity
    - no id at all is a server message (``identity=None``)

    A closed inbound channel means the adapter half was torn down while the
    bridge is still in use. It is logged as critical and the SendError is
    re-raised to the caller.
    """

    def __init__(self, client: ClientSide, directory: IdentityDirectory, dedupe: bool = False):
        self.client = client
        self.directory = directory
        self.duplicates: Optional[DuplicateFilter] = DuplicateFilter() if dedupe else None
        self.logger = get_logger(f'producer.{client.name}')

        self.stats = {
            'notifications_received': 0,
            'events_forwarded': 0,
            'ignored': 0,
            'duplicates': 0,
            'other_observer': 0,
        }

    def handle(self, notification: ChatNotification) -> Optional[InboundEvent]:
        """
        Process one chat notification. Never deduplicates.

        Returns:
            The queued InboundEvent, or None if the notification was dropped

        Raises:
            SendError: If the inbound channel has no receiver left
        """
        return self._process(notification, None)

    def run_step(self, notifications: Iterable[ChatNotification]) -> int:
        """
        Process every notification delivered in one host tick.

        With ``dedupe`` enabled, a text already relayed earlier in the same
        step is dropped.

        Returns:
            Number of events queued
        """
        if self.duplicates is not None:
            self.duplicates.reset()

        forwarded = 0
        for notification in notifications:
            if self._process(notification, self.duplicates) is not None:
                forwarded += 1
        return forwarded

    def _process(self, notification: ChatNotification,
                 duplicates: Optional[DuplicateFilter]) -> Optional[InboundEvent]:
        self.stats['notifications_received'] += 1

        mode = self.client.mode
        if mode.is_single and notification.observer is not None \
                and not mode.permits(notification.observer.name):
            self.stats['other_observer'] += 1
            return None

        if duplicates is not None and duplicates.seen(notification.text):
            self.stats['duplicates'] += 1
            return None

        identity: Optional[Identity] = None
        if notification.sender_id is not None:
            identity = self.directory.find(notification.sender_id)
            if identity is None:
                identity = Identity.unknown(notification.sender_id)
            elif is_ignored(identity.name, self.client.ignore_list):
                self.stats['ignored'] += 1
                self.logger.debug(f"Ignoring chat from {identity.name}")
                return None

        event = InboundEvent(
            identity=identity,
            text=notification.text,
            sender_name=notification.sender_name,
        )

        try:
            self.client.tx.send(event)
        except SendError:
            self.logger.critical(
                f"Unable to send event to platform adapter for bridge '{self.client.name}': "
                f"inbound channel closed"
            )
            raise

        self.stats['events_forwarded'] += 1
        return event
