"""
Bridge between a game session and one platform adapter

A Bridge is two independent unbounded FIFO channels:

- outbound (plugin side -> client side) carries OutboundEvent
- inbound (client side -> plugin side) carries InboundEvent

The client side is held by the hosting application (ProducerPath and
ConsumerLoop run against it); the plugin side is held by the platform
adapter. The client side also keeps a list of links: extra inbound senders
belonging to other bridges, used to fan platform traffic out so linked
platforms see each other's messages.

Links are a flat list of sender handles, not a graph. Linking a bridge to
itself, or building a cycle of links, re-delivers events forever; callers
must not do that.
"""

import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..models.events import InboundEvent, OutboundEvent, PlatformEvent
from .channel import Receiver, Sender, unbounded
from .filters import IgnoreList
from .logging import get_logger


@dataclass(frozen=True)
class DeliveryMode:
    """
    Which local game sessions a bridge speaks through.

    The default mode uses every session. With several sessions sharing one
    bridge (a fleet), ``DeliveryMode.single(name)`` restricts relaying to
    the one named account.
    """
    target: Optional[str] = None

    @classmethod
    def all(cls) -> 'DeliveryMode':
        return cls()

    @classmethod
    def single(cls, target: str) -> 'DeliveryMode':
        if not target:
            raise ValueError("Single delivery mode needs a target name")
        return cls(target=target)

    @property
    def is_single(self) -> bool:
        return self.target is not None

    def permits(self, name: str) -> bool:
        """Check whether the session with this display name may relay"""
        return self.target is None or self.target == name

    def __str__(self) -> str:
        return f"single({self.target})" if self.target else "all"


class LinkSet:
    """Lock-guarded list of inbound senders of linked bridges"""

    def __init__(self):
        self._lock = threading.Lock()
        self._links: List[Sender] = []

    def add(self, sender: Sender) -> None:
        with self._lock:
            self._links.append(sender)

    def snapshot(self) -> Tuple[Sender, ...]:
        """Copy of the current links, safe to iterate while others link"""
        with self._lock:
            return tuple(self._links)

    def close(self) -> None:
        with self._lock:
            links, self._links = self._links, []
        for sender in links:
            sender.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)

    def __bool__(self) -> bool:
        return len(self) > 0


class ClientSide:
    """Half of a bridge owned by the hosting application"""

    def __init__(self, name: str, rx: Receiver, tx: Sender,
                 ignore_list: IgnoreList, mode: DeliveryMode):
        self.name = name
        self.rx = rx
        self.tx = tx
        self.ignore_list = ignore_list
        self.mode = mode
        self.links = LinkSet()
        self.logger = get_logger(f'bridge.{name}')

    def link(self, other: 'ClientSide') -> None:
        """Link two bridges in both directions"""
        self.add_link(other.tx.clone())
        other.add_link(self.tx.clone())
        self.logger.info(f"Linked bridge '{self.name}' with '{other.name}'")

    def add_link(self, sender: Sender) -> None:
        """Register one inbound sender to receive this bridge's fan-out"""
        self.links.add(sender)

    def has_pending(self) -> bool:
        """Whether platform events are waiting for the consumer loop"""
        return not self.rx.is_empty()

    def close(self) -> None:
        """Release every handle held by the client side"""
        self.links.close()
        self.tx.close()
        self.rx.close()


class PluginSide:
    """Half of a bridge owned by a platform adapter"""

    def __init__(self, name: str, rx: Receiver, tx: Sender):
        self.name = name
        self.rx = rx
        self.tx = tx

    def send(self, event: PlatformEvent) -> OutboundEvent:
        """
        Queue a platform message for the game session.

        Raises:
            SendError: If the client side is gone
        """
        outbound = OutboundEvent.from_platform(event)
        self.tx.send(outbound)
        return outbound

    async def recv(self) -> InboundEvent:
        """
        Wait for the next game chat event.

        Raises:
            RecvError: If the client side and every linked bridge are gone
        """
        return await self.rx.recv()

    def close(self) -> None:
        self.tx.close()
        self.rx.close()


class Bridge:
    """Channel pair plus configuration for one platform"""

    def __init__(self, ignore_list: Iterable[str] = (), mode: Optional[DeliveryMode] = None,
                 name: str = "bridge"):
        outbound_tx, outbound_rx = unbounded()
        inbound_tx, inbound_rx = unbounded()

        if not isinstance(ignore_list, IgnoreList):
            ignore_list = IgnoreList(ignore_list)

        self.name = name
        self.client = ClientSide(
            name=name,
            rx=outbound_rx,
            tx=inbound_tx,
            ignore_list=ignore_list,
            mode=mode or DeliveryMode.all(),
        )
        self.plugin = PluginSide(name=name, rx=inbound_rx, tx=outbound_tx)

    def link(self, other: 'Bridge') -> None:
        self.client.link(other.client)

    def close(self) -> None:
        self.client.close()
        self.plugin.close()

    def __repr__(self) -> str:
        return f"Bridge(name={self.name!r}, ignore={list(self.client.ignore_list)!r}, mode={self.client.mode})"


def link_bridges(first: Bridge, second: Bridge, *others: Bridge) -> None:
    """Link every given bridge with every other one, in both directions"""
    bridges = [first, second, *others]
    for i, bridge in enumerate(bridges):
        for other in bridges[i + 1:]:
            bridge.link(other)
