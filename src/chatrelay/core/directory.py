"""
Identity directory for chatrelay

Holds the identities the host currently knows about (local game accounts
and players seen in the session), keyed by id.
"""

import threading
import uuid
from typing import Dict, Iterable, Iterator, Optional

from ..models.events import Identity


class IdentityDirectory:
    """Thread-safe id -> Identity registry"""

    def __init__(self, identities: Iterable[Identity] = ()):
        self._lock = threading.Lock()
        self._by_id: Dict[uuid.UUID, Identity] = {}
        for identity in identities:
            self.add(identity)

    def add(self, identity: Identity) -> None:
        """
        Register or replace an identity.

        Raises:
            ValueError: If the identity has no id
        """
        if identity.id is None:
            raise ValueError(f"Identity '{identity.name}' has no id")
        with self._lock:
            self._by_id[identity.id] = identity

    def remove(self, identity_id: uuid.UUID) -> Optional[Identity]:
        with self._lock:
            return self._by_id.pop(identity_id, None)

    def find(self, identity_id: uuid.UUID) -> Optional[Identity]:
        with self._lock:
            return self._by_id.get(identity_id)

    def __iter__(self) -> Iterator[Identity]:
        with self._lock:
            snapshot = list(self._by_id.values())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, identity_id: object) -> bool:
        with self._lock:
            return identity_id in self._by_id
