"""Presence registry — who is online on a hub, and on which socket.

One entry per identity: the most recent `auth` wins (no multi-device
fan-out). Removal is guarded so a stale socket closing late can't evict
the newer socket that replaced it.
"""

from typing import Optional

from marketwire.realtime.connection import Connection


class PresenceRegistry:
    def __init__(self) -> None:
        self._by_identity: dict[int, Connection] = {}

    def __len__(self) -> int:
        return len(self._by_identity)

    def __contains__(self, identity: int) -> bool:
        return identity in self._by_identity

    def register(self, identity: int, connection: Connection) -> Optional[Connection]:
        """Point `identity` at `connection`. Returns the socket it replaced."""
        previous = self._by_identity.get(identity)
        self._by_identity[identity] = connection
        return previous if previous is not connection else None

    def unregister(self, identity: int, connection: Connection) -> bool:
        """Remove `identity` only if it still points at `connection`."""
        if self._by_identity.get(identity) is connection:
            del self._by_identity[identity]
            return True
        return False

    def get(self, identity: Optional[int]) -> Optional[Connection]:
        if identity is None:
            return None
        return self._by_identity.get(identity)

    def online(self) -> list[int]:
        return list(self._by_identity)
