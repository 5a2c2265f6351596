"""
The authoritative record of registered peers.

A pure state store: it never sends anything. Callers broadcast
state changes themselves.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Iterable

from config import MAX_ID_ATTEMPTS
from registry.identity import IdentityAllocator, normalize_address
from registry.models import Peer

if TYPE_CHECKING:
    from signaling.connection import Connection

logger = logging.getLogger(__name__)


class PeerDirectory:
    """Maps peer ids to Peer records and their owning connections."""

    def __init__(self, allocator: IdentityAllocator | None = None) -> None:
        self._allocator = allocator or IdentityAllocator()
        self._peers: dict[str, Peer] = {}
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, peer_id: object) -> bool:
        return peer_id in self._peers

    def register(
        self,
        connection: Connection,
        address_hint: str | None = None,
        addresses: Iterable[str] | None = None,
        name: str | None = None,
    ) -> Peer:
        """Allocate an identity for a connection and store its record."""
        if connection.peer_id is not None or any(
            c is connection for c in self._connections.values()
        ):
            raise ValueError(
                f"Connection {connection.connection_id} is already registered"
            )

        ips = [normalize_address(a) for a in (addresses or []) if a]
        ip = normalize_address(address_hint or (ips[0] if ips else None))
        if ip not in ips:
            ips.insert(0, ip)

        peer = Peer(
            peer_id=self._allocate_unique(ip),
            name=name or self._allocator.next_anonymous_name(),
            ip=ip,
            ips=ips,
            connected_at=time.time(),
        )
        self._peers[peer.peer_id] = peer
        self._connections[peer.peer_id] = connection
        return peer

    def _allocate_unique(self, address_hint: str) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            peer_id = self._allocator.allocate(address_hint)
            if peer_id not in self._peers:
                return peer_id
            logger.warning(f"Peer id collision on {peer_id}, regenerating")
        raise RuntimeError(
            f"Could not allocate a unique peer id after {MAX_ID_ATTEMPTS} attempts"
        )

    def update_name(self, peer_id: str, name: str | None) -> Peer | None:
        peer = self._peers.get(peer_id)
        if peer is not None and name:
            peer.name = name
        return peer

    def update_address(
        self,
        peer_id: str,
        ip: str | None = None,
        ips: Iterable[str] | None = None,
    ) -> Peer | None:
        """Replace the address hints that were supplied; keep the rest."""
        peer = self._peers.get(peer_id)
        if peer is None:
            return None
        hints = [normalize_address(a) for a in (ips or []) if a]
        if hints:
            peer.ips = hints
        if ip:
            peer.ip = normalize_address(ip)
        elif hints and peer.ip not in hints:
            peer.ip = hints[0]
        if peer.ip not in peer.ips:
            peer.ips.insert(0, peer.ip)
        return peer

    def get(self, peer_id: str | None) -> Peer | None:
        if peer_id is None:
            return None
        return self._peers.get(peer_id)

    def remove(self, peer_id: str | None) -> Peer | None:
        """Delete a record. Unknown ids are ignored."""
        if peer_id is None:
            return None
        self._connections.pop(peer_id, None)
        return self._peers.pop(peer_id, None)

    def snapshot(self, excluding: str | None = None) -> list[Peer]:
        """Copies of every registered peer except `excluding`."""
        return [
            peer.model_copy(deep=True)
            for peer_id, peer in self._peers.items()
            if peer_id != excluding
        ]

    def connection_for(self, peer_id: str) -> Connection | None:
        return self._connections.get(peer_id)

    def connections(self) -> list[tuple[str, Connection]]:
        return list(self._connections.items())
