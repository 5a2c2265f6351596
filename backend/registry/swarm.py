"""Swarm index: which peers currently hold which content items."""

import logging

from registry.directory import PeerDirectory
from registry.models import SwarmEntry

logger = logging.getLogger(__name__)


class SwarmIndex:
    """
    Maps info hashes to holder peer ids.

    A reverse index (peer id -> hashes) keeps departure cleanup
    proportional to what the peer announced. Empty entries are
    deleted immediately, in both directions.
    """

    def __init__(self, directory: PeerDirectory) -> None:
        self._directory = directory
        self._holders: dict[str, set[str]] = {}
        self._by_peer: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._holders)

    def __contains__(self, info_hash: object) -> bool:
        return info_hash in self._holders

    def announce(self, info_hash: str, peer_id: str) -> bool:
        """Add a holder. Returns False when it was already listed."""
        holders = self._holders.setdefault(info_hash, set())
        if peer_id in holders:
            return False
        holders.add(peer_id)
        self._by_peer.setdefault(peer_id, set()).add(info_hash)
        return True

    def lookup(self, info_hash: str, requester_id: str | None) -> list[str]:
        """Current holders, minus the requester and any departed peer."""
        holders = self._holders.get(info_hash, ())
        return [
            peer_id
            for peer_id in holders
            if peer_id != requester_id and peer_id in self._directory
        ]

    def remove_peer(self, peer_id: str) -> list[str]:
        """Drop a peer from every swarm. Returns the hashes it held."""
        hashes = self._by_peer.pop(peer_id, set())
        for info_hash in hashes:
            holders = self._holders.get(info_hash)
            if holders is None:
                continue
            holders.discard(peer_id)
            if not holders:
                del self._holders[info_hash]
                logger.debug(f"Swarm {info_hash} is empty, pruned")
        return sorted(hashes)

    def holders(self, info_hash: str) -> set[str]:
        return set(self._holders.get(info_hash, ()))

    def hashes_for(self, peer_id: str) -> set[str]:
        return set(self._by_peer.get(peer_id, ()))

    def entries(self) -> list[SwarmEntry]:
        return [
            SwarmEntry(info_hash=info_hash, holders=sorted(holders))
            for info_hash, holders in self._holders.items()
        ]
