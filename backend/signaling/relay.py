"""Fan-out and point-to-point delivery of events to registered peers."""

import logging

from registry.directory import PeerDirectory

logger = logging.getLogger(__name__)


class RelayBroadcaster:
    """Best-effort delivery over the connections held by the directory."""

    def __init__(self, directory: PeerDirectory) -> None:
        self._directory = directory

    def broadcast(self, event: dict, exclude_peer_id: str | None = None) -> int:
        """
        Send an event to every registered, open connection except one.

        A failing recipient is logged and skipped. Returns the number
        of connections the event was handed to.
        """
        delivered = 0
        for peer_id, connection in self._directory.connections():
            if peer_id == exclude_peer_id:
                continue
            if not (connection.is_registered and connection.is_open):
                continue
            try:
                if connection.send(event):
                    delivered += 1
            except Exception as e:
                logger.warning(f"Broadcast of '{event.get('type')}' to {peer_id} failed: {e}")
        return delivered

    def unicast(self, target_peer_id: str, event: dict) -> bool:
        """Single attempt to deliver to one peer. No queuing or retry."""
        connection = self._directory.connection_for(target_peer_id)
        if connection is None or not connection.is_open:
            return False
        try:
            return connection.send(event)
        except Exception as e:
            logger.warning(f"Delivery of '{event.get('type')}' to {target_peer_id} failed: {e}")
            return False
