"""Transport-agnostic view of one peer session."""

import uuid
from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle of a connection. There is no way back to UNREGISTERED."""
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    CLOSED = "closed"


class Connection:
    """
    Base class for a peer session.

    Transports subclass this and implement `send` and `terminate`.
    `send` must never block: it either queues the event or reports
    failure by returning False.
    """

    def __init__(self, address: str | None = None) -> None:
        self.connection_id = uuid.uuid4().hex
        self.address = address
        self.state = ConnectionState.UNREGISTERED
        self.peer_id: str | None = None  # back-reference into PeerDirectory
        self.is_alive = True
        # Set once the peer answers a ping; only then can the heartbeat evict it
        self.acks_heartbeat = False

    @property
    def is_open(self) -> bool:
        return self.state != ConnectionState.CLOSED

    @property
    def is_registered(self) -> bool:
        return self.state == ConnectionState.REGISTERED

    def send(self, event: dict) -> bool:
        raise NotImplementedError

    def terminate(self) -> None:
        """Forcibly drop the underlying transport."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.connection_id[:8]} "
            f"{self.state.value} peer={self.peer_id}>"
        )
