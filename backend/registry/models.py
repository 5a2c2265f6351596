"""Pydantic models for the peer directory and swarm index."""

from pydantic import BaseModel, Field


class Peer(BaseModel):
    """A registered participant, owned by the PeerDirectory."""
    peer_id: str
    name: str
    ip: str  # primary address hint, display only
    ips: list[str] = Field(default_factory=list)  # every hint the peer supplied
    connected_at: float  # Unix timestamp

    def descriptor(self) -> dict:
        """The {peerId, name, ip} shape used on the wire."""
        return {"peerId": self.peer_id, "name": self.name, "ip": self.ip}


class SwarmEntry(BaseModel):
    """Holders of a single content item."""
    info_hash: str
    holders: list[str]
