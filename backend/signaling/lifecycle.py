"""
Connection lifecycle: the state machine behind every peer session.

Drives each connection from unregistered to registered to closed,
dispatches inbound messages, runs the heartbeat, and keeps the peer
directory and swarm index consistent when peers leave.

Handlers are synchronous. Sends only enqueue, so every change to
shared state within a handler completes before the event loop can
run another connection's handler.
"""

import asyncio
import logging

from config import GREETING, HEARTBEAT_INTERVAL, REGISTER_ON_CONNECT
from registry.directory import PeerDirectory
from registry.models import Peer
from registry.swarm import SwarmIndex
from signaling.connection import Connection, ConnectionState
from signaling.messages import (
    AnnounceMessage,
    ChatMessage,
    IdentifyMessage,
    IncompleteMessageError,
    LookupMessage,
    MalformedMessageError,
    PongMessage,
    SignalMessage,
    UnknownMessage,
    parse_message,
)
from signaling.relay import RelayBroadcaster

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    """Owns the set of live connections and wires them to the registry."""

    def __init__(
        self,
        directory: PeerDirectory | None = None,
        swarms: SwarmIndex | None = None,
        relay: RelayBroadcaster | None = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        greeting: str | None = GREETING,
        register_on_connect: bool = REGISTER_ON_CONNECT,
    ) -> None:
        self.directory = directory or PeerDirectory()
        self.swarms = swarms or SwarmIndex(self.directory)
        self.relay = relay or RelayBroadcaster(self.directory)
        self.heartbeat_interval = heartbeat_interval
        self.greeting = greeting
        self.register_on_connect = register_on_connect

        self._connections: dict[str, Connection] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._handlers = {
            IdentifyMessage: self._handle_identify,
            AnnounceMessage: self._handle_announce,
            LookupMessage: self._handle_lookup,
            SignalMessage: self._handle_signal,
            ChatMessage: self._handle_chat,
            PongMessage: self._handle_pong,
        }

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    # --- Heartbeat ---

    async def start(self) -> None:
        """Start the heartbeat loop."""
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info(f"Heartbeat running every {self.heartbeat_interval}s")

    async def stop(self) -> None:
        """Stop the heartbeat loop."""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        logger.info("Heartbeat stopped")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                self.heartbeat_tick()
            except Exception as e:
                logger.error(f"Heartbeat tick failed: {e}", exc_info=True)

    def heartbeat_tick(self) -> None:
        """
        Probe every open connection once.

        A connection that answers pings and missed the previous one is
        terminated and cleaned up exactly as if it had closed. Peers that
        never sent a pong are left to the transport-level ping.
        """
        for connection in self.connections:
            if not connection.acks_heartbeat:
                connection.send({"type": "ping"})
                continue
            if not connection.is_alive:
                logger.info(f"Heartbeat timeout, terminating {connection!r}")
                try:
                    connection.terminate()
                except Exception as e:
                    logger.warning(f"Terminate failed for {connection!r}: {e}")
                self.on_close(connection)
                continue
            connection.is_alive = False
            connection.send({"type": "ping"})

    # --- Transport hooks ---

    def on_connect(self, connection: Connection) -> None:
        """A transport session opened."""
        self._connections[connection.connection_id] = connection
        logger.info(f"Connection opened from {connection.address} (total: {len(self._connections)})")
        if self.greeting:
            connection.send({"type": "greeting", "message": self.greeting})
        if self.register_on_connect:
            self._register(connection, IdentifyMessage(type="register"))

    def on_message(self, connection: Connection, raw: str | bytes) -> None:
        """Parse and dispatch one inbound frame."""
        if connection.state == ConnectionState.CLOSED:
            return
        # Any traffic proves the peer is still there
        connection.is_alive = True

        try:
            message = parse_message(raw)
        except MalformedMessageError as e:
            logger.error(f"Dropping frame from {connection!r}: {e}")
            return
        except IncompleteMessageError as e:
            logger.debug(f"Ignoring frame from {connection!r}: {e}")
            return

        if isinstance(message, UnknownMessage):
            logger.warning(f"Unknown message type from {connection!r}: {message.type}")
            return

        if message.requires_registration and not connection.is_registered:
            logger.warning(f"'{message.type}' from unregistered {connection!r} rejected")
            connection.send({
                "type": "error",
                "code": "not-registered",
                "message": f"Register before sending '{message.type}'",
            })
            return

        self._handlers[type(message)](connection, message)

    def on_close(self, connection: Connection) -> None:
        """
        A transport session ended, cleanly or by heartbeat timeout.

        Removal from the directory and every swarm happens before the
        departure is broadcast. Safe to call more than once.
        """
        if connection.state == ConnectionState.CLOSED:
            return
        was_registered = connection.is_registered
        connection.state = ConnectionState.CLOSED
        self._connections.pop(connection.connection_id, None)

        if not was_registered:
            logger.info(f"Unregistered connection from {connection.address} closed")
            return

        peer_id = connection.peer_id
        peer = self.directory.remove(peer_id)
        hashes = self.swarms.remove_peer(peer_id)
        name = peer.name if peer else "Unknown"
        logger.info(f"Peer disconnected: {peer_id} ({name}), left {len(hashes)} swarm(s)")

        self.relay.broadcast({"type": "peer-left", "peerId": peer_id, "name": name})

    # --- Handlers ---

    def _register(self, connection: Connection, message: IdentifyMessage) -> Peer:
        peer = self.directory.register(
            connection,
            address_hint=message.ip or (None if message.ips else connection.address),
            addresses=message.ips,
            name=message.name,
        )
        connection.peer_id = peer.peer_id
        connection.state = ConnectionState.REGISTERED
        logger.info(f"Peer registered: {peer.peer_id} ({peer.name}, {peer.ip})")

        descriptor = peer.descriptor()
        self.relay.broadcast({"type": "peer-joined", **descriptor}, exclude_peer_id=peer.peer_id)
        connection.send({"type": "welcome", **descriptor})
        connection.send({"type": "your-info", **descriptor})
        connection.send({
            "type": "peer-list-snapshot",
            "peers": [p.descriptor() for p in self.directory.snapshot(excluding=peer.peer_id)],
        })
        return peer

    def _handle_identify(self, connection: Connection, message: IdentifyMessage) -> None:
        if not connection.is_registered:
            self._register(connection, message)
            return

        if not message.has_identity:
            logger.debug(f"Empty '{message.type}' from {connection!r} ignored")
            return

        peer_id = connection.peer_id
        self.directory.update_name(peer_id, message.name)
        peer = self.directory.update_address(peer_id, ip=message.ip, ips=message.ips)
        if peer is None:
            return
        logger.info(f"Peer {peer_id} updated identity: {peer.name} ({peer.ip})")

        self.relay.broadcast({"type": "peer-updated", **peer.descriptor()}, exclude_peer_id=peer_id)
        ack_type = "registered" if message.type == "register" else "identity-confirmed"
        connection.send({"type": ack_type, **peer.descriptor()})

    def _handle_announce(self, connection: Connection, message: AnnounceMessage) -> None:
        if self.swarms.announce(message.info_hash, connection.peer_id):
            logger.info(f"Peer {connection.peer_id} announced {message.info_hash}")

    def _handle_lookup(self, connection: Connection, message: LookupMessage) -> None:
        peers = self.swarms.lookup(message.info_hash, connection.peer_id)
        logger.debug(f"Lookup {message.info_hash} by {connection.peer_id}: {len(peers)} peer(s)")
        connection.send({"type": "peers", "infoHash": message.info_hash, "peers": peers})

    def _handle_signal(self, connection: Connection, message: SignalMessage) -> None:
        delivered = self.relay.unicast(
            message.to,
            {"type": "signal", "from": connection.peer_id, "signal": message.signal},
        )
        if not delivered:
            logger.warning(f"Signal failed: target {message.to} not found or offline")

    def _handle_chat(self, connection: Connection, message: ChatMessage) -> None:
        peer = self.directory.get(connection.peer_id)
        sender = peer.name if peer else "Unknown"
        logger.info(f"[CHAT] {sender}: {message.message}")
        self.relay.broadcast(
            {
                "type": "chat",
                "message": message.message,
                "from": sender,
                "peerId": connection.peer_id,
            },
            exclude_peer_id=connection.peer_id,
        )

    def _handle_pong(self, connection: Connection, message: PongMessage) -> None:
        connection.acks_heartbeat = True
