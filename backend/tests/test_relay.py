import unittest

from registry.directory import PeerDirectory
from signaling.connection import ConnectionState
from signaling.relay import RelayBroadcaster
from fakes import BrokenConnection, FakeConnection


def registered(directory, connection):
    peer = directory.register(connection)
    connection.peer_id = peer.peer_id
    connection.state = ConnectionState.REGISTERED
    return peer.peer_id


class BroadcastTests(unittest.TestCase):

    def setUp(self):
        self.directory = PeerDirectory()
        self.relay = RelayBroadcaster(self.directory)
        self.a, self.b, self.c = FakeConnection(), FakeConnection(), FakeConnection()
        self.a_id = registered(self.directory, self.a)
        self.b_id = registered(self.directory, self.b)
        self.c_id = registered(self.directory, self.c)

    def test_broadcast_reaches_everyone_but_excluded(self):
        delivered = self.relay.broadcast({"type": "peer-joined"}, exclude_peer_id=self.a_id)

        self.assertEqual(delivered, 2)
        self.assertEqual(self.a.sent, [])
        self.assertEqual(self.b.types(), ["peer-joined"])
        self.assertEqual(self.c.types(), ["peer-joined"])

    def test_broadcast_without_exclusion(self):
        self.assertEqual(self.relay.broadcast({"type": "peer-left"}), 3)

    def test_failing_recipient_does_not_stop_delivery(self):
        broken = BrokenConnection()
        registered(self.directory, broken)

        delivered = self.relay.broadcast({"type": "chat"})

        self.assertEqual(delivered, 3)
        for conn in (self.a, self.b, self.c):
            self.assertEqual(conn.types(), ["chat"])

    def test_closed_connections_are_skipped(self):
        self.b.state = ConnectionState.CLOSED
        self.assertEqual(self.relay.broadcast({"type": "chat"}), 2)
        self.assertEqual(self.b.sent, [])


class UnicastTests(unittest.TestCase):

    def setUp(self):
        self.directory = PeerDirectory()
        self.relay = RelayBroadcaster(self.directory)
        self.target = FakeConnection()
        self.target_id = registered(self.directory, self.target)

    def test_unicast_delivers_to_one_peer(self):
        other = FakeConnection()
        registered(self.directory, other)

        self.assertTrue(self.relay.unicast(self.target_id, {"type": "signal"}))
        self.assertEqual(self.target.types(), ["signal"])
        self.assertEqual(other.sent, [])

    def test_unicast_to_absent_peer(self):
        self.assertFalse(self.relay.unicast("NOBODY", {"type": "signal"}))

    def test_unicast_to_closed_peer(self):
        self.target.state = ConnectionState.CLOSED
        self.assertFalse(self.relay.unicast(self.target_id, {"type": "signal"}))

    def test_unicast_send_failure_reports_false(self):
        broken = BrokenConnection()
        broken_id = registered(self.directory, broken)
        self.assertFalse(self.relay.unicast(broken_id, {"type": "signal"}))


if __name__ == "__main__":
    unittest.main()
