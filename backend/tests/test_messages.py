import json
import unittest

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


def parse(**fields):
    return parse_message(json.dumps(fields))


class EnvelopeTests(unittest.TestCase):

    def test_not_json(self):
        with self.assertRaises(MalformedMessageError):
            parse_message("{not json")

    def test_not_an_object(self):
        with self.assertRaises(MalformedMessageError):
            parse_message("[1, 2, 3]")

    def test_invalid_utf8_bytes(self):
        with self.assertRaises(MalformedMessageError):
            parse_message(b"\xff\xfe")

    def test_bytes_frame(self):
        message = parse_message(b'{"type": "lookup", "infoHash": "h1"}')
        self.assertIsInstance(message, LookupMessage)

    def test_unknown_type(self):
        message = parse(type="teleport", where="mars")
        self.assertIsInstance(message, UnknownMessage)
        self.assertEqual(message.type, "teleport")

    def test_missing_type(self):
        self.assertIsInstance(parse(hello="world"), UnknownMessage)


class VariantTests(unittest.TestCase):

    def test_announce_and_lookup(self):
        announce = parse(type="announce", infoHash="abc")
        self.assertIsInstance(announce, AnnounceMessage)
        self.assertEqual(announce.info_hash, "abc")
        self.assertTrue(announce.requires_registration)

        self.assertIsInstance(parse(type="lookup", infoHash="abc"), LookupMessage)

    def test_missing_info_hash(self):
        with self.assertRaises(IncompleteMessageError) as ctx:
            parse(type="lookup")
        self.assertEqual(ctx.exception.message_type, "lookup")
        with self.assertRaises(IncompleteMessageError):
            parse(type="announce", infoHash="")

    def test_signal(self):
        message = parse(type="signal", to="ABC", signal={"sdp": "offer"})
        self.assertIsInstance(message, SignalMessage)
        self.assertEqual(message.signal, {"sdp": "offer"})

    def test_signal_requires_target_and_payload(self):
        with self.assertRaises(IncompleteMessageError):
            parse(type="signal", signal={"sdp": "offer"})
        with self.assertRaises(IncompleteMessageError):
            parse(type="signal", to="ABC")
        with self.assertRaises(IncompleteMessageError):
            parse(type="signal", to="ABC", signal=None)

    def test_identify_fields(self):
        message = parse(type="identify", name="  alice ", ip="10.0.0.2")
        self.assertIsInstance(message, IdentifyMessage)
        self.assertEqual(message.name, "alice")
        self.assertEqual(message.ip, "10.0.0.2")
        self.assertFalse(message.requires_registration)
        self.assertTrue(message.has_identity)

    def test_identify_ips_shapes(self):
        self.assertEqual(parse(type="register", ips=["a", "b"]).ips, ["a", "b"])
        self.assertEqual(parse(type="register", ips="a").ips, ["a"])
        self.assertEqual(
            parse(type="register", ips={"local": "192.168.0.2", "public": "203.0.113.4"}).ips,
            ["192.168.0.2", "203.0.113.4"],
        )

    def test_empty_identify(self):
        message = parse(type="register", name="", ip=" ")
        self.assertIsNone(message.name)
        self.assertIsNone(message.ip)
        self.assertFalse(message.has_identity)

    def test_identify_with_unusable_fields_keeps_the_rest(self):
        message = parse(type="register", name=42, ip=["10.0.0.1"], ips=["10.0.0.2"])
        self.assertIsInstance(message, IdentifyMessage)
        self.assertIsNone(message.name)
        self.assertIsNone(message.ip)
        self.assertEqual(message.ips, ["10.0.0.2"])

    def test_pong(self):
        message = parse(type="pong")
        self.assertIsInstance(message, PongMessage)
        self.assertFalse(message.requires_registration)


class ChatNormalizationTests(unittest.TestCase):

    def test_plain_chat(self):
        message = parse(type="chat", message="hi")
        self.assertIsInstance(message, ChatMessage)
        self.assertEqual(message.message, "hi")

    def test_chat_message_payload_shapes(self):
        for payload in ("hi", {"text": "hi"}, {"message": "hi"}, {"content": "hi"}):
            with self.subTest(payload=payload):
                message = parse(type="chat-message", payload=payload)
                self.assertIsInstance(message, ChatMessage)
                self.assertEqual(message.message, "hi")

    def test_chat_without_text_is_incomplete(self):
        for fields in (
            {"type": "chat"},
            {"type": "chat", "message": ""},
            {"type": "chat-message"},
            {"type": "chat-message", "payload": {"emoji": ":)"}},
        ):
            with self.subTest(fields=fields):
                with self.assertRaises(IncompleteMessageError):
                    parse_message(json.dumps(fields))


if __name__ == "__main__":
    unittest.main()
