"""In-memory stand-ins for transports used across the test suite."""

import json

from signaling.connection import Connection


class FakeConnection(Connection):
    """Records every event sent to it instead of writing to a socket."""

    def __init__(self, address: str | None = "10.0.0.1") -> None:
        super().__init__(address)
        self.sent: list[dict] = []
        self.terminated = False

    def send(self, event: dict) -> bool:
        if not self.is_open:
            return False
        self.sent.append(event)
        return True

    def terminate(self) -> None:
        self.terminated = True

    def types(self) -> list[str]:
        return [event["type"] for event in self.sent]

    def of_type(self, event_type: str) -> list[dict]:
        return [event for event in self.sent if event["type"] == event_type]

    def last(self, event_type: str) -> dict:
        return self.of_type(event_type)[-1]

    def clear(self) -> None:
        self.sent.clear()


class BrokenConnection(FakeConnection):
    """A transport whose writes always blow up."""

    def send(self, event: dict) -> bool:
        raise ConnectionError("socket went away")


def frame(**fields) -> str:
    """Encode an inbound message the way a client would."""
    return json.dumps(fields)
