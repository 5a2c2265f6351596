"""
Inbound wire messages.

Every frame is parsed into one variant of a tagged union keyed on
`type`. Legacy payload shapes are normalised here, so the lifecycle
only ever sees canonical messages.
"""

import json
from typing import Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class MessageError(ValueError):
    """Base class for frames that cannot be dispatched."""


class MalformedMessageError(MessageError):
    """The frame is not a JSON object."""


class IncompleteMessageError(MessageError):
    """A recognised type is missing (or has unusable) required fields."""

    def __init__(self, message_type: str, error: ValidationError) -> None:
        super().__init__(f"Invalid '{message_type}' message: {error.error_count()} error(s)")
        self.message_type = message_type
        self.error = error


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Content messages are refused until the connection has registered
    requires_registration: ClassVar[bool] = True

    type: str


class IdentifyMessage(InboundMessage):
    """`register` or `identify`: registers, or updates name/address."""
    requires_registration: ClassVar[bool] = False

    type: Literal["register", "identify"]
    ip: str | None = None
    ips: list[str] = Field(default_factory=list)
    name: str | None = None

    @field_validator("ips", mode="before")
    @classmethod
    def _coerce_ips(cls, value: Any) -> list:
        # Accept a single address, a list, or a {"local": .., "public": ..} mapping
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, dict):
            value = list(value.values())
        if isinstance(value, (list, tuple)):
            return [v for v in value if isinstance(v, str) and v.strip()]
        return value

    @field_validator("ip", "name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        # A blank or non-string value is dropped, not fatal to the message
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @property
    def has_identity(self) -> bool:
        return bool(self.name or self.ip or self.ips)


class AnnounceMessage(InboundMessage):
    type: Literal["announce"]
    info_hash: str = Field(alias="infoHash", min_length=1)


class LookupMessage(InboundMessage):
    type: Literal["lookup"]
    info_hash: str = Field(alias="infoHash", min_length=1)


class SignalMessage(InboundMessage):
    """An opaque WebRTC payload for another peer."""
    type: Literal["signal"]
    to: str = Field(min_length=1)
    signal: Any

    @field_validator("signal")
    @classmethod
    def _require_payload(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError("signal payload is empty")
        return value


class ChatMessage(InboundMessage):
    """Public chat. `chat-message` payloads are folded into `message`."""
    type: Literal["chat", "chat-message"]
    message: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("type") != "chat-message":
            return data
        payload = data.get("payload")
        text = None
        if isinstance(payload, str):
            text = payload
        elif isinstance(payload, dict):
            text = payload.get("text") or payload.get("message") or payload.get("content")
        return {**data, "message": text}


class PongMessage(InboundMessage):
    """Heartbeat acknowledgement."""
    requires_registration: ClassVar[bool] = False

    type: Literal["pong"]


class UnknownMessage(InboundMessage):
    requires_registration: ClassVar[bool] = False


MESSAGE_TYPES: dict[str, type[InboundMessage]] = {
    "register": IdentifyMessage,
    "identify": IdentifyMessage,
    "announce": AnnounceMessage,
    "lookup": LookupMessage,
    "signal": SignalMessage,
    "chat": ChatMessage,
    "chat-message": ChatMessage,
    "pong": PongMessage,
}


def parse_message(raw: str | bytes) -> InboundMessage:
    """
    Parse one frame.

    Raises MalformedMessageError for non-JSON or non-object frames and
    IncompleteMessageError when a known type fails validation. Unknown
    types come back as UnknownMessage.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessageError(
            f"Frame is a JSON {type(data).__name__}, expected an object"
        )

    message_type = data.get("type")
    model = MESSAGE_TYPES.get(message_type) if isinstance(message_type, str) else None
    if model is None:
        return UnknownMessage(type=str(message_type))

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise IncompleteMessageError(message_type, e) from e
