from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Literal, Optional, Union
import time

from constants import SIGNALING_TYPES
from exceptions import MalformedMessage


def now_ms() -> int:
    """Milliseconds since the Unix epoch, the timestamp unit used on the wire."""
    return int(time.time() * 1000)


class Envelope(BaseModel):
    # Validated by wire name only; any other key is an opaque payload extra
    model_config = ConfigDict(extra="allow")

    type: str
    room_id: Optional[str] = Field(None, alias="roomId")


class JoinMessage(Envelope):
    type: Literal["join"]
    username: str
    room_id: str = Field(alias="roomId")


class SignalingMessage(Envelope):
    type: Literal["call-user", "call-accepted", "offer", "answer", "ice-candidate"]


class RoomMessage(Envelope):
    """Any other client type: chat, typing indicators, reactions..."""


InboundMessage = Union[JoinMessage, SignalingMessage, RoomMessage]


class LeaveMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["leave"] = "leave"
    username: str
    room_id: str = Field(alias="roomId")
    timestamp: int = Field(default_factory=now_ms)


class SystemMessage(BaseModel):
    type: Literal["system"] = "system"
    message: str
    timestamp: int = Field(default_factory=now_ms)


def parse_envelope(data: Union[str, bytes]) -> InboundMessage:
    """Parse one inbound frame and narrow it to its routing variant.

    Raises MalformedMessage when the frame is not a JSON object with a string
    ``type``, or when a join lacks ``username``/``roomId``.
    """
    try:
        base = Envelope.model_validate_json(data)
        if base.type == "join":
            return JoinMessage.model_validate_json(data)
        if base.type in SIGNALING_TYPES:
            return SignalingMessage.model_validate_json(data)
        return RoomMessage.model_validate_json(data)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid envelope: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def serialize(message: BaseModel) -> str:
    return message.model_dump_json(by_alias=True)
