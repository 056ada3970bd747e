"""Error taxonomy for the mission link."""

from __future__ import annotations


class MissionLinkError(Exception):
    """Base class for every error raised by the mission core."""


class TransportConnectionError(MissionLinkError, ConnectionError):
    """The broker could not be reached, refused us, or dropped the link."""


class NotConnectedError(MissionLinkError):
    """A publish was attempted while the session had no live connection.

    The message is dropped; nothing is queued for later delivery.
    """

    def __init__(self, topic: str, message: str | None = None) -> None:
        self.topic = topic
        super().__init__(message or f"未连接到消息代理，无法发布到 {topic}")


class DecodeError(MissionLinkError, ValueError):
    """An inbound payload could not be decoded for its topic."""

    def __init__(self, topic: str, reason: str) -> None:
        self.topic = topic
        self.reason = reason
        super().__init__(f"{topic}: {reason}")


class PartialUpdateError(MissionLinkError, ValueError):
    """A structurally valid message carried a field that failed secondary parsing."""

    def __init__(self, field_name: str, raw_value: str) -> None:
        self.field_name = field_name
        self.raw_value = raw_value
        super().__init__(f"无法解析字段 {field_name}: {raw_value!r}")


class EncodeError(MissionLinkError, ValueError):
    """An outbound command could not be serialised."""


__all__ = [
    "DecodeError",
    "EncodeError",
    "MissionLinkError",
    "NotConnectedError",
    "PartialUpdateError",
    "TransportConnectionError",
]
