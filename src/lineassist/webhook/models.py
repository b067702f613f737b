"""Data models for the LINE webhook pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class FileKind(str, Enum):
    """Kinds of media that can be held for intent negotiation.

    Values are the LINE message ``type`` strings; LINE calls documents ``file``.
    """

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "file"


class DeliveryStatus(str, Enum):
    """Outcome of a reply-token based send."""

    SENT = "sent"
    TOKEN_INVALID = "token_invalid"


class LookupStatus(str, Enum):
    """Outcome of a pending-file lookup."""

    FOUND = "found"
    MISSING = "missing"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TextMessage:
    message_id: str
    text: str


@dataclass(frozen=True)
class FileMessage:
    """An image, video, audio or document message; the binary is fetched lazily."""

    message_id: str
    kind: FileKind

    @property
    def media_ref(self) -> str:
        return self.message_id


@dataclass(frozen=True)
class UnsupportedMessage:
    message_id: str
    type: str


MessageContent = Union[TextMessage, FileMessage, UnsupportedMessage]


@dataclass
class WebhookEvent:
    """Normalized LINE webhook event."""

    type: str
    reply_token: str | None
    owner_id: str | None
    redelivery: bool = False
    event_id: str | None = None
    timestamp: int | None = None
    message: MessageContent | None = None


@dataclass(frozen=True)
class PendingFileEntry:
    """A received file awaiting the user's instruction."""

    owner_id: str
    media_ref: str
    kind: FileKind
    created_at: float


@dataclass(frozen=True)
class PendingLookup:
    status: LookupStatus
    entry: PendingFileEntry | None = None


def _parse_message(raw: dict[str, Any]) -> MessageContent:
    message_id = str(raw.get("id", ""))
    msg_type = str(raw.get("type", ""))

    if msg_type == "text":
        return TextMessage(message_id=message_id, text=str(raw.get("text", "")))
    try:
        kind = FileKind(msg_type)
    except ValueError:
        return UnsupportedMessage(message_id=message_id, type=msg_type)
    return FileMessage(message_id=message_id, kind=kind)


def _owner_id(source: dict[str, Any]) -> str | None:
    # Pushes need an addressable id; 1:1 chats carry userId, groups and rooms may not.
    return source.get("userId") or source.get("groupId") or source.get("roomId") or None


def parse_event(raw: dict[str, Any]) -> WebhookEvent:
    """Build a WebhookEvent from one element of the LINE ``events`` array."""
    delivery_context: dict[str, Any] = raw.get("deliveryContext") or {}
    source: dict[str, Any] = raw.get("source") or {}
    raw_message = raw.get("message")

    return WebhookEvent(
        type=str(raw.get("type", "")),
        reply_token=raw.get("replyToken") or None,
        owner_id=_owner_id(source),
        redelivery=bool(delivery_context.get("isRedelivery", False)),
        event_id=raw.get("webhookEventId") or None,
        timestamp=raw.get("timestamp"),
        message=_parse_message(raw_message) if isinstance(raw_message, dict) else None,
    )


def parse_events(body: dict[str, Any]) -> list[WebhookEvent]:
    """Extract all events from a webhook request body.

    Non-dict entries are dropped rather than failing the whole batch.
    """
    events = body.get("events") or []
    if not isinstance(events, list):
        raise ValueError("Webhook body 'events' must be a list")
    return [parse_event(e) for e in events if isinstance(e, dict)]
