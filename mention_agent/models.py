import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Literal, NamedTuple, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, model_validator


# ---------- inbound ----------
ContentType = Literal["thread", "comment"]


class RawEvent(BaseModel):
    """An "agent mentioned" webhook payload, exactly as the platform sends it."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    community_id: str = Field(max_length=255)
    profile_name: str = Field(max_length=255)
    profile_url: str
    thread_title: str
    object_url: str
    # first 255 characters of the content, safely truncated upstream
    object_summary: str = Field(max_length=255)
    # set when the content did not fit in object_summary
    content_url: Optional[str] = None
    content_type: ContentType
    thread_id: StrictInt
    comment_id: Optional[StrictInt] = None
    author_user_id: StrictInt

    @model_validator(mode="after")
    def _comment_id_matches_content_type(self):
        if self.content_type == "comment" and self.comment_id is None:
            raise ValueError("comment_id is required when content_type is 'comment'")
        if self.content_type == "thread" and self.comment_id is not None:
            raise ValueError("comment_id must be absent when content_type is 'thread'")
        return self


class NormalizedEvent(RawEvent):
    full_text: str


class EventValidation(NamedTuple):
    event: Optional[RawEvent]
    errors: Dict[str, str]

    @property
    def ok(self) -> bool:
        return self.event is not None


def validate_event(payload) -> EventValidation:
    if not isinstance(payload, dict):
        return EventValidation(None, {"body": "must be a JSON object"})
    try:
        return EventValidation(RawEvent.model_validate(payload), {})
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "body"
            errors.setdefault(field, err["msg"])
        return EventValidation(None, errors)


def parse_event_body(raw_body: bytes) -> EventValidation:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError):
        return EventValidation(None, {"body": "not valid JSON"})
    return validate_event(payload)


# ---------- identities & memory ----------
class IdentityTriple(NamedTuple):
    conversation_id: UUID
    actor_id: UUID
    message_id: UUID


@dataclass(frozen=True)
class SelfIdentity:
    id: int
    display_name: str


@dataclass(frozen=True)
class MemoryEntry:
    id: UUID
    conversation_id: UUID
    actor_id: UUID
    agent_id: UUID
    text: str
    source: str
    created_at: int
    url: Optional[str] = None
    content_url: Optional[str] = None


# ---------- outbound ----------
@dataclass(frozen=True)
class GeneratedContent:
    text: str
    action: Optional[str] = None


class PublishedReply(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    thread_id: int
    community_id: str
    body: str
    created_at: str
    content_url: Optional[str] = None

    def created_at_ms(self) -> int:
        # the reply is already posted by now, so a bad timestamp must not fail the delivery
        try:
            dt = datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except ValueError:
            return now_ms()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)

