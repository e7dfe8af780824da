from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter, field_validator

from poetbot.slack.event_types import (
    EVENT_APP_MENTION,
    EVENT_MESSAGE,
    EVENT_OTHER,
    PAYLOAD_EVENT_CALLBACK,
    PAYLOAD_URL_VERIFICATION,
)


def _type_of(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("type", "") or "")
    return str(getattr(value, "type", "") or "")


class SlackEvent(BaseModel):
    user: str | None = None
    channel: str = ""
    text: str | None = None
    ts: str | None = None
    thread_ts: str | None = None
    # Present only on system-generated messages (joins, edits, bot_message, ...).
    subtype: str | None = None
    bot_id: str | None = None

    @property
    def from_bot(self) -> bool:
        return bool(self.bot_id) or self.subtype == "bot_message"


class MessageEvent(SlackEvent):
    type: Literal["message"] = EVENT_MESSAGE
    channel_type: str | None = None


class AppMentionEvent(SlackEvent):
    type: Literal["app_mention"] = EVENT_APP_MENTION


class OtherEvent(BaseModel):
    """Any event the bot does not answer; its fields vary by type and are kept as extras."""

    model_config = ConfigDict(extra="allow")

    type: str = ""


def _event_tag(value: Any) -> str:
    event_type = _type_of(value)
    if event_type in (EVENT_MESSAGE, EVENT_APP_MENTION):
        return event_type
    return EVENT_OTHER


InboundEvent = Annotated[
    Union[
        Annotated[MessageEvent, Tag(EVENT_MESSAGE)],
        Annotated[AppMentionEvent, Tag(EVENT_APP_MENTION)],
        Annotated[OtherEvent, Tag(EVENT_OTHER)],
    ],
    Discriminator(_event_tag),
]


class UrlVerification(BaseModel):
    type: Literal["url_verification"] = PAYLOAD_URL_VERIFICATION
    challenge: str
    token: str | None = None


class EventCallback(BaseModel):
    type: Literal["event_callback"] = PAYLOAD_EVENT_CALLBACK
    event_id: str = ""
    team_id: str | None = None
    api_app_id: str | None = None
    event_time: int | None = None
    event: InboundEvent


class UnsupportedPayload(BaseModel):
    type: str = ""


def _payload_tag(value: Any) -> str:
    payload_type = _type_of(value)
    if payload_type in (PAYLOAD_URL_VERIFICATION, PAYLOAD_EVENT_CALLBACK):
        return payload_type
    return "unsupported"


WebhookPayload = Annotated[
    Union[
        Annotated[UrlVerification, Tag(PAYLOAD_URL_VERIFICATION)],
        Annotated[EventCallback, Tag(PAYLOAD_EVENT_CALLBACK)],
        Annotated[UnsupportedPayload, Tag("unsupported")],
    ],
    Discriminator(_payload_tag),
]

_webhook_payload_adapter: TypeAdapter[Any] = TypeAdapter(WebhookPayload)


def parse_webhook_payload(data: Any) -> UrlVerification | EventCallback | UnsupportedPayload:
    """Validate a decoded Events API body into exactly one payload variant.

    Raises ``pydantic.ValidationError`` when the body does not fit any variant.
    """
    return _webhook_payload_adapter.validate_python(data)


class ActionableRequest(BaseModel):
    """Work item handed from the webhook phase to the responder phase."""

    event_id: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    user: str | None = None

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prompt must not be blank")
        return value
