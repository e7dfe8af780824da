"""Decide what to do with a verified webhook payload.

Classification only looks at fields already present in the payload, so it is
cheap and free of side effects and can run before anything expensive happens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import assert_never

from poetbot.slack.event_types import CHANNEL_TYPE_IM
from poetbot.slack.events import (
    ActionableRequest,
    AppMentionEvent,
    EventCallback,
    MessageEvent,
    OtherEvent,
    UnsupportedPayload,
    UrlVerification,
)

MENTION_PATTERN = re.compile(r"<@[^>]*>")


@dataclass(frozen=True)
class RespondChallenge:
    challenge: str


@dataclass(frozen=True)
class Ignore:
    reason: str


@dataclass(frozen=True)
class Process:
    request: ActionableRequest


Action = RespondChallenge | Ignore | Process


def strip_mentions(text: str) -> str:
    return MENTION_PATTERN.sub("", text).strip()


def classify(payload: UrlVerification | EventCallback | UnsupportedPayload) -> Action:
    if isinstance(payload, UrlVerification):
        return RespondChallenge(payload.challenge)
    if isinstance(payload, UnsupportedPayload):
        return Ignore(f"unsupported top-level type: {payload.type or '<missing>'}")
    if isinstance(payload, EventCallback):
        return _classify_event_callback(payload)
    assert_never(payload)


def _classify_event_callback(payload: EventCallback) -> Action:
    event = payload.event
    if not payload.event_id:
        return Ignore("event_callback without event_id")
    if isinstance(event, OtherEvent):
        return Ignore(f"unsupported event type: {event.type or '<missing>'}")
    if event.subtype:
        return Ignore(f"system message subtype: {event.subtype}")
    if event.from_bot:
        return Ignore("bot-originated message")

    text = (event.text or "").strip()

    if isinstance(event, MessageEvent):
        if event.channel_type != CHANNEL_TYPE_IM:
            return Ignore(f"non-direct message in channel_type={event.channel_type}")
        if not text:
            return Ignore("direct message without text")
        prompt = text
    elif isinstance(event, AppMentionEvent):
        prompt = strip_mentions(text)
        if not prompt:
            return Ignore("mention without content")
    else:
        assert_never(event)

    if not event.channel:
        return Ignore("event without channel")

    return Process(
        ActionableRequest(
            event_id=payload.event_id,
            channel=event.channel,
            prompt=prompt,
            user=event.user,
        )
    )
