from __future__ import annotations


class PoetbotError(Exception):
    """Base class for failures the HTTP layer maps to a status code."""


class ConfigurationError(PoetbotError):
    """A required secret, token or URL is not configured."""


class DispatchError(PoetbotError):
    """An actionable event could not be handed off for processing."""


class _EventError(PoetbotError):
    def __init__(self, message: str, event_id: str = "") -> None:
        super().__init__(message)
        self.event_id = event_id


class GenerationError(_EventError):
    """The text-generation capability failed or returned nothing."""


class DeliveryError(_EventError):
    """The reply could not be posted back to Slack."""
