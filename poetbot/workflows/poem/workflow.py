from __future__ import annotations

import logging
from typing import Any, Callable

import requests
from langchain_openai import ChatOpenAI

from poetbot.config import Settings
from poetbot.errors import DeliveryError, GenerationError
from poetbot.processing.dedupe import DuplicateGuard
from poetbot.slack.client import SlackClient
from poetbot.slack.events import ActionableRequest
from poetbot.workflows.poem.graph import build_poem_graph

logger = logging.getLogger("poetbot")


def build_llm(config: Settings) -> ChatOpenAI:
    return ChatOpenAI(
        api_key=config.llm_api_key,
        model=config.llm_model,
        base_url=config.llm_base_url,
        temperature=config.llm_temperature,
    )


class PoemGenerator:
    """Text-generation capability: ``generate(prompt, system_prompt) -> poem``."""

    def __init__(
        self,
        llm: Any = None,
        prompt_template: str = "{text}",
        llm_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._llm = llm
        self._llm_factory = llm_factory
        self.prompt_template = prompt_template
        self.graph = build_poem_graph()

    @property
    def llm(self) -> Any:
        # Built on first use so the app can start before LLM credentials are set.
        if self._llm is None and self._llm_factory is not None:
            self._llm = self._llm_factory()
        return self._llm

    def generate(self, prompt: str, system_prompt: str) -> str:
        try:
            state = {
                "llm": self.llm,
                "prompt": prompt,
                "system_prompt": system_prompt,
                "prompt_template": self.prompt_template,
                "user_prompt": "",
                "poem": "",
            }
            result = self.graph.invoke(state)
        except Exception as exc:
            raise GenerationError(f"model call failed: {exc}") from exc

        poem = str(result.get("poem", "")).strip()
        if not poem:
            raise GenerationError("model returned an empty poem")
        return poem


class PoemResponder:
    def __init__(
        self,
        generator: PoemGenerator,
        slack_client: SlackClient,
        guard: DuplicateGuard,
        system_prompt: str,
    ) -> None:
        self.generator = generator
        self.slack_client = slack_client
        self.guard = guard
        self.system_prompt = system_prompt

    def respond(self, request: ActionableRequest) -> bool:
        """Generate a poem for ``request`` and post it to its channel.

        Returns False without side effects when the event was already answered,
        True once the reply is delivered and the event marked processed. Raises
        GenerationError or DeliveryError otherwise; the event is then left
        unmarked so a retry can answer it.
        """
        event_id = request.event_id
        if self.guard.already_processed(event_id):
            logger.info("Skipping already processed event. event_id=%s", event_id)
            return False

        try:
            poem = self.generator.generate(request.prompt, self.system_prompt)
        except GenerationError as exc:
            exc.event_id = event_id
            logger.error("Poem generation failed. event_id=%s error=%s", event_id, exc)
            raise

        # Another attempt may have delivered while the model was running.
        if self.guard.already_processed(event_id):
            logger.info("Event answered during generation; dropping reply. event_id=%s", event_id)
            return False

        try:
            result = self.slack_client.post_message(request.channel, poem)
        except requests.RequestException as exc:
            logger.exception("chat.postMessage request failed. event_id=%s", event_id)
            raise DeliveryError(f"chat.postMessage request failed: {exc}", event_id) from exc

        if not result.get("ok"):
            error = result.get("error", "unknown_error")
            logger.error("Failed to send message. event_id=%s error=%s", event_id, error)
            raise DeliveryError(f"chat.postMessage returned error: {error}", event_id)

        self.guard.mark_processed(event_id)
        logger.info("Delivered poem. event_id=%s channel=%s", event_id, request.channel)
        return True


def build_responder(config: Settings, guard: DuplicateGuard) -> PoemResponder:
    slack_client = SlackClient(
        token=config.slack_bot_token,
        api_base_url=config.slack_api_base_url,
        post_message_path=config.slack_post_message_path,
        timeout=config.http_timeout_seconds,
    )
    generator = PoemGenerator(
        prompt_template=config.poem_prompt_template,
        llm_factory=lambda: build_llm(config),
    )
    return PoemResponder(
        generator=generator,
        slack_client=slack_client,
        guard=guard,
        system_prompt=config.llm_system_prompt,
    )
