"""Hand actionable events off from the webhook path.

Slack abandons a webhook call that is not acknowledged within a few seconds,
which is less than a model call can take. The default ``queue`` strategy
publishes the request to QStash and returns at once; QStash later POSTs it to
the internal process endpoint and retries that call until it succeeds.
"""

from __future__ import annotations

import asyncio
import logging

import requests

from poetbot.config import Settings
from poetbot.errors import ConfigurationError, DeliveryError, DispatchError, GenerationError
from poetbot.slack.event_types import HEADER_INTERNAL_TOKEN
from poetbot.slack.events import ActionableRequest
from poetbot.workflows.poem.workflow import PoemResponder

logger = logging.getLogger("poetbot")


class Dispatcher:
    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def dispatch(self, request: ActionableRequest) -> None:
        raise NotImplementedError


class QueueDispatcher(Dispatcher):
    def __init__(
        self,
        qstash_url: str,
        qstash_token: str,
        callback_url: str,
        internal_token: str = "",
        retries: int = 3,
        timeout: float = 15.0,
    ) -> None:
        self.qstash_url = qstash_url
        self.qstash_token = qstash_token
        self.callback_url = callback_url
        self.internal_token = internal_token
        self.retries = retries
        self.timeout = timeout

    async def dispatch(self, request: ActionableRequest) -> None:
        await asyncio.to_thread(self.publish, request)

    def publish(self, request: ActionableRequest) -> None:
        if not self.qstash_token or not self.callback_url or not self.internal_token:
            raise ConfigurationError(
                "QStash token, public callback URL and internal token are required for queue dispatch"
            )

        endpoint = f"{self.qstash_url.rstrip('/')}/v2/publish/{self.callback_url}"
        headers = {
            "Authorization": f"Bearer {self.qstash_token}",
            "Content-Type": "application/json",
            "Upstash-Retries": str(self.retries),
            # Same id for Slack redeliveries, so QStash drops the second publish.
            "Upstash-Deduplication-Id": request.event_id,
            f"Upstash-Forward-{HEADER_INTERNAL_TOKEN}": self.internal_token,
        }

        try:
            response = requests.post(
                endpoint,
                data=request.model_dump_json(),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise DispatchError(f"QStash publish failed for event_id={request.event_id}: {exc}") from exc

        message_id = ""
        if response.content:
            message_id = str(response.json().get("messageId", "") or "")
        logger.info("Queued event for processing. event_id=%s message_id=%s", request.event_id, message_id)


class InlineDispatcher(Dispatcher):
    """Generate and deliver before acknowledging; only safe with a fast model."""

    def __init__(self, responder: PoemResponder) -> None:
        self.responder = responder

    async def dispatch(self, request: ActionableRequest) -> None:
        try:
            await asyncio.to_thread(self.responder.respond, request)
        except (GenerationError, DeliveryError) as exc:
            raise DispatchError(f"inline processing failed for event_id={request.event_id}: {exc}") from exc


class BackgroundDispatcher(Dispatcher):
    """Answer events from asyncio tasks inside the web process.

    Lets ``DISPATCH_MODE=background`` run without QStash or a public callback
    URL, e.g. behind a tunnel on a laptop. Requests still waiting when the
    process exits are lost, and a failed reply is logged but never retried.
    """

    def __init__(
        self,
        responder: PoemResponder,
        worker_count: int = 2,
        max_queue_size: int = 1000,
    ) -> None:
        self.responder = responder
        self.worker_count = worker_count
        self.max_queue_size = max_queue_size
        self.queue: asyncio.Queue[ActionableRequest | None] | None = None
        self.workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self.queue is not None

    async def start(self) -> None:
        if self.queue is not None:
            return
        # Created here so the queue belongs to the server's event loop.
        queue: asyncio.Queue[ActionableRequest | None] = asyncio.Queue(maxsize=self.max_queue_size)
        self.queue = queue
        self.workers = [asyncio.create_task(self._reply_loop(queue, n)) for n in range(self.worker_count)]

    async def stop(self) -> None:
        queue, self.queue = self.queue, None
        if queue is None:
            return
        # One sentinel per worker, queued behind pending requests so they drain first.
        for _ in self.workers:
            await queue.put(None)
        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers = []

    async def dispatch(self, request: ActionableRequest) -> None:
        if self.queue is None:
            raise DispatchError("background dispatcher is not running")
        try:
            self.queue.put_nowait(request)
        except asyncio.QueueFull as exc:
            raise DispatchError(f"background queue is full; dropping event_id={request.event_id}") from exc

    async def join(self) -> None:
        if self.queue is not None:
            await self.queue.join()

    async def _reply_loop(self, queue: asyncio.Queue[ActionableRequest | None], worker_id: int) -> None:
        while True:
            request = await queue.get()
            if request is None:
                queue.task_done()
                return
            try:
                await asyncio.to_thread(self.responder.respond, request)
            except Exception:
                logger.exception(
                    "Background reply failed and will not be retried. worker=%s event_id=%s",
                    worker_id,
                    request.event_id,
                )
            finally:
                queue.task_done()


def build_dispatcher(config: Settings, responder: PoemResponder) -> Dispatcher:
    if config.dispatch_mode == "inline":
        return InlineDispatcher(responder)
    if config.dispatch_mode == "background":
        return BackgroundDispatcher(
            responder,
            worker_count=config.webhook_worker_count,
            max_queue_size=config.webhook_queue_maxsize,
        )

    callback_url = ""
    if config.public_base_url:
        callback_url = f"{config.public_base_url.rstrip('/')}{config.process_path}"
    return QueueDispatcher(
        qstash_url=config.qstash_url,
        qstash_token=config.qstash_token,
        callback_url=callback_url,
        internal_token=config.internal_token,
        retries=config.qstash_retries,
        timeout=config.http_timeout_seconds,
    )
