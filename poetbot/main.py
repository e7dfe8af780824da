import asyncio
import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from poetbot.config import Settings, settings
from poetbot.errors import ConfigurationError, DeliveryError, DispatchError, GenerationError
from poetbot.processing.dedupe import DuplicateGuard, build_duplicate_guard
from poetbot.processing.dispatcher import Dispatcher, build_dispatcher
from poetbot.slack.classifier import Ignore, Process, RespondChallenge, classify
from poetbot.slack.event_types import (
    HEADER_INTERNAL_TOKEN,
    HEADER_RETRY_NUM,
    HEADER_RETRY_REASON,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    PAYLOAD_URL_VERIFICATION,
)
from poetbot.slack.events import ActionableRequest, parse_webhook_payload
from poetbot.slack.signature import verify_request
from poetbot.workflows.poem.workflow import PoemResponder, build_responder

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("poetbot")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _preview(text: str | None) -> str:
    text = text or ""
    return text[:50] + "..." if len(text) > 50 else text


def create_app(
    config: Settings = settings,
    responder: PoemResponder | None = None,
    dispatcher: Dispatcher | None = None,
    guard: DuplicateGuard | None = None,
) -> FastAPI:
    guard = guard if guard is not None else build_duplicate_guard(config)
    responder = responder if responder is not None else build_responder(config, guard)
    dispatcher = dispatcher if dispatcher is not None else build_dispatcher(config, responder)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await dispatcher.start()
        try:
            yield
        finally:
            await dispatcher.stop()

    app = FastAPI(title="Slack Poetry Bot", version="0.1.0", lifespan=lifespan)
    app.state.guard = guard
    app.state.responder = responder
    app.state.dispatcher = dispatcher

    @app.get("/")
    def index() -> PlainTextResponse:
        return PlainTextResponse("Hello World!")

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(config.events_path)
    async def slack_events(request: Request):
        if not config.slack_signing_secret or not config.slack_bot_token:
            logger.error("SLACK_SIGNING_SECRET or SLACK_BOT_TOKEN is not configured")
            return _error(500, "Missing env vars")

        raw_body = await request.body()
        try:
            data: Any = json.loads(raw_body)
        except ValueError:
            data = None

        # Slack does not sign the one-time endpoint ownership challenge.
        if isinstance(data, dict) and data.get("type") == PAYLOAD_URL_VERIFICATION:
            try:
                action = classify(parse_webhook_payload(data))
            except ValidationError:
                logger.warning("Rejected malformed URL verification payload")
                return _error(400, "invalid payload")
            if isinstance(action, RespondChallenge):
                logger.info("Received URL verification challenge")
                return JSONResponse(status_code=200, content={"challenge": action.challenge})

        valid = verify_request(
            raw_body,
            request.headers.get(HEADER_TIMESTAMP),
            request.headers.get(HEADER_SIGNATURE),
            config.slack_signing_secret,
            window=config.slack_replay_window_seconds,
        )
        if not valid:
            logger.warning("Rejected Slack request with invalid signature")
            return _error(401, "Invalid signature")

        retry_num = request.headers.get(HEADER_RETRY_NUM)
        if retry_num:
            logger.info(
                "Slack redelivery retry_num=%s reason=%s",
                retry_num,
                request.headers.get(HEADER_RETRY_REASON, ""),
            )

        if data is None:
            logger.warning("Rejected signed request with invalid JSON body")
            return _error(400, "invalid payload")
        try:
            action = classify(parse_webhook_payload(data))
        except ValidationError:
            logger.warning("Rejected unparseable Slack payload")
            return _error(400, "invalid payload")

        if isinstance(action, Ignore):
            logger.info("Ignoring event: %s", action.reason)
            return JSONResponse(status_code=200, content={"ok": True})

        if not isinstance(action, Process):
            raise TypeError(f"unhandled classifier action: {action!r}")

        actionable = action.request
        logger.info(
            "Processing event_id=%s user=%s channel=%s text=%s",
            actionable.event_id,
            actionable.user,
            actionable.channel,
            _preview(actionable.prompt),
        )

        if await asyncio.to_thread(guard.already_processed, actionable.event_id):
            logger.info("Event already answered. event_id=%s", actionable.event_id)
            return JSONResponse(status_code=200, content={"ok": True})

        try:
            await dispatcher.dispatch(actionable)
        except (DispatchError, ConfigurationError) as exc:
            logger.error("Dispatch failed. event_id=%s error=%s", actionable.event_id, exc)
            return _error(500, "dispatch failed")

        return JSONResponse(status_code=200, content={"ok": True})

    @app.post(config.process_path)
    async def process_event(request: Request):
        if not config.internal_token:
            logger.error("INTERNAL_TOKEN is not configured")
            return _error(500, "Missing env vars")

        presented = request.headers.get(HEADER_INTERNAL_TOKEN, "")
        if not hmac.compare_digest(presented.encode("utf-8"), config.internal_token.encode("utf-8")):
            logger.warning("Rejected process call with invalid internal token")
            return _error(401, "Unauthorized")

        raw_body = await request.body()
        try:
            actionable = ActionableRequest.model_validate_json(raw_body)
        except ValidationError:
            logger.warning("Rejected invalid process payload")
            return _error(400, "invalid payload")

        try:
            delivered = await asyncio.to_thread(responder.respond, actionable)
        except (GenerationError, DeliveryError) as exc:
            logger.error("Processing failed; asking queue to retry. event_id=%s error=%s", exc.event_id, exc)
            return _error(500, str(exc))

        return JSONResponse(status_code=200, content={"ok": True, "delivered": delivered})

    return app


app = create_app()
