"""HTTP ingress for the LINE webhook."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import APIRouter, BackgroundTasks, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from lineassist.config import Settings, get_settings
from lineassist.webhook.dedupe import EventIdCache
from lineassist.webhook.dispatcher import EventDispatcher
from lineassist.webhook.files import TempFileManager
from lineassist.webhook.gemini import GeminiClient
from lineassist.webhook.line import LineClient
from lineassist.webhook.models import parse_events
from lineassist.webhook.pending import PendingFileStore

logger = logging.getLogger(__name__)


def build_line_client(settings: Settings) -> LineClient:
    return LineClient(
        channel_access_token=settings.LINE_CHANNEL_ACCESS_TOKEN,
        channel_secret=settings.LINE_CHANNEL_SECRET,
        max_content_size=settings.MAX_FILE_SIZE,
    )


def build_dispatcher(settings: Settings, line: LineClient) -> EventDispatcher:
    return EventDispatcher(
        line=line,
        gemini=GeminiClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout=settings.GEMINI_TIMEOUT_SECONDS,
        ),
        pending=PendingFileStore(ttl_seconds=settings.PENDING_FILE_TTL_SECONDS),
        temp_files=TempFileManager(
            settings.UPLOAD_DIR,
            delete_delay_seconds=settings.TEMP_FILE_DELETE_DELAY_SECONDS,
        ),
        seen_events=EventIdCache(ttl_seconds=settings.EVENT_DEDUPE_TTL_SECONDS),
        allowed_mime_types=frozenset(settings.ALLOWED_MIME_TYPES),
    )


def create_app(
    settings: Settings | None = None,
    line: LineClient | None = None,
    dispatcher: EventDispatcher | None = None,
    temp_files: TempFileManager | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    line = line or build_line_client(settings)
    dispatcher = dispatcher or build_dispatcher(settings, line)
    temp_files = temp_files or TempFileManager(settings.UPLOAD_DIR)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await asyncio.to_thread(temp_files.cleanup_old_files)
        try:
            yield
        finally:
            await dispatcher.aclose()

    app = FastAPI(lifespan=lifespan)
    router = APIRouter()

    @router.get("/webhook")
    async def webhook_ready() -> dict[str, str]:
        return {
            "status": "LINE webhook endpoint is ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @router.post("/webhook")
    async def webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_line_signature: str | None = Header(default=None),
    ) -> JSONResponse:
        body = await request.body()

        if settings.LINE_CHANNEL_SECRET and not line.verify_signature(body, x_line_signature):
            logger.warning("Webhook signature verification failed")
            return JSONResponse(status_code=401, content={"success": False, "error": "Invalid signature"})

        # From here on always 200: LINE redelivers anything else.
        try:
            events = parse_events(json.loads(body))
        except (ValueError, TypeError, AttributeError):
            logger.exception("Malformed webhook body")
            return JSONResponse(status_code=200, content={"success": False, "error": "Malformed body"})

        logger.info("Received %d webhook events", len(events))
        background_tasks.add_task(dispatcher.handle, events)
        return JSONResponse(status_code=200, content={"success": True, "message": "Events accepted"})

    @router.get("/health")
    async def health() -> dict[str, object]:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started_at, 3),
            "basePath": settings.BASE_PATH or "/",
        }

    app.include_router(router, prefix=settings.BASE_PATH.rstrip("/"))
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    return app
