"""Webhook event dispatcher and file-intent negotiation.

Flow per accepted message event:

1. Redeliveries and already-seen event ids are dropped.
2. A loading indicator is shown (best effort).
3. Text either continues a pending file negotiation, answers a command, or
   goes to the model as general chat.
4. Files are recorded as pending and the user is asked what to do with them.
5. Once an instruction arrives the file is downloaded, stored temporarily,
   sent to the model with a prompt chosen from the instruction, and the
   answer is pushed to the user.

``handle`` never raises: the platform retries non-2xx responses, so every
failure ends in a log line or a best-effort message to the user.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from datetime import datetime

from lineassist.webhook import replies
from lineassist.webhook.dedupe import EventIdCache
from lineassist.webhook.files import TempFileManager
from lineassist.webhook.gemini import GeminiClient, GeminiError, mime_type_for
from lineassist.webhook.intents import (
    Command,
    build_chat_prompt,
    classify_intent,
    extension_for,
    match_command,
)
from lineassist.webhook.line import LineApiError, LineClient, Messages
from lineassist.webhook.models import (
    DeliveryStatus,
    FileMessage,
    LookupStatus,
    TextMessage,
    WebhookEvent,
)
from lineassist.webhook.pending import PendingFileStore

logger = logging.getLogger(__name__)


class UnsupportedFileError(Exception):
    """The stored file's MIME type is not on the allowed list."""


class EventDispatcher:
    """Routes LINE webhook events and drives the pending-file negotiation."""

    def __init__(
        self,
        line: LineClient,
        gemini: GeminiClient,
        pending: PendingFileStore,
        temp_files: TempFileManager,
        seen_events: EventIdCache | None = None,
        allowed_mime_types: frozenset[str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._line = line
        self._gemini = gemini
        self._pending = pending
        self._temp_files = temp_files
        self._seen_events = seen_events
        self._allowed_mime_types = allowed_mime_types
        self._clock = clock
        self._now = now
        self._started_at = clock()

    @property
    def pending(self) -> PendingFileStore:
        return self._pending

    def uptime_seconds(self) -> float:
        return self._clock() - self._started_at

    async def aclose(self) -> None:
        await self._temp_files.aclose()

    # -- batch level ---------------------------------------------------------

    async def handle(self, events: list[WebhookEvent]) -> None:
        """Process a webhook batch.

        Events of the same owner run one after another in batch order;
        different owners are handled concurrently.
        """
        by_owner: dict[str, list[WebhookEvent]] = {}
        for index, event in enumerate(events):
            if self._is_duplicate(event):
                continue
            key = event.owner_id or f"anonymous:{index}"
            by_owner.setdefault(key, []).append(event)

        if not by_owner:
            return
        results = await asyncio.gather(
            *(self._handle_owner_events(evs) for evs in by_owner.values()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Unhandled error in event batch", exc_info=result)

    def _is_duplicate(self, event: WebhookEvent) -> bool:
        if event.redelivery:
            logger.info("Skipping redelivered event %s", event.event_id)
            return True
        if self._seen_events is not None and event.event_id:
            if self._seen_events.check_and_mark(event.event_id):
                logger.info("Skipping already processed event %s", event.event_id)
                return True
        return False

    async def _handle_owner_events(self, events: list[WebhookEvent]) -> None:
        for event in events:
            await self.handle_event(event)

    async def handle_event(self, event: WebhookEvent) -> None:
        if event.type != "message" or event.message is None:
            logger.debug("Skipping non-message event %s", event.type)
            return

        if event.owner_id:
            async with self._pending.owner_lock(event.owner_id):
                await self._handle_message_event(event)
        else:
            await self._handle_message_event(event)

    async def _handle_message_event(self, event: WebhookEvent) -> None:
        reply_token = event.reply_token or ""
        owner_id = event.owner_id
        message = event.message
        try:
            if owner_id:
                try:
                    await self._line.show_loading(owner_id)
                except LineApiError as exc:
                    logger.warning("Loading indicator failed (not critical): %s", exc)

            if isinstance(message, TextMessage):
                await self.handle_text(reply_token, message.text, owner_id)
            elif isinstance(message, FileMessage):
                await self.handle_file(reply_token, message, owner_id)
            else:
                logger.info("Unsupported message type from %s", owner_id)
                await self._reply(reply_token, replies.UNSUPPORTED_MESSAGE)
        except Exception:
            logger.exception("Failed to process event %s", event.event_id)
            if reply_token:
                try:
                    await self._reply(reply_token, replies.EVENT_FAILED)
                except Exception:
                    logger.exception("Error reply failed for event %s", event.event_id)

    # -- text ----------------------------------------------------------------

    async def handle_text(self, reply_token: str, text: str, owner_id: str | None) -> None:
        if owner_id and self._pending.has_entry(owner_id):
            await self.process_with_intent(reply_token, owner_id, text)
            return

        command = match_command(text)
        if command is Command.HELP:
            await self._reply(reply_token, replies.HELP_TEXT)
            return
        if command is Command.STATUS:
            uptime_minutes = int(self.uptime_seconds() // 60)
            await self._reply(reply_token, replies.status_text(uptime_minutes, self._now()))
            return

        try:
            answer = await self._gemini.generate_text(build_chat_prompt(text))
        except GeminiError as exc:
            logger.warning("Chat generation failed: %s", exc)
            await self._reply(reply_token, replies.CHAT_FAILED)
            return
        await self._reply(reply_token, answer)

    # -- files ---------------------------------------------------------------

    async def handle_file(
        self, reply_token: str, message: FileMessage, owner_id: str | None
    ) -> None:
        """Remember the file and ask what to do with it. Never downloads."""
        if not owner_id:
            await self._reply(reply_token, replies.NO_OWNER)
            return

        self._pending.put(owner_id, message.media_ref, message.kind)
        logger.info("Pending %s %s for %s", message.kind.value, message.media_ref, owner_id)
        await self._reply(reply_token, replies.file_prompt(message.kind))

    async def process_with_intent(self, reply_token: str, owner_id: str, intent_text: str) -> None:
        """Run the user's instruction against their pending file.

        On success the pending entry is cleared. On failure it is kept so the
        user can try another instruction until the TTL runs out.
        """
        lookup = self._pending.lookup(owner_id)
        if lookup.status is LookupStatus.EXPIRED:
            await self._reply(reply_token, replies.FILE_EXPIRED)
            return
        entry = lookup.entry
        if entry is None:
            await self._reply(reply_token, replies.NO_PENDING_FILE)
            return

        if await self._reply(reply_token, replies.PROCESSING) is DeliveryStatus.TOKEN_INVALID:
            logger.info("Processing notice not delivered for %s, aborting", owner_id)
            return

        path = None
        try:
            content = await self._line.get_content(entry.media_ref)
            path = await asyncio.to_thread(
                self._temp_files.save, content, f"line_{entry.media_ref}", extension_for(entry.kind)
            )
            mime_type = mime_type_for(path)
            if self._allowed_mime_types is not None and mime_type not in self._allowed_mime_types:
                raise UnsupportedFileError(f"Unsupported file type: {mime_type}")

            prompt = classify_intent(intent_text, entry.kind)
            answer = await self._gemini.generate_from_inline_file(
                prompt, base64.b64encode(content).decode(), mime_type
            )
            # The reply token was spent on the processing notice.
            await self._line.push(owner_id, replies.file_answer(answer))
        except Exception:
            logger.exception("Processing %s for %s failed", entry.media_ref, owner_id)
            await self._notify_failure(reply_token, owner_id)
            return
        finally:
            if path is not None:
                self._temp_files.schedule_delete(path)

        self._pending.discard(owner_id, entry)
        logger.info("Completed pending file %s for %s", entry.media_ref, owner_id)

    async def _notify_failure(self, reply_token: str, owner_id: str) -> None:
        try:
            status = await self._reply(reply_token, replies.PROCESSING_FAILED)
            if status is DeliveryStatus.TOKEN_INVALID:
                await self._line.push(owner_id, replies.PROCESSING_FAILED)
        except LineApiError as exc:
            logger.error("Failure notice for %s not delivered: %s", owner_id, exc)

    async def _reply(self, reply_token: str, messages: Messages) -> DeliveryStatus:
        if not reply_token:
            logger.warning("No reply token, message dropped")
            return DeliveryStatus.TOKEN_INVALID
        status = await self._line.reply(reply_token, messages)
        if status is DeliveryStatus.TOKEN_INVALID:
            logger.info("Reply skipped: token invalid or expired")
        return status
