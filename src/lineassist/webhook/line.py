"""LINE Messaging API client.

Wraps reply, push, loading indicator, content download and profile lookup.
Reply tokens are single use and short lived: a reply rejected because the
token is invalid is reported as DeliveryStatus.TOKEN_INVALID rather than
raised, every other failure surfaces as LineApiError.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Union

import httpx

from lineassist.webhook.models import DeliveryStatus

logger = logging.getLogger(__name__)

_API_BASE = "https://api.line.me/v2/bot"
_DATA_API_BASE = "https://api-data.line.me/v2/bot"
_MAX_RETRIES = 3
_BACKOFF_CAP_SECONDS = 30
_MAX_TEXT_LENGTH = 5000  # LINE text message limit
_DEFAULT_MAX_CONTENT_SIZE = 10 * 1024 * 1024
_DEFAULT_TIMEOUT_SECONDS = 30.0

Messages = Union[str, dict[str, Any], list[Union[str, dict[str, Any]]]]


class LineApiError(Exception):
    """A LINE API call failed (network error or non-2xx response)."""

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        detail = f"{operation} failed"
        if status_code is not None:
            detail += f" ({status_code})"
        super().__init__(f"{detail}: {message}")


@dataclass
class LineProfile:
    user_id: str
    display_name: str
    picture_url: str | None = None
    status_message: str | None = None
    language: str | None = None


def text_message(text: str) -> dict[str, Any]:
    """Wrap plain text into a LINE text message object."""
    return {"type": "text", "text": text[:_MAX_TEXT_LENGTH]}


def _as_messages(messages: Messages) -> list[dict[str, Any]]:
    items = messages if isinstance(messages, list) else [messages]
    return [text_message(m) if isinstance(m, str) else m for m in items]


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return resp.text


class LineClient:
    """Async client for the LINE Messaging API."""

    def __init__(
        self,
        channel_access_token: str,
        channel_secret: str = "",
        max_content_size: int = _DEFAULT_MAX_CONTENT_SIZE,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._headers = {
            "Authorization": f"Bearer {channel_access_token}",
            "Content-Type": "application/json",
        }
        self._channel_secret = channel_secret
        self._max_content_size = max_content_size
        self._timeout = timeout

    def verify_signature(self, body: bytes, signature: str | None) -> bool:
        """Check the X-Line-Signature header against the raw request body.

        The signature is the base64 HMAC-SHA256 of the body keyed with the
        channel secret; compared in constant time.
        """
        if not signature or not self._channel_secret:
            return False
        digest = hmac.new(self._channel_secret.encode(), body, hashlib.sha256).digest()
        expected = base64.b64encode(digest).decode()
        return hmac.compare_digest(signature, expected)

    async def reply(self, reply_token: str, messages: Messages) -> DeliveryStatus:
        """Answer an inbound event. Never retried: the token is single use."""
        url = f"{_API_BASE}/message/reply"
        payload = {"replyToken": reply_token, "messages": _as_messages(messages)}

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                resp = await client.post(url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise LineApiError("reply", str(exc)) from exc

        if resp.status_code < 400:
            return DeliveryStatus.SENT
        message = _error_message(resp)
        if self._is_invalid_reply_token(resp.status_code, message):
            logger.info("Reply token rejected as invalid or expired")
            return DeliveryStatus.TOKEN_INVALID
        raise LineApiError("reply", message, resp.status_code)

    async def push(self, to: str, messages: Messages) -> None:
        """Send messages to a user, group or room id.

        Retries on 429/5xx with exponential backoff capped at 30s. All
        attempts share one X-Line-Retry-Key so LINE delivers at most once.
        """
        url = f"{_API_BASE}/message/push"
        payload = {"to": to, "messages": _as_messages(messages)}
        headers = {**self._headers, "X-Line-Retry-Key": str(uuid.uuid4())}

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                for attempt in range(_MAX_RETRIES + 1):
                    resp = await client.post(url, json=payload, headers=headers)

                    if resp.status_code < 400:
                        return
                    # 409: a previous attempt with this retry key was accepted
                    if resp.status_code == 409 and attempt > 0:
                        return
                    if not self._should_retry(resp.status_code) or attempt == _MAX_RETRIES:
                        raise LineApiError("push", _error_message(resp), resp.status_code)
                    delay = min(2 ** attempt, _BACKOFF_CAP_SECONDS)
                    logger.warning(
                        "LINE push returned %d, retrying in %ds (attempt %d/%d)",
                        resp.status_code,
                        delay,
                        attempt + 1,
                        _MAX_RETRIES,
                    )
                    await asyncio.sleep(delay)
        except httpx.HTTPError as exc:
            raise LineApiError("push", str(exc)) from exc

    async def show_loading(self, chat_id: str, seconds: int = 20) -> None:
        """Show the loading animation in a 1:1 chat."""
        url = f"{_API_BASE}/chat/loading/start"
        payload = {"chatId": chat_id, "loadingSeconds": seconds}

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                resp = await client.post(url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise LineApiError("show_loading", str(exc)) from exc
        if resp.status_code >= 400:
            raise LineApiError("show_loading", _error_message(resp), resp.status_code)

    async def get_content(self, message_id: str) -> bytes:
        """Download the binary content of an image/video/audio/file message.

        The size cap is enforced both from Content-Length and on the bytes
        actually received.
        """
        url = f"{_DATA_API_BASE}/message/{message_id}/content"

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                resp = await client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise LineApiError("get_content", str(exc)) from exc

        if resp.status_code >= 400:
            raise LineApiError("get_content", _error_message(resp), resp.status_code)

        declared = int(resp.headers.get("content-length") or 0)
        if declared > self._max_content_size:
            raise ValueError(
                f"Content too large: {declared} bytes (max {self._max_content_size})"
            )
        content = resp.content
        if len(content) > self._max_content_size:
            raise ValueError(
                f"Content too large: {len(content)} bytes (max {self._max_content_size})"
            )
        return content

    async def get_profile(self, user_id: str) -> LineProfile:
        url = f"{_API_BASE}/profile/{user_id}"

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                resp = await client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise LineApiError("get_profile", str(exc)) from exc

        if resp.status_code >= 400:
            raise LineApiError("get_profile", _error_message(resp), resp.status_code)
        data = resp.json()
        return LineProfile(
            user_id=data.get("userId", user_id),
            display_name=data.get("displayName", ""),
            picture_url=data.get("pictureUrl"),
            status_message=data.get("statusMessage"),
            language=data.get("language"),
        )

    @staticmethod
    def _is_invalid_reply_token(status_code: int, message: str) -> bool:
        return status_code == 400 and "reply token" in message.lower()

    @staticmethod
    def _should_retry(status_code: int) -> bool:
        """Only retry on 429 (rate limit) or 5xx (server error)."""
        return status_code == 429 or status_code >= 500
