"""Gemini generateContent client.

Text-only prompts and prompts with one inline (base64) file are both sent
as a single user turn to the REST endpoint.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
_DEFAULT_MODEL = "gemini-2.5-flash"
_DEFAULT_TIMEOUT_SECONDS = 120.0
_DEFAULT_MIME_TYPE = "application/octet-stream"

_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".wav": "audio/wav",
    ".mp3": "audio/mp3",
    ".m4a": "audio/x-m4a",
    ".mp4": "video/mp4",
    ".mov": "video/mov",
    ".txt": "text/plain",
}


class GeminiError(Exception):
    """The generation call failed or returned no text."""


def mime_type_for(path: str | Path) -> str:
    """MIME type from the file extension, octet-stream when unknown."""
    return _MIME_TYPES.get(Path(path).suffix.lower(), _DEFAULT_MIME_TYPE)


def build_parts(
    prompt: str,
    data_b64: str | None = None,
    mime_type: str | None = None,
) -> list[dict[str, Any]]:
    """Build the ``parts`` array of a generateContent request.

    - No file → a single text part.
    - With file → text part followed by an inline_data part.
    """
    parts: list[dict[str, Any]] = [{"text": prompt}]
    if data_b64 is not None:
        parts.append({
            "inline_data": {
                "mime_type": mime_type or _DEFAULT_MIME_TYPE,
                "data": data_b64,
            },
        })
    return parts


def _extract_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


class GeminiClient:
    """Calls Gemini's generateContent over HTTP."""

    def __init__(
        self,
        api_key: str,
        model: str = _DEFAULT_MODEL,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    async def generate_text(self, prompt: str) -> str:
        return await self._generate(build_parts(prompt))

    async def generate_from_inline_file(self, prompt: str, data_b64: str, mime_type: str) -> str:
        return await self._generate(build_parts(prompt, data_b64, mime_type))

    async def _generate(self, parts: list[dict[str, Any]]) -> str:
        url = f"{_API_BASE}/models/{self._model}:generateContent"
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }
        request_body = {"contents": [{"role": "user", "parts": parts}]}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=request_body, headers=headers)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise GeminiError(f"Gemini unavailable: {exc}") from exc
        except httpx.HTTPError as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning("Gemini returned %d: %s", resp.status_code, resp.text[:200])
            raise GeminiError(f"Gemini API error ({resp.status_code})")

        try:
            text = _extract_text(resp.json())
        except (ValueError, AttributeError, IndexError) as exc:
            raise GeminiError("Malformed Gemini response") from exc
        if not text:
            raise GeminiError("Gemini returned no text")
        return text
