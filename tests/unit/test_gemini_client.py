"""Tests for the Gemini generateContent client."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from lineassist.webhook.gemini import GeminiClient, GeminiError, build_parts, mime_type_for


def _make_response(status_code: int = 200, json_data: Any = None) -> MagicMock:
    resp = MagicMock(status_code=status_code)
    resp.json.return_value = json_data if json_data is not None else {}
    resp.text = ""
    return resp


def _answer(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _make_client_mock(mock_client_cls: MagicMock) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


class TestBuildParts:
    def test_text_only(self) -> None:
        assert build_parts("hello") == [{"text": "hello"}]

    def test_text_then_inline_file(self) -> None:
        parts = build_parts("summarize", "QUJD", "application/pdf")
        assert parts == [
            {"text": "summarize"},
            {"inline_data": {"mime_type": "application/pdf", "data": "QUJD"}},
        ]

    def test_missing_mime_type_defaults_to_octet_stream(self) -> None:
        parts = build_parts("p", "QUJD")
        assert parts[1]["inline_data"]["mime_type"] == "application/octet-stream"


class TestMimeTypeFor:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.pdf", "application/pdf"),
            ("a.JPG", "image/jpeg"),
            ("a.jpeg", "image/jpeg"),
            ("a.m4a", "audio/x-m4a"),
            ("a.mp4", "video/mp4"),
            ("a.txt", "text/plain"),
        ],
    )
    def test_known_extensions(self, name: str, expected: str) -> None:
        assert mime_type_for(name) == expected

    def test_unknown_extension(self) -> None:
        assert mime_type_for("a.xyz") == "application/octet-stream"
        assert mime_type_for("noext") == "application/octet-stream"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_text_posts_single_user_turn(self) -> None:
        client = GeminiClient(api_key="key-1", model="gemini-test")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.return_value = _make_response(200, _answer("hi there"))

            result = await client.generate_text("hello")

        assert result == "hi there"
        url = mock_client.post.call_args[0][0]
        kwargs = mock_client.post.call_args[1]
        assert url.endswith("/models/gemini-test:generateContent")
        assert kwargs["headers"]["x-goog-api-key"] == "key-1"
        assert kwargs["json"] == {"contents": [{"role": "user", "parts": [{"text": "hello"}]}]}

    @pytest.mark.asyncio
    async def test_generate_from_inline_file(self) -> None:
        client = GeminiClient(api_key="k")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.return_value = _make_response(200, _answer("summary"))

            result = await client.generate_from_inline_file("summarize", "QUJD", "application/pdf")

        assert result == "summary"
        parts = mock_client.post.call_args[1]["json"]["contents"][0]["parts"]
        assert parts[1]["inline_data"] == {"mime_type": "application/pdf", "data": "QUJD"}

    @pytest.mark.asyncio
    async def test_multiple_parts_are_joined(self) -> None:
        client = GeminiClient(api_key="k")
        body = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.return_value = _make_response(200, body)

            assert await client.generate_text("x") == "ab"

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self) -> None:
        client = GeminiClient(api_key="k")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.return_value = _make_response(500)

            with pytest.raises(GeminiError, match="500"):
                await client.generate_text("x")

    @pytest.mark.asyncio
    async def test_timeout_raises(self) -> None:
        client = GeminiClient(api_key="k")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.side_effect = httpx.ReadTimeout("slow")

            with pytest.raises(GeminiError, match="unavailable"):
                await client.generate_text("x")

    @pytest.mark.asyncio
    async def test_empty_candidates_raise(self) -> None:
        client = GeminiClient(api_key="k")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            mock_client.post.return_value = _make_response(200, {"candidates": []})

            with pytest.raises(GeminiError, match="no text"):
                await client.generate_text("x")

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self) -> None:
        client = GeminiClient(api_key="k")
        with patch("lineassist.webhook.gemini.httpx.AsyncClient") as mock_client_cls:
            mock_client = _make_client_mock(mock_client_cls)
            resp = _make_response(200)
            resp.json.side_effect = ValueError("not json")
            mock_client.post.return_value = resp

            with pytest.raises(GeminiError, match="Malformed"):
                await client.generate_text("x")
