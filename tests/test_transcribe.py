"""Tests for the transcribe module."""

from __future__ import annotations

import base64
import json
from typing import Callable

import httpx
import pytest

from wisperflow.config import ModelConfig, ProviderConfig, SttProvider
from wisperflow.errors import (
    AuthenticationError,
    MissingCredentialError,
    ProviderHTTPError,
    TranscriptionError,
)
from wisperflow.transcribe import TranscriptionClient, gemini_text

Handler = Callable[[httpx.Request], httpx.Response]

WHISPER = ProviderConfig(SttProvider.WHISPER, "sk-test")
GEMINI = ProviderConfig(SttProvider.GEMINI, "g-test")


def make_client(handler: Handler) -> TranscriptionClient:
    return TranscriptionClient(
        ModelConfig(),
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestWhisperTranscriber:
    """Tests for the file-upload provider."""

    def test_transcribe_uploads_wav(self, sample_pcm: bytes) -> None:
        """Test audio is sent as a WAV attachment with model and bearer token."""
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.content
            return httpx.Response(200, json={"text": "hello world"})

        text = make_client(handler).transcribe(sample_pcm, None, WHISPER)

        assert text == "hello world"
        assert seen["url"] == "https://api.openai.com/v1/audio/transcriptions"
        assert seen["auth"] == "Bearer sk-test"
        body = seen["body"]
        assert isinstance(body, bytes)
        assert b'filename="audio.wav"' in body
        assert b"RIFF" in body
        assert b"whisper-1" in body
        assert b'name="language"' not in body

    def test_transcribe_sends_language(self, sample_pcm: bytes) -> None:
        """Test a language hint becomes a form field."""
        bodies: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(200, json={"text": "dzien dobry"})

        make_client(handler).transcribe(sample_pcm, "pl", WHISPER)

        assert b'name="language"' in bodies[0]

    def test_missing_key(self, sample_pcm: bytes) -> None:
        """Test missing credential raises before any request."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(MissingCredentialError) as exc_info:
            make_client(handler).transcribe(
                sample_pcm, None, ProviderConfig(SttProvider.WHISPER, "")
            )
        assert exc_info.value.provider == "OpenAI"

    def test_unauthorized(self, sample_pcm: bytes) -> None:
        """Test 401 maps to AuthenticationError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Incorrect API key"}})

        with pytest.raises(AuthenticationError) as exc_info:
            make_client(handler).transcribe(sample_pcm, None, WHISPER)
        assert exc_info.value.status_code == 401

    def test_server_error(self, sample_pcm: bytes) -> None:
        """Test other non-success statuses raise ProviderHTTPError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(ProviderHTTPError) as exc_info:
            make_client(handler).transcribe(sample_pcm, None, WHISPER)
        assert not isinstance(exc_info.value, AuthenticationError)
        assert "500" in str(exc_info.value)

    def test_transport_error(self, sample_pcm: bytes) -> None:
        """Test connection failures raise TranscriptionError naming the provider."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TranscriptionError) as exc_info:
            make_client(handler).transcribe(sample_pcm, None, WHISPER)
        assert "OpenAI" in str(exc_info.value)

    def test_missing_text_field(self, sample_pcm: bytes) -> None:
        """Test a body without text yields an empty transcript."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        assert make_client(handler).transcribe(sample_pcm, None, WHISPER) == ""


class TestGeminiTranscriber:
    """Tests for the inline-data provider."""

    def test_transcribe_inlines_audio(self, sample_pcm: bytes) -> None:
        """Test audio is base64-inlined next to the instruction."""
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.url.params.get("key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "hello world"}]}}]},
            )

        text = make_client(handler).transcribe(sample_pcm, None, GEMINI)

        assert text == "hello world"
        assert seen["path"] == "/v1beta/models/gemini-2.0-flash:generateContent"
        assert seen["key"] == "g-test"
        parts = seen["body"]["contents"][0]["parts"]  # type: ignore[index]
        inline = parts[0]["inline_data"]
        assert inline["mime_type"] == "audio/wav"
        assert base64.b64decode(inline["data"]).startswith(b"RIFF")
        assert "exactly as spoken" in parts[1]["text"]

    def test_language_hint_in_prompt(self, sample_pcm: bytes) -> None:
        prompts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            prompts.append(json.loads(request.content)["contents"][0]["parts"][1]["text"])
            return httpx.Response(200, json={"candidates": []})

        make_client(handler).transcribe(sample_pcm, "de", GEMINI)

        assert "German" in prompts[0]

    def test_empty_candidates(self, sample_pcm: bytes) -> None:
        """Test a missing transcript yields an empty string."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        assert make_client(handler).transcribe(sample_pcm, None, GEMINI) == ""

    def test_forbidden(self, sample_pcm: bytes) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED"}})

        with pytest.raises(AuthenticationError) as exc_info:
            make_client(handler).transcribe(sample_pcm, None, GEMINI)
        assert exc_info.value.provider == "Gemini"

    def test_missing_key(self, sample_pcm: bytes) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(MissingCredentialError):
            make_client(handler).transcribe(
                sample_pcm, None, ProviderConfig(SttProvider.GEMINI, "")
            )


class TestGeminiText:
    """Tests for gemini_text response extraction."""

    def test_nested_text(self) -> None:
        payload = {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
        assert gemini_text(payload) == "hi"

    def test_malformed_shapes(self) -> None:
        assert gemini_text({}) == ""
        assert gemini_text({"candidates": [{}]}) == ""
        assert gemini_text(None) == ""
        assert gemini_text({"candidates": [{"content": {"parts": ["x"]}}]}) == ""
