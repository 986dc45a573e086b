"""Speech-to-text through hosted providers."""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from wisperflow.audio import DEFAULT_SAMPLE_RATE, pcm_to_wav
from wisperflow.config import LANGUAGE_NAMES, ModelConfig, SttProvider
from wisperflow.errors import (
    AuthenticationError,
    MissingCredentialError,
    ProviderHTTPError,
    TranscriptionError,
)

if TYPE_CHECKING:
    from wisperflow.config import ProviderConfig

logger = logging.getLogger(__name__)

TRANSCRIBE_INSTRUCTION = (
    "Transcribe this audio exactly as spoken. "
    "Return only the transcription, nothing else."
)


def check_response(provider: str, response: httpx.Response) -> None:
    """Raise the matching TranscriptionError for a non-success response."""
    if response.is_success:
        return
    body = response.text
    if response.status_code in (401, 403):
        raise AuthenticationError(provider, response.status_code, body)
    raise ProviderHTTPError(provider, response.status_code, body)


def gemini_text(payload: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a generateContent body."""
    try:
        return str(payload["candidates"][0]["content"]["parts"][0].get("text", ""))
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""


class Transcriber(ABC):
    """One speech-to-text provider."""

    provider: SttProvider
    label: str

    def __init__(
        self,
        client: httpx.Client,
        models: ModelConfig,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        self._client = client
        self._models = models
        self._sample_rate = sample_rate

    @abstractmethod
    def transcribe(self, audio: bytes, language: str | None, api_key: str) -> str:
        """
        Transcribe PCM audio.

        Args:
            audio: Mono 16-bit PCM bytes.
            language: ISO language code, or None to auto-detect.
            api_key: Provider credential.

        Returns:
            Transcribed text (possibly empty).
        """
        ...

    def _require_key(self, api_key: str) -> None:
        if not api_key:
            raise MissingCredentialError(
                self.label, f"{self.label} API key not configured. Run: wisperflow setup"
            )

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.post(url, **kwargs)
        except httpx.TimeoutException as e:
            raise TranscriptionError(self.label, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TranscriptionError(self.label, f"request failed: {e}") from e
        check_response(self.label, response)
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TranscriptionError(self.label, f"invalid response body: {e}") from e


class WhisperTranscriber(Transcriber):
    """OpenAI Whisper: the audio goes up as a WAV file attachment."""

    provider = SttProvider.WHISPER
    label = "OpenAI"

    def transcribe(self, audio: bytes, language: str | None, api_key: str) -> str:
        self._require_key(api_key)

        data = {"model": self._models.whisper_model}
        if language:
            data["language"] = language

        response = self._post(
            f"{self._models.openai_base_url}/audio/transcriptions",
            headers={"Authorization": f"Bearer {api_key}"},
            files={"file": ("audio.wav", pcm_to_wav(audio, self._sample_rate), "audio/wav")},
            data=data,
        )
        result = self._json(response)
        text = result.get("text", "") if isinstance(result, dict) else ""
        return text if isinstance(text, str) else ""


class GeminiTranscriber(Transcriber):
    """Gemini: the audio is inlined as base64 next to an instruction prompt."""

    provider = SttProvider.GEMINI
    label = "Gemini"

    def transcribe(self, audio: bytes, language: str | None, api_key: str) -> str:
        self._require_key(api_key)

        instruction = TRANSCRIBE_INSTRUCTION
        if language:
            instruction += f" The speech is in {LANGUAGE_NAMES.get(language, language)}."

        wav_b64 = base64.b64encode(pcm_to_wav(audio, self._sample_rate)).decode("ascii")
        body = {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": "audio/wav", "data": wav_b64}},
                        {"text": instruction},
                    ]
                }
            ]
        }

        response = self._post(
            f"{self._models.gemini_base_url}/models/{self._models.gemini_model}:generateContent",
            params={"key": api_key},
            json=body,
        )
        return gemini_text(self._json(response))


class TranscriptionClient:
    """Routes a finished audio buffer to the configured STT provider."""

    def __init__(
        self,
        models: ModelConfig | None = None,
        client: httpx.Client | None = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        self._models = models or ModelConfig()
        self._client = client or httpx.Client(timeout=self._models.request_timeout_s)
        self._backends: dict[SttProvider, Transcriber] = {
            cls.provider: cls(self._client, self._models, sample_rate)
            for cls in (WhisperTranscriber, GeminiTranscriber)
        }

    def transcribe(self, audio: bytes, language: str | None, provider: "ProviderConfig") -> str:
        backend = self._backends.get(provider.name)
        if backend is None:
            raise TranscriptionError(str(provider.name), "unsupported provider")

        logger.info("Transcribing %d bytes with %s", len(audio), backend.label)
        t0 = time.time()
        text = backend.transcribe(audio, language, provider.api_key)
        logger.info("%s transcription done in %.2fs", backend.label, time.time() - t0)
        return text

    def close(self) -> None:
        self._client.close()
