"""LLM-based cleanup and context classification of transcribed text."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from wisperflow.config import FormattingMode, ModelConfig, SttProvider
from wisperflow.errors import FormattingError
from wisperflow.transcribe import gemini_text
from wisperflow.types import ContextType, FormatResult

if TYPE_CHECKING:
    from wisperflow.config import ProviderConfig

logger = logging.getLogger(__name__)

CONTEXT_VALUES = [c.value for c in ContextType]

CLEAN_PROMPT = (
    "Clean up this dictated text. Remove filler words (um, uh, like, you know), "
    "fix punctuation and capitalization. Keep the meaning identical. "
    "Return ONLY the cleaned text:\n\n{text}"
)

SMART_PROMPT = """You are a smart text formatter for voice dictation. Clean up and format this dictated text:
1. Remove filler words (um, uh, eh, like, you know, so, basically)
2. Fix punctuation, capitalization, and grammar
3. Detect the context and format appropriately:
   - code: programming-related, format as a code comment or technical description
   - email: email-like content, format with proper greeting/closing
   - chat: casual message, keep it casual but clean
   - command: instruction or directive, format as a clear imperative
   - general: everything else
4. Return JSON: {{"text": "formatted text", "context": "code|email|chat|command|general"}}

Dictated text: {text}"""

SMART_SCHEMA = {
    "type": "object",
    "properties": {
        "text": {"type": "string"},
        "context": {"type": "string", "enum": CONTEXT_VALUES},
    },
    "required": ["text", "context"],
    "additionalProperties": False,
}

GEMINI_SMART_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "text": {"type": "STRING"},
        "context": {"type": "STRING", "enum": CONTEXT_VALUES},
    },
    "required": ["text", "context"],
}

# Common LLM preambles stripped from clean-mode output (case-insensitive)
PREAMBLES = [
    "Sure, here's the cleaned text:",
    "Sure, here is the cleaned text:",
    "Sure, here's the corrected text:",
    "Sure, here is the corrected text:",
    "Here's the cleaned text:",
    "Here is the cleaned text:",
    "Here's the cleaned-up text:",
    "Here is the cleaned-up text:",
    "Here's the corrected text:",
    "Here is the corrected text:",
    "Cleaned text:",
    "Corrected text:",
    "Sure!",
    "Sure,",
    "Certainly!",
    "Of course!",
]


def build_prompt(raw_text: str, mode: FormattingMode) -> str:
    if mode == FormattingMode.CLEAN:
        return CLEAN_PROMPT.format(text=raw_text)
    return SMART_PROMPT.format(text=raw_text)


def strip_preamble(text: str) -> str:
    """Remove chatty lead-ins and wrapping quotes some models add."""
    text = text.strip()
    lowered = text.lower()
    for preamble in PREAMBLES:
        if lowered.startswith(preamble.lower()):
            text = text[len(preamble):].strip()
            lowered = text.lower()

    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    return text.strip()


def parse_smart_response(content: str, raw_text: str) -> FormatResult:
    """
    Interpret a smart-mode response.

    A JSON object yields its ``text`` (or the raw input when empty) and its
    ``context``. Anything else is taken verbatim as the formatted text.
    """
    try:
        payload = json.loads(content)
    except ValueError:
        logger.warning("Smart formatting response is not JSON, using it as text")
        return FormatResult(content)

    if not isinstance(payload, dict):
        return FormatResult(content)

    text = payload.get("text")
    formatted = text if isinstance(text, str) and text.strip() else raw_text
    return FormatResult(formatted, ContextType.parse(payload.get("context")))


class FormattingBackend(ABC):
    """One LLM provider able to complete a formatting prompt."""

    label: str

    def __init__(self, client: httpx.Client, models: ModelConfig) -> None:
        self._client = client
        self._models = models

    @abstractmethod
    def complete(self, prompt: str, api_key: str, structured: bool) -> str:
        """Return the model's text response; raise FormattingError on failure."""
        ...

    def _post(self, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise FormattingError(f"{self.label} request failed: {e}") from e
        if not response.is_success:
            raise FormattingError(f"{self.label} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise FormattingError(f"{self.label} returned invalid JSON: {e}") from e


class ChatCompletionBackend(FormattingBackend):
    """OpenAI chat completions."""

    label = "OpenAI"

    def complete(self, prompt: str, api_key: str, structured: bool) -> str:
        body: dict[str, Any] = {
            "model": self._models.chat_model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if structured:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "formatted_dictation",
                    "schema": SMART_SCHEMA,
                    "strict": True,
                },
            }

        result = self._post(
            f"{self._models.openai_base_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json=body,
        )
        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""


class GenerativeContentBackend(FormattingBackend):
    """Gemini generateContent."""

    label = "Gemini"

    def complete(self, prompt: str, api_key: str, structured: bool) -> str:
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if structured:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": GEMINI_SMART_SCHEMA,
            }

        result = self._post(
            f"{self._models.gemini_base_url}/models/{self._models.gemini_model}:generateContent",
            params={"key": api_key},
            json=body,
        )
        return gemini_text(result)


class TextFormatter:
    """Best-effort formatting pass between transcription and output."""

    def __init__(
        self,
        models: ModelConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._models = models or ModelConfig()
        self._client = client or httpx.Client(timeout=self._models.request_timeout_s)
        self._backends: dict[SttProvider, FormattingBackend] = {
            SttProvider.WHISPER: ChatCompletionBackend(self._client, self._models),
            SttProvider.GEMINI: GenerativeContentBackend(self._client, self._models),
        }

    def format(
        self,
        raw_text: str,
        mode: FormattingMode,
        provider: "ProviderConfig | None" = None,
    ) -> FormatResult:
        """
        Format transcribed text.

        Args:
            raw_text: Transcript as returned by the STT provider.
            mode: Formatting mode.
            provider: Provider whose LLM (and credential) to use.

        Returns:
            Formatted text and context. Falls back to the raw text with
            context ``general`` whenever the provider cannot be used.
        """
        if mode == FormattingMode.RAW:
            return FormatResult(raw_text)

        backend = self._backends.get(provider.name) if provider else None
        if backend is None or not provider or not provider.api_key:
            logger.warning("No formatting provider credential, keeping raw text")
            return FormatResult(raw_text)

        smart = mode == FormattingMode.SMART
        try:
            content = backend.complete(build_prompt(raw_text, mode), provider.api_key, smart)
        except FormattingError as e:
            logger.warning("Formatting failed, keeping raw text: %s", e)
            return FormatResult(raw_text)
        except Exception:
            logger.exception("Unexpected formatting error, keeping raw text")
            return FormatResult(raw_text)

        if not content.strip():
            return FormatResult(raw_text)

        if smart:
            return parse_smart_response(content, raw_text)
        return FormatResult(strip_preamble(content) or raw_text)

    def close(self) -> None:
        self._client.close()
