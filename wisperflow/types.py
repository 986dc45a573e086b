"""Type definitions for the WisperFlow application."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, TypedDict

if TYPE_CHECKING:
    from wisperflow.config import PipelineConfig


class ContextType(str, Enum):
    """Likely use of the dictated text, as classified in smart mode."""

    CODE = "code"
    EMAIL = "email"
    CHAT = "chat"
    COMMAND = "command"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: object) -> "ContextType":
        """Map a provider-supplied label to a context, defaulting to GENERAL."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.GENERAL


@dataclass(frozen=True)
class FormatResult:
    formatted_text: str
    context_type: ContextType = ContextType.GENERAL


@dataclass(frozen=True)
class Session:
    """
    One recording-to-output cycle.

    Sessions are immutable: each pipeline stage derives a new one with
    ``advance()``. Timestamps come from the controller clock, in seconds.
    """

    config: "PipelineConfig"
    started_at: float
    ended_at: float | None = None
    audio: bytes = b""
    raw_text: str = ""
    formatted_text: str = ""
    context_type: ContextType = ContextType.GENERAL

    def advance(self, **changes: object) -> "Session":
        return replace(self, **changes)

    @property
    def duration_ms(self) -> int:
        if self.ended_at is None:
            return 0
        return int(round((self.ended_at - self.started_at) * 1000))

    @property
    def word_count(self) -> int:
        return len(self.formatted_text.split())

    @property
    def stt_provider(self) -> str:
        return self.config.provider.name.value

    @property
    def destination(self) -> str:
        return self.config.destination.value

    @property
    def language(self) -> str:
        return self.config.language


class SyncRecord(TypedDict):
    """Flat record posted to the remote history store."""

    raw_text: str
    formatted_text: str
    language: str
    duration_ms: int
    word_count: int
    destination: str
    stt_provider: str
    context_type: str


class WhisperResponse(TypedDict, total=False):
    """Body returned by the OpenAI transcription endpoint."""

    text: str


class SmartFormatPayload(TypedDict, total=False):
    """Structured response requested from the formatter in smart mode."""

    text: str
    context: str
