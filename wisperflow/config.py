"""Configuration for the WisperFlow application."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "wisperflow" / "config.json"
MASKED = "***configured***"


class SttProvider(str, Enum):
    WHISPER = "whisper"
    GEMINI = "gemini"


class FormattingMode(str, Enum):
    RAW = "raw"
    CLEAN = "clean"
    SMART = "smart"


class Destination(str, Enum):
    CURSOR = "cursor"
    CLIPBOARD = "clipboard"


@dataclass
class AudioConfig:
    sample_rate: int = 16_000
    channels: int = 1
    block_ms: int = 30
    device_id: int | None = None
    max_record_s: float = 300.0
    release_tail_s: float = 0.05

    @property
    def block_size(self) -> int:
        return int(self.sample_rate * (self.block_ms / 1000.0))

    @property
    def bytes_per_second(self) -> int:
        # 16-bit samples
        return self.sample_rate * self.channels * 2


@dataclass
class ToneConfig:
    enabled: bool = True
    start_hz: int = 880
    stop_hz: int = 440
    duration_s: float = 0.04
    volume: float = 0.15


@dataclass
class ModelConfig:
    whisper_model: str = "whisper-1"
    chat_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-2.0-flash"
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout_s: float = 30.0


@dataclass
class SyncConfig:
    app_id: str = ""
    token: str = ""
    base_url: str = "https://app.base44.com"

    @property
    def enabled(self) -> bool:
        return bool(self.app_id and self.token)


# Language name mapping for provider prompts
LANGUAGE_NAMES = {
    "en": "English",
    "pl": "Polish",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "ru": "Russian",
}


@dataclass(frozen=True)
class ProviderConfig:
    name: SttProvider
    api_key: str = ""


@dataclass(frozen=True)
class PipelineConfig:
    """Snapshot of the user configuration taken when a session starts."""

    hotkey: str = "RIGHT ALT"
    provider: ProviderConfig = ProviderConfig(SttProvider.WHISPER)
    formatting_mode: FormattingMode = FormattingMode.SMART
    language: str = "auto"
    destination: Destination = Destination.CURSOR

    @property
    def language_hint(self) -> str | None:
        """ISO language code, or None for auto-detection."""
        if not self.language or self.language.lower() == "auto":
            return None
        return self.language


class SettingsStore:
    """Flat JSON settings file shared by the CLI commands and the app."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("WISPERFLOW_CONFIG")
        self._path = path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def update(self, **values: Any) -> None:
        data = self.load()
        data.update(values)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )


def _parse_enum(enum_cls: type[E], value: str, default: E) -> E:
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        logger.warning(
            "Invalid %s value %r, keeping %s", enum_cls.__name__, value, default.value
        )
        return default


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


@dataclass
class Config:
    audio: AudioConfig = field(default_factory=AudioConfig)
    tones: ToneConfig = field(default_factory=ToneConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    hotkey: str = "RIGHT ALT"
    stt_provider: SttProvider = SttProvider.WHISPER
    api_key_whisper: str = ""
    api_key_gemini: str = ""
    language: str = "auto"
    destination: Destination = Destination.CURSOR
    formatting_mode: FormattingMode = FormattingMode.SMART
    min_audio_bytes: int = 1000
    verbose: bool = False

    @classmethod
    def load(cls, store: SettingsStore | None = None) -> "Config":
        """Build a config from defaults, then the settings file, then the environment."""
        config = cls()
        config.apply_settings((store or SettingsStore()).load())
        config.apply_env()
        return config

    def apply_settings(self, data: dict[str, Any]) -> None:
        if hotkey := data.get("hotkey"):
            self.hotkey = str(hotkey)

        if provider := data.get("stt_provider"):
            self.stt_provider = _parse_enum(SttProvider, str(provider), self.stt_provider)

        self.api_key_whisper = str(data.get("api_key_whisper") or self.api_key_whisper)
        self.api_key_gemini = str(data.get("api_key_gemini") or self.api_key_gemini)

        if lang := data.get("language"):
            self.language = str(lang)

        if dest := data.get("destination"):
            self.destination = _parse_enum(Destination, str(dest), self.destination)

        if mode := data.get("formatting_mode"):
            self.formatting_mode = _parse_enum(FormattingMode, str(mode), self.formatting_mode)

        self.sync.app_id = str(data.get("base44_app_id") or self.sync.app_id)
        self.sync.token = str(data.get("base44_token") or self.sync.token)

    def apply_env(self) -> None:
        env = os.environ

        if hotkey := env.get("WISPERFLOW_HOTKEY"):
            self.hotkey = hotkey

        if provider := env.get("WISPERFLOW_STT_PROVIDER"):
            self.stt_provider = _parse_enum(SttProvider, provider, self.stt_provider)

        if key := env.get("WISPERFLOW_OPENAI_API_KEY") or env.get("OPENAI_API_KEY"):
            self.api_key_whisper = key

        if key := env.get("WISPERFLOW_GEMINI_API_KEY") or env.get("GEMINI_API_KEY"):
            self.api_key_gemini = key

        if lang := env.get("WISPERFLOW_LANGUAGE"):
            self.language = lang.lower()

        if dest := env.get("WISPERFLOW_DESTINATION"):
            self.destination = _parse_enum(Destination, dest, self.destination)

        if mode := env.get("WISPERFLOW_FORMATTING_MODE"):
            self.formatting_mode = _parse_enum(FormattingMode, mode, self.formatting_mode)

        if device := env.get("WISPERFLOW_AUDIO_DEVICE"):
            self.audio.device_id = int(device)

        if tones := env.get("WISPERFLOW_TONES"):
            self.tones.enabled = _truthy(tones)

        if verbose := env.get("WISPERFLOW_VERBOSE"):
            self.verbose = _truthy(verbose)

    @property
    def api_key(self) -> str:
        """Credential for the selected provider."""
        if self.stt_provider == SttProvider.GEMINI:
            return self.api_key_gemini
        return self.api_key_whisper

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            hotkey=self.hotkey,
            provider=ProviderConfig(self.stt_provider, self.api_key),
            formatting_mode=self.formatting_mode,
            language=self.language,
            destination=self.destination,
        )

    def describe(self) -> dict[str, str]:
        """Human-readable summary with credentials masked."""
        return {
            "Hotkey": self.hotkey,
            "Provider": self.stt_provider.value,
            "Language": self.language,
            "Destination": self.destination.value,
            "Formatting": self.formatting_mode.value,
            "Whisper Key": MASKED if self.api_key_whisper else "not set",
            "Gemini Key": MASKED if self.api_key_gemini else "not set",
            "Sync": "connected" if self.sync.enabled else "not connected",
        }
