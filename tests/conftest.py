"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import numpy as np
import pytest

from wisperflow.config import (
    Destination,
    FormattingMode,
    PipelineConfig,
    ProviderConfig,
    SettingsStore,
    SttProvider,
)

ENV_VARS = [
    "WISPERFLOW_CONFIG",
    "WISPERFLOW_HOTKEY",
    "WISPERFLOW_STT_PROVIDER",
    "WISPERFLOW_OPENAI_API_KEY",
    "WISPERFLOW_GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "WISPERFLOW_LANGUAGE",
    "WISPERFLOW_DESTINATION",
    "WISPERFLOW_FORMATTING_MODE",
    "WISPERFLOW_AUDIO_DEVICE",
    "WISPERFLOW_TONES",
    "WISPERFLOW_VERBOSE",
]


@pytest.fixture
def sample_pcm() -> bytes:
    """Generate 1 second of 440Hz sine at 16kHz as 16-bit PCM bytes."""
    sample_rate = 16000
    t = np.linspace(0, 1.0, sample_rate, dtype=np.float32)
    audio = np.sin(2 * np.pi * 440 * t) * 0.5
    return (audio * 32767).astype("<i2").tobytes()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clear WisperFlow environment variables before/after tests."""
    original_values = {var: os.environ.get(var) for var in ENV_VARS}

    for var in ENV_VARS:
        os.environ.pop(var, None)

    yield

    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        else:
            os.environ.pop(var, None)


@pytest.fixture
def settings_store(tmp_path: Path, clean_env: None) -> SettingsStore:
    """Settings store backed by a temporary file."""
    return SettingsStore(tmp_path / "wisperflow" / "config.json")


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Raw-mode, clipboard-only pipeline config with a Whisper key."""
    return PipelineConfig(
        hotkey="RIGHT ALT",
        provider=ProviderConfig(SttProvider.WHISPER, "sk-test"),
        formatting_mode=FormattingMode.RAW,
        language="auto",
        destination=Destination.CLIPBOARD,
    )
