"""Exception types for the WisperFlow pipeline."""

from __future__ import annotations


class WisperflowError(Exception):
    """Base class for all WisperFlow errors."""


class ConfigError(WisperflowError):
    """Invalid configuration value (hotkey name, provider, ...)."""


class CaptureError(WisperflowError):
    """Audio input reported a problem during recording."""


class TranscriptionError(WisperflowError):
    """Speech-to-text request failed. Fatal to the current session."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class MissingCredentialError(TranscriptionError):
    """No API key configured for the selected provider."""


class ProviderHTTPError(TranscriptionError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, provider: str, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        detail = f"HTTP {status_code}"
        if body:
            detail = f"{detail}: {body[:200]}"
        super().__init__(provider, detail)


class AuthenticationError(ProviderHTTPError):
    """Provider rejected the credential (401/403)."""


class FormattingError(WisperflowError):
    """Formatting request failed. Always recovered inside the formatter."""
