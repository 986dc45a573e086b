"""Main WisperFlow application."""

from __future__ import annotations

import logging
import signal
import threading
import time

import httpx

from wisperflow.audio import AudioCapture, get_device_name, play_tone
from wisperflow.config import Config, Destination, PipelineConfig, SettingsStore
from wisperflow.controller import DictationController, Notice, NoticeKind, PipelineState
from wisperflow.format import TextFormatter
from wisperflow.hotkey import HotkeyMonitor, parse_hotkey
from wisperflow.output import OutputDispatcher
from wisperflow.sync import SyncReporter
from wisperflow.transcribe import TranscriptionClient

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 60

NOTICE_ICONS = {
    NoticeKind.TOO_SHORT: "⛔️",
    NoticeKind.NO_SPEECH: "🤫",
    NoticeKind.CAPTURE_ERROR: "🎤",
    NoticeKind.CREDENTIAL_ERROR: "🔑",
    NoticeKind.TRANSCRIPTION_FAILED: "❌",
    NoticeKind.PASTE_FAILED: "📋",
    NoticeKind.ERROR: "❌",
}


class DictationApp:
    """
    Push-to-Talk Dictation Application.

    Captures audio while the hotkey is held, transcribes it with the
    configured provider, formats it, and pastes it into the focused window.
    """

    def __init__(self, config: Config | None = None, store: SettingsStore | None = None) -> None:
        self._store = store or SettingsStore()
        self._config = config or Config.load(self._store)

        self._http = httpx.Client(timeout=self._config.models.request_timeout_s)
        self._controller = DictationController(
            audio=AudioCapture(self._config.audio, on_error=self._on_capture_error),
            transcriber=TranscriptionClient(
                self._config.models, self._http, self._config.audio.sample_rate
            ),
            formatter=TextFormatter(self._config.models, self._http),
            output=OutputDispatcher(),
            reporter=SyncReporter(self._config.sync, self._http),
            config_source=self._load_pipeline_config,
            on_notice=self._on_notice,
            on_state_change=self._on_state_change,
            min_audio_bytes=self._config.min_audio_bytes,
        )
        self._monitor: HotkeyMonitor | None = None
        self._shutdown_lock = threading.Lock()
        self._closed = False

    @property
    def controller(self) -> DictationController:
        return self._controller

    def _load_pipeline_config(self) -> PipelineConfig:
        """Re-read settings so each session picks up `wisperflow setup` changes."""
        config = Config.load(self._store)
        config.hotkey = self._config.hotkey
        return config.pipeline_config()

    def setup(self) -> None:
        """Initialize all components."""
        self._print_banner()
        self._controller.start()

        from pynput import keyboard

        self._monitor = HotkeyMonitor(
            parse_hotkey(self._config.hotkey),
            on_pressed=self._on_pressed,
            on_released=self._on_released,
            quit_key=keyboard.Key.esc,
            quit_modifier=keyboard.Key.cmd,
            on_quit=self._request_quit,
        )
        self._print_instructions()

    def _print_banner(self) -> None:
        """Print application banner."""
        print("=" * 60)
        print("🎙️ WISPERFLOW - Push-to-Talk Voice Dictation")
        print("=" * 60)

        try:
            device_name = get_device_name(self._config.audio.device_id)
        except Exception as e:
            device_name = f"unavailable ({e})"
        if self._config.audio.device_id is not None:
            print(f"\n✅ Using input device [{self._config.audio.device_id}]: {device_name}")
        else:
            print(f"\n✅ Using DEFAULT input device: {device_name}")

        print(f"🧠 Provider: {self._config.stt_provider.value}")
        print(f"✨ Formatting: {self._config.formatting_mode.value}")
        print(f"🔊 Destination: {self._config.destination.value}")
        if not self._config.api_key:
            print("⚠️  No API key configured. Run: wisperflow setup")

    def _print_instructions(self) -> None:
        """Print usage instructions."""
        target = (
            "PASTED into the focused window"
            if self._config.destination == Destination.CURSOR
            else "copied to CLIPBOARD"
        )
        print("\n" + "=" * 60)
        print("📌 INSTRUCTIONS:")
        print(f"   • Hold [{self._config.hotkey}] to talk. Release to transcribe.")
        print("   • Press Cmd+Esc to quit cleanly. Ctrl+C also works.")
        print(f"   • Text will be {target}.")
        print("=" * 60)
        print(f"\n🟢 Ready! Hold [{self._config.hotkey}] to start dictating...\n")

    def _on_pressed(self) -> None:
        if self._controller.press():
            play_tone(
                self._config.tones,
                self._config.tones.start_hz,
                self._config.audio.sample_rate,
            )

    def _on_released(self) -> None:
        time.sleep(self._config.audio.release_tail_s)  # Small delay for cleaner cutoff
        if self._controller.state == PipelineState.RECORDING:
            play_tone(
                self._config.tones,
                self._config.tones.stop_hz,
                self._config.audio.sample_rate,
            )
        self._controller.release()

    def _on_capture_error(self, error: Exception) -> None:
        self._controller.report_capture_error(error)

    def _on_state_change(self, from_state: PipelineState, to_state: PipelineState) -> None:
        if to_state == PipelineState.RECORDING:
            print("🎙️ Recording...")
        elif to_state == PipelineState.PROCESSING:
            print("⏳ Processing...")

    def _on_notice(self, notice: Notice) -> None:
        if notice.kind == NoticeKind.DELIVERED:
            text = notice.message
            preview = text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")
            detail = ""
            if notice.session is not None:
                detail = (
                    f" [{notice.session.context_type.value}, "
                    f"{notice.session.duration_ms / 1000:.1f}s]"
                )
            print(f'✅ "{preview}"{detail}')
            print("---")
            return

        icon = NOTICE_ICONS.get(notice.kind, "⚠️")
        print(f"{icon} {notice.message}")

    def _request_quit(self) -> None:
        print("\n👋 Quitting...")
        self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the application gracefully."""
        with self._shutdown_lock:
            if self._closed:
                return
            self._closed = True

        logger.info("Shutting down...")
        if self._monitor is not None:
            self._monitor.stop()
        self._controller.shutdown()
        self._http.close()

    def run(self) -> None:
        """Run the application with the keyboard listener."""
        self.setup()
        assert self._monitor is not None

        def handle_sigint(sig: int, frame: object) -> None:
            self.shutdown()
            raise SystemExit(0)

        signal.signal(signal.SIGINT, handle_sigint)

        self._monitor.start()
        self._monitor.join()

        # Ensure shutdown on listener exit
        self.shutdown()
