"""State-machine based orchestration of one dictation session at a time."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from wisperflow.errors import AuthenticationError, MissingCredentialError, TranscriptionError
from wisperflow.types import FormatResult, Session

if TYPE_CHECKING:
    from wisperflow.audio import AudioCapture
    from wisperflow.config import PipelineConfig
    from wisperflow.format import TextFormatter
    from wisperflow.output import OutputDispatcher
    from wisperflow.sync import SyncReporter
    from wisperflow.transcribe import TranscriptionClient

logger = logging.getLogger(__name__)

MIN_AUDIO_BYTES = 1000
WORKER_JOIN_TIMEOUT_S = 2.0


class PipelineState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


class NoticeKind(str, Enum):
    TOO_SHORT = "too_short"
    NO_SPEECH = "no_speech"
    CAPTURE_ERROR = "capture_error"
    CREDENTIAL_ERROR = "credential_error"
    TRANSCRIPTION_FAILED = "transcription_failed"
    PASTE_FAILED = "paste_failed"
    ERROR = "error"
    DELIVERED = "delivered"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    session: Session | None = None


StateCallback = Callable[[PipelineState, PipelineState], None]
NoticeCallback = Callable[[Notice], None]


class DictationController:
    """
    Push-to-talk session orchestrator.

    ``press()`` and ``release()`` are the only external triggers. Guards on
    the current state make them idempotent: a press outside IDLE and a
    release outside RECORDING are ignored, so at most one session is ever
    active. Processing runs on a worker thread once ``start()`` was called,
    inline otherwise.
    """

    def __init__(
        self,
        audio: "AudioCapture",
        transcriber: "TranscriptionClient",
        formatter: "TextFormatter",
        output: "OutputDispatcher",
        reporter: "SyncReporter",
        config_source: Callable[[], "PipelineConfig"],
        on_notice: Optional[NoticeCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        min_audio_bytes: int = MIN_AUDIO_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._audio = audio
        self._transcriber = transcriber
        self._formatter = formatter
        self._output = output
        self._reporter = reporter
        self._config_source = config_source
        self._on_notice = on_notice
        self._on_state_change = on_state_change
        self._min_audio_bytes = min_audio_bytes
        self._clock = clock

        self._lock = threading.RLock()
        self._state = PipelineState.IDLE
        self._session: Session | None = None

        self._work_queue: queue.Queue[Session | None] = queue.Queue()
        self._worker: threading.Thread | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    # ------------------------------------------------------------------
    # Hotkey triggers
    # ------------------------------------------------------------------

    def press(self) -> bool:
        """Start recording. Returns False when the press was ignored."""
        with self._lock:
            if self._state != PipelineState.IDLE:
                logger.debug("Ignoring press while %s", self._state.value)
                return False
            config = self._config_source()
            self._session = Session(config=config, started_at=self._clock())
            self._transition(PipelineState.RECORDING)
            self._audio.begin()
        return True

    def release(self) -> bool:
        """Stop recording and hand the session to processing."""
        with self._lock:
            if self._state != PipelineState.RECORDING or self._session is None:
                return False
            ended_at = self._clock()
            audio = self._audio.end()
            session = self._session.advance(ended_at=ended_at, audio=audio)
            self._session = None
            self._transition(PipelineState.PROCESSING)

        logger.info("Captured %d bytes in %dms", len(audio), session.duration_ms)
        if self._worker is None:
            self.process_session(session)
        else:
            self._work_queue.put(session)
        return True

    def report_capture_error(self, error: Exception) -> None:
        """Surface an audio device failure. Capture continues with what exists."""
        self._notify(NoticeKind.CAPTURE_ERROR, f"Microphone error: {error}")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def process_session(self, session: Session) -> Session | None:
        """
        Run transcription, formatting and output for a captured session.

        Always leaves the controller in IDLE. Returns the delivered session,
        or None when it was abandoned.
        """
        try:
            return self._run_pipeline(session)
        except MissingCredentialError as e:
            logger.error("Transcription aborted: %s", e)
            self._notify(NoticeKind.CREDENTIAL_ERROR, e.message, session)
        except AuthenticationError as e:
            logger.error("Transcription aborted: %s", e)
            self._notify(
                NoticeKind.CREDENTIAL_ERROR,
                f"{e.provider} rejected the API key (HTTP {e.status_code}). Run: wisperflow setup",
                session,
            )
        except TranscriptionError as e:
            logger.error("Transcription failed: %s", e)
            self._notify(NoticeKind.TRANSCRIPTION_FAILED, f"Transcription failed: {e}", session)
        except Exception as e:
            logger.exception("Processing error: %s", e)
            self._notify(NoticeKind.ERROR, f"Processing error: {e}", session)
        finally:
            # A delivered session is already IDLE and may have been pressed again
            with self._lock:
                if self._state == PipelineState.PROCESSING:
                    self._transition(PipelineState.IDLE)
        return None

    def _run_pipeline(self, session: Session) -> Session | None:
        config = session.config

        if len(session.audio) < self._min_audio_bytes:
            self._notify(NoticeKind.TOO_SHORT, "Recording too short, skipped.", session)
            return None

        # The buffer goes to the provider and is not kept on the session
        audio, session = session.audio, session.advance(audio=b"")
        raw_text = (
            self._transcriber.transcribe(audio, config.language_hint, config.provider) or ""
        ).strip()
        if not raw_text:
            self._notify(NoticeKind.NO_SPEECH, "No speech detected.", session)
            return None
        session = session.advance(raw_text=raw_text)
        logger.info('Raw transcription: "%s"', raw_text)

        result = self._format(raw_text, config)
        session = session.advance(
            formatted_text=result.formatted_text,
            context_type=result.context_type,
        )

        delivery = self._output.deliver(session.formatted_text, config.destination)
        if delivery.warning:
            self._notify(NoticeKind.PASTE_FAILED, delivery.warning, session)

        with self._lock:
            self._transition(PipelineState.IDLE)
        self._notify(NoticeKind.DELIVERED, session.formatted_text, session)

        try:
            self._reporter.report(session)
        except Exception:
            logger.exception("Could not dispatch sync")
        return session

    def _format(self, raw_text: str, config: "PipelineConfig") -> FormatResult:
        try:
            return self._formatter.format(raw_text, config.formatting_mode, config.provider)
        except Exception:
            logger.exception("Formatter raised, keeping raw text")
            return FormatResult(raw_text)

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background worker that processes released sessions."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(
            target=self._worker_loop, name="wisperflow-pipeline", daemon=True
        )
        self._worker.start()

    def wait_idle(self) -> None:
        """Block until every queued session has been processed."""
        self._work_queue.join()

    def shutdown(self) -> None:
        with self._lock:
            if self._state == PipelineState.RECORDING:
                self._audio.end()
                self._session = None
                self._transition(PipelineState.IDLE)

        worker = self._worker
        if worker is None:
            return
        self._work_queue.put(None)
        if worker.is_alive():
            worker.join(timeout=WORKER_JOIN_TIMEOUT_S)
        self._worker = None

    def _worker_loop(self) -> None:
        while True:
            session = self._work_queue.get()
            try:
                if session is None:
                    return
                self.process_session(session)
            finally:
                self._work_queue.task_done()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _transition(self, to_state: PipelineState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("State %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                logger.exception("State change callback failed")

    def _notify(self, kind: NoticeKind, message: str, session: Session | None = None) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(Notice(kind, message, session))
        except Exception:
            logger.exception("Notice callback failed")
