from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import numpy as np
from scipy.io.wavfile import write as wav_write

from wisperflow.errors import CaptureError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from wisperflow.config import AudioConfig, ToneConfig

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16_000
FADE_DURATION_SECONDS = 0.008
FIRST_CHANNEL_INDEX = 0

AudioCallback = Callable[["NDArray[np.int16]", int, Any, Any], None]
StreamFactory = Callable[["AudioConfig", AudioCallback], Any]
ErrorCallback = Callable[[Exception], None]


@dataclass
class AudioDevice:
    index: int
    name: str
    is_default: bool = False

    def __str__(self) -> str:
        marker = " (DEFAULT)" if self.is_default else ""
        return f"[{self.index}] {self.name}{marker}"


def list_input_devices() -> list[AudioDevice]:
    import sounddevice as sd

    devices = sd.query_devices()
    default_input = sd.default.device[FIRST_CHANNEL_INDEX]

    input_devices = []
    for i, dev in enumerate(devices):
        if dev["max_input_channels"] > 0:  # type: ignore[index]
            input_devices.append(
                AudioDevice(
                    index=i,
                    name=dev["name"],  # type: ignore[index]
                    is_default=(i == default_input),
                )
            )
    return input_devices


def get_device_name(device_id: int | None) -> str:
    import sounddevice as sd

    if device_id is not None:
        info = sd.query_devices(device_id)
    else:
        default_id = sd.default.device[FIRST_CHANNEL_INDEX]
        info = sd.query_devices(default_id)
    return info["name"]  # type: ignore[index,return-value]


def play_tone(
    config: "ToneConfig",
    frequency_hz: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> None:
    if not config.enabled:
        return

    import sounddevice as sd

    n_samples = int(sample_rate * config.duration_s)
    t = np.arange(n_samples, dtype=np.float32) / sample_rate
    tone = np.sin(2.0 * np.pi * frequency_hz * t) * config.volume

    fade_samples = max(1, int(FADE_DURATION_SECONDS * sample_rate))
    if fade_samples * 2 < n_samples:
        window = np.ones(n_samples, dtype=np.float32)
        window[:fade_samples] = np.linspace(0, 1, fade_samples, dtype=np.float32)
        window[-fade_samples:] = np.linspace(1, 0, fade_samples, dtype=np.float32)
        tone *= window

    try:
        sd.play(tone.astype(np.float32), sample_rate, blocking=False)
    except Exception as e:
        logger.debug("Could not play cue tone: %s", e)


def pcm_to_wav(pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE, channels: int = 1) -> bytes:
    """Wrap raw 16-bit PCM in an in-memory WAV container."""
    usable = len(pcm) - (len(pcm) % 2)
    samples = np.frombuffer(pcm[:usable], dtype="<i2")
    if channels > 1:
        samples = samples[: len(samples) - (len(samples) % channels)].reshape(-1, channels)
    buf = io.BytesIO()
    wav_write(buf, sample_rate, samples)
    return buf.getvalue()


def _open_input_stream(config: "AudioConfig", callback: AudioCallback) -> Any:
    import sounddevice as sd

    return sd.InputStream(
        samplerate=config.sample_rate,
        channels=config.channels,
        dtype="int16",
        blocksize=config.block_size,
        device=config.device_id,
        callback=callback,
    )


class AudioCapture:
    """
    Microphone capture for one push-to-talk window.

    The sounddevice callback appends PCM chunks to an accumulator owned by
    this object; ``end()`` stops the stream and hands the joined bytes to the
    caller, leaving nothing behind.
    """

    def __init__(
        self,
        audio_config: "AudioConfig",
        on_error: ErrorCallback | None = None,
        stream_factory: StreamFactory = _open_input_stream,
    ) -> None:
        self._audio_config = audio_config
        self._on_error = on_error
        self._stream_factory = stream_factory

        self._stream: Any = None
        self._recording = False
        self._chunks: list[bytes] = []
        self._captured = 0
        self._overflowed = False
        self._status_reported = False
        self._lock = threading.Lock()

        self._max_bytes = int(audio_config.max_record_s * audio_config.bytes_per_second)

    def begin(self) -> None:
        with self._lock:
            if self._recording:
                return
            self._recording = True
            self._chunks = []
            self._captured = 0
            self._overflowed = False
            self._status_reported = False

        try:
            self._stream = self._stream_factory(self._audio_config, self._audio_callback)
            self._stream.start()
        except Exception as e:
            logger.error("Could not open audio input: %s", e)
            self._stream = None
            self._report(e)

    def end(self) -> bytes:
        with self._lock:
            if not self._recording:
                return b""
            self._recording = False

        self._stop_stream()

        with self._lock:
            buffer = b"".join(self._chunks)
            self._chunks = []
            self._captured = 0
        return buffer

    def _stop_stream(self) -> None:
        if self._stream:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning("Error stopping audio stream: %s", e)
            finally:
                self._stream = None

    def _audio_callback(
        self,
        indata: "NDArray[np.int16]",
        frames: int,
        time_info: Any,
        status: Any,
    ) -> None:
        if status:
            logger.warning("Audio callback status: %s", status)
            self._report_status(status)

        payload = np.asarray(indata, dtype=np.int16).tobytes()

        with self._lock:
            if not self._recording:
                return
            room = self._max_bytes - self._captured
            if room <= 0:
                if not self._overflowed:
                    self._overflowed = True
                    logger.warning(
                        "Recording exceeded %.0fs, dropping further audio",
                        self._audio_config.max_record_s,
                    )
                return
            chunk = payload[:room]
            self._chunks.append(chunk)
            self._captured += len(chunk)

    def _report(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Audio error handler failed")

    def _report_status(self, status: Any) -> None:
        with self._lock:
            if not self._recording or self._status_reported:
                return
            self._status_reported = True
        self._report(CaptureError(f"Audio input problem: {status}"))
