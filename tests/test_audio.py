"""Tests for the audio module."""

from __future__ import annotations

import io
from typing import Any
from unittest.mock import MagicMock

import numpy as np
import pytest
from scipy.io import wavfile

from wisperflow.audio import AudioCapture, AudioDevice, pcm_to_wav
from wisperflow.config import AudioConfig
from wisperflow.errors import CaptureError


class FakeStream:
    """Stands in for sounddevice.InputStream; keeps the callback for tests."""

    def __init__(self, config: AudioConfig, callback: Any) -> None:
        self.config = config
        self.callback = callback
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def feed(self, samples: list[int]) -> None:
        block = np.array(samples, dtype=np.int16).reshape(-1, 1)
        self.callback(block, len(samples), None, None)


class StreamFactory:
    def __init__(self) -> None:
        self.streams: list[FakeStream] = []

    def __call__(self, config: AudioConfig, callback: Any) -> FakeStream:
        stream = FakeStream(config, callback)
        self.streams.append(stream)
        return stream


@pytest.fixture
def factory() -> StreamFactory:
    return StreamFactory()


class TestAudioCapture:
    """Tests for AudioCapture."""

    def test_begin_end_returns_pcm(self, factory: StreamFactory) -> None:
        """Test chunks received during the window come back joined."""
        capture = AudioCapture(AudioConfig(), stream_factory=factory)
        capture.begin()
        stream = factory.streams[0]
        assert stream.started is True

        stream.feed([1, 2, 3])
        stream.feed([4, 5])
        audio = capture.end()

        assert audio == np.array([1, 2, 3, 4, 5], dtype="<i2").tobytes()
        assert stream.started is False
        assert stream.closed is True

    def test_end_without_begin(self, factory: StreamFactory) -> None:
        capture = AudioCapture(AudioConfig(), stream_factory=factory)
        assert capture.end() == b""
        assert factory.streams == []

    def test_end_twice_returns_empty(self, factory: StreamFactory) -> None:
        """Test the buffer is handed over once and not retained."""
        capture = AudioCapture(AudioConfig(), stream_factory=factory)
        capture.begin()
        factory.streams[0].feed([7] * 10)

        assert len(capture.end()) == 20
        assert capture.end() == b""

    def test_windows_do_not_leak(self, factory: StreamFactory) -> None:
        capture = AudioCapture(AudioConfig(), stream_factory=factory)
        capture.begin()
        factory.streams[0].feed([1] * 4)
        capture.end()

        capture.begin()
        factory.streams[1].feed([2] * 3)
        assert capture.end() == np.array([2, 2, 2], dtype="<i2").tobytes()

    def test_late_callback_ignored(self, factory: StreamFactory) -> None:
        """Test chunks arriving after end() are not buffered."""
        capture = AudioCapture(AudioConfig(), stream_factory=factory)
        capture.begin()
        stream = factory.streams[0]
        capture.end()

        stream.feed([9] * 100)
        capture.begin()
        assert capture.end() == b""

    def test_open_failure_reports_error(self) -> None:
        """Test a failing device reports through on_error and yields no audio."""
        on_error = MagicMock()
        error = OSError("no input device")

        def broken_factory(config: AudioConfig, callback: Any) -> Any:
            raise error

        capture = AudioCapture(AudioConfig(), on_error=on_error, stream_factory=broken_factory)
        capture.begin()

        on_error.assert_called_once_with(error)
        assert capture.end() == b""

    def test_recording_capped(self, factory: StreamFactory) -> None:
        """Test the buffer stops growing at max_record_s."""
        config = AudioConfig(sample_rate=100, max_record_s=1.0)
        capture = AudioCapture(config, stream_factory=factory)
        capture.begin()
        stream = factory.streams[0]
        for _ in range(5):
            stream.feed([1] * 60)

        assert len(capture.end()) == config.bytes_per_second

    def test_status_flag_reported_once_per_window(self, factory: StreamFactory) -> None:
        """Test stream status flags reach on_error once per recording window."""
        on_error = MagicMock()
        capture = AudioCapture(AudioConfig(), on_error=on_error, stream_factory=factory)
        capture.begin()
        stream = factory.streams[0]
        zeros = np.zeros((480, 1), dtype=np.int16)

        stream.callback(zeros, 480, None, "input overflow")
        stream.callback(zeros, 480, None, "input overflow")

        on_error.assert_called_once()
        error = on_error.call_args.args[0]
        assert isinstance(error, CaptureError)
        assert "input overflow" in str(error)
        assert len(capture.end()) == 2 * 480 * 2

        capture.begin()
        factory.streams[1].callback(zeros, 480, None, "input overflow")
        capture.end()
        assert on_error.call_count == 2

    def test_status_after_end_not_reported(self, factory: StreamFactory) -> None:
        on_error = MagicMock()
        capture = AudioCapture(AudioConfig(), on_error=on_error, stream_factory=factory)
        capture.begin()
        stream = factory.streams[0]
        capture.end()

        stream.callback(np.zeros((480, 1), dtype=np.int16), 480, None, "input overflow")

        on_error.assert_not_called()

    def test_stream_uses_config(self, factory: StreamFactory) -> None:
        config = AudioConfig(device_id=2)
        capture = AudioCapture(config, stream_factory=factory)
        capture.begin()
        assert factory.streams[0].config is config
        capture.end()


class TestPcmToWav:
    """Tests for the WAV wrapper."""

    def test_wav_header_and_samples(self, sample_pcm: bytes) -> None:
        wav = pcm_to_wav(sample_pcm, 16000)
        assert wav[:4] == b"RIFF"
        assert wav[8:12] == b"WAVE"

        rate, samples = wavfile.read(io.BytesIO(wav))
        assert rate == 16000
        assert samples.dtype == np.int16
        assert samples.tobytes() == sample_pcm

    def test_odd_trailing_byte_dropped(self) -> None:
        wav = pcm_to_wav(b"\x01\x00\x02", 16000)
        _, samples = wavfile.read(io.BytesIO(wav))
        assert samples.tolist() == [1]


class TestAudioDevice:
    def test_str_marks_default(self) -> None:
        assert str(AudioDevice(0, "Built-in Mic", is_default=True)) == "[0] Built-in Mic (DEFAULT)"
        assert str(AudioDevice(3, "USB")) == "[3] USB"
