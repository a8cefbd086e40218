"""
Microphone capture and playback using PyAudio.

Records 16 kHz mono 16-bit audio into memory and returns it as WAV bytes,
which is what the transcription endpoint and the recording store expect.
Stored recordings are replayed through the default output device.
"""

import asyncio
import io
import logging
import wave
from typing import Optional

import pyaudio

logger = logging.getLogger(__name__)


class AudioRecorderError(Exception):
    """Base exception for audio recorder errors."""
    pass


class MicrophonePermissionError(AudioRecorderError):
    """Raised when microphone permissions are not granted."""
    pass


class DeviceError(AudioRecorderError):
    """Raised when no audio input devices are available."""
    pass


def wav_duration(wav_data: bytes) -> float:
    """Duration of WAV audio in seconds; 0.0 if it cannot be parsed."""
    try:
        with wave.open(io.BytesIO(wav_data), 'rb') as wav_file:
            rate = wav_file.getframerate()
            return wav_file.getnframes() / float(rate) if rate else 0.0
    except (wave.Error, EOFError):
        return 0.0


class AudioRecorder:
    """
    Async microphone recorder returning WAV bytes.

    Example:
        >>> recorder = AudioRecorder()
        >>> await recorder.start_recording()
        >>> audio_data = await recorder.stop_recording()
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 512,
        channels: int = 1
    ):
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        if channels not in (1, 2):
            raise ValueError(f"Channels must be 1 or 2, got {channels}")

        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = pyaudio.paInt16
        self.sample_width = 2

        self._audio: Optional[pyaudio.PyAudio] = None
        self._stream = None
        self._is_recording = False
        self._frames: list[bytes] = []
        self._capture_task: Optional[asyncio.Task] = None

    def is_recording(self) -> bool:
        return self._is_recording

    async def start_recording(self) -> None:
        """
        Open the default input device and start buffering audio.

        Raises:
            RuntimeError: If already recording
            MicrophonePermissionError: If the OS refused access to the microphone
            DeviceError: If no input device is available
            AudioRecorderError: If the stream cannot be opened
        """
        if self._is_recording:
            raise RuntimeError("Recording already in progress")

        try:
            self._audio = pyaudio.PyAudio()
            if not self._has_input_device():
                raise DeviceError("No audio input devices found")

            self._frames.clear()
            try:
                self._stream = self._audio.open(
                    format=self.format,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    frames_per_buffer=self.chunk_size
                )
            except OSError as e:
                if "device" in str(e).lower() or "input" in str(e).lower():
                    raise MicrophonePermissionError(
                        "Microphone access denied. Allow microphone access for your terminal and try again."
                    ) from e
                raise AudioRecorderError(f"Failed to open audio stream: {e}") from e

            self._is_recording = True
            self._capture_task = asyncio.create_task(self._capture_loop())
            logger.info(f"Recording started: {self.sample_rate}Hz, {self.channels} channel(s)")

        except Exception as e:
            self._release()
            if isinstance(e, (AudioRecorderError, RuntimeError)):
                raise
            raise AudioRecorderError(f"Failed to start recording: {e}") from e

    async def stop_recording(self) -> bytes:
        """
        Stop capturing and return the recording as WAV bytes.

        Raises:
            RuntimeError: If not currently recording
        """
        if not self._is_recording:
            raise RuntimeError("Not currently recording")

        self._is_recording = False
        try:
            if self._capture_task:
                await self._capture_task
                self._capture_task = None
        finally:
            self._release()

        wav_data = self._to_wav(b''.join(self._frames))
        logger.info(f"Recording stopped: {len(wav_data)} bytes captured")
        return wav_data

    async def _capture_loop(self) -> None:
        while self._is_recording and self._stream:
            try:
                data = self._stream.read(self.chunk_size, exception_on_overflow=False)
            except OSError as e:
                logger.warning(f"Audio read error: {e}")
                break
            if data:
                self._frames.append(data)
            # yield to the event loop between reads
            await asyncio.sleep(0.001)
        logger.debug("Capture loop ended")

    def _to_wav(self, pcm: bytes) -> bytes:
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wav_file:
            wav_file.setnchannels(self.channels)
            wav_file.setsampwidth(self.sample_width)
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(pcm)
        return buffer.getvalue()

    def _has_input_device(self) -> bool:
        if not self._audio:
            return False
        for i in range(self._audio.get_device_count()):
            if self._audio.get_device_info_by_index(i).get('maxInputChannels', 0) > 0:
                return True
        return False

    def _release(self) -> None:
        try:
            if self._stream:
                if self._stream.is_active():
                    self._stream.stop_stream()
                self._stream.close()
            if self._audio:
                self._audio.terminate()
        except OSError as e:
            logger.warning(f"Error releasing audio resources: {e}")
        finally:
            self._stream = None
            self._audio = None

    async def __aenter__(self) -> "AudioRecorder":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._is_recording:
            await self.stop_recording()
        self._release()


def _play_blocking(wav_data: bytes, chunk_size: int) -> None:
    audio = pyaudio.PyAudio()
    try:
        with wave.open(io.BytesIO(wav_data), 'rb') as wav_file:
            stream = audio.open(
                format=audio.get_format_from_width(wav_file.getsampwidth()),
                channels=wav_file.getnchannels(),
                rate=wav_file.getframerate(),
                output=True
            )
            try:
                data = wav_file.readframes(chunk_size)
                while data:
                    stream.write(data)
                    data = wav_file.readframes(chunk_size)
            finally:
                stream.stop_stream()
                stream.close()
    finally:
        audio.terminate()


async def play_wav(wav_data: bytes, chunk_size: int = 1024) -> None:
    """
    Play WAV audio through the default output device.

    Raises:
        AudioRecorderError: If the data is not WAV or the device cannot be opened.
    """
    try:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, _play_blocking, wav_data, chunk_size)
    except (wave.Error, EOFError, OSError) as e:
        raise AudioRecorderError(f"Playback failed: {e}") from e
