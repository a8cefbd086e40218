"""
Speech-to-text transcription through an OpenAI-compatible API.

Sends recorded audio to a hosted Whisper endpoint (Groq by default, any
OpenAI-compatible `/audio/transcriptions` endpoint works) and returns the
transcript with basic metadata.
"""

from typing import Optional, Union
from pathlib import Path
from dataclasses import dataclass
import asyncio
import logging
import time

import openai

from ..config import TranscriptionConfig
from ..postprocess.errors import ErrorKind, NotConfiguredError, ProviderError, to_provider_error

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionResult:
    """Complete transcription result with metadata."""
    text: str                                # Full transcribed text
    provider: str                            # Provider label, e.g. "Groq (whisper-large-v3)"
    language: Optional[str] = None           # Language hint sent or detected
    processing_time: Optional[float] = None  # Time taken to transcribe


class CloudTranscriber:
    """
    Hosted Whisper transcriber.

    The endpoint configuration is held as one immutable object; configure()
    swaps it as a whole, so a transcription in flight keeps using the
    configuration it started with.
    """

    def __init__(self, config: TranscriptionConfig, timeout: float = 60.0):
        """
        Initialize the transcriber.

        Args:
            config: Endpoint key, base URL and model
            timeout: Request timeout in seconds
        """
        self.timeout = timeout
        self._config = config
        self._client: Optional[openai.OpenAI] = None

    @property
    def config(self) -> TranscriptionConfig:
        return self._config

    def configure(self, config: TranscriptionConfig) -> None:
        """Replace the endpoint configuration (e.g. after the user saves a new key)."""
        self._config = config
        self._client = None
        logger.info(f"Transcription configured: {config.provider_label}")

    def is_available(self) -> bool:
        return bool(self._config.api_key)

    def _get_client(self, config: TranscriptionConfig) -> openai.OpenAI:
        if not config.api_key:
            raise NotConfiguredError(
                "Transcription API key missing (checked TRANSCRIPTION_API_KEY, GROQ_API_KEY, OPENAI_API_KEY)"
            )
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=self.timeout
            )
        return self._client

    async def transcribe(
        self,
        audio_data: bytes,
        filename: str = "audio.wav",
        language: Optional[str] = None,
        prompt: Optional[str] = None
    ) -> TranscriptionResult:
        """
        Transcribe audio bytes to text.

        Args:
            audio_data: Encoded audio (WAV, WebM, MP3, ...)
            filename: File name sent with the upload; its extension tells the API the format
            language: Optional ISO language hint
            prompt: Optional text to guide the transcription

        Returns:
            TranscriptionResult with the transcribed text.

        Raises:
            ValueError: If audio_data is empty.
            NotConfiguredError: If no API key is configured.
            ProviderError: If the provider call fails.
        """
        if not audio_data:
            raise ValueError("Audio data cannot be empty")

        config = self._config
        client = self._get_client(config)
        start_time = time.time()

        params = {"model": config.model, "file": (filename, audio_data)}
        if language:
            params["language"] = language
        if prompt:
            params["prompt"] = prompt

        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.audio.transcriptions.create(**params)
            )
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise to_provider_error(e, config.provider_label) from e

        text = getattr(response, "text", None)
        if text is None and isinstance(response, str):
            text = response
        if text is None:
            raise ProviderError("response has no text", kind=ErrorKind.MALFORMED, provider=config.provider_label)

        processing_time = time.time() - start_time
        logger.info(f"Transcription completed by {config.provider_label} in {processing_time:.2f}s")

        return TranscriptionResult(
            text=text.strip(),
            provider=config.provider_label,
            language=language,
            processing_time=processing_time
        )

    async def transcribe_file(
        self,
        file_path: Union[str, Path],
        language: Optional[str] = None
    ) -> TranscriptionResult:
        """
        Transcribe an audio file to text.

        Raises:
            FileNotFoundError: If audio file doesn't exist.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Audio file not found: {file_path}")

        with open(file_path, 'rb') as f:
            audio_data = f.read()

        return await self.transcribe(audio_data, filename=file_path.name, language=language)
