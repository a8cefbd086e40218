"""
Provider client adapters used by the correction stages.

Each adapter wraps one vendor capability behind a narrow async call and
translates every transport or SDK failure into a ProviderError:

- SpellerClient: Yandex.Speller REST form-POST
- GenerativeClient: Google Gemini single-turn text generation
- ChatCompletionClient: any OpenAI-compatible chat completion endpoint
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging
import time

import httpx
import openai
from google import genai

from ..config import ChatEndpoint, GEMINI_MODEL
from .errors import (
    ErrorKind,
    NotConfiguredError,
    ProviderError,
    to_provider_error,
)
from .models import DEFAULT_LANGUAGES, SpellingCorrection

logger = logging.getLogger(__name__)

SPELLER_URL = "https://speller.yandex.net/services/spellservice.json"

# Yandex.Speller option bits
IGNORE_URLS = 2
FIND_REPEAT_WORDS = 4
IGNORE_CAPITALIZATION = 512

MAX_SPELLER_TEXT_LENGTH = 10000


@dataclass(frozen=True)
class HealthStatus:
    """Reachability of a provider: ok, auth, rate_limit, degraded or unreachable."""
    status: str
    code: Optional[int] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


_HEALTH_BY_KIND = {
    ErrorKind.UNAUTHORIZED: "auth",
    ErrorKind.RATE_LIMITED: "rate_limit",
    ErrorKind.SERVER_ERROR: "degraded",
    ErrorKind.NETWORK_UNAVAILABLE: "unreachable",
    ErrorKind.MALFORMED: "unreachable",
}


def health_from_error(error: ProviderError) -> HealthStatus:
    return HealthStatus(_HEALTH_BY_KIND[error.kind], code=error.status_code, detail=str(error))


class ProviderClient(ABC):
    """Base class for provider adapters with usage accounting."""

    def __init__(self, name: str):
        self.name = name
        self.usage_stats = {
            'requests': 0,
            'successful': 0,
            'failed': 0,
            'total_time': 0.0
        }

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider has what it needs to be called."""
        pass

    def update_usage_stats(self, success: bool, elapsed: float = 0.0) -> None:
        """Update usage statistics."""
        self.usage_stats['requests'] += 1
        if success:
            self.usage_stats['successful'] += 1
        else:
            self.usage_stats['failed'] += 1
        self.usage_stats['total_time'] += elapsed

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get current usage statistics."""
        return self.usage_stats.copy()


class SpellerClient(ProviderClient):
    """Yandex.Speller adapter."""

    def __init__(
        self,
        base_url: str = SPELLER_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__("yandex_speller")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    def is_available(self) -> bool:
        """The public speller needs no credential."""
        return True

    async def _post(self, endpoint: str, form: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{endpoint}"
        start_time = time.time()
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=form)
            response.raise_for_status()
            payload = response.json()
        except Exception as e:
            self.update_usage_stats(success=False, elapsed=time.time() - start_time)
            raise to_provider_error(e, "Yandex.Speller") from e

        self.update_usage_stats(success=True, elapsed=time.time() - start_time)
        return payload

    @staticmethod
    def _form(texts: Sequence[str], languages: Sequence[str], options: int) -> Dict[str, Any]:
        # A list value is sent as repeated `text` fields
        return {
            "text": texts[0] if len(texts) == 1 else list(texts),
            "lang": ",".join(languages),
            "options": str(options),
            "format": "plain",
        }

    @staticmethod
    def _parse_records(records: Any) -> List[SpellingCorrection]:
        if not isinstance(records, list):
            raise ProviderError(
                f"expected a list of corrections, got {type(records).__name__}",
                kind=ErrorKind.MALFORMED,
                provider="Yandex.Speller"
            )
        try:
            return [SpellingCorrection.from_dict(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                f"malformed correction record: {e}",
                kind=ErrorKind.MALFORMED,
                provider="Yandex.Speller"
            ) from e

    async def check_text(
        self,
        text: str,
        languages: Sequence[str] = DEFAULT_LANGUAGES,
        options: int = IGNORE_URLS
    ) -> List[SpellingCorrection]:
        """
        Check a single text.

        Args:
            text: Text to check (callers enforce the length ceiling)
            languages: Language codes, e.g. ('ru', 'en')
            options: Speller option bitmask

        Returns:
            Correction records in the order the service reported them.

        Raises:
            ProviderError: On network failure, non-2xx status or a malformed body.
        """
        payload = await self._post("checkText", self._form([text], languages, options))
        return self._parse_records(payload)

    async def check_texts(
        self,
        texts: Sequence[str],
        languages: Sequence[str] = DEFAULT_LANGUAGES,
        options: int = IGNORE_URLS
    ) -> List[List[SpellingCorrection]]:
        """Check several texts in one request; returns one record list per text."""
        if not texts:
            return []
        payload = await self._post("checkTexts", self._form(texts, languages, options))
        if not isinstance(payload, list):
            raise ProviderError(
                "expected one correction list per text",
                kind=ErrorKind.MALFORMED,
                provider="Yandex.Speller"
            )
        results = []
        for index in range(len(texts)):
            records = payload[index] if index < len(payload) else []
            results.append(self._parse_records(records))
        return results


class GenerativeClient(ProviderClient):
    """
    Google Gemini adapter.

    Holds the SDK session for the process. Calling generate() on a client
    built without a key raises NotConfiguredError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_MODEL,
        client: Optional[Any] = None
    ):
        super().__init__("gemini")
        self.api_key = api_key
        self.model = model
        self._client = client
        if self._client is None and api_key:
            self._client = genai.Client(api_key=api_key)

    def is_available(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise NotConfiguredError("Gemini client not initialized. Call configure(api_key) first.")
        return self._client

    async def generate(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the generated text.

        Raises:
            NotConfiguredError: If the client has no API key.
            ProviderError: On any provider failure or an empty response.
        """
        client = self._require_client()
        start_time = time.time()
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.models.generate_content(model=self.model, contents=prompt)
            )
        except Exception as e:
            self.update_usage_stats(success=False, elapsed=time.time() - start_time)
            raise to_provider_error(e, "Gemini") from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            self.update_usage_stats(success=False, elapsed=time.time() - start_time)
            raise ProviderError("empty response", kind=ErrorKind.MALFORMED, provider="Gemini")

        self.update_usage_stats(success=True, elapsed=time.time() - start_time)
        return text

    async def check_health(self, timeout: float = 2.0) -> HealthStatus:
        """Check that the model is reachable with the configured key."""
        if self._client is None:
            return HealthStatus("auth", detail="GEMINI_API_KEY not set")
        loop = asyncio.get_event_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, lambda: self._client.models.get(model=self.model)),
                timeout=timeout
            )
            return HealthStatus("ok")
        except asyncio.TimeoutError:
            return HealthStatus("unreachable", detail="timeout")
        except Exception as e:
            return health_from_error(to_provider_error(e, "Gemini"))


class ChatCompletionClient(ProviderClient):
    """OpenAI-compatible chat completion adapter (Groq, DeepSeek, OpenAI, ...)."""

    def __init__(self, timeout: float = 30.0, temperature: float = 0.3):
        super().__init__("chat_completion")
        self.timeout = timeout
        self.temperature = temperature
        self._clients: Dict[Tuple[str, str], openai.OpenAI] = {}

    def is_available(self) -> bool:
        return True

    def _client_for(self, endpoint: ChatEndpoint) -> openai.OpenAI:
        if not endpoint.api_key:
            raise NotConfiguredError(f"API key missing for {endpoint.base_url}")
        key = (endpoint.api_key, endpoint.base_url)
        if key not in self._clients:
            self._clients[key] = openai.OpenAI(
                api_key=endpoint.api_key,
                base_url=endpoint.base_url,
                timeout=self.timeout
            )
        return self._clients[key]

    async def complete(
        self,
        messages: List[Dict[str, str]],
        endpoint: ChatEndpoint,
        provider: str = "chat"
    ) -> str:
        """
        Run a chat completion and return the first choice's message content.

        Args:
            messages: Ordered list of {role, content} dicts
            endpoint: Endpoint (key, base URL, model) to call
            provider: Label used in errors and logs

        Raises:
            NotConfiguredError: If the endpoint has no API key.
            ProviderError: On any provider failure or an empty message body.
        """
        client = self._client_for(endpoint)
        start_time = time.time()
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.chat.completions.create(
                    model=endpoint.model,
                    messages=messages,
                    temperature=self.temperature
                )
            )
        except Exception as e:
            self.update_usage_stats(success=False, elapsed=time.time() - start_time)
            raise to_provider_error(e, provider) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None

        if not content or not content.strip():
            self.update_usage_stats(success=False, elapsed=time.time() - start_time)
            raise ProviderError("response has no message body", kind=ErrorKind.MALFORMED, provider=provider)

        self.update_usage_stats(success=True, elapsed=time.time() - start_time)
        return content.strip()

    async def check_health(self, endpoint: ChatEndpoint, timeout: float = 2.0) -> HealthStatus:
        """
        Lightweight reachability check against the endpoint's model listing.

        The call is raced against `timeout`; a slow endpoint reports unreachable.
        """
        if not endpoint.api_key:
            return HealthStatus("auth", detail="API key not set")
        client = self._client_for(endpoint)
        loop = asyncio.get_event_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, client.models.list),
                timeout=timeout
            )
            return HealthStatus("ok")
        except asyncio.TimeoutError:
            return HealthStatus("unreachable", detail="timeout")
        except Exception as e:
            return health_from_error(to_provider_error(e, endpoint.base_url))
