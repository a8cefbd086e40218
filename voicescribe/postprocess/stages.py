"""
Correction stages: spelling, grammar and punctuation/style.

Every stage returns a StageResult and never raises for provider failures.
The punctuation stage walks a fixed tier list of providers until one of
them returns usable text.
"""

from typing import List, Optional, Sequence
import logging

from ..config import ChatEndpoint
from .errors import CorrectionMergeError, ErrorKind, NotConfiguredError, ProviderError
from .models import DEFAULT_LANGUAGES, Mode, SpellingCorrection, StageResult, Tone
from .prompts import (
    chat_messages,
    grammar_prompt,
    punctuation_prompt,
    punctuation_system_prompt,
    spelling_prompt,
)
from .providers import (
    IGNORE_URLS,
    MAX_SPELLER_TEXT_LENGTH,
    ChatCompletionClient,
    GenerativeClient,
    SpellerClient,
)

logger = logging.getLogger(__name__)

SPELLER_LABEL = "Yandex.Speller"
SPELLING_FALLBACK_LABEL = "Gemini (Spelling Fallback)"
GEMINI_LABEL = "Gemini"
FAST_CHAT_LABEL = "Groq (Llama 3.3 70B)"
ALTERNATE_CHAT_LABEL = "DeepSeek"

ALL_PROVIDERS_UNAVAILABLE = "all punctuation correction providers unavailable"


def _is_blank(text: Optional[str]) -> bool:
    return not text or not text.strip()


def _describe(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def apply_corrections(text: str, corrections: Sequence[SpellingCorrection]) -> str:
    """
    Splice the first candidate of each correction into the text.

    Corrections are applied from the highest offset down so that every
    reported span still points at the original characters when it is
    replaced. The sort is stable, so the result does not depend on the
    order the service reported the records in. Records without candidates
    are skipped.

    Raises:
        CorrectionMergeError: If a correction's span lies outside the text
            or its first candidate is not a string.
    """
    result = text
    applied = 0
    for correction in sorted(corrections, key=lambda c: c.pos, reverse=True):
        if not correction.candidates:
            continue
        start, end = correction.pos, correction.pos + correction.len
        if start < 0 or correction.len < 0 or end > len(text):
            raise CorrectionMergeError(
                f"correction span [{start}, {end}) is outside text of length {len(text)}"
            )
        if not isinstance(correction.candidates[0], str):
            raise CorrectionMergeError(f"correction candidate {correction.candidates[0]!r} is not a string")
        result = result[:start] + correction.candidates[0] + result[end:]
        applied += 1

    if applied:
        logger.info(f"Yandex.Speller corrected {applied} spelling error(s)")
    return result


class SpellingStage:
    """Spelling correction via the speller service, with a generative fallback."""

    def __init__(
        self,
        speller: SpellerClient,
        generative: GenerativeClient,
        max_length: int = MAX_SPELLER_TEXT_LENGTH
    ):
        self.speller = speller
        self.generative = generative
        self.max_length = max_length

    async def correct(self, text: str, languages: Sequence[str] = DEFAULT_LANGUAGES) -> StageResult:
        """
        Correct spelling in `text`.

        Empty input returns immediately without calling any provider. Input
        over the length ceiling is truncated before submission.
        """
        if _is_blank(text):
            return StageResult(succeeded=True, text=text)

        submitted = text
        if len(submitted) > self.max_length:
            logger.warning(
                f"Text too long for Yandex.Speller ({len(text)} > {self.max_length} chars), truncating"
            )
            submitted = submitted[:self.max_length]

        try:
            corrections = await self.speller.check_text(submitted, languages, options=IGNORE_URLS)
            corrected = apply_corrections(submitted, corrections)
            return StageResult.success(corrected, SPELLER_LABEL)
        except (ProviderError, CorrectionMergeError) as e:
            logger.warning(f"Spelling service failed, falling back to Gemini: {e}")

        try:
            corrected = await self.generative.generate(spelling_prompt(submitted, languages))
            return StageResult.success(corrected, SPELLING_FALLBACK_LABEL)
        except (ProviderError, NotConfiguredError) as e:
            logger.error(f"Spelling fallback failed: {e}")
            return StageResult.failure(text, _describe(e))


class GrammarStage:
    """Grammar-only correction through the generative adapter. No fallback."""

    def __init__(self, generative: GenerativeClient):
        self.generative = generative

    async def correct(self, text: str, mode: Mode = Mode.GENERAL) -> StageResult:
        if _is_blank(text):
            return StageResult(succeeded=True, text=text)
        try:
            corrected = await self.generative.generate(grammar_prompt(text, mode))
            return StageResult.success(corrected, GEMINI_LABEL)
        except (ProviderError, NotConfiguredError) as e:
            logger.warning(f"Grammar correction failed: {e}")
            return StageResult.failure(text, _describe(e))


class PunctuationStage:
    """
    Punctuation and style correction with a three-tier provider fallback.

    Tiers, tried strictly in order:

    1. Gemini, when the generative client is configured
    2. fast chat endpoint (Groq, Llama 3.3 70B)
    3. alternate chat endpoint (DeepSeek), when a key is configured

    By default any tier-1 failure moves on to tier 2. With
    `quota_gated_fallback=True` tiers 2 and 3 are only tried after tier 1
    failed with a rate-limit/quota error.
    """

    def __init__(
        self,
        generative: GenerativeClient,
        chat: ChatCompletionClient,
        fast_endpoint: ChatEndpoint,
        alternate_endpoint: ChatEndpoint,
        quota_gated_fallback: bool = False
    ):
        self.generative = generative
        self.chat = chat
        self.fast_endpoint = fast_endpoint
        self.alternate_endpoint = alternate_endpoint
        self.quota_gated_fallback = quota_gated_fallback

    async def correct(
        self,
        text: str,
        mode: Mode = Mode.GENERAL,
        tone: Tone = Tone.DEFAULT,
        languages: Sequence[str] = DEFAULT_LANGUAGES
    ) -> StageResult:
        if _is_blank(text):
            return StageResult(succeeded=True, text=text)

        errors: List[str] = []

        if self.generative.is_available():
            try:
                corrected = await self.generative.generate(
                    punctuation_prompt(text, mode, tone, languages)
                )
                logger.info("Punctuation corrected by Gemini")
                return StageResult.success(corrected, GEMINI_LABEL)
            except Exception as e:
                logger.warning(f"Gemini punctuation failed: {e}")
                errors.append(f"Gemini: {_describe(e)}")
                rate_limited = isinstance(e, ProviderError) and e.kind == ErrorKind.RATE_LIMITED
                if self.quota_gated_fallback and not rate_limited:
                    return StageResult.failure(text, _describe(e))
        else:
            logger.debug("Gemini not configured, skipping to chat fallback")

        messages = chat_messages(punctuation_system_prompt(mode, tone, languages), text)

        try:
            corrected = await self.chat.complete(messages, self.fast_endpoint, provider="Groq")
            logger.info("Punctuation corrected by Groq fallback")
            return StageResult.success(corrected, FAST_CHAT_LABEL)
        except Exception as e:
            logger.warning(f"Groq punctuation fallback failed: {e}")
            errors.append(f"Groq: {_describe(e)}")

        if self.alternate_endpoint.configured:
            try:
                corrected = await self.chat.complete(messages, self.alternate_endpoint, provider="DeepSeek")
                logger.info("Punctuation corrected by DeepSeek fallback")
                return StageResult.success(corrected, ALTERNATE_CHAT_LABEL)
            except Exception as e:
                logger.warning(f"DeepSeek punctuation fallback failed: {e}")
                errors.append(f"DeepSeek: {_describe(e)}")

        logger.error(f"{ALL_PROVIDERS_UNAVAILABLE}: {'; '.join(errors) or 'no provider configured'}")
        return StageResult.failure(text, ALL_PROVIDERS_UNAVAILABLE)
