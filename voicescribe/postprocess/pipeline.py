"""
Post-processing pipeline orchestration.

Runs the enabled correction stages in a fixed order (spelling, grammar,
punctuation), threading the working text from one stage to the next and
collecting every stage's outcome into a PipelineResult.
"""

from typing import Any, Dict, Optional, Sequence
import logging
import time

from ..config import (
    DEEPSEEK_BASE_URL,
    DEEPSEEK_MODEL,
    FAST_CHAT_MODEL,
    GEMINI_MODEL,
    GROQ_BASE_URL,
    ChatEndpoint,
    Settings,
    load_settings,
)
from .models import (
    DEFAULT_LANGUAGES,
    GRAMMAR,
    PUNCTUATION,
    SPELLING,
    Mode,
    PipelineConfiguration,
    PipelineResult,
    StageResult,
    Tone,
)
from .providers import ChatCompletionClient, GenerativeClient, SpellerClient
from .stages import GrammarStage, PunctuationStage, SpellingStage

logger = logging.getLogger(__name__)


class PostProcessingPipeline:
    """
    Orchestrates the correction stages over a transcript.

    The generative client is the process-wide Gemini session. It is
    injected at construction and replaced as a whole by configure(); the
    stages are rebuilt around the new client so that a run never observes
    a half-updated configuration.
    """

    def __init__(
        self,
        generative: Optional[GenerativeClient] = None,
        speller: Optional[SpellerClient] = None,
        chat: Optional[ChatCompletionClient] = None,
        fast_endpoint: Optional[ChatEndpoint] = None,
        alternate_endpoint: Optional[ChatEndpoint] = None,
        quota_gated_fallback: bool = False
    ):
        """
        Initialize the pipeline.

        Args:
            generative: Gemini client; an unconfigured client is used if None
            speller: Spelling service client
            chat: OpenAI-compatible chat client shared by the fallback tiers
            fast_endpoint: Endpoint for the fast chat tier (Groq)
            alternate_endpoint: Endpoint for the alternate chat tier (DeepSeek)
            quota_gated_fallback: Only fall back past Gemini on quota errors
        """
        self.generative = generative or GenerativeClient()
        self.speller = speller or SpellerClient()
        self.chat = chat or ChatCompletionClient()
        self.fast_endpoint = fast_endpoint or ChatEndpoint(None, GROQ_BASE_URL, FAST_CHAT_MODEL)
        self.alternate_endpoint = alternate_endpoint or ChatEndpoint(None, DEEPSEEK_BASE_URL, DEEPSEEK_MODEL)
        self.quota_gated_fallback = quota_gated_fallback
        self._build_stages()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "PostProcessingPipeline":
        """Build a pipeline from resolved application settings."""
        return cls(
            generative=GenerativeClient(settings.gemini_api_key, model=settings.gemini_model),
            fast_endpoint=settings.fast_chat,
            alternate_endpoint=settings.alternate_chat,
            **kwargs
        )

    def _build_stages(self) -> None:
        self.spelling_stage = SpellingStage(self.speller, self.generative)
        self.grammar_stage = GrammarStage(self.generative)
        self.punctuation_stage = PunctuationStage(
            self.generative,
            self.chat,
            self.fast_endpoint,
            self.alternate_endpoint,
            quota_gated_fallback=self.quota_gated_fallback
        )

    def configure(self, api_key: str, model: Optional[str] = None) -> None:
        """
        Set the Gemini API key used by every stage.

        An empty key leaves the current client in place.
        """
        if not api_key:
            return
        self.generative = GenerativeClient(api_key, model=model or self.generative.model or GEMINI_MODEL)
        self._build_stages()
        logger.info("Gemini post-processing client configured")

    def apply_settings(self, settings: Settings) -> None:
        """Replace all provider configuration from a new Settings object."""
        if settings.gemini_api_key:
            self.generative = GenerativeClient(settings.gemini_api_key, model=settings.gemini_model)
        self.fast_endpoint = settings.fast_chat
        self.alternate_endpoint = settings.alternate_chat
        self._build_stages()

    async def correct_spelling(
        self,
        text: str,
        languages: Sequence[str] = DEFAULT_LANGUAGES
    ) -> StageResult:
        """Run the spelling stage alone."""
        return await self.spelling_stage.correct(text, languages)

    async def correct_grammar(self, text: str, mode: Mode = Mode.GENERAL) -> StageResult:
        """Run the grammar stage alone."""
        return await self.grammar_stage.correct(text, mode)

    async def correct_punctuation(
        self,
        text: str,
        mode: Mode = Mode.GENERAL,
        tone: Tone = Tone.DEFAULT,
        languages: Sequence[str] = DEFAULT_LANGUAGES
    ) -> StageResult:
        """Run the punctuation/style stage alone."""
        return await self.punctuation_stage.correct(text, mode, tone, languages)

    async def run(
        self,
        text: str,
        config: Optional[PipelineConfiguration] = None
    ) -> PipelineResult:
        """
        Run every enabled stage over `text`.

        Each stage receives the output of the previous successful stage. A
        failed stage leaves the working text untouched and never stops the
        stages after it.

        Args:
            text: Raw transcript
            config: Stage selection, mode, tone and languages

        Returns:
            PipelineResult whose final_text is the best available text.
        """
        config = config or PipelineConfiguration()
        result = PipelineResult(original_text=text, final_text=text)
        start_time = time.time()

        try:
            if config.enable_spelling:
                stage_result = await self.correct_spelling(result.final_text, config.languages)
                self._record(result, SPELLING, stage_result)

            if config.enable_grammar:
                stage_result = await self.correct_grammar(result.final_text, config.mode)
                self._record(result, GRAMMAR, stage_result)

            if config.enable_punctuation:
                stage_result = await self.correct_punctuation(
                    result.final_text, config.mode, config.tone, config.languages
                )
                self._record(result, PUNCTUATION, stage_result)

        except Exception as e:
            logger.exception(f"Post-processing pipeline failed: {e}")
            result.succeeded = False
            result.error_message = str(e) or e.__class__.__name__
            result.final_text = text
            return result

        logger.info(
            f"Post-processing finished in {time.time() - start_time:.2f}s "
            f"(succeeded stages: {', '.join(result.stages_succeeded) or 'none'})"
        )
        return result

    @staticmethod
    def _record(result: PipelineResult, stage: str, stage_result: StageResult) -> None:
        result.stage_results[stage] = stage_result
        if stage_result.succeeded and stage_result.text:
            result.final_text = stage_result.text
        elif not stage_result.succeeded:
            logger.warning(f"Stage '{stage}' failed: {stage_result.error_message}")

    def get_performance_metrics(self) -> Dict[str, Any]:
        """Get usage statistics for every provider client."""
        return {
            client.name: {
                'usage_stats': client.get_usage_stats(),
                'available': client.is_available()
            }
            for client in (self.speller, self.generative, self.chat)
        }


def create_default_pipeline(settings: Optional[Settings] = None) -> PostProcessingPipeline:
    """Create a pipeline configured from the environment and local overrides."""
    return PostProcessingPipeline.from_settings(settings or load_settings())


async def quick_correct(text: str, config: Optional[PipelineConfiguration] = None) -> str:
    """
    Correct text with the default pipeline.

    Returns:
        Corrected text, or the original text if every stage failed.
    """
    pipeline = create_default_pipeline()
    result = await pipeline.run(text, config)
    return result.final_text
