"""
Optional generative post-processing operations.

These run on demand (not as pipeline stages) and use the Gemini client
only. None of them raise on provider failure.
"""

from typing import Dict
import json
import logging
import re

from .errors import NotConfiguredError, ProviderError
from .models import KeyPoints, KeyPointsResult, StageResult
from .prompts import LANGUAGE_NAMES
from .providers import GenerativeClient

logger = logging.getLogger(__name__)

FORMAT_PROMPT = """Format the following text for better readability:
- Split it into logical paragraphs
- Add headings where appropriate (use ## for headings)
- Turn enumerations into lists
- Keep all of the content and its meaning

Return only the formatted text as Markdown, without explanations.

Text:
{text}"""

STYLE_PROMPT = """Improve the style of the following text:
- Make it more readable and professional
- Remove repetition and redundancy
- Improve the wording while keeping the meaning
- Make the text better structured

Keep all of the content and key ideas. Return only the improved text without explanations.

Text:
{text}"""

KEY_POINTS_PROMPT = """Analyze the following text and extract the key information as JSON:
{{
  "summary": "A short summary of the text in 2-3 sentences",
  "actionItems": ["Concrete tasks and actions"],
  "dates": ["Important dates and deadlines"],
  "keyTopics": ["Main topics and keywords"]
}}

If a category is absent from the text, return an empty array for it. Return ONLY valid JSON with no extra text.

Text:
{text}"""

TRANSLATE_PROMPT = """Translate the following text into {language}. Keep the formatting and structure. Return only the translation without explanations.

Text:
{text}"""

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


async def _generate(client: GenerativeClient, prompt: str, original: str, label: str) -> StageResult:
    try:
        return StageResult.success(await client.generate(prompt), label)
    except (ProviderError, NotConfiguredError) as e:
        logger.error(f"{label} failed: {e}")
        return StageResult.failure(original, str(e))


async def format_text(client: GenerativeClient, text: str) -> StageResult:
    """Format text into Markdown paragraphs, headings and lists."""
    return await _generate(client, FORMAT_PROMPT.format(text=text), text, "Gemini (Format)")


async def improve_style(client: GenerativeClient, text: str) -> StageResult:
    """Rewrite text to read more clearly and professionally."""
    return await _generate(client, STYLE_PROMPT.format(text=text), text, "Gemini (Style)")


async def translate_text(client: GenerativeClient, text: str, target_language: str) -> StageResult:
    """Translate text into the language named by `target_language` (code or name)."""
    language = LANGUAGE_NAMES.get(target_language.lower(), target_language)
    prompt = TRANSLATE_PROMPT.format(language=language, text=text)
    return await _generate(client, prompt, text, "Gemini (Translate)")


def parse_key_points(raw: str) -> KeyPoints:
    """
    Parse the model's JSON answer, tolerating Markdown code fences.

    Raises:
        ValueError: If the answer is not a JSON object.
    """
    cleaned = _CODE_FENCE.sub("", raw).strip() or "{}"
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("key points answer is not a JSON object")

    def as_list(key: str) -> list:
        value = data.get(key) or []
        return [str(item) for item in value] if isinstance(value, list) else [str(value)]

    return KeyPoints(
        summary=str(data.get("summary", "")),
        action_items=as_list("actionItems"),
        dates=as_list("dates"),
        key_topics=as_list("keyTopics")
    )


async def extract_key_points(client: GenerativeClient, text: str) -> KeyPointsResult:
    """Extract a summary, action items, dates and topics from text."""
    try:
        raw = await client.generate(KEY_POINTS_PROMPT.format(text=text))
        return KeyPointsResult(succeeded=True, key_points=parse_key_points(raw))
    except (ProviderError, NotConfiguredError, ValueError) as e:
        logger.error(f"Key points extraction failed: {e}")
        return KeyPointsResult(succeeded=False, error_message=str(e))


def key_points_as_dict(points: KeyPoints) -> Dict[str, object]:
    return {
        "summary": points.summary,
        "actionItems": points.action_items,
        "dates": points.dates,
        "keyTopics": points.key_topics,
    }
