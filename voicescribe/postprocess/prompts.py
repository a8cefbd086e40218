"""
Prompt templates for the correction stages.

Every instruction exists in two phrasings: a single-turn prompt that embeds
the text (generative adapter) and a system instruction sent alongside the
text as a user message (chat-completion adapter). Both carry the same policy.
"""

from typing import Dict, List, Sequence

from .models import Mode, Tone, DEFAULT_LANGUAGES

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "ru": "Russian",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "uk": "Ukrainian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

TONE_INSTRUCTIONS: Dict[Tone, str] = {
    Tone.DEFAULT: "",
    Tone.FRIENDLY: "Use a warm, conversational and friendly tone.",
    Tone.SERIOUS: "Use a strict, formal and serious tone.",
    Tone.PROFESSIONAL: "Use a polished, businesslike and professional style.",
}

NO_COMMENTARY = "Return only the corrected text, without any explanations or commentary."


def describe_languages(languages: Sequence[str] = DEFAULT_LANGUAGES) -> str:
    """Render language codes as 'Russian and English'."""
    names = [LANGUAGE_NAMES.get(code, code) for code in languages] or ["the source language"]
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def _with_text(instruction: str, text: str) -> str:
    return f"{instruction}\n\nText:\n{text}"


def _punctuation_instruction(mode: Mode, tone: Tone, languages: Sequence[str]) -> str:
    rules = describe_languages(languages)
    if Mode(mode) == Mode.GENERAL:
        return (
            "Fix the punctuation of the text. Insert commas, periods, question marks and "
            f"exclamation marks according to the rules of {rules}. Keep all of the content "
            "unchanged and do not alter the style; only add punctuation. "
            f"{NO_COMMENTARY}"
        )

    tone_instruction = TONE_INSTRUCTIONS.get(Tone(tone), "")
    parts: List[str] = ["Fix the punctuation and improve the style of the text."]
    if tone_instruction:
        parts.append(tone_instruction)
    parts.append(
        f"Insert commas, periods, question marks and exclamation marks according to the rules of {rules}. "
        "You may lightly reword phrases, but preserve the core meaning."
    )
    parts.append(NO_COMMENTARY)
    return " ".join(parts)


def punctuation_prompt(
    text: str,
    mode: Mode = Mode.GENERAL,
    tone: Tone = Tone.DEFAULT,
    languages: Sequence[str] = DEFAULT_LANGUAGES
) -> str:
    """Single-turn punctuation prompt for the generative adapter."""
    return _with_text(_punctuation_instruction(mode, tone, languages), text)


def punctuation_system_prompt(
    mode: Mode = Mode.GENERAL,
    tone: Tone = Tone.DEFAULT,
    languages: Sequence[str] = DEFAULT_LANGUAGES
) -> str:
    """System instruction for the chat-completion adapter."""
    return (
        "You are a proofreader for dictated speech. The user message contains the text. "
        + _punctuation_instruction(mode, tone, languages)
    )


def chat_messages(system_prompt: str, text: str) -> List[Dict[str, str]]:
    """Build the system + user message pair."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": text},
    ]


SPELLING_INSTRUCTION = (
    "Fix only the spelling mistakes in the text. Preserve grammar, punctuation and style exactly "
    f"as they are. {NO_COMMENTARY}"
)

GRAMMAR_INSTRUCTION = (
    "Fix only the grammatical errors in the text (case, tense, agreement). Preserve spelling and "
    f"punctuation exactly as they are. {NO_COMMENTARY}"
)

# Dictation modes that carry extra context for the grammar pass
_GRAMMAR_MODE_HINTS: Dict[Mode, str] = {
    Mode.CODER: "The text may contain code identifiers; leave them untouched.",
    Mode.TRANSLATOR: "The text may mix languages; correct each part by its own language rules.",
}


def spelling_prompt(text: str, languages: Sequence[str] = DEFAULT_LANGUAGES) -> str:
    """Spelling-only prompt used when the spelling service is unavailable."""
    instruction = f"{SPELLING_INSTRUCTION} The text is in {describe_languages(languages)}."
    return _with_text(instruction, text)


def grammar_prompt(text: str, mode: Mode = Mode.GENERAL) -> str:
    """Grammar-only prompt for the generative adapter."""
    hint = _GRAMMAR_MODE_HINTS.get(Mode(mode))
    instruction = f"{GRAMMAR_INSTRUCTION} {hint}" if hint else GRAMMAR_INSTRUCTION
    return _with_text(instruction, text)
