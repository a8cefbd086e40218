"""
Tests for prompt construction.
"""

from voicescribe.postprocess.models import Mode, Tone
from voicescribe.postprocess.prompts import (
    NO_COMMENTARY,
    chat_messages,
    describe_languages,
    grammar_prompt,
    punctuation_prompt,
    punctuation_system_prompt,
    spelling_prompt,
)


def test_describe_languages():
    assert describe_languages(("ru", "en")) == "Russian and English"
    assert describe_languages(("en",)) == "English"
    assert describe_languages(("ru", "en", "de")) == "Russian, English and German"
    assert describe_languages(("xx",)) == "xx"


def test_general_mode_only_adds_punctuation():
    prompt = punctuation_prompt("привет как дела", Mode.GENERAL, Tone.FRIENDLY)

    assert "only add punctuation" in prompt
    assert "friendly" not in prompt
    assert "Russian and English" in prompt
    assert prompt.endswith("\n\nText:\nпривет как дела")


def test_style_modes_carry_tone():
    prompt = punctuation_prompt("text", Mode.CORRECTOR, Tone.PROFESSIONAL)

    assert "improve the style" in prompt
    assert "professional" in prompt
    assert "preserve the core meaning" in prompt


def test_default_tone_adds_no_directive():
    prompt = punctuation_prompt("text", Mode.CODER, Tone.DEFAULT)

    for word in ("friendly", "serious", "professional"):
        assert word not in prompt


def test_system_prompt_has_same_policy_without_text():
    system = punctuation_system_prompt(Mode.GENERAL, Tone.DEFAULT, ("en",))

    assert "only add punctuation" in system
    assert "English" in system
    assert "Text:" not in system
    assert NO_COMMENTARY in system


def test_chat_messages():
    assert chat_messages("be brief", "hi") == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
    ]


def test_spelling_prompt_names_languages():
    prompt = spelling_prompt("helo", ("en",))

    assert "spelling" in prompt
    assert "English" in prompt
    assert prompt.endswith("helo")


def test_grammar_prompt_mode_hints():
    assert "code identifiers" in grammar_prompt("x", Mode.CODER)
    assert "mix languages" in grammar_prompt("x", Mode.TRANSLATOR)
    assert "code identifiers" not in grammar_prompt("x", Mode.GENERAL)
