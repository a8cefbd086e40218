"""
Data model for the post-processing pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class Mode(str, Enum):
    """Dictation mode selected by the user."""
    GENERAL = "general"
    CORRECTOR = "corrector"
    CODER = "coder"
    TRANSLATOR = "translator"


class Tone(str, Enum):
    """Style directive applied outside of general mode."""
    DEFAULT = "default"
    FRIENDLY = "friendly"
    SERIOUS = "serious"
    PROFESSIONAL = "professional"


# Stage names, in execution order
SPELLING = "spelling"
GRAMMAR = "grammar"
PUNCTUATION = "punctuation"
STAGE_ORDER = (SPELLING, GRAMMAR, PUNCTUATION)

DEFAULT_LANGUAGES: Tuple[str, ...] = ("ru", "en")


def _dedupe(languages: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for code in languages:
        code = code.strip().lower()
        if code and code not in seen:
            seen.append(code)
    return tuple(seen)


@dataclass(frozen=True)
class PipelineConfiguration:
    """Options for one pipeline run. Immutable for the duration of the run."""
    mode: Mode = Mode.GENERAL
    tone: Tone = Tone.DEFAULT
    enable_spelling: bool = True
    enable_grammar: bool = False
    enable_punctuation: bool = True
    languages: Tuple[str, ...] = DEFAULT_LANGUAGES

    def __post_init__(self):
        # Accept plain strings and lists from callers and the CLI
        object.__setattr__(self, "mode", Mode(self.mode))
        object.__setattr__(self, "tone", Tone(self.tone))
        object.__setattr__(self, "languages", _dedupe(self.languages) or DEFAULT_LANGUAGES)


@dataclass(frozen=True)
class StageResult:
    """Outcome of a single correction stage."""
    succeeded: bool
    text: Optional[str] = None
    error_message: Optional[str] = None
    provider_label: Optional[str] = None

    @classmethod
    def success(cls, text: str, provider_label: str) -> "StageResult":
        return cls(succeeded=True, text=text, provider_label=provider_label)

    @classmethod
    def failure(cls, original_text: str, error_message: str) -> "StageResult":
        return cls(succeeded=False, text=original_text, error_message=error_message)


@dataclass
class PipelineResult:
    """Aggregate outcome of a pipeline run."""
    original_text: str
    final_text: str
    succeeded: bool = True
    stage_results: Dict[str, StageResult] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def stages_succeeded(self) -> List[str]:
        """Names of stages that produced text, in execution order."""
        return [
            name for name in STAGE_ORDER
            if name in self.stage_results and self.stage_results[name].succeeded
        ]


@dataclass(frozen=True)
class SpellingCorrection:
    """One record returned by the spelling service."""
    pos: int
    len: int
    candidates: Tuple[str, ...] = ()
    word: str = ""
    code: int = 0
    row: int = 0
    col: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "SpellingCorrection":
        """
        Build a correction from the service's JSON record (`s` holds candidates).

        Raises:
            TypeError: If `s` is not a list of strings.
        """
        candidates = data.get("s") or []
        if not isinstance(candidates, list) or not all(isinstance(c, str) for c in candidates):
            raise TypeError(f"candidates must be a list of strings, got {candidates!r}")
        return cls(
            pos=int(data["pos"]),
            len=int(data["len"]),
            candidates=tuple(candidates),
            word=data.get("word", ""),
            code=int(data.get("code", 0)),
            row=int(data.get("row", 0)),
            col=int(data.get("col", 0))
        )


@dataclass
class KeyPoints:
    """Structured summary extracted from a transcript."""
    summary: str = ""
    action_items: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    key_topics: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class KeyPointsResult:
    """Outcome of key point extraction."""
    succeeded: bool
    key_points: Optional[KeyPoints] = None
    error_message: Optional[str] = None
