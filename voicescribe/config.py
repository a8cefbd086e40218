"""
Application configuration.

Settings are resolved once from local overrides and the environment into an
immutable object. Runtime reconfiguration (e.g. after the user saves a new
key) builds a new Settings and hands it to the components, which swap their
whole configuration at once.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional
import json
import logging
import os
import re

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"

GEMINI_MODEL = "gemini-2.0-flash-exp"
FAST_CHAT_MODEL = "llama-3.3-70b-versatile"
DEEPSEEK_MODEL = "deepseek-chat"
TRANSCRIPTION_MODEL = "whisper-large-v3"

# Keys the user may store locally; they take precedence over the environment
OVERRIDE_KEYS = (
    "GEMINI_API_KEY",
    "GROQ_API_KEY",
    "DEEPSEEK_API_KEY",
    "OPENAI_API_KEY",
    "TRANSCRIPTION_API_KEY",
    "TONE_PRESET",
)


def normalize_base_url(url: Optional[str], default: str = OPENAI_BASE_URL) -> str:
    """
    Normalize an OpenAI-compatible base URL.

    Strips whitespace and trailing slashes and makes sure the URL ends with
    a single '/v1' path segment, so 'https://api.openai.com',
    'https://api.openai.com/' and 'https://api.openai.com/v1/' all resolve
    to 'https://api.openai.com/v1'.
    """
    if not url or not url.strip():
        url = default
    normalized = url.strip().rstrip("/")
    if not re.search(r"/v1$", normalized, flags=re.IGNORECASE):
        normalized += "/v1"
    return normalized


def home_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding local overrides and the recordings database."""
    environ = os.environ if environ is None else environ
    return Path(environ.get("VOICESCRIBE_HOME") or Path.home() / ".voicescribe")


@dataclass(frozen=True)
class ChatEndpoint:
    """An OpenAI-compatible chat-completion endpoint."""
    api_key: Optional[str]
    base_url: str
    model: str

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class TranscriptionConfig:
    """An OpenAI-compatible audio transcription endpoint."""
    api_key: Optional[str]
    base_url: str = GROQ_BASE_URL
    model: str = TRANSCRIPTION_MODEL

    @property
    def vendor(self) -> str:
        return "Groq" if "groq" in self.base_url.lower() else "OpenAI"

    @property
    def provider_label(self) -> str:
        return f"{self.vendor} ({self.model})"


class LocalOverrides:
    """
    Locally stored overrides (API keys and preferences) kept in a JSON file.

    Values stored here win over environment variables.
    """

    def __init__(self, path: Optional[Path] = None, values: Optional[Dict[str, str]] = None):
        self.path = path or home_dir() / "overrides.json"
        self._values: Dict[str, str] = dict(values or {})

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "LocalOverrides":
        """Load overrides from disk; a missing or unreadable file yields no overrides."""
        overrides = cls(path)
        if not overrides.path.exists():
            return overrides
        try:
            data = json.loads(overrides.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable overrides file {overrides.path}: {e}")
            return overrides
        if isinstance(data, dict):
            overrides._values = {str(k): str(v) for k, v in data.items() if v}
        return overrides

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key) or None

    def set(self, key: str, value: str) -> None:
        """Store an override and persist the file."""
        if key not in OVERRIDE_KEYS:
            raise ValueError(f"Unknown setting '{key}'. Expected one of: {', '.join(OVERRIDE_KEYS)}")
        if value:
            self._values[key] = value
        else:
            self._values.pop(key, None)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)


@dataclass(frozen=True)
class Settings:
    """Resolved provider and storage configuration."""
    gemini_api_key: Optional[str]
    fast_chat: ChatEndpoint
    alternate_chat: ChatEndpoint
    transcription: TranscriptionConfig
    gemini_model: str = GEMINI_MODEL
    tone: str = "default"
    db_path: Path = field(default_factory=lambda: home_dir() / "recordings.db")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[LocalOverrides] = None
    ) -> "Settings":
        """
        Resolve settings from local overrides first, then the environment.

        Args:
            environ: Environment mapping (defaults to os.environ)
            overrides: Local override store (defaults to none)

        Returns:
            Fully resolved Settings.
        """
        environ = os.environ if environ is None else environ
        overrides = overrides or LocalOverrides(values={})

        def lookup(*names: str) -> Optional[str]:
            for name in names:
                value = overrides.get(name) or environ.get(name)
                if value:
                    return value
            return None

        openai_key = lookup("OPENAI_API_KEY")
        groq_key = lookup("GROQ_API_KEY")
        openai_base = lookup("OPENAI_BASE_URL")

        # A Groq key without an explicit URL points at Groq's endpoint
        groq_base = lookup("GROQ_BASE_URL") or (GROQ_BASE_URL if groq_key else openai_base)
        fast_chat = ChatEndpoint(
            api_key=groq_key or openai_key,
            base_url=normalize_base_url(groq_base),
            model=FAST_CHAT_MODEL
        )

        alternate_chat = ChatEndpoint(
            api_key=lookup("DEEPSEEK_API_KEY", "OPENAI_API_KEY"),
            base_url=normalize_base_url(
                lookup("DEEPSEEK_BASE_URL", "OPENAI_BASE_URL"), default=DEEPSEEK_BASE_URL
            ),
            model=lookup("DEEPSEEK_MODEL", "OPENAI_MODEL") or DEEPSEEK_MODEL
        )

        transcription = TranscriptionConfig(
            api_key=lookup("TRANSCRIPTION_API_KEY", "GROQ_API_KEY", "OPENAI_API_KEY"),
            base_url=normalize_base_url(lookup("TRANSCRIPTION_BASE_URL") or groq_base),
            model=lookup("TRANSCRIPTION_MODEL") or TRANSCRIPTION_MODEL
        )

        db_path = environ.get("VOICESCRIBE_DB")
        return cls(
            gemini_api_key=lookup("GEMINI_API_KEY"),
            gemini_model=lookup("GEMINI_MODEL") or GEMINI_MODEL,
            fast_chat=fast_chat,
            alternate_chat=alternate_chat,
            transcription=transcription,
            tone=lookup("TONE_PRESET") or "default",
            db_path=Path(db_path) if db_path else home_dir(environ) / "recordings.db"
        )

    def with_gemini_key(self, api_key: str) -> "Settings":
        return replace(self, gemini_api_key=api_key or None)


def load_settings() -> Settings:
    """Resolve settings from the default overrides file and os.environ."""
    return Settings.from_env(overrides=LocalOverrides.load(home_dir() / "overrides.json"))
