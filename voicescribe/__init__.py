"""
VoiceScribe - voice dictation with layered text correction.

Records audio, transcribes it with a hosted Whisper model and corrects
spelling, grammar and punctuation, falling back across providers when one
of them is unavailable.
"""

__version__ = "0.1.0"
__description__ = "Voice dictation with multi-provider spelling, grammar and punctuation correction"
