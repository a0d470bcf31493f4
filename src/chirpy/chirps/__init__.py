"""
Chirp business logic: length validation and profanity redaction.

Nothing in here knows about sockets or HTTP framing.
"""

from .profanity import PROFANE_WORDS, redact, clean_profanity
from .validator import MAX_CHIRP_LENGTH, ChirpResult, validate_chirp

__all__ = [
    "PROFANE_WORDS",
    "redact",
    "clean_profanity",
    "MAX_CHIRP_LENGTH",
    "ChirpResult",
    "validate_chirp",
]
