"""
=============================================================================
CHIRP VALIDATOR
=============================================================================

Turns a raw request body into a ChirpResult.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   raw bytes                                                          │
    │       │                                                              │
    │       ▼                                                              │
    │   UTF-8 + JSON decode ──── fails ────► 400 "Invalid JSON"           │
    │       │                                                              │
    │       ▼                                                              │
    │   len(body) > 140 ──────── yes ──────► 400 "Chirp is too long"      │
    │       │                                                              │
    │       ▼                                                              │
    │   redact(body) ────────────────────────► 200 cleaned_body           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Length is counted in code points, so "é" is one character no matter how
many bytes it takes on the wire.

Decoding rules:
    - top level must be an object (or null, which means "no fields")
    - "body" must be a string when present
    - a missing "body" is the empty chirp, which is valid
    - unknown fields are ignored
    - a lone surrogate escape (\\ud800) becomes U+FFFD

=============================================================================
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .profanity import redact
from ..http.status_codes import HTTPStatus


MAX_CHIRP_LENGTH = 140

INVALID_JSON = "Invalid JSON"
CHIRP_TOO_LONG = "Chirp is too long"

# json.loads joins valid \uD83D\uDE00 pairs itself; anything left is a lone half
_LONE_SURROGATE = re.compile(r"[\ud800-\udfff]")


@dataclass
class ChirpResult:
    """
    Outcome of validating one chirp.

    Exactly one of cleaned_body / error is set.
    """

    status: HTTPStatus
    cleaned_body: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, str]:
        """The JSON payload sent to the client."""
        if self.ok:
            return {"cleaned_body": self.cleaned_body}
        return {"error": self.error}

    @classmethod
    def accepted(cls, cleaned_body: str) -> "ChirpResult":
        return cls(status=HTTPStatus.OK, cleaned_body=cleaned_body)

    @classmethod
    def rejected(cls, error: str) -> "ChirpResult":
        return cls(status=HTTPStatus.BAD_REQUEST, error=error)


def _decode_body(raw: bytes) -> Optional[str]:
    """Pull the chirp text out of the request body, None if undecodable."""
    try:
        payload: Any = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None

    if payload is None:
        return ""
    if not isinstance(payload, dict):
        return None

    body = payload.get("body")
    if body is None:
        return ""
    if not isinstance(body, str):
        return None
    return _LONE_SURROGATE.sub("\ufffd", body)


def validate_chirp(raw: bytes) -> ChirpResult:
    """
    Validate and clean a chirp request body.

    Args:
        raw: The request body, expected to be {"body": "..."}

    Returns:
        ChirpResult with status 200 and cleaned_body, or 400 and error
    """
    body = _decode_body(raw)
    if body is None:
        return ChirpResult.rejected(INVALID_JSON)

    if len(body) > MAX_CHIRP_LENGTH:
        return ChirpResult.rejected(CHIRP_TOO_LONG)

    return ChirpResult.accepted(redact(body))
