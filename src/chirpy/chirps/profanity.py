"""
=============================================================================
PROFANITY FILTER
=============================================================================

Whole-word, case-insensitive redaction of a fixed word list.

    "I had a Kerfuffle today"      →  "I had a **** today"
    "kerfuffle sharbert fornax"    →  "**** **** ****"
    "Kerfuffle!"                   →  "Kerfuffle!"       (punctuation)
    "kerfufflesharbert"            →  "kerfufflesharbert" (not a word)

=============================================================================
WHAT COUNTS AS A WORD
=============================================================================

A profane word is only replaced when BOTH sides are whitespace or the edge
of the string:

    (^|\\s)(kerfuffle|sharbert|fornax)(?=$|\\s)
    ──┬───  ───────────┬────────────  ───┬───
      │                │                 └── followed by space/end,
      │                │                     NOT consumed
      │                └── the only part that gets replaced
      └── preceded by space/start

Because the trailing boundary is a lookahead, "kerfuffle sharbert" yields
two matches sharing the one space between them. Each pass replaces the
word token only; the delimiters are never touched, and "****" can never
match again, so rescanning until nothing matches terminates and
redact(redact(x)) == redact(x).

=============================================================================
"""

import re


PROFANE_WORDS = ("kerfuffle", "sharbert", "fornax")

REPLACEMENT = "****"

# ASCII whitespace only: a no-break space does not split words here
_WHITESPACE = r"[ \t\n\f\r]"

PROFANITY_PATTERN = re.compile(
    rf"(?:^|{_WHITESPACE})({'|'.join(re.escape(word) for word in PROFANE_WORDS)})"
    rf"(?=$|{_WHITESPACE})",
    re.IGNORECASE,
)


def redact(text: str) -> str:
    """
    Replace every delimited profane word in text with "****".

        >>> redact("This is a kerfuffle opinion I need to share with the world")
        'This is a **** opinion I need to share with the world'
    """
    result = text
    position = 0

    while True:
        match = PROFANITY_PATTERN.search(result, position)
        if match is None:
            return result

        start, end = match.span(1)
        result = result[:start] + REPLACEMENT + result[end:]
        position = start + len(REPLACEMENT)


clean_profanity = redact
