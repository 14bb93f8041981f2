"""Lookalike punctuation folding used when matching typed characters."""

from __future__ import annotations

SINGLE_QUOTE_CHARS = frozenset(
    {
        "'",
        "‘",  # left single quotation mark
        "’",  # right single quotation mark / typographic apostrophe
        "‚",  # single low-9 quotation mark
        "‛",  # single high-reversed-9 quotation mark
        "′",  # prime
        "‹",  # single left-pointing angle quotation mark
        "›",  # single right-pointing angle quotation mark
    }
)

DOUBLE_QUOTE_CHARS = frozenset(
    {
        '"',
        "“",  # left double quotation mark
        "”",  # right double quotation mark
        "„",  # double low-9 quotation mark
        "‟",  # double high-reversed-9 quotation mark
        "″",  # double prime
        "«",  # left-pointing double angle quotation mark
        "»",  # right-pointing double angle quotation mark
    }
)


def normalize(char: str) -> str:
    """Fold quote-like code points to their plain ASCII form.

    Any other character is returned unchanged.
    """
    if char in SINGLE_QUOTE_CHARS:
        return "'"
    if char in DOUBLE_QUOTE_CHARS:
        return '"'
    return char


def chars_match(typed: str, expected: str) -> bool:
    """Return True if *typed* matches *expected* after normalisation."""
    return normalize(typed) == normalize(expected)
