"""Canonicalizer - comparison keys for change detection.

The key is lowercase text with every character outside ``[a-z0-9]``
removed, so case, whitespace and punctuation differences never count as an
edit. Keys are stored at block creation/update time and compared against
the recognizer's output on every later save.
"""

import re
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def canonicalize(text: Optional[str]) -> str:
    """Normalize ``text`` to its canonical comparison key.

    Total: ``None`` and empty strings map to ``""``.

    Examples:
        >>> canonicalize("Meeting Notes")
        'meetingnotes'
        >>> canonicalize("MEETING NOTES.")
        'meetingnotes'
    """
    if not text:
        return ""
    return _NON_ALNUM.sub("", text.lower()).strip()


def is_same_text(a: Optional[str], b: Optional[str]) -> bool:
    """Check whether two strings share a canonical key."""
    return canonicalize(a) == canonicalize(b)
