"""KeyParser: pulls a key name out of the key detector's free-text output."""

import re

from keyshift.key_distance import is_valid_key

# Letter plus optional accidental, with an optional minor suffix
KEY_TOKEN = r"[A-G][#b]?m?"

# Tried in order; the first matcher yielding a recognised key wins.
KEY_MATCHERS: list[tuple[str, re.Pattern[str]]] = [
    ("exact", re.compile(rf"^({KEY_TOKEN})$")),
    ("labelled", re.compile(rf"Key:\s*({KEY_TOKEN})(?![\w#])")),
    ("mode", re.compile(r"(?<![\w#])([A-G][#b]?)\s*(?i:major|minor|maj|min)\b")),
    ("samples", re.compile(rf"Samples loaded:\s*\d+\s+({KEY_TOKEN})(?![\w#])")),
    ("token", re.compile(rf"(?<![\w#])({KEY_TOKEN})(?![\w#])")),
]


def parse_detected_key(output: str) -> str | None:
    """
    Extract a key name from detector output.

    Matchers run from most to least specific:

      1. the whole trimmed output is a key name, e.g. ``"Ebm"``
      2. ``"Key: F#"``
      3. a key name followed by a mode word, e.g. ``"A minor"``
      4. ``"Samples loaded: 1323000 Bb"``
      5. any standalone key-shaped token

    Tokens that look like a key but are not one of the recognised spellings
    (``Cb``, ``E#``...) are passed over.

    Args:
        output: Combined stdout/stderr of the detector.

    Returns:
        The key name as written by the detector, or None if nothing matched.
    """
    text = output.strip()
    for _name, pattern in KEY_MATCHERS:
        for match in pattern.finditer(text):
            candidate = match.group(1)
            if is_valid_key(candidate):
                return candidate
    return None
